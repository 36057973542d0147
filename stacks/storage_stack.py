"""Storage stack - DynamoDB users table and S3 buckets for My Project.

Production data is retained when the stack is deleted; beta tables and
buckets are destroyed along with their contents.

Deploy:   cdk deploy betaMyServiceStorageStack
Destroy:  cdk destroy betaMyServiceStorageStack
"""
import aws_cdk as cdk
from constructs import Construct
from aws_cdk import (
    aws_dynamodb as dynamodb,
    aws_s3 as s3,
)

from stacks.stages import Stage, stagify


class StorageStack(cdk.Stack):

    def __init__(self, scope: Construct, construct_id: str, *, stage: Stage, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        is_prod = stage is Stage.PROD
        removal_policy = cdk.RemovalPolicy.RETAIN if is_prod else cdk.RemovalPolicy.DESTROY

        # -----------------------------------------------------------
        # Users table
        # -----------------------------------------------------------
        self.users_table = dynamodb.Table(
            self, "UsersTable",
            table_name=stagify(stage, "UsersTable"),
            partition_key=dynamodb.Attribute(name="id", type=dynamodb.AttributeType.STRING),
            sort_key=dynamodb.Attribute(name="createdAt", type=dynamodb.AttributeType.NUMBER),
            billing_mode=dynamodb.BillingMode.PAY_PER_REQUEST,
            stream=dynamodb.StreamViewType.NEW_AND_OLD_IMAGES,
            point_in_time_recovery_specification=dynamodb.PointInTimeRecoverySpecification(
                point_in_time_recovery_enabled=True,
            ),
            removal_policy=removal_policy,
        )

        # Email lookups
        self.users_table.add_global_secondary_index(
            index_name="EmailIndex",
            partition_key=dynamodb.Attribute(name="email", type=dynamodb.AttributeType.STRING),
            projection_type=dynamodb.ProjectionType.ALL,
        )

        # -----------------------------------------------------------
        # Buckets (bucket names are global, so they must be stagified)
        # -----------------------------------------------------------
        self.assets_bucket = self._private_bucket(
            "AssetsBucket",
            bucket_name=stagify(stage, "my-project-assets", "-"),
            allowed_methods=[s3.HttpMethods.GET, s3.HttpMethods.HEAD],
            removal_policy=removal_policy,
            auto_delete_objects=not is_prod,
        )

        self.media_bucket = self._private_bucket(
            "MediaBucket",
            bucket_name=stagify(stage, "my-project-media", "-"),
            allowed_methods=[s3.HttpMethods.GET, s3.HttpMethods.PUT, s3.HttpMethods.POST],
            removal_policy=removal_policy,
            auto_delete_objects=not is_prod,
        )

        # -----------------------------------------------------------
        # Outputs
        # -----------------------------------------------------------
        cdk.CfnOutput(self, "UsersTableName", value=self.users_table.table_name,
                      export_name=stagify(stage, "UsersTableName"))
        cdk.CfnOutput(self, "UsersTableArn", value=self.users_table.table_arn,
                      export_name=stagify(stage, "UsersTableArn"))
        cdk.CfnOutput(self, "AssetsBucketName", value=self.assets_bucket.bucket_name,
                      export_name=stagify(stage, "AssetsBucketName"))
        cdk.CfnOutput(self, "MediaBucketName", value=self.media_bucket.bucket_name,
                      export_name=stagify(stage, "MediaBucketName"))

    def _private_bucket(self, construct_id: str, *, bucket_name: str, allowed_methods: list,
                        removal_policy: cdk.RemovalPolicy, auto_delete_objects: bool) -> s3.Bucket:
        return s3.Bucket(
            self, construct_id,
            bucket_name=bucket_name,
            public_read_access=False,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            encryption=s3.BucketEncryption.S3_MANAGED,
            cors=[s3.CorsRule(
                allowed_methods=allowed_methods,
                allowed_origins=["*"],
                allowed_headers=["*"],
            )],
            removal_policy=removal_policy,
            auto_delete_objects=auto_delete_objects,
        )
