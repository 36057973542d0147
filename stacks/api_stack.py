"""API stack - AppSync GraphQL API with a Lambda resolver.

Takes the user pool and users table as constructor arguments rather than
importing them by export name; CDK turns the references into cross-stack
outputs automatically.

Deploy:   cdk deploy betaMyServiceAPIStack
"""
import os
import aws_cdk as cdk
from constructs import Construct
from aws_cdk import (
    aws_appsync as appsync,
    aws_cognito as cognito,
    aws_dynamodb as dynamodb,
    aws_iam as iam,
    aws_lambda as lambda_,
)

from stacks.stages import HELLO_FUNCTION, Stage, stagify

LAMBDA_DIR = os.path.join(os.path.dirname(__file__), "lambda_functions")
SCHEMA_PATH = os.path.join(os.path.dirname(__file__), "graphql", "schema.graphql")


class ApiStack(cdk.Stack):

    def __init__(self, scope: Construct, construct_id: str, *, stage: Stage,
                 user_pool: cognito.IUserPool, users_table: dynamodb.ITable, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # -----------------------------------------------------------
        # GraphQL API
        # -----------------------------------------------------------
        self.api = appsync.GraphqlApi(
            self, "Api",
            name=stagify(stage, "MyProjectAPI"),
            definition=appsync.Definition.from_file(SCHEMA_PATH),
            authorization_config=appsync.AuthorizationConfig(
                default_authorization=appsync.AuthorizationMode(
                    authorization_type=appsync.AuthorizationType.USER_POOL,
                    user_pool_config=appsync.UserPoolConfig(user_pool=user_pool),
                ),
                additional_authorization_modes=[
                    appsync.AuthorizationMode(
                        authorization_type=appsync.AuthorizationType.API_KEY,
                        api_key_config=appsync.ApiKeyConfig(
                            expires=cdk.Expiration.after(cdk.Duration.days(365)),
                        ),
                    ),
                ],
            ),
            xray_enabled=True,
        )

        # -----------------------------------------------------------
        # Hello resolver Lambda
        # -----------------------------------------------------------
        self.hello_function = lambda_.Function(
            self, "HelloFunction",
            function_name=stagify(stage, HELLO_FUNCTION),
            runtime=lambda_.Runtime.PYTHON_3_12,
            handler="index.lambda_handler",
            code=lambda_.Code.from_asset(os.path.join(LAMBDA_DIR, "hello")),
            environment={
                "STAGE": stage.label,
                "USERS_TABLE_NAME": users_table.table_name,
            },
            timeout=cdk.Duration.seconds(30),
            memory_size=512,
        )
        self.hello_function.add_to_role_policy(iam.PolicyStatement(
            actions=["dynamodb:GetItem", "dynamodb:PutItem", "dynamodb:Query", "dynamodb:Scan"],
            resources=[users_table.table_arn, f"{users_table.table_arn}/index/*"],
        ))

        hello_source = self.api.add_lambda_data_source("HelloDataSource", self.hello_function)
        hello_source.create_resolver("HelloResolver", type_name="Query", field_name="hello")

        # -----------------------------------------------------------
        # Outputs
        # -----------------------------------------------------------
        cdk.CfnOutput(self, "GraphQLApiUrl", value=self.api.graphql_url,
                      export_name=stagify(stage, "GraphQLApiUrl"))
        cdk.CfnOutput(self, "GraphQLApiId", value=self.api.api_id,
                      export_name=stagify(stage, "GraphQLApiId"))
        cdk.CfnOutput(self, "GraphQLApiKey", value=self.api.api_key or "N/A",
                      export_name=stagify(stage, "GraphQLApiKey"))
