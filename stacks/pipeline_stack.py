"""Pipeline stack - CI/CD for one stage of My Service.

Source (GitHub webhook) -> parallel builds (infrastructure, API, web)
-> [production only: manual approval] -> CDK deploy of the stage's
storage/auth/API stacks -> parallel application deploys (Lambda code,
static website).

Every project, bucket and target stack is stage-qualified, so the beta
pipeline only ever touches beta resources.

Deploy:   cdk deploy betaMyServicePipelineStack
"""
import aws_cdk as cdk
from constructs import Construct
from aws_cdk import (
    aws_codebuild as codebuild,
    aws_codepipeline as codepipeline,
    aws_codepipeline_actions as codepipeline_actions,
    aws_iam as iam,
    aws_s3 as s3,
)

from stacks.pipeline_common import (
    GithubSource,
    build_environment,
    console_url,
    github_source_action,
    stack_output_export,
    website_deploy_commands,
)
from stacks.stages import (
    API_STACK,
    AUTH_STACK,
    HELLO_FUNCTION,
    STORAGE_STACK,
    WEB_BUCKET,
    Stage,
    stagify,
)

INFRA_DIR = "my-project-infrastructure"
API_DIR = "my-project-api"
WEB_DIR = "my-project-web"


class PipelineStack(cdk.Stack):

    def __init__(self, scope: Construct, construct_id: str, *, stage: Stage,
                 source: GithubSource, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        api_stack = stagify(stage, API_STACK)
        auth_stack = stagify(stage, AUTH_STACK)
        storage_stack = stagify(stage, STORAGE_STACK)

        artifact_bucket = s3.Bucket(
            self, "ArtifactBucket",
            bucket_name=stagify(stage, "my-project-pipeline-artifacts", "-"),
            removal_policy=cdk.RemovalPolicy.DESTROY,
            auto_delete_objects=True,
            encryption=s3.BucketEncryption.S3_MANAGED,
        )

        source_output = codepipeline.Artifact("SourceCode")
        infra_build_output = codepipeline.Artifact("InfraBuild")
        api_build_output = codepipeline.Artifact("ApiBuild")
        web_build_output = codepipeline.Artifact("WebBuild")

        # -----------------------------------------------------------
        # Build projects
        # -----------------------------------------------------------
        infra_build = codebuild.PipelineProject(
            self, "InfraBuild",
            project_name=stagify(stage, "MyProject-Infra-Build"),
            environment=build_environment(),
            build_spec=codebuild.BuildSpec.from_object({
                "version": "0.2",
                "phases": {
                    "install": {
                        "runtime-versions": {"python": "3.12", "nodejs": 20},
                        "commands": [
                            f"cd {INFRA_DIR}",
                            "npm install -g aws-cdk",
                            "pip install -e '.[test]'",
                        ],
                    },
                    "build": {
                        "commands": [
                            "pytest",
                            f"cdk synth -c stage={stage.label}",
                        ],
                    },
                },
                "artifacts": {
                    "base-directory": f"{INFRA_DIR}/cdk.out",
                    "files": ["**/*"],
                },
            }),
        )

        api_build = codebuild.PipelineProject(
            self, "ApiBuild",
            project_name=stagify(stage, "MyProject-API-Build"),
            environment=build_environment(),
            build_spec=codebuild.BuildSpec.from_object({
                "version": "0.2",
                "phases": {
                    "install": {
                        "runtime-versions": {"python": "3.12"},
                        "commands": [
                            f"cd {API_DIR}",
                            "pip install -r requirements.txt -t build/",
                            "pip install pytest",
                        ],
                    },
                    "build": {"commands": ["pytest", "cp -r src/. build/"]},
                    "post_build": {
                        "commands": ["cd build", "zip -r ../../api-bundle.zip ."],
                    },
                },
                "artifacts": {"files": ["api-bundle.zip"]},
            }),
        )

        web_build = codebuild.PipelineProject(
            self, "WebBuild",
            project_name=stagify(stage, "MyProject-Web-Build"),
            environment=build_environment(codebuild.ComputeType.MEDIUM, GATSBY_STAGE=stage.label),
            build_spec=codebuild.BuildSpec.from_object({
                "version": "0.2",
                "phases": {
                    "install": {
                        "runtime-versions": {"nodejs": 20},
                        "commands": [f"cd {WEB_DIR}", "npm install"],
                    },
                    "pre_build": {
                        # API endpoint and pool ids come from this stage's deployed stacks
                        "commands": [
                            stack_output_export("GATSBY_GRAPHQL_ENDPOINT", api_stack, "GraphQLApiUrl"),
                            stack_output_export("GATSBY_API_KEY", api_stack, "GraphQLApiKey"),
                            stack_output_export("GATSBY_USER_POOL_ID", auth_stack, "UserPoolId"),
                            stack_output_export("GATSBY_USER_POOL_CLIENT_ID", auth_stack, "UserPoolClientId"),
                            f"export GATSBY_AWS_REGION={self.region}",
                        ],
                    },
                    "build": {"commands": ["npm run build", "npm test"]},
                },
                "artifacts": {
                    "base-directory": f"{WEB_DIR}/public",
                    "files": ["**/*"],
                },
            }),
        )
        web_build.add_to_role_policy(iam.PolicyStatement(
            actions=["cloudformation:DescribeStacks"],
            resources=[
                self.format_arn(service="cloudformation", resource="stack", resource_name=f"{name}/*")
                for name in (api_stack, auth_stack)
            ],
        ))

        # -----------------------------------------------------------
        # Deploy projects
        # -----------------------------------------------------------
        infra_deploy = codebuild.PipelineProject(
            self, "InfraDeploy",
            project_name=stagify(stage, "MyProject-Infra-Deploy"),
            environment=build_environment(privileged=True),
            build_spec=codebuild.BuildSpec.from_object({
                "version": "0.2",
                "phases": {
                    "install": {
                        "runtime-versions": {"nodejs": 20},
                        "commands": ["npm install -g aws-cdk"],
                    },
                    "build": {
                        # The input artifact is the synthesized cloud assembly
                        "commands": [
                            f"cdk deploy --app . {storage_stack} {auth_stack} {api_stack} --require-approval never",
                        ],
                    },
                },
            }),
        )
        # CloudFormation deploys need broad rights over every resource type in the stacks.
        infra_deploy.add_to_role_policy(iam.PolicyStatement(actions=["*"], resources=["*"]))

        api_deploy = codebuild.PipelineProject(
            self, "ApiDeploy",
            project_name=stagify(stage, "MyProject-API-Deploy"),
            environment=build_environment(),
            build_spec=codebuild.BuildSpec.from_object({
                "version": "0.2",
                "phases": {
                    "build": {
                        "commands": [
                            f"aws lambda update-function-code --function-name {stagify(stage, HELLO_FUNCTION)} "
                            "--zip-file fileb://api-bundle.zip",
                        ],
                    },
                },
            }),
        )
        api_deploy.add_to_role_policy(iam.PolicyStatement(
            actions=["lambda:UpdateFunctionCode"],
            resources=[self.format_arn(service="lambda", resource="function",
                                       resource_name=stagify(stage, HELLO_FUNCTION),
                                       arn_format=cdk.ArnFormat.COLON_RESOURCE_NAME)],
        ))

        web_bucket = stagify(stage, WEB_BUCKET, "-")
        web_deploy = codebuild.PipelineProject(
            self, "WebDeploy",
            project_name=stagify(stage, "MyProject-Web-Deploy"),
            environment=build_environment(),
            build_spec=codebuild.BuildSpec.from_object({
                "version": "0.2",
                "phases": {
                    "build": {"commands": website_deploy_commands(web_bucket, self.region)},
                },
            }),
        )
        web_deploy.add_to_role_policy(iam.PolicyStatement(
            actions=["s3:*"],
            resources=[f"arn:{self.partition}:s3:::{web_bucket}", f"arn:{self.partition}:s3:::{web_bucket}/*"],
        ))

        # -----------------------------------------------------------
        # Pipeline
        # -----------------------------------------------------------
        self.pipeline = codepipeline.Pipeline(
            self, "Pipeline",
            pipeline_name=stagify(stage, "MyProject-Pipeline"),
            artifact_bucket=artifact_bucket,
            restart_execution_on_update=True,
        )

        self.pipeline.add_stage(
            stage_name="Source",
            actions=[github_source_action(source, source_output)],
        )

        self.pipeline.add_stage(
            stage_name="Build",
            actions=[
                codepipeline_actions.CodeBuildAction(
                    action_name="Build_Infrastructure", project=infra_build,
                    input=source_output, outputs=[infra_build_output], run_order=1),
                codepipeline_actions.CodeBuildAction(
                    action_name="Build_API", project=api_build,
                    input=source_output, outputs=[api_build_output], run_order=1),
                codepipeline_actions.CodeBuildAction(
                    action_name="Build_Web", project=web_build,
                    input=source_output, outputs=[web_build_output], run_order=1),
            ],
        )

        if stage is Stage.PROD:
            self.pipeline.add_stage(
                stage_name="Approve_Production",
                actions=[codepipeline_actions.ManualApprovalAction(
                    action_name="Manual_Approval",
                    additional_information="Verify the beta environment before deploying to production",
                )],
            )

        self.pipeline.add_stage(
            stage_name="Deploy_Infrastructure",
            actions=[codepipeline_actions.CodeBuildAction(
                action_name="Deploy_CDK_Stacks", project=infra_deploy, input=infra_build_output)],
        )

        self.pipeline.add_stage(
            stage_name="Deploy_Application",
            actions=[
                codepipeline_actions.CodeBuildAction(
                    action_name="Deploy_API", project=api_deploy, input=api_build_output, run_order=1),
                codepipeline_actions.CodeBuildAction(
                    action_name="Deploy_Web", project=web_deploy, input=web_build_output, run_order=1),
            ],
        )

        # -----------------------------------------------------------
        # Outputs
        # -----------------------------------------------------------
        cdk.CfnOutput(self, "PipelineName", value=self.pipeline.pipeline_name,
                      export_name=stagify(stage, "PipelineName"))
        cdk.CfnOutput(self, "PipelineUrl", value=console_url(self.pipeline.pipeline_name),
                      description="CodePipeline console URL")
