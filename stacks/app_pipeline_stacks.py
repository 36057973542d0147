"""Standalone per-repository pipelines for the API and web apps.

Each pipeline watches its own repository and runs a single CodeBuild
action that builds, tests and deploys straight into one stage's
resources (the Lambda function or the website bucket). The infrastructure
itself is deployed by PipelineStack.

Deploy:   cdk --app "python3 pipelines_app.py" deploy --all
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
    website_url,
)
from stacks.stages import API_STACK, AUTH_STACK, HELLO_FUNCTION, WEB_BUCKET, Stage, stagify


class _AppPipelineStack(cdk.Stack):
    """Source -> Build_and_Deploy pipeline around one CodeBuild project.

    Subclasses must set ``app_name`` and override ``build_spec``.
    """

    app_name = ""

    def __init__(self, scope: Construct, construct_id: str, *, stage: Stage,
                 source: GithubSource, **kwargs) -> None:
        if not self.app_name or type(self).build_spec is _AppPipelineStack.build_spec:
            raise TypeError(f"{type(self).__name__} must set app_name and override build_spec")
        super().__init__(scope, construct_id, **kwargs)
        self.deploy_stage = stage

        artifact_bucket = s3.Bucket(
            self, "ArtifactBucket",
            bucket_name=stagify(stage, f"kiro-{self.app_name}-pipeline-artifacts", "-"),
            removal_policy=cdk.RemovalPolicy.DESTROY,
            auto_delete_objects=True,
        )

        source_output = codepipeline.Artifact("SourceCode")
        build_output = codepipeline.Artifact("BuildOutput")

        self.build_project = codebuild.PipelineProject(
            self, "BuildProject",
            project_name=stagify(stage, f"kiro-{self.app_name}-build", "-"),
            environment=self.project_environment(),
            build_spec=codebuild.BuildSpec.from_object(self.build_spec()),
        )
        for statement in self.policy_statements():
            self.build_project.add_to_role_policy(statement)

        self.pipeline = codepipeline.Pipeline(
            self, "Pipeline",
            pipeline_name=stagify(stage, f"kiro-{self.app_name}-pipeline", "-"),
            artifact_bucket=artifact_bucket,
        )
        self.pipeline.add_stage(
            stage_name="Source",
            actions=[github_source_action(source, source_output)],
        )
        self.pipeline.add_stage(
            stage_name="Build_and_Deploy",
            actions=[codepipeline_actions.CodeBuildAction(
                action_name="Build_and_Deploy",
                project=self.build_project,
                input=source_output,
                outputs=[build_output],
            )],
        )

        cdk.CfnOutput(self, "PipelineUrl", value=console_url(self.pipeline.pipeline_name),
                      description=f"CodePipeline console URL for the {self.app_name} pipeline")

    def project_environment(self) -> codebuild.BuildEnvironment:
        return build_environment()

    def build_spec(self) -> dict:
        """CodeBuild buildspec for the single Build_and_Deploy action."""
        raise NotImplementedError

    def policy_statements(self) -> list:
        return []


class ApiPipelineStack(_AppPipelineStack):
    """Builds the API bundle and pushes it to the stage's Hello function."""

    app_name = "api"

    def build_spec(self) -> dict:
        function_name = stagify(self.deploy_stage, HELLO_FUNCTION)
        return {
            "version": "0.2",
            "phases": {
                "install": {
                    "runtime-versions": {"python": "3.12"},
                    "commands": ["pip install -r requirements.txt -t build/", "pip install pytest"],
                },
                "build": {"commands": ["pytest", "cp -r src/. build/"]},
                "post_build": {
                    "commands": [
                        "cd build && zip -r ../function.zip . && cd ..",
                        f"aws lambda update-function-code --function-name {function_name} "
                        "--zip-file fileb://function.zip",
                        f'echo "Updated {function_name}"',
                    ],
                },
            },
            "artifacts": {"files": ["function.zip"]},
        }

    def policy_statements(self) -> list:
        return [iam.PolicyStatement(
            actions=["lambda:UpdateFunctionCode", "lambda:GetFunction"],
            resources=[self.format_arn(service="lambda", resource="function",
                                       resource_name=stagify(self.deploy_stage, HELLO_FUNCTION),
                                       arn_format=cdk.ArnFormat.COLON_RESOURCE_NAME)],
        )]


class WebPipelineStack(_AppPipelineStack):
    """Builds the Gatsby site against the stage's API and publishes it to S3."""

    app_name = "web"

    def __init__(self, scope: Construct, construct_id: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)
        cdk.CfnOutput(self, "WebsiteUrl", value=website_url(self.bucket_name, self.region),
                      description="Static website URL")

    @property
    def bucket_name(self) -> str:
        return stagify(self.deploy_stage, WEB_BUCKET, "-")

    def project_environment(self) -> codebuild.BuildEnvironment:
        return build_environment(codebuild.ComputeType.MEDIUM, GATSBY_STAGE=self.deploy_stage.label)

    def build_spec(self) -> dict:
        api_stack = stagify(self.deploy_stage, API_STACK)
        auth_stack = stagify(self.deploy_stage, AUTH_STACK)
        return {
            "version": "0.2",
            "phases": {
                "install": {
                    "runtime-versions": {"nodejs": 20},
                    "commands": ["npm install"],
                },
                "pre_build": {
                    "commands": [
                        stack_output_export("GATSBY_GRAPHQL_ENDPOINT", api_stack, "GraphQLApiUrl"),
                        stack_output_export("GATSBY_API_KEY", api_stack, "GraphQLApiKey"),
                        stack_output_export("GATSBY_USER_POOL_ID", auth_stack, "UserPoolId"),
                        stack_output_export("GATSBY_USER_POOL_CLIENT_ID", auth_stack, "UserPoolClientId"),
                        f"export GATSBY_AWS_REGION={self.region}",
                        'echo "GATSBY_GRAPHQL_ENDPOINT=$GATSBY_GRAPHQL_ENDPOINT"',
                    ],
                },
                "build": {"commands": ["npm run build", "npm test"]},
                "post_build": {
                    "commands": website_deploy_commands(self.bucket_name, self.region, "public/") + [
                        f'echo "Website: {website_url(self.bucket_name, self.region)}"',
                    ],
                },
            },
            "artifacts": {"base-directory": "public", "files": ["**/*"]},
        }

    def policy_statements(self) -> list:
        return [
            iam.PolicyStatement(
                actions=["cloudformation:DescribeStacks"],
                resources=[
                    self.format_arn(service="cloudformation", resource="stack", resource_name=f"{name}/*")
                    for name in (stagify(self.deploy_stage, API_STACK), stagify(self.deploy_stage, AUTH_STACK))
                ],
            ),
            iam.PolicyStatement(
                actions=["s3:*"],
                resources=[f"arn:{self.partition}:s3:::{self.bucket_name}",
                           f"arn:{self.partition}:s3:::{self.bucket_name}/*"],
            ),
        ]
