"""Shared pieces for the CodePipeline stacks.

Build commands, source actions and bucket policies used by both the
service pipeline and the standalone API/Web pipelines.
"""
import json
from dataclasses import dataclass

import aws_cdk as cdk
from aws_cdk import (
    aws_codebuild as codebuild,
    aws_codepipeline as codepipeline,
    aws_codepipeline_actions as codepipeline_actions,
)

GITHUB_TOKEN_SECRET = "GithubToken"
BUILD_IMAGE = codebuild.LinuxBuildImage.STANDARD_7_0


@dataclass(frozen=True)
class GithubSource:
    owner: str
    repo: str
    branch: str = "main"


def github_source_action(source: GithubSource, output: codepipeline.Artifact) -> codepipeline_actions.GitHubSourceAction:
    """Webhook-triggered GitHub source using the OAuth token in Secrets Manager."""
    return codepipeline_actions.GitHubSourceAction(
        action_name="GitHub_Source",
        owner=source.owner,
        repo=source.repo,
        branch=source.branch,
        oauth_token=cdk.SecretValue.secrets_manager(GITHUB_TOKEN_SECRET),
        output=output,
        trigger=codepipeline_actions.GitHubTrigger.WEBHOOK,
    )


def build_environment(compute_type=codebuild.ComputeType.SMALL, privileged=False,
                      **variables: str) -> codebuild.BuildEnvironment:
    return codebuild.BuildEnvironment(
        build_image=BUILD_IMAGE,
        compute_type=compute_type,
        privileged=privileged,
        environment_variables={
            key: codebuild.BuildEnvironmentVariable(value=value)
            for key, value in variables.items()
        } or None,
    )


def stack_output_export(variable: str, stack_name: str, output_key: str) -> str:
    """Shell line exporting one CloudFormation stack output as an env variable."""
    return (
        f"export {variable}=$(aws cloudformation describe-stacks --stack-name {stack_name} "
        f"--query 'Stacks[0].Outputs[?OutputKey==`{output_key}`].OutputValue' --output text)"
    )


def public_read_policy(bucket_name: str) -> str:
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Sid": "PublicReadGetObject",
            "Effect": "Allow",
            "Principal": "*",
            "Action": "s3:GetObject",
            "Resource": f"arn:aws:s3:::{bucket_name}/*",
        }],
    }, separators=(",", ":"))


def website_deploy_commands(bucket_name: str, region: str, source_dir: str = ".") -> list:
    """Create (if needed) and sync a public S3 static website bucket."""
    return [
        f"aws s3 mb s3://{bucket_name} --region {region} || true",
        f"aws s3api delete-public-access-block --bucket {bucket_name} || true",
        f"aws s3 website s3://{bucket_name} --index-document index.html --error-document 404.html",
        f"aws s3 sync {source_dir} s3://{bucket_name} --delete",
        f"aws s3api put-bucket-policy --bucket {bucket_name} --policy '{public_read_policy(bucket_name)}'",
    ]


def website_url(bucket_name: str, region: str) -> str:
    return f"http://{bucket_name}.s3-website-{region}.amazonaws.com"


def console_url(pipeline_name: str) -> str:
    return f"https://console.aws.amazon.com/codesuite/codepipeline/pipelines/{pipeline_name}/view"
