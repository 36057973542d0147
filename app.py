"""CDK app entry point for My Service.

Stacks for one stage (beta stacks carry a "beta" prefix):
  - MyServiceStorageStack:  DynamoDB users table, assets and media buckets
  - MyServiceAuthStack:     Cognito user pool, web client, identity pool
  - MyServiceAPIStack:      AppSync GraphQL API with a Lambda resolver
  - MyServicePipelineStack: CodePipeline that builds and deploys the above

Deploy beta:   cdk deploy --all
Deploy prod:   cdk deploy --all -c stage=prod
"""
import logging

import aws_cdk as cdk
from stacks.service import build_service, deployment_env
from stacks.stages import get_stage

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

app = cdk.App()

# Unknown stage names raise instead of falling back to production
stage = get_stage(app.node.try_get_context("stage") or "beta")

build_service(
    app, stage,
    env=deployment_env(app),
    github=app.node.try_get_context("github"),
    tags=app.node.try_get_context("tags"),
)

app.synth()
