"""CDK app for the standalone API and web pipelines.

  - KiroApiPipelineStack: builds the API repo and updates the Hello Lambda
  - KiroWebPipelineStack: builds the Gatsby site and publishes it to S3

Both target the stage given by -c pipelines_stage=... (default beta).

Deploy all:    cdk --app "python3 pipelines_app.py" deploy --all
"""
import logging

import aws_cdk as cdk
from stacks.service import build_app_pipelines, deployment_env
from stacks.stages import get_stage

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

app = cdk.App()

stage = get_stage(app.node.try_get_context("pipelines_stage") or "beta")

build_app_pipelines(
    app, stage,
    env=deployment_env(app),
    github=app.node.try_get_context("github"),
    repos=app.node.try_get_context("app_repos"),
    tags=app.node.try_get_context("tags"),
)

app.synth()
