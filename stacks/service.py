"""Declares every stack of My Service for one stage.

Stacks are created in dependency order and wired by passing constructs
directly (storage/auth -> API), so nothing relies on string-keyed
CloudFormation exports to find its inputs.
"""
import logging
import os
from dataclasses import dataclass
from typing import Optional

import aws_cdk as cdk

from stacks.api_stack import ApiStack
from stacks.app_pipeline_stacks import ApiPipelineStack, WebPipelineStack
from stacks.auth_stack import AuthStack
from stacks.pipeline_common import GithubSource
from stacks.pipeline_stack import PipelineStack
from stacks.stages import API_STACK, AUTH_STACK, PIPELINE_STACK, STORAGE_STACK, Stage, stagify
from stacks.storage_stack import StorageStack

logger = logging.getLogger(__name__)

PROJECT_TAG = "MyProject"


@dataclass
class ServiceStacks:
    storage: StorageStack
    auth: AuthStack
    api: ApiStack
    pipeline: Optional[PipelineStack] = None

    @property
    def all(self) -> list:
        return [s for s in (self.storage, self.auth, self.api, self.pipeline) if s is not None]


@dataclass
class AppPipelineStacks:
    api: ApiPipelineStack
    web: WebPipelineStack

    @property
    def all(self) -> list:
        return [self.api, self.web]


def deployment_env(app: cdk.App) -> cdk.Environment:
    """Account from the CDK CLI; region from the CLI, else the ``region`` context."""
    return cdk.Environment(
        account=os.environ.get("CDK_DEFAULT_ACCOUNT"),
        region=os.environ.get("CDK_DEFAULT_REGION") or app.node.try_get_context("region"),
    )


def tag_stacks(stacks: list, stage: Stage, tags: Optional[dict] = None) -> None:
    """Tag only the given stacks, so several stages can share one app."""
    for stack in stacks:
        cdk.Tags.of(stack).add("Project", PROJECT_TAG)
        cdk.Tags.of(stack).add("Stage", stage.label)
        cdk.Tags.of(stack).add("ManagedBy", "CDK")
        for tag_key, tag_value in (tags or {}).items():
            cdk.Tags.of(stack).add(tag_key, tag_value)


def github_owner(github: Optional[dict]) -> str:
    if not isinstance(github, dict) or not github.get("owner"):
        raise ValueError("Missing 'github' context with an 'owner' (see cdk.json)")
    return github["owner"]


def branch_for(stage: Stage) -> str:
    return "beta" if stage is Stage.BETA else "main"


def build_service(app: cdk.App, stage: Stage, *, env: Optional[cdk.Environment] = None,
                  github: Optional[dict] = None, tags: Optional[dict] = None) -> ServiceStacks:
    """Create the storage, auth, API and (if ``github`` is given) pipeline stacks."""
    label = stage.label
    logger.info("Declaring My Service stacks for stage '%s'", label)

    storage = StorageStack(app, stagify(stage, STORAGE_STACK),
                           stage=stage, env=env,
                           description=f"Storage resources for My Project ({label})")

    auth = AuthStack(app, stagify(stage, AUTH_STACK),
                     stage=stage, env=env,
                     description=f"Authentication resources for My Project ({label})")

    api = ApiStack(app, stagify(stage, API_STACK),
                   stage=stage, env=env,
                   user_pool=auth.user_pool,
                   users_table=storage.users_table,
                   description=f"API resources for My Project ({label})")
    api.add_dependency(storage)
    api.add_dependency(auth)

    stacks = ServiceStacks(storage=storage, auth=auth, api=api)

    if github:
        source = GithubSource(
            owner=github_owner(github),
            repo=github["repo"],
            branch=github.get("branches", {}).get(label) or branch_for(stage),
        )
        logger.info("Pipeline source: %s/%s@%s", source.owner, source.repo, source.branch)
        stacks.pipeline = PipelineStack(app, stagify(stage, PIPELINE_STACK),
                                        stage=stage, env=env, source=source,
                                        description=f"CI/CD Pipeline for My Project ({label})")

    tag_stacks(stacks.all, stage, tags)
    return stacks


def build_app_pipelines(app: cdk.App, stage: Stage, *, github: Optional[dict],
                        repos: Optional[dict] = None, env: Optional[cdk.Environment] = None,
                        tags: Optional[dict] = None) -> AppPipelineStacks:
    """Create the standalone API and web pipelines targeting ``stage``."""
    owner = github_owner(github)
    repos = repos or {}
    logger.info("Declaring app pipelines for stage '%s'", stage.label)

    pipelines = AppPipelineStacks(
        api=ApiPipelineStack(app, stagify(stage, "KiroApiPipelineStack"),
                             stage=stage,
                             source=GithubSource(owner=owner, repo=repos.get("api", "kiro-api")),
                             env=env,
                             description="CodePipeline for Kiro API (Lambda functions)"),
        web=WebPipelineStack(app, stagify(stage, "KiroWebPipelineStack"),
                             stage=stage,
                             source=GithubSource(owner=owner, repo=repos.get("web", "kiro-web")),
                             env=env,
                             description="CodePipeline for Kiro Web (Gatsby app)"),
    )
    tag_stacks(pipelines.all, stage, tags)
    return pipelines
