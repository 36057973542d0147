import aws_cdk as cdk
import pytest
from aws_cdk.assertions import Match, Template

from stacks.service import build_app_pipelines, build_service, deployment_env
from stacks.stages import Stage

GITHUB = {"owner": "example-org", "repo": "AWS-project"}


def resource_names(stacks):
    """Globally visible names declared for one stage."""
    storage = Template.from_stack(stacks.storage)
    pipeline = Template.from_stack(stacks.pipeline)
    tables = [r["Properties"]["TableName"]
              for r in storage.find_resources("AWS::DynamoDB::Table").values()]
    buckets = [r["Properties"]["BucketName"]
               for r in storage.find_resources("AWS::S3::Bucket").values()]
    pipelines = [r["Properties"]["Name"]
                 for r in pipeline.find_resources("AWS::CodePipeline::Pipeline").values()]
    return tables + buckets + pipelines


def test_stack_ids_follow_stage():
    beta = build_service(cdk.App(), Stage.BETA, github=GITHUB)
    prod = build_service(cdk.App(), Stage.PROD, github=GITHUB)

    assert [s.stack_name for s in (beta.storage, beta.auth, beta.api, beta.pipeline)] == [
        "betaMyServiceStorageStack", "betaMyServiceAuthStack",
        "betaMyServiceAPIStack", "betaMyServicePipelineStack",
    ]
    assert [s.stack_name for s in (prod.storage, prod.auth, prod.api, prod.pipeline)] == [
        "MyServiceStorageStack", "MyServiceAuthStack",
        "MyServiceAPIStack", "MyServicePipelineStack",
    ]


def test_beta_and_production_names_never_collide():
    beta_names = resource_names(build_service(cdk.App(), Stage.BETA, github=GITHUB))
    prod_names = resource_names(build_service(cdk.App(), Stage.PROD, github=GITHUB))

    assert len(beta_names) == len(prod_names) == 4
    assert all(name.startswith("beta") for name in beta_names)
    assert not any(name.startswith("beta") for name in prod_names)
    assert not set(beta_names) & set(prod_names)


def test_api_depends_on_storage_and_auth():
    stacks = build_service(cdk.App(), Stage.BETA)

    assert stacks.pipeline is None
    assert {s.stack_name for s in stacks.api.dependencies} == {
        "betaMyServiceStorageStack", "betaMyServiceAuthStack",
    }


def test_pipeline_branch_follows_stage():
    beta = Template.from_stack(build_service(cdk.App(), Stage.BETA, github=GITHUB).pipeline)
    prod = Template.from_stack(build_service(cdk.App(), Stage.PROD, github=GITHUB).pipeline)

    for template, branch in ((beta, "beta"), (prod, "main")):
        template.has_resource_properties("AWS::CodePipeline::Pipeline", {
            "Stages": Match.array_with([Match.object_like({
                "Name": "Source",
                "Actions": [Match.object_like({"Configuration": Match.object_like({"Branch": branch})})],
            })]),
        })


def test_pipeline_branch_from_context_mapping():
    github = dict(GITHUB, branches={"beta": "develop"})
    template = Template.from_stack(build_service(cdk.App(), Stage.BETA, github=github).pipeline)

    template.has_resource_properties("AWS::CodePipeline::Pipeline", {
        "Stages": Match.array_with([Match.object_like({
            "Name": "Source",
            "Actions": [Match.object_like({"Configuration": Match.object_like({"Branch": "develop"})})],
        })]),
    })


def test_tags_applied_to_resources():
    stacks = build_service(cdk.App(), Stage.PROD, tags={"CostCenter": "web"})
    template = Template.from_stack(stacks.storage)

    template.has_resource_properties("AWS::DynamoDB::Table", {
        "Tags": Match.array_with([
            {"Key": "CostCenter", "Value": "web"},
            {"Key": "ManagedBy", "Value": "CDK"},
            {"Key": "Project", "Value": "MyProject"},
            {"Key": "Stage", "Value": "prod"},
        ]),
    })


def stage_tag(stack, resource_type):
    (resource,) = Template.from_stack(stack).find_resources(resource_type).values()
    return {t["Key"]: t["Value"] for t in resource["Properties"]["Tags"]}["Stage"]


def test_stages_sharing_one_app_keep_their_own_tags():
    app = cdk.App()
    beta = build_service(app, Stage.BETA, github=GITHUB)
    prod = build_service(app, Stage.PROD, github=GITHUB)

    assert stage_tag(beta.storage, "AWS::DynamoDB::Table") == "beta"
    assert stage_tag(prod.storage, "AWS::DynamoDB::Table") == "prod"
    assert stage_tag(beta.api, "AWS::AppSync::GraphQLApi") == "beta"
    assert stage_tag(prod.pipeline, "AWS::CodePipeline::Pipeline") == "prod"


def test_app_pipelines_are_tagged_like_the_service():
    pipelines = build_app_pipelines(cdk.App(), Stage.BETA, github=GITHUB, tags={"CostCenter": "web"})

    for stack in pipelines.all:
        Template.from_stack(stack).has_resource_properties("AWS::CodePipeline::Pipeline", {
            "Tags": Match.array_with([
                {"Key": "CostCenter", "Value": "web"},
                {"Key": "ManagedBy", "Value": "CDK"},
                {"Key": "Project", "Value": "MyProject"},
                {"Key": "Stage", "Value": "beta"},
            ]),
        })


def test_app_pipelines_use_repos_from_context():
    pipelines = build_app_pipelines(cdk.App(), Stage.PROD, github=GITHUB, repos={"web": "site"})

    assert pipelines.api.stack_name == "KiroApiPipelineStack"
    assert pipelines.web.stack_name == "KiroWebPipelineStack"
    Template.from_stack(pipelines.web).has_resource_properties("AWS::CodePipeline::Pipeline", {
        "Stages": Match.array_with([Match.object_like({
            "Name": "Source",
            "Actions": [Match.object_like({"Configuration": Match.object_like({"Repo": "site"})})],
        })]),
    })


@pytest.mark.parametrize("github", [None, {}, {"repo": "AWS-project"}, "example-org"])
def test_app_pipelines_require_github_owner(github):
    with pytest.raises(ValueError, match="github"):
        build_app_pipelines(cdk.App(), Stage.BETA, github=github)


def test_deployment_env_prefers_cli_region(monkeypatch):
    app = cdk.App(context={"region": "us-west-2"})

    monkeypatch.setenv("CDK_DEFAULT_ACCOUNT", "123456789012")
    monkeypatch.setenv("CDK_DEFAULT_REGION", "eu-west-1")
    assert deployment_env(app).account == "123456789012"
    assert deployment_env(app).region == "eu-west-1"

    monkeypatch.delenv("CDK_DEFAULT_REGION")
    assert deployment_env(app).region == "us-west-2"
