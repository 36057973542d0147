from datetime import datetime, timezone

import boto3
import pytest
from botocore.exceptions import ClientError
from botocore.stub import Stubber

import stack_outputs
from stacks.stages import Stage


@pytest.fixture
def cfn():
    client = boto3.client(
        "cloudformation",
        region_name="us-west-2",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    with Stubber(client) as stubber:
        client.stubber = stubber
        yield client
        stubber.assert_no_pending_responses()


def describe_response(stack_name, outputs):
    return {"Stacks": [{
        "StackName": stack_name,
        "CreationTime": datetime(2026, 1, 1, tzinfo=timezone.utc),
        "StackStatus": "CREATE_COMPLETE",
        "Outputs": [{"OutputKey": k, "OutputValue": v} for k, v in outputs.items()],
    }]}


def test_get_stack_outputs(cfn):
    cfn.stubber.add_response(
        "describe_stacks",
        describe_response("betaMyServiceStorageStack", {"UsersTableName": "betaUsersTable"}),
        {"StackName": "betaMyServiceStorageStack"},
    )

    assert stack_outputs.get_stack_outputs(cfn, "betaMyServiceStorageStack") == {
        "UsersTableName": "betaUsersTable",
    }


def test_missing_stack_has_no_outputs(cfn):
    cfn.stubber.add_client_error(
        "describe_stacks",
        service_error_code="ValidationError",
        service_message="Stack with id MyServiceAPIStack does not exist",
    )

    assert stack_outputs.get_stack_outputs(cfn, "MyServiceAPIStack") == {}


def test_other_errors_propagate(cfn):
    cfn.stubber.add_client_error("describe_stacks", service_error_code="AccessDenied")

    with pytest.raises(ClientError, match="AccessDenied"):
        stack_outputs.get_stack_outputs(cfn, "MyServiceAPIStack")


def test_web_env_reads_each_stack_once(cfn):
    cfn.stubber.add_response(
        "describe_stacks",
        describe_response("betaMyServiceAPIStack", {
            "GraphQLApiUrl": "https://example.appsync-api.us-west-2.amazonaws.com/graphql",
            "GraphQLApiKey": "da2-key",
        }),
        {"StackName": "betaMyServiceAPIStack"},
    )
    cfn.stubber.add_response(
        "describe_stacks",
        describe_response("betaMyServiceAuthStack", {
            "UserPoolId": "us-west-2_pool",
            "UserPoolClientId": "client123",
        }),
        {"StackName": "betaMyServiceAuthStack"},
    )

    assert stack_outputs.web_env(cfn, Stage.BETA, "us-west-2") == {
        "GATSBY_GRAPHQL_ENDPOINT": "https://example.appsync-api.us-west-2.amazonaws.com/graphql",
        "GATSBY_API_KEY": "da2-key",
        "GATSBY_USER_POOL_ID": "us-west-2_pool",
        "GATSBY_USER_POOL_CLIENT_ID": "client123",
        "GATSBY_AWS_REGION": "us-west-2",
        "GATSBY_STAGE": "beta",
    }


def test_web_env_requires_deployed_stacks(cfn):
    cfn.stubber.add_client_error("describe_stacks", service_error_code="ValidationError")

    with pytest.raises(RuntimeError, match="GraphQLApiUrl"):
        stack_outputs.web_env(cfn, Stage.PROD, "us-west-2")


def test_invalid_stage_is_rejected():
    with pytest.raises(SystemExit):
        stack_outputs.main(["--stage", "production"])
