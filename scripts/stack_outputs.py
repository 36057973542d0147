"""Print the CloudFormation outputs of a deployed stage.

Reads the storage/auth/API stack outputs for a stage, or emits the
GATSBY_* variables a local web build needs (same values the pipeline's
web build exports).

Usage:
    python scripts/stack_outputs.py                   # beta outputs, all stacks
    python scripts/stack_outputs.py --stage prod
    python scripts/stack_outputs.py --env > .env.development
"""
import argparse
import os

import boto3
from botocore.exceptions import ClientError

from stacks.stages import API_STACK, AUTH_STACK, STORAGE_STACK, Stage, get_stage, stagify

DEFAULT_REGION = os.environ.get("AWS_REGION", "us-west-2")

# env variable -> (stack base name, output key)
WEB_ENV_OUTPUTS = {
    "GATSBY_GRAPHQL_ENDPOINT": (API_STACK, "GraphQLApiUrl"),
    "GATSBY_API_KEY": (API_STACK, "GraphQLApiKey"),
    "GATSBY_USER_POOL_ID": (AUTH_STACK, "UserPoolId"),
    "GATSBY_USER_POOL_CLIENT_ID": (AUTH_STACK, "UserPoolClientId"),
}


def get_stack_outputs(cfn, stack_name: str) -> dict:
    """Return {OutputKey: OutputValue} for a stack, or {} if it isn't deployed."""
    try:
        response = cfn.describe_stacks(StackName=stack_name)
    except ClientError as e:
        if e.response["Error"]["Code"] == "ValidationError":
            return {}
        raise
    return {
        output["OutputKey"]: output["OutputValue"]
        for output in response["Stacks"][0].get("Outputs", [])
    }


def web_env(cfn, stage: Stage, region: str) -> dict:
    """Build the GATSBY_* environment for a stage from its deployed stacks."""
    cache = {}
    env = {}
    for variable, (base_name, output_key) in WEB_ENV_OUTPUTS.items():
        stack_name = stagify(stage, base_name)
        if stack_name not in cache:
            cache[stack_name] = get_stack_outputs(cfn, stack_name)
        if output_key not in cache[stack_name]:
            raise RuntimeError(f"Output '{output_key}' not found on stack '{stack_name}'. Is it deployed?")
        env[variable] = cache[stack_name][output_key]
    env["GATSBY_AWS_REGION"] = region
    env["GATSBY_STAGE"] = stage.label
    return env


def print_outputs(cfn, stage: Stage):
    for base_name in (STORAGE_STACK, AUTH_STACK, API_STACK):
        stack_name = stagify(stage, base_name)
        outputs = get_stack_outputs(cfn, stack_name)
        print(f"\n{'='*60}")
        print(f"  {stack_name}")
        print(f"{'='*60}")
        if not outputs:
            print("  (not deployed)")
        for key, value in sorted(outputs.items()):
            print(f"  {key:<20} {value}")
    print()


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--stage", default="beta", help="beta or prod (default: beta)")
    parser.add_argument("--region", default=DEFAULT_REGION)
    parser.add_argument("--env", action="store_true", help="print GATSBY_* lines for a web build")
    args = parser.parse_args(argv)

    try:
        stage = get_stage(args.stage)
    except ValueError as e:
        parser.error(str(e))

    cfn = boto3.client("cloudformation", region_name=args.region)
    if args.env:
        for key, value in web_env(cfn, stage, args.region).items():
            print(f"{key}={value}")
    else:
        print_outputs(cfn, stage)


if __name__ == "__main__":
    main()
