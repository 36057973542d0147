"""Auth stack - Cognito user pool, web client and identity pool."""
import aws_cdk as cdk
from constructs import Construct
from aws_cdk import aws_cognito as cognito

from stacks.stages import Stage, stagify


class AuthStack(cdk.Stack):

    def __init__(self, scope: Construct, construct_id: str, *, stage: Stage, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.user_pool = cognito.UserPool(
            self, "UserPool",
            user_pool_name=stagify(stage, "MyProjectUserPool"),
            self_sign_up_enabled=True,
            sign_in_aliases=cognito.SignInAliases(email=True, username=True),
            auto_verify=cognito.AutoVerifiedAttrs(email=True),
            standard_attributes=cognito.StandardAttributes(
                email=cognito.StandardAttribute(required=True, mutable=True),
                given_name=cognito.StandardAttribute(required=False, mutable=True),
                family_name=cognito.StandardAttribute(required=False, mutable=True),
            ),
            password_policy=cognito.PasswordPolicy(
                min_length=8,
                require_lowercase=True,
                require_uppercase=True,
                require_digits=True,
                require_symbols=True,
            ),
            account_recovery=cognito.AccountRecovery.EMAIL_ONLY,
            removal_policy=cdk.RemovalPolicy.RETAIN if stage is Stage.PROD else cdk.RemovalPolicy.DESTROY,
        )

        self.user_pool_client = self.user_pool.add_client(
            "WebClient",
            user_pool_client_name=stagify(stage, "MyProjectWebClient"),
            auth_flows=cognito.AuthFlow(user_password=True, user_srp=True),
            o_auth=cognito.OAuthSettings(
                flows=cognito.OAuthFlows(authorization_code_grant=True),
                scopes=[cognito.OAuthScope.EMAIL, cognito.OAuthScope.OPENID, cognito.OAuthScope.PROFILE],
            ),
        )

        self.identity_pool = cognito.CfnIdentityPool(
            self, "IdentityPool",
            identity_pool_name=stagify(stage, "MyProjectIdentityPool"),
            allow_unauthenticated_identities=False,
            cognito_identity_providers=[cognito.CfnIdentityPool.CognitoIdentityProviderProperty(
                client_id=self.user_pool_client.user_pool_client_id,
                provider_name=self.user_pool.user_pool_provider_name,
            )],
        )

        cdk.CfnOutput(self, "UserPoolId", value=self.user_pool.user_pool_id,
                      export_name=stagify(stage, "UserPoolId"))
        cdk.CfnOutput(self, "UserPoolArn", value=self.user_pool.user_pool_arn,
                      export_name=stagify(stage, "UserPoolArn"))
        cdk.CfnOutput(self, "UserPoolClientId", value=self.user_pool_client.user_pool_client_id,
                      export_name=stagify(stage, "UserPoolClientId"))
        cdk.CfnOutput(self, "IdentityPoolId", value=self.identity_pool.ref,
                      export_name=stagify(stage, "IdentityPoolId"))
