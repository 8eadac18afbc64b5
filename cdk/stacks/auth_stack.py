# cdk/stacks/auth_stack.py

from aws_cdk import (
    Stack,
    RemovalPolicy,
    aws_cognito as cognito,
    aws_secretsmanager as secrets,
)
from constructs import Construct

from .lambda_common import dependencies_layer, powertools_layer, python_function
from .usage_stack import UsageStack

# Google scopes the dashboard needs on top of the basic profile
GOOGLE_SCOPES = [
    "openid", "email", "profile",
    "https://www.googleapis.com/auth/webmasters.readonly",
    "https://www.googleapis.com/auth/indexing",
]


class AuthStack(Stack):
    def __init__(self, scope: Construct, construct_id: str, *, usage: UsageStack,
                 stage: str = "dev", callback_urls=None, **kwargs):
        super().__init__(scope, construct_id, **kwargs)

        # post-authentication trigger: FREE/INACTIVE subscription + usage row
        self.bootstrap_lambda = python_function(
            self, "BootstrapUserFunction",
            handler="services.subscriptions.lambdas.bootstrap_user.handler",
            environment=usage.table_environment,
            layers=[powertools_layer(self), dependencies_layer(self)],
        )
        usage.subscriptions_table.grant_read_write_data(self.bootstrap_lambda)
        usage.usage_table.grant_read_write_data(self.bootstrap_lambda)

        user_pool = cognito.UserPool(
            self, "UserPool",
            self_sign_up_enabled=True,
            sign_in_aliases=cognito.SignInAliases(email=True),
            auto_verify=cognito.AutoVerifiedAttrs(email=True),
            standard_attributes=cognito.StandardAttributes(
                email=cognito.StandardAttribute(required=True, mutable=True)
            ),
            lambda_triggers=cognito.UserPoolTriggers(post_authentication=self.bootstrap_lambda),
            removal_policy=RemovalPolicy.DESTROY if stage != "prod" else RemovalPolicy.RETAIN,
        )

        google_secret = secrets.Secret.from_secret_name_v2(
            self, "GoogleSecret", secret_name=f"/{stage}/auth/google"
        )
        google_idp = cognito.UserPoolIdentityProviderGoogle(
            self, "GoogleIdp",
            user_pool=user_pool,
            client_id=google_secret.secret_value_from_json("google-client-id").to_string(),
            client_secret_value=google_secret.secret_value_from_json("google-client-secret"),
            scopes=GOOGLE_SCOPES,
            attribute_mapping=cognito.AttributeMapping(
                email=cognito.ProviderAttribute.GOOGLE_EMAIL,
                fullname=cognito.ProviderAttribute.GOOGLE_NAME,
            ),
        )

        client = user_pool.add_client(
            "WebAppClient",
            auth_flows=cognito.AuthFlow(user_srp=True),
            supported_identity_providers=[cognito.UserPoolClientIdentityProvider.GOOGLE],
            o_auth=cognito.OAuthSettings(
                flows=cognito.OAuthFlows(authorization_code_grant=True),
                scopes=[cognito.OAuthScope.OPENID, cognito.OAuthScope.EMAIL, cognito.OAuthScope.PROFILE],
                callback_urls=callback_urls or ["http://localhost:3000/api/auth/callback"],
                logout_urls=["http://localhost:3000/"],
            ),
        )
        client.node.add_dependency(google_idp)

        self.user_pool = user_pool
