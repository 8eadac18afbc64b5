# cdk/stacks/indexing_api_stack.py
from aws_cdk import (
    Stack, CfnOutput,
    aws_apigateway as apigw,
    aws_cognito as cognito,
    aws_secretsmanager as secrets,
)
from constructs import Construct

from .lambda_common import dependencies_layer, powertools_layer, python_function
from .usage_stack import UsageStack


class IndexingApiStack(Stack):
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        user_pool: cognito.IUserPool,
        usage: UsageStack,
        stage: str = "dev",
        hard_quota: bool = False,
        env=None,
        **kwargs,
    ):
        super().__init__(scope, construct_id, env=env, **kwargs)

        layers = [powertools_layer(self), dependencies_layer(self)]
        environment = {
            **usage.table_environment,
            "HARD_QUOTA": "true" if hard_quota else "false",
            "INDEXING_PACING_MS": "300",
        }

        def fn(construct_id, handler, timeout_seconds=10):
            return python_function(
                self, construct_id,
                handler=handler,
                environment=environment,
                layers=layers,
                timeout_seconds=timeout_seconds,
            )

        # the Google submitter paces calls, so it gets the API Gateway ceiling
        self.submit_google_lambda = fn(
            "SubmitGoogleFunction", "services.indexing.lambdas.submit_google.handler.handler", 29
        )
        self.submit_indexnow_lambda = fn(
            "SubmitIndexNowFunction", "services.indexing.lambdas.submit_indexnow.handler.handler", 15
        )
        self.history_lambda = fn("IndexingHistoryFunction", "services.indexing.lambdas.history.handler.handler")
        self.usage_lambda = fn("GetUsageFunction", "services.usage.lambdas.get_usage.handler.handler")
        self.subscription_lambda = fn(
            "GetSubscriptionFunction", "services.subscriptions.lambdas.get_subscription.handler.handler"
        )
        self.plans_lambda = fn("ListPlansFunction", "services.plans.lambdas.list_plans.handler")
        self.gsc_sites_lambda = fn("GscSitesFunction", "services.indexing.lambdas.gsc_sites.handler.handler")
        self.gsc_inspect_lambda = fn(
            "GscInspectFunction", "services.indexing.lambdas.gsc_inspect.handler.handler", 15
        )
        self.submit_omega_lambda = fn(
            "SubmitOmegaFunction", "services.indexing.lambdas.submit_omega.handler.handler", 15
        )

        # must exist in the account
        omega_key = secrets.Secret.from_secret_name_v2(self, "OmegaIndexerApiKey", "omega/api_key")
        self.submit_omega_lambda.add_environment("OMEGA_INDEXER_API_KEY_ARN", omega_key.secret_arn)
        omega_key.grant_read(self.submit_omega_lambda)

        for submitter in (self.submit_google_lambda, self.submit_indexnow_lambda):
            usage.subscriptions_table.grant_read_data(submitter)
            usage.usage_table.grant_read_write_data(submitter)
            usage.indexing_logs_table.grant_write_data(submitter)
        usage.indexing_logs_table.grant_read_data(self.history_lambda)
        for reader in (self.usage_lambda, self.subscription_lambda):
            usage.subscriptions_table.grant_read_data(reader)
            # reads may persist a lazy day/month reset
            usage.usage_table.grant_read_write_data(reader)
        usage.subscriptions_table.grant_read_data(self.submit_omega_lambda)

        api = apigw.RestApi(
            self, "IndexingApi",
            rest_api_name=f"IndexingApi-{stage}",
            description="URL submission, usage and subscription endpoints",
            deploy_options=apigw.StageOptions(stage_name=stage),
        )

        authorizer = apigw.CognitoUserPoolsAuthorizer(
            self, "IndexingApiAuthorizer",
            cognito_user_pools=[user_pool],
        )

        def protected(resource, method, function):
            resource.add_method(
                method,
                apigw.LambdaIntegration(function),
                authorization_type=apigw.AuthorizationType.COGNITO,
                authorizer=authorizer,
            )

        v1 = api.root.add_resource("v1")
        indexing = v1.add_resource("indexing")

        protected(indexing.add_resource("google"), "POST", self.submit_google_lambda)
        protected(indexing.add_resource("indexnow"), "POST", self.submit_indexnow_lambda)
        protected(indexing.add_resource("omega"), "POST", self.submit_omega_lambda)
        protected(indexing.add_resource("history"), "GET", self.history_lambda)
        protected(v1.add_resource("usage"), "GET", self.usage_lambda)
        protected(v1.add_resource("subscription"), "GET", self.subscription_lambda)

        gsc = v1.add_resource("gsc")
        protected(gsc.add_resource("sites"), "GET", self.gsc_sites_lambda)
        protected(gsc.add_resource("inspect"), "POST", self.gsc_inspect_lambda)

        # pricing page reads the catalog before sign-in
        v1.add_resource("plans").add_method(
            "GET",
            apigw.LambdaIntegration(self.plans_lambda),
            authorization_type=apigw.AuthorizationType.NONE,
        )

        self.api = api
        CfnOutput(self, "IndexingApiUrl", value=api.url)
        CfnOutput(self, "IndexingApiId", value=api.rest_api_id)
