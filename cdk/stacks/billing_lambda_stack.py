# cdk/stacks/billing_lambda_stack.py
from aws_cdk import (
    Stack,
    CfnOutput,
    Duration,
    aws_apigateway as apigw,
    aws_cloudwatch as cw,
    aws_cloudwatch_actions as cw_actions,
    aws_cognito as cognito,
    aws_secretsmanager as secrets,
    aws_sns as sns,
    aws_sns_subscriptions as subs,
)
from constructs import Construct

from .lambda_common import dependencies_layer, powertools_layer, python_function
from .usage_stack import UsageStack

PRICE_ENV_NAMES = ("STRIPE_STARTER_PRICE_ID", "STRIPE_PRO_PRICE_ID", "STRIPE_AGENCY_PRICE_ID")


class BillingLambdaStack(Stack):

    def __init__(self, scope: Construct, construct_id: str, *, usage: UsageStack,
                 user_pool: cognito.IUserPool, stage: str = "dev", **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        layers = [powertools_layer(self), dependencies_layer(self)]

        # Secrets Manager refs (must exist in the account)
        stripe_key = secrets.Secret.from_secret_name_v2(self, "StripeApiKey", "stripe/secret_key")
        stripe_hook = secrets.Secret.from_secret_name_v2(self, "StripeWebhookSecret", "stripe/webhook_secret")

        # price ids come from -c STRIPE_PRO_PRICE_ID=price_... at deploy time
        environment = {
            **usage.table_environment,
            "STRIPE_SECRET_ARN": stripe_key.secret_arn,
            "APP_URL": self.node.try_get_context("appUrl") or "http://localhost:3000",
        }
        for name in PRICE_ENV_NAMES:
            value = self.node.try_get_context(name)
            if value:
                environment[name] = value

        webhook_lambda = python_function(
            self, "StripeWebhookHandler",
            handler="services.billing.stripe_webhook_lambda.handler",
            environment={**environment, "STRIPE_WEBHOOK_SECRET_ARN": stripe_hook.secret_arn},
            layers=layers,
        )
        checkout_lambda = python_function(
            self, "CreateCheckoutFunction",
            handler="services.billing.lambdas.create_checkout.handler",
            environment=environment,
            layers=layers,
        )
        portal_lambda = python_function(
            self, "CreatePortalFunction",
            handler="services.billing.lambdas.create_portal.handler",
            environment=environment,
            layers=layers,
        )

        for fn in (webhook_lambda, checkout_lambda, portal_lambda):
            stripe_key.grant_read(fn)
        stripe_hook.grant_read(webhook_lambda)

        usage.subscriptions_table.grant_read_write_data(webhook_lambda)
        usage.stripe_events_table.grant_read_write_data(webhook_lambda)
        usage.subscriptions_table.grant_read_write_data(checkout_lambda)
        usage.subscriptions_table.grant_read_data(portal_lambda)

        err_alarm = cw.Alarm(
            self, "BillingWebhookErrors",
            metric=webhook_lambda.metric_errors(period=Duration.minutes(1), statistic="sum"),
            threshold=1,
            evaluation_periods=1,
            datapoints_to_alarm=1,
        )

        alert_email = self.node.try_get_context("alertEmail")  # cdk deploy -c alertEmail=you@domain.com
        alerts_topic = sns.Topic(self, "BillingAlertsTopic", display_name="Billing Webhook Alerts")
        if alert_email:
            alerts_topic.add_subscription(subs.EmailSubscription(alert_email))
        err_alarm.add_alarm_action(cw_actions.SnsAction(alerts_topic))

        app_err_metric = cw.Metric(
            namespace="IndexPilot",
            metric_name="WebhookError",
            dimensions_map={"service": "billing-webhook"},
            period=Duration.minutes(1),
            statistic="sum",
        )
        app_alarm = cw.Alarm(
            self, "BillingWebhookAppErrors",
            metric=app_err_metric,
            threshold=1,
            evaluation_periods=1,
            datapoints_to_alarm=1,
        )
        app_alarm.add_alarm_action(cw_actions.SnsAction(alerts_topic))

        api = apigw.RestApi(
            self,
            "BillingApi",
            rest_api_name=f"Billing API ({stage})",
            deploy_options=apigw.StageOptions(stage_name=stage),
        )
        authorizer = apigw.CognitoUserPoolsAuthorizer(
            self, "BillingApiAuthorizer",
            cognito_user_pools=[user_pool],
        )

        v1 = api.root.add_resource("v1")
        billing = v1.add_resource("billing")

        # Stripe signs the payload; no Cognito in front of the webhook
        billing.add_resource("webhook").add_method(
            "POST",
            apigw.LambdaIntegration(webhook_lambda),
            authorization_type=apigw.AuthorizationType.NONE,
            api_key_required=False,
        )
        for path, fn in (("checkout", checkout_lambda), ("portal", portal_lambda)):
            billing.add_resource(path).add_method(
                "POST",
                apigw.LambdaIntegration(fn),
                authorization_type=apigw.AuthorizationType.COGNITO,
                authorizer=authorizer,
            )

        self.webhook_lambda = webhook_lambda
        CfnOutput(self, "BillingApiUrl", value=api.url)
