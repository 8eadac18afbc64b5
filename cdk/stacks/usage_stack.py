# cdk/stacks/usage_stack.py
from aws_cdk import (
    Stack,
    RemovalPolicy,
    CfnOutput,
    aws_dynamodb as ddb,
)
from constructs import Construct


class UsageStack(Stack):
    """Owns every DynamoDB table the indexing service reads or writes."""

    def __init__(self, scope: Construct, construct_id: str, *, stage: str = "dev", **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.stage = stage

        removal = RemovalPolicy.DESTROY if stage != "prod" else RemovalPolicy.RETAIN
        pitr = ddb.PointInTimeRecoverySpecification(point_in_time_recovery_enabled=True)

        # one row per user: plan + Stripe linkage
        self.subscriptions_table = ddb.Table(
            self, "Subscriptions",
            table_name=f"Subscriptions-{stage}",
            partition_key=ddb.Attribute(name="user_id", type=ddb.AttributeType.STRING),
            billing_mode=ddb.BillingMode.PAY_PER_REQUEST,
            point_in_time_recovery_specification=pitr,
            removal_policy=removal,
        )
        self.subscriptions_table.add_global_secondary_index(
            index_name="stripe_subscription_id-index",
            partition_key=ddb.Attribute(name="stripe_subscription_id", type=ddb.AttributeType.STRING),
        )

        # one row per user: daily/monthly/lifetime counters
        self.usage_table = ddb.Table(
            self, "Usage",
            table_name=f"Usage-{stage}",
            partition_key=ddb.Attribute(name="user_id", type=ddb.AttributeType.STRING),
            billing_mode=ddb.BillingMode.PAY_PER_REQUEST,
            point_in_time_recovery_specification=pitr,
            removal_policy=removal,
        )

        # append-only audit trail, newest-first per user
        self.indexing_logs_table = ddb.Table(
            self, "IndexingLogs",
            table_name=f"IndexingLogs-{stage}",
            partition_key=ddb.Attribute(name="user_id", type=ddb.AttributeType.STRING),
            sort_key=ddb.Attribute(name="log_key", type=ddb.AttributeType.STRING),
            billing_mode=ddb.BillingMode.PAY_PER_REQUEST,
            removal_policy=removal,
        )

        # Stripe webhook idempotency markers
        self.stripe_events_table = ddb.Table(
            self, "StripeEvents",
            table_name=f"StripeEvents-{stage}",
            partition_key=ddb.Attribute(name="event_id", type=ddb.AttributeType.STRING),
            billing_mode=ddb.BillingMode.PAY_PER_REQUEST,
            removal_policy=removal,
        )

        self.table_environment = {
            "SUBSCRIPTIONS_TABLE": self.subscriptions_table.table_name,
            "USAGE_TABLE_NAME": self.usage_table.table_name,
            "INDEXING_LOGS_TABLE": self.indexing_logs_table.table_name,
            "STRIPE_EVENTS_TABLE": self.stripe_events_table.table_name,
        }

        CfnOutput(self, "UsageTableName", value=self.usage_table.table_name)
        CfnOutput(self, "SubscriptionsTableName", value=self.subscriptions_table.table_name)
