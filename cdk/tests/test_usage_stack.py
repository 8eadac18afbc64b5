import aws_cdk.assertions as assertions
import pytest


@pytest.fixture
def template(usage_stack):
    return assertions.Template.from_stack(usage_stack)


def test_four_tables(template):
    template.resource_count_is("AWS::DynamoDB::Table", 4)


def test_subscriptions_table_has_stripe_index(template):
    template.has_resource_properties("AWS::DynamoDB::Table", {
        "TableName": "Subscriptions-test",
        "KeySchema": [{"AttributeName": "user_id", "KeyType": "HASH"}],
        "GlobalSecondaryIndexes": assertions.Match.array_with([
            assertions.Match.object_like({
                "IndexName": "stripe_subscription_id-index",
                "KeySchema": [{"AttributeName": "stripe_subscription_id", "KeyType": "HASH"}],
            })
        ]),
    })


def test_indexing_logs_sorted_by_log_key(template):
    template.has_resource_properties("AWS::DynamoDB::Table", {
        "TableName": "IndexingLogs-test",
        "KeySchema": [
            {"AttributeName": "user_id", "KeyType": "HASH"},
            {"AttributeName": "log_key", "KeyType": "RANGE"},
        ],
    })


def test_usage_and_events_tables(template):
    template.has_resource_properties("AWS::DynamoDB::Table", {
        "TableName": "Usage-test",
        "BillingMode": "PAY_PER_REQUEST",
    })
    template.has_resource_properties("AWS::DynamoDB::Table", {
        "TableName": "StripeEvents-test",
        "KeySchema": [{"AttributeName": "event_id", "KeyType": "HASH"}],
    })


def test_table_environment_names(usage_stack):
    assert set(usage_stack.table_environment) == {
        "SUBSCRIPTIONS_TABLE", "USAGE_TABLE_NAME", "INDEXING_LOGS_TABLE", "STRIPE_EVENTS_TABLE",
    }
