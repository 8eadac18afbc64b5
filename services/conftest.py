# services/conftest.py
import json
import types
import uuid

import boto3
import pytest
from moto import mock_aws


@pytest.fixture
def lambda_context():
    """Fake AWS Lambda context for Powertools."""
    ctx = types.SimpleNamespace()
    ctx.function_name = "test-function"
    ctx.memory_limit_in_mb = 128
    ctx.invoked_function_arn = "arn:aws:lambda:local:test"
    ctx.aws_request_id = "test-request-id"
    ctx.get_remaining_time_in_millis = lambda: 300000
    return ctx


def _create_tables(ddb):
    ddb.create_table(
        TableName="Subscriptions-test",
        KeySchema=[{"AttributeName": "user_id", "KeyType": "HASH"}],
        AttributeDefinitions=[
            {"AttributeName": "user_id", "AttributeType": "S"},
            {"AttributeName": "stripe_subscription_id", "AttributeType": "S"},
        ],
        GlobalSecondaryIndexes=[{
            "IndexName": "stripe_subscription_id-index",
            "KeySchema": [{"AttributeName": "stripe_subscription_id", "KeyType": "HASH"}],
            "Projection": {"ProjectionType": "ALL"},
        }],
        BillingMode="PAY_PER_REQUEST",
    )
    ddb.create_table(
        TableName="Usage-test",
        KeySchema=[{"AttributeName": "user_id", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "user_id", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )
    ddb.create_table(
        TableName="IndexingLogs-test",
        KeySchema=[
            {"AttributeName": "user_id", "KeyType": "HASH"},
            {"AttributeName": "log_key", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "user_id", "AttributeType": "S"},
            {"AttributeName": "log_key", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    ddb.create_table(
        TableName="StripeEvents-test",
        KeySchema=[{"AttributeName": "event_id", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "event_id", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def ddb():
    """All service tables, backed by moto."""
    with mock_aws():
        resource = boto3.resource("dynamodb", region_name="us-west-1")
        _create_tables(resource)
        yield resource


@pytest.fixture
def user_factory(ddb):
    """Seed a subscription row; returns the new user id."""
    from services.subscriptions.crud import upsert_subscription

    def _create(plan_id="FREE", status="INACTIVE", **fields):
        user_id = f"user-{uuid.uuid4().hex[:8]}"
        upsert_subscription(user_id, {"plan_id": plan_id, "status": status, **fields}, ddb)
        return user_id

    return _create


@pytest.fixture
def api_event():
    """Factory for API Gateway proxy events with Cognito claims."""

    def _event(user_id="user-1", body=None, headers=None, query=None, email="user@example.com"):
        claims = {"sub": user_id, "email": email} if user_id else {}
        return {
            "headers": headers or {},
            "body": json.dumps(body) if isinstance(body, (dict, list)) else body,
            "queryStringParameters": query,
            "requestContext": {"authorizer": {"claims": claims}},
        }

    return _event
