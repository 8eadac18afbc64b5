# conftest.py (repo root)
import pytest


@pytest.fixture(autouse=True)
def mock_env(monkeypatch):
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-west-1")
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("POWERTOOLS_DEV", "false")

    monkeypatch.setenv("SUBSCRIPTIONS_TABLE", "Subscriptions-test")
    monkeypatch.setenv("USAGE_TABLE_NAME", "Usage-test")
    monkeypatch.setenv("INDEXING_LOGS_TABLE", "IndexingLogs-test")
    monkeypatch.setenv("STRIPE_EVENTS_TABLE", "StripeEvents-test")

    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_dummy")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_dummy")
    monkeypatch.setenv("STRIPE_STARTER_PRICE_ID", "price_starter")
    monkeypatch.setenv("STRIPE_PRO_PRICE_ID", "price_pro")
    monkeypatch.setenv("STRIPE_AGENCY_PRICE_ID", "price_agency")
    monkeypatch.setenv("APP_URL", "https://app.example.com")

    # no sleeping between Google calls in tests
    monkeypatch.setenv("INDEXING_PACING_MS", "0")
    monkeypatch.delenv("HARD_QUOTA", raising=False)
