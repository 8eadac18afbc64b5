import json
from unittest.mock import MagicMock, patch

import pytest

from services.indexing.clients import OmegaIndexerError
from services.indexing.lambdas.submit_omega import handler as omega

URLS = ["https://example.com/1", "https://example.com/2"]


@pytest.fixture(autouse=True)
def omega_key(monkeypatch):
    monkeypatch.setenv("OMEGA_INDEXER_API_KEY", "omega-test-key")
    monkeypatch.delenv("OMEGA_INDEXER_API_KEY_ARN", raising=False)


def _call(event, ctx, client=None):
    if client is None:
        client = MagicMock()
        client.submit.return_value = "OK: campaign queued"
    with patch.object(omega, "_client", return_value=client) as factory:
        resp = omega.handler(event, ctx)
    return resp, json.loads(resp["body"]), client, factory


def test_requires_user(api_event, lambda_context, ddb):
    resp, _, client, _ = _call(api_event(None, body={"urls": URLS}), lambda_context)
    assert resp["statusCode"] == 401
    client.submit.assert_not_called()


def test_no_urls(api_event, lambda_context, ddb, user_factory):
    user = user_factory(plan_id="PRO", status="ACTIVE")
    resp, body, _, _ = _call(api_event(user, body={"urls": []}), lambda_context)
    assert resp["statusCode"] == 400
    assert body["error"] == "No URLs provided."


def test_free_plan_refused(api_event, lambda_context, ddb, user_factory):
    user = user_factory()
    resp, body, client, _ = _call(api_event(user, body={"urls": URLS}), lambda_context)
    assert resp["statusCode"] == 403
    assert body["error"] == "Bulk indexing requires a paid plan"
    assert body["upgrade"] is True
    client.submit.assert_not_called()


def test_lapsed_plan_refused(api_event, lambda_context, ddb, user_factory):
    user = user_factory(plan_id="AGENCY", status="PAST_DUE")
    resp, _, client, _ = _call(api_event(user, body={"urls": URLS}), lambda_context)
    assert resp["statusCode"] == 403
    client.submit.assert_not_called()


def test_unknown_user(api_event, lambda_context, ddb):
    resp, _, _, _ = _call(api_event("ghost", body={"urls": URLS}), lambda_context)
    assert resp["statusCode"] == 404


def test_missing_api_key(api_event, lambda_context, ddb, user_factory, monkeypatch):
    monkeypatch.delenv("OMEGA_INDEXER_API_KEY")
    user = user_factory(plan_id="PRO", status="ACTIVE")
    resp, body, client, _ = _call(api_event(user, body={"urls": URLS}), lambda_context)
    assert resp["statusCode"] == 500
    assert body["error"] == "Omega Indexer API key not configured."
    client.submit.assert_not_called()


def test_campaign_created(api_event, lambda_context, ddb, user_factory):
    user = user_factory(plan_id="STARTER", status="ACTIVE")
    resp, body, client, factory = _call(
        api_event(user, body={"urls": URLS, "campaignName": "Spring launch"}), lambda_context
    )
    assert resp["statusCode"] == 200
    assert body["success"] is True
    assert body["message"] == "OK: campaign queued"
    assert body["submitted"] == 2
    factory.assert_called_once_with("omega-test-key")
    client.submit.assert_called_once_with(URLS, "Spring launch")


def test_default_campaign_name(api_event, lambda_context, ddb, user_factory):
    user = user_factory(plan_id="PRO", status="TRIALING")
    with patch.object(omega, "ymd", return_value="2025-06-10"):
        resp, body, client, _ = _call(api_event(user, body={"urls": URLS}), lambda_context)
    assert resp["statusCode"] == 200
    assert body["campaignName"] == "Campaign 2025-06-10"
    client.submit.assert_called_once_with(URLS, "Campaign 2025-06-10")


def test_upstream_failure(api_event, lambda_context, ddb, user_factory):
    user = user_factory(plan_id="PRO", status="ACTIVE")
    client = MagicMock()
    client.submit.side_effect = OmegaIndexerError("Omega Indexer error: 503 down", 503)
    resp, body, _, _ = _call(api_event(user, body={"urls": URLS}), lambda_context, client)
    assert resp["statusCode"] == 502
    assert body["error"] == "Failed to communicate with Omega Indexer"
