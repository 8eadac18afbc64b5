import json
from unittest.mock import patch

from services.indexing.lambdas.history import handler as history
from services.usage.models import IndexingChannel
from services.usage.recorder import log_indexing_attempt


def test_requires_user(api_event, lambda_context, ddb):
    assert history.handler(api_event(user_id=None), lambda_context)["statusCode"] == 401


def test_returns_own_entries(api_event, lambda_context, ddb):
    log_indexing_attempt("u1", "https://a.test/", IndexingChannel.GSC, "success", dynamodb=ddb)
    log_indexing_attempt("u2", "https://b.test/", IndexingChannel.GSC, "success", dynamodb=ddb)

    resp = history.handler(api_event("u1"), lambda_context)
    assert resp["statusCode"] == 200
    logs = json.loads(resp["body"])["logs"]
    assert [e["url"] for e in logs] == ["https://a.test/"]
    assert logs[0]["channel"] == "GSC"
    assert logs[0]["created_at"].endswith("Z")


def test_limit_is_clamped(api_event, lambda_context, ddb):
    with patch.object(history, "recent_indexing_logs", return_value=[]) as read:
        history.handler(api_event("u1", query={"limit": "5000"}), lambda_context)
        read.assert_called_with("u1", 200)
        history.handler(api_event("u1", query={"limit": "0"}), lambda_context)
        read.assert_called_with("u1", 1)
        history.handler(api_event("u1"), lambda_context)
        read.assert_called_with("u1", 50)


def test_bad_limit(api_event, lambda_context, ddb):
    resp = history.handler(api_event("u1", query={"limit": "ten"}), lambda_context)
    assert resp["statusCode"] == 400


def test_store_failure(api_event, lambda_context):
    with patch.object(history, "recent_indexing_logs", side_effect=RuntimeError("down")):
        resp = history.handler(api_event("u1"), lambda_context)
    assert resp["statusCode"] == 500
