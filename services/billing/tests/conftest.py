# services/billing/tests/conftest.py
import json
import uuid

import pytest


@pytest.fixture
def stripe_event():
    """Factory for API Gateway events carrying a (pre-verified) Stripe event."""

    def _create(event_type, obj, event_id=None, signed=True):
        payload = {
            "id": event_id or f"evt_{uuid.uuid4().hex[:12]}",
            "type": event_type,
            "data": {"object": obj},
        }
        headers = {"Stripe-Signature": "t=1,v1=test"} if signed else {}
        return {"body": json.dumps(payload), "headers": headers}

    return _create


@pytest.fixture
def verified_signatures(monkeypatch):
    """Skip Stripe's HMAC check and hand back the parsed payload."""
    monkeypatch.setattr(
        "services.billing.stripe_webhook_lambda.stripe.Webhook.construct_event",
        lambda payload, sig, secret: json.loads(payload),
    )

