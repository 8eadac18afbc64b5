import json
import os

import boto3
import stripe
from botocore.exceptions import ClientError

from aws_lambda_powertools import Logger, Metrics
from aws_lambda_powertools.metrics import MetricUnit

from services.common.config import load_local_env, stripe_events_table_name
from services.common.ddb_utils import is_conditional_failure
from services.common.secrets import get_secret
from services.common.time_utils import from_epoch, iso_utc_now
from services.plans.models import PlanId
from services.quota.plans_limits import plan_for_price_id
from services.subscriptions.crud import update_by_stripe_subscription_id, upsert_subscription
from services.subscriptions.models import SubscriptionStatus, status_from_stripe

logger = Logger(service="billing-webhook")
metrics = Metrics(namespace="IndexPilot", service="billing-webhook")

load_local_env(os.path.dirname(__file__))


def _get_events_table():
    return boto3.resource("dynamodb").Table(stripe_events_table_name())


def _response(status, body):
    return {
        "statusCode": status,
        "body": json.dumps(body),
    }


# ---- Stripe object helpers ---------------------------------------------------

def _items(subscription) -> list:
    return (subscription.get("items") or {}).get("data") or []


def _price_id(subscription):
    items = _items(subscription)
    return items[0]["price"]["id"] if items else None


def _plan_for(subscription) -> PlanId:
    price_id = _price_id(subscription)
    plan = plan_for_price_id(price_id)
    if plan is None:
        # unknown prices are treated as the entry paid tier
        logger.warning("unknown_price_id", extra={"price_id": price_id})
        return PlanId.STARTER
    return plan


def _period(subscription) -> dict:
    # newer API versions moved the billing period onto the subscription items
    start = subscription.get("current_period_start")
    end = subscription.get("current_period_end")
    items = _items(subscription)
    if start is None and items:
        start = items[0].get("current_period_start")
    if end is None and items:
        end = items[0].get("current_period_end")
    return {"current_period_start": from_epoch(start), "current_period_end": from_epoch(end)}


def _invoice_subscription_id(invoice):
    sub_id = invoice.get("subscription")
    if sub_id:
        return sub_id
    details = (invoice.get("parent") or {}).get("subscription_details") or {}
    return details.get("subscription")


# ---- Event handlers ----------------------------------------------------------

def on_checkout_completed(session):
    user_id = (session.get("metadata") or {}).get("user_id")
    if not user_id:
        logger.error("checkout_missing_user_id")
        return
    subscription = stripe.Subscription.retrieve(session["subscription"])
    upsert_subscription(user_id, {
        "stripe_customer_id": session.get("customer"),
        "stripe_subscription_id": subscription["id"],
        "stripe_price_id": _price_id(subscription),
        "plan_id": _plan_for(subscription),
        "status": SubscriptionStatus.ACTIVE,
        **_period(subscription),
    })


def on_invoice_paid(invoice):
    sub_id = _invoice_subscription_id(invoice)
    if not sub_id:
        return
    subscription = stripe.Subscription.retrieve(sub_id)
    update_by_stripe_subscription_id(sub_id, {"status": SubscriptionStatus.ACTIVE, **_period(subscription)})


def on_invoice_failed(invoice):
    sub_id = _invoice_subscription_id(invoice)
    if not sub_id:
        return
    update_by_stripe_subscription_id(sub_id, {"status": SubscriptionStatus.PAST_DUE})


def on_subscription_deleted(subscription):
    update_by_stripe_subscription_id(subscription["id"], {
        "status": SubscriptionStatus.CANCELED,
        "plan_id": PlanId.FREE,
    })


def on_subscription_updated(subscription):
    status = status_from_stripe(subscription.get("status"))
    plan = PlanId.FREE if status == SubscriptionStatus.CANCELED else _plan_for(subscription)
    update_by_stripe_subscription_id(subscription["id"], {
        "plan_id": plan,
        "stripe_price_id": _price_id(subscription),
        "status": status,
        **_period(subscription),
    })


EVENT_HANDLERS = {
    "checkout.session.completed": on_checkout_completed,
    "invoice.payment_succeeded": on_invoice_paid,
    "invoice.payment_failed": on_invoice_failed,
    "customer.subscription.deleted": on_subscription_deleted,
    "customer.subscription.updated": on_subscription_updated,
}


@logger.inject_lambda_context
@metrics.log_metrics(capture_cold_start_metric=True)
def handler(event, context):
    metrics.add_metric(name="WebhookReceived", unit=MetricUnit.Count, value=1)
    # 0) Read secrets (env in CI/local; Secrets Manager in AWS)
    secret = get_secret("STRIPE_WEBHOOK_SECRET", "STRIPE_WEBHOOK_SECRET_ARN")
    stripe.api_key = get_secret("STRIPE_SECRET_KEY", "STRIPE_SECRET_ARN")

    # 1) Extract raw body and signature header (case-insensitive)
    raw_body = event.get("body")
    headers = event.get("headers") or {}
    sig_header = headers.get("stripe-signature") or headers.get("Stripe-Signature")
    if not sig_header:
        return _response(400, {"error": "No signature"})
    if raw_body is None:
        return _response(400, {"error": "Missing body"})
    if not isinstance(raw_body, str):
        raw_body = json.dumps(raw_body)

    # 2) Construct the Stripe event ONCE using the raw body
    try:
        stripe_event = stripe.Webhook.construct_event(raw_body, sig_header, secret)
    except ValueError:
        return _response(400, {"error": "Invalid payload"})
    except stripe.SignatureVerificationError:
        logger.warning("webhook_signature_invalid")
        return _response(400, {"error": "Invalid signature"})

    event_id = stripe_event.get("id") or ""
    ev_type = stripe_event.get("type", "")
    logger.append_keys(stripe_event_id=event_id, stripe_event_type=ev_type)
    if not event_id:
        return _response(400, {"error": "Missing event id"})

    on_event = EVENT_HANDLERS.get(ev_type)
    if on_event is None:
        logger.debug("webhook_event_ignored")
        return _response(200, {"received": True})

    # 3) Idempotency marker per event.id (short-circuit duplicates)
    events_tbl = _get_events_table()
    try:
        events_tbl.put_item(
            Item={"event_id": event_id, "received_at": iso_utc_now(), "type": ev_type},
            ConditionExpression="attribute_not_exists(event_id)",
        )
    except ClientError as e:
        if is_conditional_failure(e):
            # Duplicate delivery -> already processed or in-flight
            logger.info("webhook_duplicate")
            return _response(200, {"received": True})
        raise

    # 4) Process
    try:
        on_event(stripe_event["data"]["object"])
    except Exception:
        # Allow Stripe to retry by removing the marker on failure
        try:
            events_tbl.delete_item(Key={"event_id": event_id})
        except ClientError:
            logger.exception("webhook_marker_cleanup_failed")
        metrics.add_metric(name="WebhookError", unit=MetricUnit.Count, value=1)
        logger.exception("webhook_processing_failed")
        return _response(500, {"error": "Webhook handler failed"})

    metrics.add_metric(name="WebhookProcessed", unit=MetricUnit.Count, value=1)
    logger.info("webhook_processed")
    return _response(200, {"received": True})
