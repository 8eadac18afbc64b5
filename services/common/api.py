# services/common/api.py
"""Helpers shared by the API Gateway lambdas."""
import json
from typing import Optional

from shared.utils.json_encoders import json_dumps_safe


class BadRequest(ValueError):
    pass


def response(status: int, body: dict) -> dict:
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json"},
        "body": json_dumps_safe(body),
    }


def error(status: int, message: str, **extra) -> dict:
    return response(status, {"error": message, **extra})


def claims(event: dict) -> dict:
    return (event.get("requestContext", {})
                 .get("authorizer", {})
                 .get("claims", {})) or {}


def current_user_id(event: dict) -> Optional[str]:
    """Cognito `sub` of the caller, if the authorizer supplied one."""
    return claims(event).get("sub")


def current_user_email(event: dict) -> Optional[str]:
    return claims(event).get("email")


def header(event: dict, name: str) -> Optional[str]:
    headers = event.get("headers") or {}
    lowered = {k.lower(): v for k, v in headers.items()}
    return lowered.get(name.lower())


def json_body(event: dict) -> dict:
    raw = event.get("body") or "{}"
    try:
        body = json.loads(raw) if isinstance(raw, str) else raw
    except json.JSONDecodeError as e:
        raise BadRequest(f"Malformed JSON body: {e.msg}") from e
    if not isinstance(body, dict):
        raise BadRequest("JSON body must be an object")
    return body
