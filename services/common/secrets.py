# services/common/secrets.py
import os

import boto3

_SECRET_CACHE: dict[str, str] = {}


def _secret_from_sm(arn: str) -> str:
    # simple in-memory cache per execution environment
    if arn in _SECRET_CACHE:
        return _SECRET_CACHE[arn]
    resp = boto3.client("secretsmanager").get_secret_value(SecretId=arn)
    if "SecretString" in resp:
        val = resp["SecretString"]
    else:
        # SecretBinary is bytes; decode to str (utf-8)
        val = resp["SecretBinary"]
        if isinstance(val, (bytes, bytearray)):
            val = val.decode("utf-8")
    _SECRET_CACHE[arn] = val
    return val


def get_secret(key_env: str, arn_env: str) -> str:
    """Prefer direct env (dev/CI). Otherwise fetch from Secrets Manager ARN."""
    v = os.getenv(key_env)
    if v:
        return v
    arn = os.getenv(arn_env)
    if not arn:
        raise RuntimeError(f"Missing {key_env} or {arn_env}")
    return _secret_from_sm(arn)
