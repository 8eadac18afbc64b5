# services/common/config.py
"""Runtime settings, read from the environment at call time so tests can override them."""
import os

DEFAULT_SUBSCRIPTIONS_TABLE = "Subscriptions"
DEFAULT_USAGE_TABLE = "Usage"
DEFAULT_INDEXING_LOGS_TABLE = "IndexingLogs"
DEFAULT_STRIPE_EVENTS_TABLE = "StripeEvents"

DEFAULT_PACING_MS = 300
DEFAULT_HTTP_TIMEOUT_SECONDS = 8.0
DEFAULT_INDEXNOW_ENDPOINT = "https://api.indexnow.org/indexnow"


def load_local_env(base_dir: str) -> None:
    """Load .env.local only when NOT on Lambda (safe for local/dev)."""
    if os.getenv("AWS_EXECUTION_ENV"):
        return
    from dotenv import load_dotenv
    load_dotenv(dotenv_path=os.path.join(base_dir, ".env.local"))


def subscriptions_table_name() -> str:
    return os.getenv("SUBSCRIPTIONS_TABLE", DEFAULT_SUBSCRIPTIONS_TABLE)


def usage_table_name() -> str:
    return os.getenv("USAGE_TABLE_NAME", DEFAULT_USAGE_TABLE)


def indexing_logs_table_name() -> str:
    return os.getenv("INDEXING_LOGS_TABLE", DEFAULT_INDEXING_LOGS_TABLE)


def stripe_events_table_name() -> str:
    return os.getenv("STRIPE_EVENTS_TABLE", DEFAULT_STRIPE_EVENTS_TABLE)


def pacing_seconds() -> float:
    return int(os.getenv("INDEXING_PACING_MS", str(DEFAULT_PACING_MS))) / 1000.0


def http_timeout_seconds() -> float:
    return float(os.getenv("INDEXING_HTTP_TIMEOUT_SECONDS", str(DEFAULT_HTTP_TIMEOUT_SECONDS)))


def hard_quota_enabled() -> bool:
    return os.getenv("HARD_QUOTA", "false").lower() == "true"


def indexnow_endpoint() -> str:
    return os.getenv("INDEXNOW_ENDPOINT", DEFAULT_INDEXNOW_ENDPOINT)


def app_url() -> str:
    return os.getenv("APP_URL", "http://localhost:3000").rstrip("/")
