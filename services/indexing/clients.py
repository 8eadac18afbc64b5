# services/indexing/clients.py
"""Thin HTTP clients for Google's Indexing and Search Console APIs, IndexNow and Omega Indexer."""

import json
from typing import Optional, Sequence
from urllib.parse import urlencode

import urllib3

from services.common.config import http_timeout_seconds, indexnow_endpoint

GOOGLE_PUBLISH_URL = "https://indexing.googleapis.com/v3/urlNotifications:publish"
GOOGLE_NOTIFICATION_TYPES = ("URL_UPDATED", "URL_DELETED")
GSC_SITES_URL = "https://www.googleapis.com/webmasters/v3/sites"
GSC_INSPECT_URL = "https://searchconsole.googleapis.com/v1/urlInspection/index:inspect"
OMEGA_INDEXER_URL = "https://www.omegaindexer.com/amember/dashboard/api"

_http = urllib3.PoolManager()


class IndexingApiError(Exception):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class IndexNowApiError(IndexingApiError):
    pass


class OmegaIndexerError(IndexingApiError):
    pass


def _request(method: str, url: str, *, body: Optional[bytes] = None, headers: dict, http=None):
    http = http or _http
    try:
        return http.request(
            method, url,
            body=body,
            headers=headers,
            timeout=urllib3.Timeout(total=http_timeout_seconds()),
            retries=False,
        )
    except urllib3.exceptions.HTTPError as e:
        raise IndexingApiError(f"{type(e).__name__}: {e}") from e


def _google_json(resp, api_name: str) -> dict:
    """Decode a Google API response, surfacing `error.message` on failure."""
    text = resp.data.decode("utf-8", errors="replace")
    if resp.status >= 400:
        try:
            detail = json.loads(text).get("error", {}).get("message") or text
        except (ValueError, AttributeError):
            detail = text
        raise IndexingApiError(f"{api_name} error: {resp.status} {detail}", resp.status)
    return json.loads(text) if text else {}


class GoogleIndexingClient:
    def __init__(self, access_token: str, http=None):
        self.access_token = access_token
        self.http = http

    def publish(self, url: str, notification_type: str = "URL_UPDATED") -> dict:
        if notification_type not in GOOGLE_NOTIFICATION_TYPES:
            raise ValueError(f"Unsupported notification type: {notification_type}")
        resp = _request(
            "POST", GOOGLE_PUBLISH_URL,
            body=json.dumps({"url": url, "type": notification_type}).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Content-Type": "application/json",
            },
            http=self.http,
        )
        return _google_json(resp, "Google Indexing API")


class SearchConsoleClient:
    """Read-only Search Console calls made with the user's Google access token."""

    def __init__(self, access_token: str, http=None):
        self.access_token = access_token
        self.http = http

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.access_token}", "Content-Type": "application/json"}

    def list_sites(self) -> list[dict]:
        resp = _request("GET", GSC_SITES_URL, headers=self._headers(), http=self.http)
        return _google_json(resp, "Search Console API").get("siteEntry") or []

    def inspect(self, url: str, site_url: str, language_code: str = "en-US") -> dict:
        resp = _request(
            "POST", GSC_INSPECT_URL,
            body=json.dumps({
                "inspectionUrl": url,
                "siteUrl": site_url,
                "languageCode": language_code,
            }).encode("utf-8"),
            headers=self._headers(),
            http=self.http,
        )
        return _google_json(resp, "URL Inspection API").get("inspectionResult") or {}


class IndexNowClient:
    def __init__(self, host: str, key: str, endpoint: Optional[str] = None, http=None):
        self.host = host
        self.key = key
        self.endpoint = endpoint or indexnow_endpoint()
        self.http = http

    @property
    def key_location(self) -> str:
        return f"https://{self.host}/{self.key}.txt"

    def submit(self, urls: Sequence[str]) -> None:
        payload = {
            "host": self.host,
            "key": self.key,
            "keyLocation": self.key_location,
            "urlList": list(urls),
        }
        resp = _request(
            "POST", self.endpoint,
            body=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json; charset=utf-8"},
            http=self.http,
        )
        if resp.status >= 400:
            text = resp.data.decode("utf-8", errors="replace")
            raise IndexNowApiError(f"IndexNow API error: {resp.status} {text}", resp.status)


class OmegaIndexerClient:
    def __init__(self, api_key: str, http=None):
        self.api_key = api_key
        self.http = http

    def submit(self, urls: Sequence[str], campaign_name: str) -> str:
        """Create a campaign. The service answers with free text, returned as-is."""
        form = urlencode({"apikey": self.api_key, "campaignname": campaign_name, "urls": "|".join(urls)})
        resp = _request(
            "POST", OMEGA_INDEXER_URL,
            body=form.encode("utf-8"),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            http=self.http,
        )
        text = resp.data.decode("utf-8", errors="replace")
        if resp.status >= 400:
            raise OmegaIndexerError(f"Omega Indexer error: {resp.status} {text}", resp.status)
        return text
