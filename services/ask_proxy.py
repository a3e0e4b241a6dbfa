"""
services/ask_proxy.py

Forwards /ask requests to the configured backend and relays its answer.
"""

import logging
from typing import Iterable, Tuple, Union

import requests
from requests.structures import CaseInsensitiveDict

from services.errors import ProxyUpstreamError
from services.models import ProxyResponse

logger = logging.getLogger(__name__)

# Hop-by-hop headers that should NOT be forwarded (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# Set by the HTTP client for the upstream request
NOT_FORWARDED = HOP_BY_HOP_HEADERS | {"host", "content-length"}

# Upstream response headers relayed to the caller
RELAYED_HEADERS = (
    "Content-Type",
    "Cache-Control",
    "Content-Language",
    "ETag",
    "Last-Modified",
    "Location",
    "Retry-After",
    "Vary",
)

HeaderSource = Union[dict, Iterable[Tuple[str, str]]]


def merge_headers(headers: HeaderSource) -> CaseInsensitiveDict:
    """Case-insensitive header mapping; the last of duplicate names wins"""
    items = headers.items() if hasattr(headers, "items") else headers
    merged = CaseInsensitiveDict()
    for name, value in items:
        merged[name] = value
    return merged


def forwardable_headers(headers: HeaderSource) -> CaseInsensitiveDict:
    merged = merge_headers(headers)
    named_by_connection = {
        token.strip().lower()
        for token in merged.get("Connection", "").split(",")
        if token.strip()
    }
    excluded = NOT_FORWARDED | named_by_connection
    return CaseInsensitiveDict(
        {name: value for name, value in merged.items() if name.lower() not in excluded}
    )


class AskProxy:
    def __init__(self, base_url, route="/ask", timeout=30, http=None):
        self.base_url = base_url.rstrip("/")
        self.route = "/" + route.lstrip("/")
        self.timeout = timeout
        self.http = http or requests

    def upstream_url(self, query=""):
        url = f"{self.base_url}{self.route}"
        if query:
            url = f"{url}?{query}"
        return url

    def forward(self, method, headers, body=b"", query="") -> ProxyResponse:
        """
        Send one request upstream and relay the answer.

        Upstream error statuses are relayed as they are. A timeout or
        connection failure becomes a 502 response; nothing is raised.
        """
        try:
            return self._send(method, headers, body, query)
        except ProxyUpstreamError as e:
            logger.error(f"❌ /ask upstream failed: {e}")
            return ProxyResponse(
                status=502,
                headers={"Content-Type": "application/json"},
                body=b'{"error": "Service unavailable", "detail": "The assistant backend could not be reached"}',
            )

    def _send(self, method, headers, body, query) -> ProxyResponse:
        url = self.upstream_url(query)
        try:
            response = self.http.request(
                method.upper(),
                url,
                headers=dict(forwardable_headers(headers)),
                data=body or None,
                timeout=self.timeout,
                allow_redirects=False,
            )
        except requests.exceptions.Timeout:
            raise ProxyUpstreamError(f"{method} {url} timed out after {self.timeout}s")
        except requests.exceptions.RequestException as e:
            raise ProxyUpstreamError(f"{method} {url}: {e}")

        relayed = {name: response.headers[name] for name in RELAYED_HEADERS if name in response.headers}
        logger.info(f"/ask {method.upper()} -> {response.status_code}")
        return ProxyResponse(status=response.status_code, headers=relayed, body=response.content)
