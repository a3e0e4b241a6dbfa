import json
from unittest.mock import MagicMock

import pytest
import requests

from conftest import FakeResponse
from services.ask_proxy import AskProxy, forwardable_headers, merge_headers


@pytest.fixture
def http():
    fake = MagicMock()
    fake.request.return_value = FakeResponse(
        200,
        b'{"answer": "yes"}',
        {"Content-Type": "application/json", "Set-Cookie": "a=b", "X-Internal": "1"},
    )
    return fake


@pytest.fixture
def proxy(http):
    return AskProxy("https://api.example.com/", "/ask", timeout=5, http=http)


def test_upstream_url_appends_raw_query(proxy):
    assert proxy.upstream_url() == "https://api.example.com/ask"
    assert proxy.upstream_url("q=a%20b&x=1") == "https://api.example.com/ask?q=a%20b&x=1"


def test_post_body_is_forwarded_byte_for_byte(proxy, http):
    body = b'{"question": "Do you allow pets?"}\x00\xff'

    response = proxy.forward("POST", {"Content-Type": "application/json"}, body, "lang=en")

    args, kwargs = http.request.call_args
    assert args == ("POST", "https://api.example.com/ask?lang=en")
    assert kwargs["data"] == body
    assert kwargs["timeout"] == 5
    assert kwargs["allow_redirects"] is False
    assert response.status == 200
    assert response.body == b'{"answer": "yes"}'


def test_only_safe_response_headers_are_relayed(proxy):
    response = proxy.forward("GET", {}, b"")

    assert response.headers == {"Content-Type": "application/json"}


def test_upstream_error_status_is_relayed(proxy, http):
    http.request.return_value = FakeResponse(429, b"slow down", {"Retry-After": "30"})

    response = proxy.forward("POST", {}, b"{}")

    assert response.status == 429
    assert response.headers == {"Retry-After": "30"}
    assert response.body == b"slow down"


@pytest.mark.parametrize(
    "error",
    [requests.exceptions.Timeout("slow"), requests.exceptions.ConnectionError("refused")],
)
def test_unreachable_upstream_becomes_502(proxy, http, error):
    http.request.side_effect = error

    response = proxy.forward("POST", {}, b"{}")

    assert response.status == 502
    assert json.loads(response.body)["error"] == "Service unavailable"


def test_hop_by_hop_and_connection_named_headers_are_dropped():
    headers = forwardable_headers(
        [
            ("Host", "site.example"),
            ("Content-Length", "12"),
            ("Connection", "keep-alive, X-Trace"),
            ("Keep-Alive", "timeout=5"),
            ("X-Trace", "abc"),
            ("Transfer-Encoding", "chunked"),
            ("Authorization", "Bearer t"),
            ("Content-Type", "application/json"),
        ]
    )

    assert sorted(headers.keys()) == ["Authorization", "Content-Type"]


def test_duplicate_headers_last_value_wins():
    merged = merge_headers([("Accept", "text/html"), ("accept", "application/json")])

    assert merged["ACCEPT"] == "application/json"
    assert len(merged) == 1
