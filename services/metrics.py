"""
services/metrics.py

Best-effort usage metrics beacon.

emit() hands the event to a thread pool and returns immediately. At most
max_pending events wait for delivery; further events are dropped until
the backlog drains. Delivery failures are logged and dropped; nothing
here can fail a request.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum

import requests

from services.errors import MetricsError
from services.models import utc_now

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    LLMS_TXT_ACCESS = "PLUGIN_LLMS_TXT_ACCESS"
    ROBOTS_TXT_ACCESS = "PLUGIN_ROBOTS_TXT_ACCESS"
    ASK_REQUEST = "PLUGIN_ASK_REQUEST"
    AI_PLUGIN_MANIFEST_ACCESS = "PLUGIN_AI_PLUGIN_MANIFEST_ACCESS"
    MCP_SERVERS_ACCESS = "PLUGIN_MCP_SERVERS_ACCESS"
    ACTIVATION = "PLUGIN_ACTIVATION"
    DEACTIVATION = "PLUGIN_DEACTIVATION"


@dataclass
class RequestContext:
    ip: str = ""
    user_agent: str = ""
    url: str = ""
    referrer: str = ""

    @classmethod
    def from_flask(cls, request):
        forwarded = request.headers.get("X-Forwarded-For", "")
        ip = forwarded.split(",")[0].strip() if forwarded else request.remote_addr
        return cls(
            ip=ip or "",
            user_agent=request.headers.get("User-Agent", ""),
            url=request.url,
            referrer=request.headers.get("Referer", ""),
        )


def build_event(event_type, context: RequestContext, client_id=None) -> dict:
    event = {
        "eventType": EventType(event_type).value,
        "timestamp": utc_now(),
        "source": "web",
        "ip": context.ip,
        "userAgent": context.user_agent,
        "url": context.url,
        "referrer": context.referrer,
    }
    if client_id:
        event["clientId"] = client_id
    return event


class MetricsBeacon:
    def __init__(self, base_url, route="/api/PluginMetrics/event", timeout=2, client_id=None,
                 http=None, executor=None, max_pending=100):
        self.base_url = (base_url or "").rstrip("/")
        self.route = route
        self.timeout = timeout
        # callable, so settings changes apply without rebuilding the beacon
        self.client_id = client_id or (lambda: None)
        self.http = http or requests
        self.executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="metrics")
        self._pending = threading.BoundedSemaphore(max_pending)

    @property
    def enabled(self):
        return bool(self.base_url)

    @property
    def url(self):
        return f"{self.base_url}{self.route}"

    def emit(self, event_type, context=None):
        """Queue an event for delivery. Never raises."""
        if not self.enabled:
            return None
        if not self._pending.acquire(blocking=False):
            logger.warning(f"⚠️  Metrics backlog full, event {event_type} dropped")
            return None
        try:
            event = build_event(event_type, context or RequestContext(), self.client_id())
            future = self.executor.submit(self._send, event)
        except Exception as e:
            self._pending.release()
            logger.warning(f"⚠️  Metrics event {event_type} dropped: {e}")
            return None
        future.add_done_callback(lambda _: self._pending.release())
        return future

    def _send(self, event):
        try:
            response = self.http.post(self.url, json=event, timeout=self.timeout)
            if response.status_code >= 400:
                raise MetricsError(f"metrics endpoint answered {response.status_code}")
            return True
        except (requests.exceptions.RequestException, MetricsError) as e:
            logger.debug(f"Metrics delivery failed for {event['eventType']}: {e}")
            return False

    def shutdown(self):
        self.executor.shutdown(wait=False)
