"""
services/endpoints.py

Catalog of the endpoints this service installs.

The set is closed: every variant is defined here with its path, content
type, generator, the strategies it may be served with and the metrics
event reported when it is accessed.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

from services import content
from services.metrics import EventType
from services.models import Strategy

BOTH = (Strategy.DYNAMIC, Strategy.STATIC)


class EndpointKind(str, Enum):
    AI_PLUGIN = "ai_plugin"
    MCP_SERVERS = "mcp_servers"
    LLMS = "llms"
    ROBOTS = "robots"
    ASK = "ask"


@dataclass(frozen=True)
class EndpointSpec:
    kind: EndpointKind
    path: str
    content_type: str
    generator: Optional[Callable[[content.SiteInfo], bytes]]
    strategies: Tuple[Strategy, ...]
    event_type: EventType
    # content is appended to an existing file instead of replacing it
    appends: bool = False

    def render(self, site) -> bytes:
        if self.generator is None:
            return b""
        return self.generator(site)

    @property
    def is_proxy(self):
        return self.kind is EndpointKind.ASK


CATALOG = {
    EndpointKind.AI_PLUGIN: EndpointSpec(
        kind=EndpointKind.AI_PLUGIN,
        path="/.well-known/ai-plugin.json",
        content_type="application/json",
        generator=content.generate_ai_plugin,
        strategies=BOTH,
        event_type=EventType.AI_PLUGIN_MANIFEST_ACCESS,
    ),
    EndpointKind.MCP_SERVERS: EndpointSpec(
        kind=EndpointKind.MCP_SERVERS,
        path="/.well-known/mcp/servers.json",
        content_type="application/json",
        generator=content.generate_mcp_servers,
        strategies=BOTH,
        event_type=EventType.MCP_SERVERS_ACCESS,
    ),
    EndpointKind.LLMS: EndpointSpec(
        kind=EndpointKind.LLMS,
        path="/llms.txt",
        content_type="text/plain; charset=utf-8",
        generator=content.generate_llms,
        strategies=BOTH,
        event_type=EventType.LLMS_TXT_ACCESS,
    ),
    EndpointKind.ROBOTS: EndpointSpec(
        kind=EndpointKind.ROBOTS,
        path="/robots.txt",
        content_type="text/plain; charset=utf-8",
        generator=content.generate_robots,
        strategies=BOTH,
        event_type=EventType.ROBOTS_TXT_ACCESS,
        appends=True,
    ),
    # the proxy has no file form
    EndpointKind.ASK: EndpointSpec(
        kind=EndpointKind.ASK,
        path="/ask",
        content_type="application/json",
        generator=None,
        strategies=(Strategy.DYNAMIC,),
        event_type=EventType.ASK_REQUEST,
    ),
}


def get_spec(kind) -> EndpointSpec:
    """Look up a catalog entry by kind or kind name. Raises KeyError if unknown."""
    return CATALOG[EndpointKind(kind)]


def spec_for_path(path) -> Optional[EndpointSpec]:
    for spec in CATALOG.values():
        if spec.path == path:
            return spec
    return None
