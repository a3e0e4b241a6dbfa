"""Data types shared by the prober, installer and proxy"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional


def utc_now():
    return datetime.now(timezone.utc).isoformat()


class Strategy(str, Enum):
    """How an endpoint is served"""

    DYNAMIC = "dynamic_route"
    STATIC = "static_file"
    NONE = "none"


@dataclass
class ProbeResult:
    path: str
    test_path: str = ""
    dynamic_route_works: bool = False
    static_file_works: bool = False
    recommended_strategy: Strategy = Strategy.NONE
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    timestamp: str = field(default_factory=utc_now)

    @property
    def can_proceed(self) -> bool:
        return self.recommended_strategy is not Strategy.NONE

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "test_path": self.test_path,
            "dynamic_route_works": self.dynamic_route_works,
            "static_file_works": self.static_file_works,
            "recommended_strategy": self.recommended_strategy.value,
            "can_proceed": self.can_proceed,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "timestamp": self.timestamp,
        }


@dataclass
class InstalledEndpoint:
    """Persisted record of the strategy currently serving a path"""

    path: str
    strategy: Strategy
    installed_at: str = field(default_factory=utc_now)
    content_hash: str = ""
    kind: Optional[str] = None
    # the static target existed before we appended to it
    preexisting: bool = False

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "strategy": self.strategy.value,
            "installed_at": self.installed_at,
            "content_hash": self.content_hash,
            "kind": self.kind,
            "preexisting": self.preexisting,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "InstalledEndpoint":
        return cls(
            path=data["path"],
            strategy=Strategy(data["strategy"]),
            installed_at=data.get("installed_at", ""),
            content_hash=data.get("content_hash", ""),
            kind=data.get("kind"),
            preexisting=bool(data.get("preexisting", False)),
        )


@dataclass
class InstallResult:
    path: str
    success: bool
    strategy_used: Optional[Strategy] = None
    error: Optional[str] = None
    changed: bool = False
    probe: Optional[ProbeResult] = None

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "success": self.success,
            "strategy_used": self.strategy_used.value if self.strategy_used else None,
            "error": self.error,
            "changed": self.changed,
            "probe": self.probe.to_dict() if self.probe else None,
        }


@dataclass
class ProxyResponse:
    status: int
    headers: Dict[str, str]
    body: bytes
