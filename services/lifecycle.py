"""
services/lifecycle.py

Activation, deactivation and refresh of the discovery endpoints.

Every endpoint is handled in its own error boundary: one endpoint failing
to install never stops the others.
"""

import logging

from services import robots
from services.endpoints import CATALOG, get_spec, spec_for_path
from services.metrics import EventType
from services.models import InstallResult, utc_now

logger = logging.getLogger(__name__)


def _section_merge(site_url):
    """merge/unmerge callables that touch only our robots.txt section"""

    def merge(existing: bytes) -> bytes:
        return robots.enhance(existing.decode("utf-8", errors="replace"), site_url).encode("utf-8")

    def unmerge(existing: bytes) -> bytes:
        return robots.strip_section(existing.decode("utf-8", errors="replace")).encode("utf-8")

    return merge, unmerge


def install_endpoint(services, kind, strategy=None) -> InstallResult:
    spec = get_spec(kind)
    site = services.site()
    merge = unmerge = None
    if spec.appends:
        merge, unmerge = _section_merge(site.site_url)

    return services.installer.install(
        spec.path,
        spec.render(site),
        strategy=strategy,
        content_type=spec.content_type,
        kind=spec.kind.value,
        merge=merge,
        unmerge=unmerge,
        allowed=spec.strategies,
    )


def uninstall_endpoint(services, kind) -> bool:
    spec = get_spec(kind)
    unmerge = _section_merge(services.config["site_url"])[1] if spec.appends else None
    return services.installer.uninstall(spec.path, unmerge=unmerge)


def activate(services, context=None):
    """Install every endpoint. Returns {kind: InstallResult dict}."""
    logger.info("🚀 Activating discovery endpoints")
    if not services.store.get("activated_at"):
        services.store.set("activated_at", utc_now())

    results = {}
    for kind, spec in CATALOG.items():
        try:
            result = install_endpoint(services, kind)
        except Exception as e:
            logger.error(f"❌ {spec.path}: {e}")
            result = InstallResult(path=spec.path, success=False, error=str(e))
        results[kind.value] = result.to_dict()

    installed = sum(1 for r in results.values() if r["success"])
    logger.info(f"✅ Activation finished: {installed}/{len(results)} endpoints installed")

    services.beacon.emit(EventType.ACTIVATION, context)
    return results


def deactivate(services, context=None):
    """Uninstall every endpoint. Returns {kind: {"removed": bool, "error": str|None}}."""
    logger.info("Deactivating discovery endpoints")
    results = {}
    for kind, spec in CATALOG.items():
        try:
            results[kind.value] = {"removed": uninstall_endpoint(services, kind), "error": None}
        except Exception as e:
            logger.error(f"❌ Failed to remove {spec.path}: {e}")
            results[kind.value] = {"removed": False, "error": str(e)}

    services.store.delete("activated_at")
    services.beacon.emit(EventType.DEACTIVATION, context)
    return results


def refresh_installed(services):
    """Re-render every installed endpoint, e.g. after the business info changed"""
    results = {}
    for record in services.installer.records():
        spec = spec_for_path(record.path)
        if spec is None:
            continue
        try:
            result = install_endpoint(services, spec.kind)
        except Exception as e:
            logger.error(f"❌ Failed to refresh {spec.path}: {e}")
            result = InstallResult(path=spec.path, success=False, error=str(e))
        results[spec.kind.value] = result.to_dict()
    return results
