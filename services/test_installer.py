import os
from pathlib import Path
from unittest.mock import MagicMock

from services import lifecycle
from services.models import Strategy
from services.robots import SECTION_BEGIN


def _file(services, name):
    return Path(services.config["web_root"]) / name.lstrip("/")


def test_install_without_strategy_probes_and_records(services, host):
    host.serves_dynamic = False

    result = services.installer.install("/llms.txt", b"policy\n", content_type="text/plain", kind="llms")

    assert result.success
    assert result.strategy_used is Strategy.STATIC
    assert result.probe is not None
    assert _file(services, "llms.txt").read_bytes() == b"policy\n"
    record = services.installer.get_record("/llms.txt")
    assert record.strategy is Strategy.STATIC
    assert record.kind == "llms"


def test_static_install_is_idempotent(services, host):
    first = services.installer.install("/llms.txt", b"policy\n", strategy="static_file")
    target = _file(services, "llms.txt")
    os.utime(target, (1_000_000, 1_000_000))
    mtime = target.stat().st_mtime_ns

    second = services.installer.install("/llms.txt", b"policy\n", strategy="static_file")

    assert first.changed is True
    assert second.success and second.changed is False
    assert target.stat().st_mtime_ns == mtime


def test_dynamic_install_registers_once(services, host, monkeypatch):
    register = MagicMock(wraps=services.route_table.register)
    monkeypatch.setattr(services.route_table, "register", register)

    services.installer.install("/llms.txt", b"policy\n", strategy="dynamic_route", kind="llms")
    services.installer.install("/llms.txt", b"policy\n", strategy="dynamic_route", kind="llms")

    assert register.call_count == 1
    assert services.route_table.lookup("/llms.txt").content == b"policy\n"


def test_changed_content_rewrites_our_file(services, host):
    services.installer.install("/llms.txt", b"v1\n", strategy="static_file")

    result = services.installer.install("/llms.txt", b"v2\n")

    assert result.changed
    assert result.strategy_used is Strategy.STATIC
    assert _file(services, "llms.txt").read_bytes() == b"v2\n"


def test_switching_static_to_dynamic_removes_file(services, host):
    services.installer.install("/llms.txt", b"policy\n", strategy="static_file")

    result = services.installer.install("/llms.txt", b"policy\n", strategy="dynamic_route")

    assert result.strategy_used is Strategy.DYNAMIC
    assert not _file(services, "llms.txt").exists()
    assert services.route_table.lookup("/llms.txt") is not None


def test_switching_dynamic_to_static_unregisters_route(services, host):
    services.installer.install("/llms.txt", b"policy\n", strategy="dynamic_route")

    services.installer.install("/llms.txt", b"policy\n", strategy="static_file")

    assert services.route_table.lookup("/llms.txt") is None
    assert _file(services, "llms.txt").exists()


def test_unsafe_overwrite_is_refused_and_recorded(services, host):
    target = _file(services, "llms.txt")
    target.write_bytes(b"hand written notes about our crawler policy\n")

    result = services.installer.install("/llms.txt", b"policy\n", strategy="static_file")

    assert not result.success
    assert "unsafe" in result.error.lower()
    assert target.read_bytes() == b"hand written notes about our crawler policy\n"
    assert services.installer.get_error("/llms.txt")["error"] == result.error
    assert services.installer.get_record("/llms.txt") is None


def test_preference_skips_probe(services, host):
    services.installer.set_preference("/llms.txt", "static_file")

    result = services.installer.install("/llms.txt", b"policy\n")

    assert result.strategy_used is Strategy.STATIC
    assert result.probe is None
    assert host.calls == []


def test_single_allowed_strategy_skips_probe(services, host):
    result = services.installer.install("/ask", b"", kind="ask", allowed=(Strategy.DYNAMIC,))

    assert result.strategy_used is Strategy.DYNAMIC
    assert host.calls == []


def test_disallowed_strategy_fails(services, host):
    result = services.installer.install("/ask", b"", strategy="static_file", allowed=(Strategy.DYNAMIC,))

    assert not result.success
    assert "not available" in result.error


def test_failed_probe_fails_install(services, host):
    host.fail = True

    result = services.installer.install("/llms.txt", b"policy\n")

    assert not result.success
    assert result.strategy_used is None
    assert "Neither" in result.error
    assert result.probe.recommended_strategy is Strategy.NONE


def test_uninstall_removes_artifact_and_record(services, host):
    services.installer.install("/llms.txt", b"policy\n", strategy="static_file")

    assert services.installer.uninstall("/llms.txt") is True
    assert not _file(services, "llms.txt").exists()
    assert services.installer.get_record("/llms.txt") is None
    assert services.installer.uninstall("/llms.txt") is False


def test_uninstall_keeps_file_changed_by_someone_else(services, host):
    services.installer.install("/llms.txt", b"policy\n", strategy="static_file")
    _file(services, "llms.txt").write_bytes(b"edited by hand\n")

    services.installer.uninstall("/llms.txt")

    assert _file(services, "llms.txt").read_bytes() == b"edited by hand\n"


def test_robots_section_is_appended_and_stripped(services, host):
    original = b"User-agent: *\nDisallow: /private/\n"
    target = _file(services, "robots.txt")
    target.write_bytes(original)

    result = lifecycle.install_endpoint(services, "robots", strategy="static_file")

    content = target.read_text()
    assert result.success
    assert content.startswith("User-agent: *\nDisallow: /private/\n")
    assert SECTION_BEGIN in content
    assert "Allow: /.well-known/mcp/servers.json" in content
    assert services.installer.get_record("/robots.txt").preexisting

    again = lifecycle.install_endpoint(services, "robots")
    assert again.changed is False
    assert target.read_text().count(SECTION_BEGIN) == 1

    lifecycle.uninstall_endpoint(services, "robots")
    assert target.read_bytes() == original


def test_robots_without_existing_file_is_removed_on_uninstall(services, host):
    lifecycle.install_endpoint(services, "robots", strategy="static_file")
    target = _file(services, "robots.txt")
    assert "Disallow: /wp-admin/" in target.read_text()

    lifecycle.uninstall_endpoint(services, "robots")

    assert not target.exists()


def test_existing_robots_file_is_extended_even_when_routes_work(services, host):
    original = b"User-agent: *\nDisallow: /private/\n"
    target = _file(services, "robots.txt")
    target.write_bytes(original)

    result = lifecycle.install_endpoint(services, "robots")

    assert result.success
    assert result.strategy_used is Strategy.STATIC
    assert result.probe is None
    assert target.read_text().startswith("User-agent: *\nDisallow: /private/\n")
    assert SECTION_BEGIN in target.read_text()
    assert services.route_table.lookup("/robots.txt") is None

    dynamic = lifecycle.install_endpoint(services, "robots", strategy="dynamic_route")
    assert not dynamic.success
    assert "static file" in dynamic.error
    assert services.installer.get_record("/robots.txt").strategy is Strategy.STATIC


def test_robots_route_moves_to_file_when_owner_adds_one(services, host):
    lifecycle.install_endpoint(services, "robots", strategy="dynamic_route")
    target = _file(services, "robots.txt")
    target.write_bytes(b"User-agent: *\nDisallow: /private/\n")

    result = lifecycle.install_endpoint(services, "robots")

    assert result.strategy_used is Strategy.STATIC
    assert services.route_table.lookup("/robots.txt") is None
    assert "Disallow: /private/" in target.read_text()
    assert SECTION_BEGIN in target.read_text()


def test_failed_switch_keeps_previous_strategy(services, host):
    services.installer.install("/llms.txt", b"policy\n", strategy="dynamic_route", kind="llms")
    target = _file(services, "llms.txt")
    target.write_bytes(b"hand written notes about our crawler policy\n")

    result = services.installer.install("/llms.txt", b"policy\n", strategy="static_file", kind="llms")

    assert not result.success
    assert "unsafe" in result.error.lower()
    assert target.read_bytes() == b"hand written notes about our crawler policy\n"
    assert services.route_table.lookup("/llms.txt").content == b"policy\n"
    record = services.installer.get_record("/llms.txt")
    assert record.strategy is Strategy.DYNAMIC
    assert services.installer.get_error("/llms.txt")["error"] == result.error

    again = services.installer.install("/llms.txt", b"policy\n", kind="llms")
    assert again.success
    assert again.changed is False
