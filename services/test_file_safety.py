from pathlib import Path

import pytest

from services.errors import InstallError, UnsafeOverwriteError
from services.file_safety import (
    POLICY_BACKUP_AND_OVERWRITE,
    POLICY_CONTENT_ANALYSIS,
    POLICY_NEVER_OVERWRITE,
    analyze_content,
    ensure_directory,
    web_root_path,
)


@pytest.fixture
def manager(services):
    return services.file_safety


@pytest.fixture
def web_root(services):
    return Path(services.config["web_root"])


def test_new_file_is_created_and_remembered(manager, web_root):
    target = web_root / "notes.txt"

    result = manager.safe_write(target, b"hello\n")

    assert result.action == "created_new"
    assert manager.is_our_file(target, b"hello\n")


def test_identical_content_is_not_rewritten(manager, web_root):
    target = web_root / "notes.txt"
    target.write_bytes(b"hello\n")

    result = manager.safe_write(target, b"hello\n")

    assert result.action == "file_already_correct"
    assert result.changed is False


def test_never_overwrite_refuses_foreign_file(manager, web_root):
    target = web_root / "notes.txt"
    target.write_bytes(b"theirs\n")

    with pytest.raises(UnsafeOverwriteError):
        manager.safe_write(target, b"ours\n")
    assert manager.policy_for(target) == POLICY_NEVER_OVERWRITE


def test_our_own_file_is_updated_regardless_of_policy(manager, web_root):
    target = web_root / "notes.txt"
    manager.safe_write(target, b"v1\n")

    result = manager.safe_write(target, b"v2\n", POLICY_NEVER_OVERWRITE)

    assert result.action == "updated_our_file"
    assert target.read_bytes() == b"v2\n"


def test_backup_overwrite_copies_original(manager, web_root, services):
    target = web_root / "notes.txt"
    target.write_bytes(b"theirs\n")

    result = manager.safe_write(target, b"ours\n", POLICY_BACKUP_AND_OVERWRITE)

    assert result.action == "backup_and_overwrite"
    backup = Path(result.backup_path)
    assert backup.parent == Path(services.config["backup_dir"])
    assert backup.read_bytes() == b"theirs\n"
    assert target.read_bytes() == b"ours\n"


def test_content_analysis_overwrites_generated_json(manager, web_root):
    target = web_root / "ai-plugin.json"
    target.write_bytes(b'{"schema_version": "v1", "name_for_human": "Old"}')

    result = manager.safe_write(target, b'{"schema_version": "v1"}')

    assert manager.policy_for(target) == POLICY_CONTENT_ANALYSIS
    assert result.action == "overwrite_after_analysis"


def test_policies_can_be_overridden(manager, services, web_root):
    services.store.set("file_policies", {"*.txt": POLICY_BACKUP_AND_OVERWRITE, "default": POLICY_NEVER_OVERWRITE})

    assert manager.policy_for(web_root / "llms.txt") == POLICY_BACKUP_AND_OVERWRITE
    assert manager.policy_for(web_root / "data.json") == POLICY_NEVER_OVERWRITE


@pytest.mark.parametrize(
    "filename,content,safe",
    [
        ("llms.txt", b"# LLMS.txt - Large Language Model Policy\n", True),
        ("llms.txt", b"our own words " * 200, False),
        ("robots.txt", b"User-agent: *\nDisallow: /wp-admin/\n", True),
        ("robots.txt", b"User-agent: Googlebot\n" + b"Disallow: /custom-area/\n" * 20, False),
        ("servers.json", b'{"servers": []}', False),
        ("notes.md", b"Generated by a tool\n", True),
    ],
)
def test_analyze_content(filename, content, safe):
    assert analyze_content(filename, content)[0] is safe


def test_paths_outside_web_root_are_rejected(web_root):
    with pytest.raises(InstallError):
        web_root_path(web_root, "/../etc/passwd")
    assert web_root_path(web_root, "/.well-known/ai-plugin.json") == web_root.resolve() / ".well-known" / "ai-plugin.json"


def test_ensure_directory_reports_created_dirs(web_root):
    created = ensure_directory(web_root / "a" / "b")

    assert created == [web_root / "a", web_root / "a" / "b"]
    assert ensure_directory(web_root / "a" / "b") == []
