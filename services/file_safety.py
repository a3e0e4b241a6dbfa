"""
services/file_safety.py

Safe file operations for the web root.

Every write into the web root goes through FileSafetyManager.safe_write(),
which applies a conflict policy when the target already exists. Files
written here are remembered (path and content hash) so a later write can
recognise its own output and update it without asking.
"""

import fnmatch
import hashlib
import json
import logging
import re
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from services.errors import InstallError, UnsafeOverwriteError
from services.models import utc_now
from services.robots import has_section

logger = logging.getLogger(__name__)

POLICY_NEVER_OVERWRITE = "never_overwrite"
POLICY_BACKUP_AND_OVERWRITE = "backup_overwrite"
POLICY_CONTENT_ANALYSIS = "content_analysis"

DEFAULT_FILE_POLICIES = {
    "llms.txt": POLICY_CONTENT_ANALYSIS,
    "robots.txt": POLICY_CONTENT_ANALYSIS,
    "*.json": POLICY_CONTENT_ANALYSIS,
    "default": POLICY_NEVER_OVERWRITE,
}

CREATED_FILES_OPTION = "created_files"
FILE_POLICIES_OPTION = "file_policies"

GENERATED_MARKERS = ("Generated by", "Auto-generated", "# This file is auto-generated")


def content_hash(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def web_root_path(web_root, url_path) -> Path:
    """Map a URL path onto the web root, refusing anything that escapes it"""
    root = Path(web_root).resolve()
    target = (root / url_path.lstrip("/")).resolve()
    if root not in target.parents:
        raise InstallError(f"Path resolves outside the web root: {url_path}", path=url_path)
    return target


def ensure_directory(directory: Path) -> List[Path]:
    """
    Create a directory and any missing parents.

    Returns the directories that were created, outermost first, so callers
    can remove exactly those again.
    """
    missing = []
    current = Path(directory)
    while not current.exists():
        missing.append(current)
        current = current.parent

    created = []
    for path in reversed(missing):
        path.mkdir()
        created.append(path)
    return created


def analyze_content(filename: str, content: bytes):
    """
    Decide whether existing content looks generated and is safe to replace.

    Returns (is_safe_to_overwrite, reason).
    """
    text = content.decode("utf-8", errors="replace")
    appears_generated = any(marker in text for marker in GENERATED_MARKERS)
    safe, reason = False, "Unknown content type"

    if filename == "llms.txt":
        if re.search(r"^#.*LLMS\.txt", text, re.MULTILINE | re.IGNORECASE) or "MCP-SERVER:" in text:
            safe, reason = True, "Appears to be LLMS.txt format - safe to overwrite"

    elif filename == "robots.txt":
        is_standard = "User-agent:" in text and (
            "Disallow: /wp-admin/" in text
            or "wp-sitemap.xml" in text
            or re.search(r"^User-agent:\s*\*\s*$", text, re.MULTILINE | re.IGNORECASE)
        )
        if has_section(text):
            safe, reason = True, "robots.txt already contains our AI section - safe to update"
        elif is_standard:
            safe, reason = True, "Standard robots.txt format - safe to enhance"
        elif len(text.strip()) < 200:
            safe, reason = True, "Minimal robots.txt content - safe to overwrite"
        else:
            reason = "robots.txt contains custom content - requires manual review"

    elif filename.endswith(".json"):
        try:
            data = json.loads(text)
        except ValueError:
            data = None
        if isinstance(data, dict) and any(
            key in data for key in ("schema_version", "generated_by", "_generated_by", "api")
        ):
            safe, reason = True, "Appears to be API/config JSON - safe to overwrite"

    if len(content) < 1024 and appears_generated:
        safe, reason = True, "Small generated file - appears safe to overwrite"

    return safe, reason


@dataclass
class WriteResult:
    path: str
    action: str
    changed: bool = True
    backup_path: Optional[str] = None


class FileSafetyManager:
    def __init__(self, store, backup_dir=None):
        self.store = store
        self.backup_dir = backup_dir

    def safe_write(self, file_path, content: bytes, policy=None) -> WriteResult:
        """
        Write content to file_path, resolving conflicts with an existing file.

        Raises UnsafeOverwriteError when the policy refuses to replace what
        is already there, InstallError for any other write failure.
        """
        file_path = Path(file_path)
        policy = policy or self.policy_for(file_path)

        if not file_path.exists():
            self._write(file_path, content)
            return WriteResult(str(file_path), "created_new")

        existing = self._read(file_path)

        if existing == content:
            self._remember(file_path, content)
            return WriteResult(str(file_path), "file_already_correct", changed=False)

        if self.is_our_file(file_path, existing):
            self._write(file_path, content)
            return WriteResult(str(file_path), "updated_our_file")

        if policy == POLICY_NEVER_OVERWRITE:
            raise UnsafeOverwriteError(
                f"File already exists with different content - not overwriting: {file_path}",
                path=str(file_path),
            )

        if policy == POLICY_BACKUP_AND_OVERWRITE:
            backup_path = self.create_backup(file_path)
            self._write(file_path, content)
            return WriteResult(str(file_path), "backup_and_overwrite", backup_path=str(backup_path))

        if policy == POLICY_CONTENT_ANALYSIS:
            safe, reason = analyze_content(file_path.name, existing)
            if not safe:
                raise UnsafeOverwriteError(
                    f"Content analysis indicates unsafe to overwrite {file_path}: {reason}",
                    path=str(file_path),
                )
            logger.info(f"Overwriting {file_path}: {reason}")
            self._write(file_path, content)
            return WriteResult(str(file_path), "overwrite_after_analysis")

        raise InstallError(f"Unknown file policy: {policy}", path=str(file_path))

    def remove(self, file_path, force=False) -> bool:
        """
        Delete a file this service wrote.

        A file that was changed by someone else since is left in place
        unless force is set. Returns True if the file was deleted.
        """
        file_path = Path(file_path)
        if not file_path.exists():
            self._forget(file_path)
            return False

        if not force and not self.is_our_file(file_path, self._read(file_path)):
            logger.warning(f"⚠️  Not removing {file_path}: content was changed outside this service")
            return False

        try:
            file_path.unlink()
        except OSError as e:
            raise InstallError(f"Failed to remove {file_path}: {e}", path=str(file_path))
        self._forget(file_path)
        logger.info(f"✅ Removed {file_path}")
        return True

    def release(self, file_path):
        """Stop treating a file as ours, e.g. after handing it back to its owner"""
        self._forget(Path(file_path))

    def is_our_file(self, file_path, content: bytes) -> bool:
        meta = self._created_files().get(str(file_path))
        return bool(meta) and meta.get("content_hash") == content_hash(content)

    def create_backup(self, file_path) -> Path:
        file_path = Path(file_path)
        backup_dir = Path(self.backup_dir) if self.backup_dir else file_path.parent / "backups"
        try:
            backup_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
            backup_path = backup_dir / f"{file_path.name}.backup.{timestamp}"
            shutil.copy2(file_path, backup_path)
        except OSError as e:
            raise InstallError(f"Failed to create backup for {file_path}: {e}", path=str(file_path))

        logger.info(f"Created backup: {backup_path}")
        return backup_path

    def policy_for(self, file_path) -> str:
        policies = self.store.get(FILE_POLICIES_OPTION) or DEFAULT_FILE_POLICIES
        name = Path(file_path).name

        if name in policies:
            return policies[name]
        for pattern, policy in policies.items():
            if pattern != "default" and fnmatch.fnmatch(name, pattern):
                return policy
        return policies.get("default", POLICY_NEVER_OVERWRITE)

    def _read(self, file_path: Path) -> bytes:
        try:
            return file_path.read_bytes()
        except OSError as e:
            raise InstallError(f"Cannot read existing file {file_path}: {e}", path=str(file_path))

    def _write(self, file_path: Path, content: bytes):
        try:
            file_path.write_bytes(content)
        except OSError as e:
            raise InstallError(f"Failed to write {file_path}: {e}", path=str(file_path))
        self._remember(file_path, content)

    def _created_files(self) -> dict:
        return self.store.get(CREATED_FILES_OPTION) or {}

    def _remember(self, file_path: Path, content: bytes):
        files = self._created_files()
        files[str(file_path)] = {
            "content_hash": content_hash(content),
            "file_size": len(content),
            "created_at": utc_now(),
        }
        self.store.set(CREATED_FILES_OPTION, files)

    def _forget(self, file_path: Path):
        files = self._created_files()
        if files.pop(str(file_path), None) is not None:
            self.store.set(CREATED_FILES_OPTION, files)
