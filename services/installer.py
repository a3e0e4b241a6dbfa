"""
services/installer.py

Endpoint installer.

Serves a path with exactly one strategy at a time: a file written into the
web root (static) or a route in the application's route table (dynamic).
The active strategy of every installed path is recorded in the option
store and consulted on every install, so re-installing unchanged content
does nothing and switching strategies removes the old artifact first.
"""

import logging
from typing import Callable, List, Optional, Sequence

from services.errors import InstallError
from services.file_safety import (
    POLICY_BACKUP_AND_OVERWRITE,
    content_hash,
    ensure_directory,
    web_root_path,
)
from services.models import InstallResult, InstalledEndpoint, Strategy, utc_now
from services.route_table import normalize_path

logger = logging.getLogger(__name__)

RECORD_PREFIX = "endpoint_strategy:"
PREFERENCE_PREFIX = "strategy_preference:"
ERROR_PREFIX = "endpoint_error:"

# merge(existing_bytes) -> bytes to write; unmerge(existing_bytes) -> bytes to keep
Merge = Callable[[bytes], bytes]


def _read(file_path) -> bytes:
    try:
        return file_path.read_bytes()
    except OSError as e:
        raise InstallError(f"Cannot read {file_path}: {e}", path=str(file_path))


def parse_strategy(value) -> Strategy:
    try:
        strategy = Strategy(value)
    except ValueError:
        raise InstallError(f"Unknown strategy: {value}")
    if strategy is Strategy.NONE:
        raise InstallError("Strategy 'none' cannot be installed")
    return strategy


class EndpointInstaller:
    def __init__(self, store, route_table, route_tester, file_safety, web_root):
        self.store = store
        self.route_table = route_table
        self.route_tester = route_tester
        self.file_safety = file_safety
        self.web_root = web_root

    # ───────────────────────────────────────────────────────────
    # Install / uninstall
    # ───────────────────────────────────────────────────────────

    def install(
        self,
        path,
        content,
        strategy=None,
        content_type="text/plain",
        kind=None,
        merge: Optional[Merge] = None,
        unmerge: Optional[Merge] = None,
        allowed: Optional[Sequence[Strategy]] = None,
    ) -> InstallResult:
        """
        Install content at path.

        The strategy is taken from, in order: the strategy argument, the
        operator's stored preference, the existing record, the only allowed
        strategy, or a fresh probe. An appending endpoint whose file already
        exists in the web root is always extended as a static file. Failures
        are recorded and returned in the result; they are never raised.
        """
        path = normalize_path(path)
        if isinstance(content, str):
            content = content.encode("utf-8")

        record = self.get_record(path)
        result = InstallResult(path=path, success=False)
        previous = None

        try:
            chosen = self._choose_strategy(path, content, strategy, record, allowed, result, merge)
            if allowed and chosen not in allowed:
                raise InstallError(f"{chosen.value} is not available for {path}", path=path)

            if record and record.strategy != chosen:
                logger.info(f"Switching {path} from {record.strategy.value} to {chosen.value}")
                self._remove_artifact(record, unmerge)
                self.store.delete(RECORD_PREFIX + path)
                previous, record = record, None

            new_hash = content_hash(content)
            if record and record.content_hash == new_hash and self._artifact_in_place(record):
                self.store.delete(ERROR_PREFIX + path)
                result.success = True
                result.strategy_used = chosen
                return result

            preexisting = False
            if chosen is Strategy.STATIC:
                result.changed, preexisting = self._install_static(path, content, merge, record)
            else:
                self._install_dynamic(path, content, content_type, kind)
                result.changed = True

            self._save_record(
                InstalledEndpoint(
                    path=path,
                    strategy=chosen,
                    content_hash=new_hash,
                    kind=kind,
                    preexisting=preexisting,
                )
            )
            self.store.delete(ERROR_PREFIX + path)

            result.success = True
            result.strategy_used = chosen
            logger.info(f"✅ Installed {path} ({chosen.value})")
            return result

        except InstallError as e:
            logger.error(f"❌ Failed to install {path}: {e}")
            self.store.set(ERROR_PREFIX + path, {"error": str(e), "timestamp": utc_now()})
            result.error = str(e)
            if previous is not None:
                self._restore(previous, content, content_type, merge)
            return result

    def uninstall(self, path, unmerge: Optional[Merge] = None) -> bool:
        """
        Remove whatever the recorded strategy installed at path.

        Returns False when nothing was installed. Raises InstallError when
        the artifact could not be removed; the record is kept in that case.
        """
        path = normalize_path(path)
        record = self.get_record(path)
        self.store.delete(ERROR_PREFIX + path)
        if record is None:
            return False

        self._remove_artifact(record, unmerge)
        self.store.delete(RECORD_PREFIX + path)
        logger.info(f"✅ Uninstalled {path} ({record.strategy.value})")
        return True

    # ───────────────────────────────────────────────────────────
    # Strategy selection
    # ───────────────────────────────────────────────────────────

    def _choose_strategy(self, path, content, strategy, record, allowed, result, merge=None) -> Strategy:
        # an owner's file at the path shadows any route, so appending endpoints extend the file
        if merge is not None and self._owner_file_present(path, record):
            if strategy and parse_strategy(strategy) is not Strategy.STATIC:
                raise InstallError(
                    f"{path} already exists in the web root and can only be extended as a static file",
                    path=path,
                )
            return Strategy.STATIC

        if strategy:
            return parse_strategy(strategy)

        preference = self.get_preference(path)
        if preference:
            return preference

        if record:
            return record.strategy

        if allowed and len(allowed) == 1:
            return allowed[0]

        probe = self.route_tester.probe(path, content)
        result.probe = probe
        if not probe.can_proceed:
            raise InstallError("; ".join(probe.errors) or f"No working strategy for {path}", path=path)
        return probe.recommended_strategy

    def set_preference(self, path, strategy=None):
        """Pin a strategy for path, or clear the pin when strategy is None"""
        path = normalize_path(path)
        if strategy is None:
            self.store.delete(PREFERENCE_PREFIX + path)
            return None
        strategy = parse_strategy(strategy)
        self.store.set(PREFERENCE_PREFIX + path, strategy.value)
        return strategy

    def get_preference(self, path) -> Optional[Strategy]:
        value = self.store.get(PREFERENCE_PREFIX + normalize_path(path))
        return Strategy(value) if value else None

    # ───────────────────────────────────────────────────────────
    # Artifacts
    # ───────────────────────────────────────────────────────────

    def _install_static(self, path, content, merge, record):
        file_path = web_root_path(self.web_root, path)
        try:
            ensure_directory(file_path.parent)
        except OSError as e:
            raise InstallError(f"Cannot create directory {file_path.parent}: {e}", path=path)

        preexisting = bool(record and record.preexisting)
        policy = None
        if merge is not None and file_path.exists():
            existing = _read(file_path)
            if not self.file_safety.is_our_file(file_path, existing):
                preexisting = True
            if preexisting:
                # keep the owner's content, only our section is replaced
                content = merge(existing)
                policy = POLICY_BACKUP_AND_OVERWRITE

        write = self.file_safety.safe_write(file_path, content, policy)
        logger.info(f"{path}: {write.action}")
        return write.changed, preexisting

    def _install_dynamic(self, path, content, content_type, kind):
        self.route_table.register(path, content, content_type, endpoint=kind)
        self.route_table.reload()

    def _remove_artifact(self, record: InstalledEndpoint, unmerge=None):
        if record.strategy is Strategy.DYNAMIC:
            self.route_table.unregister(record.path)
            self.route_table.reload()
            return

        file_path = web_root_path(self.web_root, record.path)
        if record.preexisting and unmerge is not None:
            if not file_path.exists():
                self.file_safety.release(file_path)
                return
            remaining = unmerge(_read(file_path))
            self.file_safety.safe_write(file_path, remaining, POLICY_BACKUP_AND_OVERWRITE)
            self.file_safety.release(file_path)
            logger.info(f"Removed our section from {file_path}")
            return

        self.file_safety.remove(file_path)

    def _restore(self, previous: InstalledEndpoint, content, content_type, merge=None) -> bool:
        """Put a failed switch back on the strategy it came from"""
        try:
            preexisting = False
            if previous.strategy is Strategy.STATIC:
                _, preexisting = self._install_static(previous.path, content, merge, None)
            else:
                self._install_dynamic(previous.path, content, content_type, previous.kind)
        except InstallError as e:
            logger.error(f"❌ Could not restore {previous.path} as {previous.strategy.value}: {e}")
            return False

        self._save_record(
            InstalledEndpoint(
                path=previous.path,
                strategy=previous.strategy,
                content_hash=content_hash(content),
                kind=previous.kind,
                preexisting=preexisting,
            )
        )
        logger.warning(f"⚠️  {previous.path} kept on {previous.strategy.value}")
        return True

    def _owner_file_present(self, path, record) -> bool:
        """A file at path that was not written by us, or that we only appended to"""
        file_path = web_root_path(self.web_root, path)
        if not file_path.exists():
            return False
        if record and record.strategy is Strategy.STATIC and record.preexisting:
            return True
        return not self.file_safety.is_our_file(file_path, _read(file_path))

    def _artifact_in_place(self, record: InstalledEndpoint) -> bool:
        if record.strategy is Strategy.DYNAMIC:
            return self.route_table.is_registered(record.path)

        file_path = web_root_path(self.web_root, record.path)
        if not file_path.exists():
            return False
        return self.file_safety.is_our_file(file_path, _read(file_path))

    # ───────────────────────────────────────────────────────────
    # Records
    # ───────────────────────────────────────────────────────────

    def get_record(self, path) -> Optional[InstalledEndpoint]:
        data = self.store.get(RECORD_PREFIX + normalize_path(path))
        return InstalledEndpoint.from_dict(data) if data else None

    def _save_record(self, record: InstalledEndpoint):
        self.store.set(RECORD_PREFIX + record.path, record.to_dict())

    def records(self) -> List[InstalledEndpoint]:
        return [InstalledEndpoint.from_dict(value) for _, value in self.store.items(RECORD_PREFIX)]

    def get_error(self, path):
        return self.store.get(ERROR_PREFIX + normalize_path(path))
