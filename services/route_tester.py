"""
services/route_tester.py

Serving-strategy prober.

Finds out empirically how this host can serve a path. Two trials are run
against a throwaway sibling of the target path:

    1. dynamic route - register a transient route in the route table,
       flush it, and fetch the URL
    2. static file   - write the sample into the web root and fetch it

A trial succeeds when the URL answers 200 with exactly the sample bytes.
Everything a trial creates is removed again before the next step, whatever
the outcome. Results are kept in a small ring buffer for diagnostics.
"""

import json
import logging
import mimetypes
import posixpath
import random
import sqlite3
import time
from urllib.parse import urlparse

import requests

from services.database import get_db
from services.errors import InstallError, ProbeError
from services.file_safety import ensure_directory, web_root_path
from services.models import ProbeResult, Strategy

logger = logging.getLogger(__name__)

USER_AGENT = "ai-discovery-host/1.0 (route-tester)"
LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")


def generate_test_path(path):
    """'/llms.txt' -> '/llms-probe-1718000000-4821.txt'"""
    stem, ext = posixpath.splitext(path)
    return f"{stem}-probe-{int(time.time())}-{random.randint(1000, 9999)}{ext}"


def guess_content_type(path):
    content_type, _ = mimetypes.guess_type(path)
    return content_type or "text/plain"


def is_local_url(url):
    host = urlparse(url).hostname or ""
    return host in LOCAL_HOSTS or host.endswith(".local")


class RouteTester:
    def __init__(self, route_table, web_root, site_url, store, http=None, timeout=10, log_limit=50):
        self.route_table = route_table
        self.web_root = web_root
        self.site_url = site_url.rstrip("/")
        self.store = store
        self.http = http or requests
        self.timeout = timeout
        self.log_limit = log_limit

    def probe(self, path, sample_content=None) -> ProbeResult:
        """Run both trials for path and recommend a strategy"""
        test_path = generate_test_path(path)
        if sample_content is None:
            sample_content = f"route probe {test_path} {time.time()}\n".encode("utf-8")
        content_type = guess_content_type(path)

        logger.info(f"🔍 Probing serving strategy for {path} (test path {test_path})")
        result = ProbeResult(path=path, test_path=test_path)

        result.dynamic_route_works = self._try_dynamic(test_path, sample_content, content_type, result)
        result.static_file_works = self._try_static(test_path, sample_content, result)

        self._analyze(result)
        self.log_result(result)

        logger.info(
            f"✅ Probe for {path}: dynamic={result.dynamic_route_works} "
            f"static={result.static_file_works} -> {result.recommended_strategy.value}"
        )
        return result

    def is_route_active(self, path) -> bool:
        """Whether the real path currently answers 200"""
        url = f"{self.site_url}{path}"
        try:
            response = self._get(url)
        except requests.exceptions.RequestException as e:
            logger.debug(f"Route check failed for {url}: {e}")
            return False
        return response.status_code == 200

    # ───────────────────────────────────────────────────────────
    # Trials
    # ───────────────────────────────────────────────────────────

    def _try_dynamic(self, test_path, sample, content_type, result):
        try:
            self.route_table.register(test_path, sample, content_type, transient=True)
            self.route_table.reload()
            self._fetch_and_compare(test_path, sample)
            return True
        except (ProbeError, sqlite3.Error) as e:
            result.errors.append(f"Dynamic route test failed: {e}")
            return False
        finally:
            self._remove_transient_route(test_path)

    def _try_static(self, test_path, sample, result):
        file_path = None
        created_file = False
        created_dirs = []
        try:
            file_path = web_root_path(self.web_root, test_path)
            created_dirs = ensure_directory(file_path.parent)
            with open(file_path, "xb") as f:
                created_file = True
                f.write(sample)
            self._fetch_and_compare(test_path, sample)
            return True
        except FileExistsError:
            result.errors.append(f"Static file test failed: {file_path} already exists")
            return False
        except (ProbeError, InstallError, OSError) as e:
            result.errors.append(f"Static file test failed: {e}")
            return False
        finally:
            self._remove_test_file(file_path if created_file else None, created_dirs)

    def _fetch_and_compare(self, test_path, expected):
        url = f"{self.site_url}{test_path}"
        try:
            response = self._get(url)
        except requests.exceptions.RequestException as e:
            raise ProbeError(f"request to {url} failed: {e}")

        if response.status_code != 200:
            raise ProbeError(f"{url} returned HTTP {response.status_code}")
        if response.content != expected:
            raise ProbeError(f"{url} returned unexpected content")

    def _get(self, url):
        return self.http.get(
            url,
            timeout=self.timeout,
            headers={"User-Agent": USER_AGENT},
            allow_redirects=False,
            verify=not is_local_url(url),
        )

    # ───────────────────────────────────────────────────────────
    # Cleanup
    # ───────────────────────────────────────────────────────────

    def _remove_transient_route(self, test_path):
        try:
            self.route_table.unregister(test_path)
            self.route_table.reload()
        except sqlite3.Error as e:
            logger.warning(f"⚠️  Could not remove transient route {test_path}: {e}")

    def _remove_test_file(self, file_path, created_dirs):
        if file_path is not None:
            try:
                file_path.unlink()
            except OSError as e:
                logger.warning(f"⚠️  Could not remove probe file {file_path}: {e}")

        for directory in reversed(created_dirs):
            try:
                directory.rmdir()
            except OSError as e:
                logger.warning(f"⚠️  Could not remove probe directory {directory}: {e}")

    # ───────────────────────────────────────────────────────────
    # Analysis & diagnostics
    # ───────────────────────────────────────────────────────────

    def _analyze(self, result: ProbeResult):
        if result.dynamic_route_works and result.static_file_works:
            result.recommended_strategy = Strategy.DYNAMIC
            result.warnings.append("Both strategies work. Using dynamic route.")
        elif result.dynamic_route_works:
            result.recommended_strategy = Strategy.DYNAMIC
        elif result.static_file_works:
            result.recommended_strategy = Strategy.STATIC
            result.warnings.append("Dynamic routes are not reachable. Falling back to static files.")
        else:
            result.recommended_strategy = Strategy.NONE
            result.errors.insert(0, f"Neither dynamic routes nor static files are served for {result.path}")

    def log_result(self, result: ProbeResult):
        """Append to the probe log, keeping the most recent entries only"""
        conn = get_db(self.store.db_path)
        try:
            conn.execute(
                """
                INSERT INTO probe_logs
                (path, test_path, recommended_strategy, dynamic_route_works,
                 static_file_works, errors, warnings, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    result.path,
                    result.test_path,
                    result.recommended_strategy.value,
                    result.dynamic_route_works,
                    result.static_file_works,
                    json.dumps(result.errors),
                    json.dumps(result.warnings),
                    result.timestamp,
                ),
            )
            conn.execute(
                """
                DELETE FROM probe_logs WHERE id NOT IN
                (SELECT id FROM probe_logs ORDER BY id DESC LIMIT ?)
                """,
                (self.log_limit,),
            )
            conn.commit()
        except sqlite3.Error as e:
            logger.warning(f"⚠️  Could not record probe result for {result.path}: {e}")
        finally:
            conn.close()

    def recent_logs(self, limit=None, path=None):
        limit = min(limit or self.log_limit, self.log_limit)
        conn = get_db(self.store.db_path)
        try:
            cursor = conn.cursor()
            if path:
                cursor.execute(
                    """
                    SELECT path, test_path, recommended_strategy, dynamic_route_works,
                           static_file_works, errors, warnings, created_at
                    FROM probe_logs WHERE path = ? ORDER BY id DESC LIMIT ?
                    """,
                    (path, limit),
                )
            else:
                cursor.execute(
                    """
                    SELECT path, test_path, recommended_strategy, dynamic_route_works,
                           static_file_works, errors, warnings, created_at
                    FROM probe_logs ORDER BY id DESC LIMIT ?
                    """,
                    (limit,),
                )
            rows = cursor.fetchall()
        finally:
            conn.close()

        return [
            {
                "path": r[0],
                "test_path": r[1],
                "recommended_strategy": r[2],
                "dynamic_route_works": bool(r[3]),
                "static_file_works": bool(r[4]),
                "errors": json.loads(r[5] or "[]"),
                "warnings": json.loads(r[6] or "[]"),
                "timestamp": r[7],
            }
            for r in rows
        ]
