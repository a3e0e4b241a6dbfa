import sys
from concurrent.futures import Future
from pathlib import Path
from urllib.parse import urlparse

import pytest
import requests
from requests.structures import CaseInsensitiveDict

# Ensure project root is on sys.path for `config`, `services` and `routes` imports
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config.settings import CONFIG  # noqa: E402
from services.container import build_services  # noqa: E402


class FakeResponse:
    def __init__(self, status_code=200, content=b"", headers=None):
        self.status_code = status_code
        self.content = content
        self.headers = CaseInsensitiveDict(headers or {})

    @property
    def text(self):
        return self.content.decode("utf-8", errors="replace")

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")


class FakeHost:
    """
    Stands in for the web server in front of the app.

    Answers GETs from the web root when serves_static is set and from the
    route table when serves_dynamic is set; fail makes every request raise
    a connection error.
    """

    def __init__(self, web_root, route_table, serves_static=True, serves_dynamic=True, fail=False):
        self.web_root = Path(web_root)
        self.route_table = route_table
        self.serves_static = serves_static
        self.serves_dynamic = serves_dynamic
        self.fail = fail
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.fail:
            raise requests.exceptions.ConnectionError("connection refused")

        path = urlparse(url).path
        if self.serves_static:
            file_path = self.web_root / path.lstrip("/")
            if file_path.is_file():
                return FakeResponse(200, file_path.read_bytes())
        if self.serves_dynamic:
            route = self.route_table.lookup(path)
            if route is not None:
                return FakeResponse(200, route.content)
        return FakeResponse(404, b"Not Found")


class ImmediateExecutor:
    """Runs submitted work on the calling thread"""

    def __init__(self):
        self.submitted = []

    def submit(self, fn, *args, **kwargs):
        self.submitted.append((fn, args))
        future = Future()
        future.set_result(fn(*args, **kwargs))
        return future

    def shutdown(self, wait=True):
        pass


@pytest.fixture
def config(tmp_path):
    web_root = tmp_path / "www"
    web_root.mkdir()
    return dict(
        CONFIG,
        database_path=str(tmp_path / "host.db"),
        web_root=str(web_root),
        backup_dir=str(tmp_path / "backups"),
        site_url="http://localhost:5000",
        site_name="",
        admin_email="admin@example.com",
        admin_api_key="",
        metrics_base_url="",
        serve_web_root=False,
        auto_install=False,
    )


@pytest.fixture
def services(config):
    return build_services(config, metrics_executor=ImmediateExecutor())


@pytest.fixture
def host(services):
    fake = FakeHost(services.config["web_root"], services.route_table)
    services.route_tester.http = fake
    return fake
