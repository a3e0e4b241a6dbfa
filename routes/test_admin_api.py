from pathlib import Path

import pytest

from app import create_app
from conftest import FakeHost, ImmediateExecutor
from services.container import EXTENSION_KEY


@pytest.fixture
def app(config):
    flask_app = create_app(config, metrics_executor=ImmediateExecutor())
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return app.extensions[EXTENSION_KEY]


@pytest.fixture
def host(services):
    fake = FakeHost(services.config["web_root"], services.route_table, serves_dynamic=False)
    services.route_tester.http = fake
    return fake


def test_health_and_status(client):
    assert client.get("/api/health").get_json()["status"] == "healthy"

    status = client.get("/api/status").get_json()
    assert status["success"] is True
    assert status["installed_count"] == 0
    assert status["endpoint_count"] == 5


def test_list_endpoints(client):
    data = client.get("/api/endpoints").get_json()

    kinds = {e["kind"]: e for e in data["endpoints"]}
    assert set(kinds) == {"ai_plugin", "mcp_servers", "llms", "robots", "ask"}
    assert kinds["ask"]["strategies"] == ["dynamic_route"]
    assert kinds["llms"]["installed"] is False


def test_install_probes_and_reports_strategy(client, services, host):
    response = client.post("/api/endpoints/mcp_servers/install")

    data = response.get_json()
    assert response.status_code == 200
    assert data["result"]["strategy_used"] == "static_file"
    assert data["result"]["probe"]["recommended_strategy"] == "static_file"
    assert (Path(services.config["web_root"]) / ".well-known" / "mcp" / "servers.json").is_file()

    listed = client.get("/api/endpoints?check=true").get_json()["endpoints"]
    mcp = next(e for e in listed if e["kind"] == "mcp_servers")
    assert mcp["strategy"] == "static_file"
    assert mcp["active"] is True


def test_failed_install_is_reported(client, host):
    host.fail = True

    response = client.post("/api/endpoints/llms/install")

    assert response.status_code == 409
    assert response.get_json()["success"] is False
    listed = client.get("/api/endpoints").get_json()["endpoints"]
    assert next(e for e in listed if e["kind"] == "llms")["last_error"] is not None


def test_unknown_endpoint_kind(client):
    response = client.post("/api/endpoints/favicon/install")

    assert response.status_code == 404
    assert "ask" in response.get_json()["available"]


def test_strategy_preference_reinstalls(client, services, host):
    client.post("/api/endpoints/llms/install", json={"strategy": "static_file"})
    llms = Path(services.config["web_root"]) / "llms.txt"
    assert llms.is_file()

    response = client.put("/api/endpoints/llms/strategy", json={"strategy": "dynamic_route"})

    assert response.status_code == 200
    assert response.get_json()["result"]["strategy_used"] == "dynamic_route"
    assert not llms.exists()
    assert services.installer.get_preference("/llms.txt").value == "dynamic_route"

    assert client.put("/api/endpoints/ask/strategy", json={"strategy": "static_file"}).status_code == 400
    assert client.put("/api/endpoints/llms/strategy", json={}).status_code == 400


def test_failed_strategy_change_keeps_endpoint_served(client, services, host):
    client.post("/api/endpoints/llms/install", json={"strategy": "dynamic_route"})
    (Path(services.config["web_root"]) / "llms.txt").write_bytes(b"hand written notes about our crawler policy\n")

    response = client.put("/api/endpoints/llms/strategy", json={"strategy": "static_file"})

    assert response.status_code == 409
    assert response.get_json()["success"] is False
    served = client.get("/llms.txt")
    assert served.status_code == 200
    assert served.data.startswith(b"# LLMS.txt")
    assert services.installer.get_record("/llms.txt").strategy.value == "dynamic_route"
    assert services.installer.get_preference("/llms.txt") is None


def test_clearing_pin_falls_back_when_no_strategy_works(client, services, host):
    client.put("/api/endpoints/llms/strategy", json={"strategy": "static_file"})
    host.fail = True

    response = client.put("/api/endpoints/llms/strategy", json={"strategy": None})

    assert response.status_code == 409
    assert services.installer.get_preference("/llms.txt") is None
    assert services.installer.get_record("/llms.txt").strategy.value == "static_file"
    assert (Path(services.config["web_root"]) / "llms.txt").read_bytes().startswith(b"# LLMS.txt")


def test_uninstall_endpoint(client, services, host):
    client.post("/api/endpoints/llms/install", json={"strategy": "dynamic_route"})

    data = client.delete("/api/endpoints/llms").get_json()

    assert data["removed"] is True
    assert services.route_table.lookup("/llms.txt") is None


def test_probe_endpoint(client, services, host):
    data = client.post("/api/endpoints/llms/probe").get_json()

    assert data["probe"]["recommended_strategy"] == "static_file"
    assert client.get("/api/logs?path=/llms.txt").get_json()["count"] == 1


def test_settings_update_refreshes_installed_files(client, services, host):
    client.post("/api/endpoints/llms/install", json={"strategy": "static_file"})

    response = client.put("/api/settings", json={"business_name": "The Knollcroft Inn"})

    assert response.status_code == 200
    assert response.get_json()["refreshed"]["llms"]["changed"] is True
    llms = (Path(services.config["web_root"]) / "llms.txt").read_text()
    assert "# Site: The Knollcroft Inn" in llms
    assert client.get("/api/settings").get_json()["display_name"] == "The Knollcroft Inn"


def test_settings_rejects_unknown_fields(client):
    response = client.put("/api/settings", json={"favourite_colour": "green"})

    assert response.status_code == 400


def test_activate_and_deactivate(client, services, host):
    results = client.post("/api/activate").get_json()["results"]

    assert results["ask"]["strategy_used"] == "dynamic_route"
    assert results["robots"]["strategy_used"] == "static_file"
    assert services.store.get("activated_at")

    data = client.post("/api/deactivate").get_json()

    assert data["success"] is True
    assert services.installer.records() == []
    assert [p for p in Path(services.config["web_root"]).rglob("*") if p.is_file()] == []


def test_nginx_config(client, services):
    data = client.get("/api/nginx/config?domain=inn.example&port=8000").get_json()

    assert "server_name inn.example www.inn.example;" in data["config"]
    assert "proxy_pass http://localhost:8000;" in data["config"]
    assert f"root {services.config['web_root']};" in data["config"]


def test_api_key_required_when_configured(config):
    config["admin_api_key"] = "s3cret"
    client = create_app(config, metrics_executor=ImmediateExecutor()).test_client()

    assert client.get("/api/health").status_code == 200
    assert client.get("/api/endpoints").status_code == 401
    assert client.get("/api/endpoints", headers={"X-API-Key": "s3cret"}).status_code == 200
