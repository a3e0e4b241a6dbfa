"""Builds the service objects from one configuration dict"""

import logging
from dataclasses import dataclass
from typing import Any

from flask import current_app

from services.ask_proxy import AskProxy
from services.content import SETTINGS_OPTION, SiteInfo
from services.database import init_database
from services.file_safety import FileSafetyManager
from services.installer import EndpointInstaller
from services.metrics import MetricsBeacon
from services.options import OptionStore
from services.route_table import RouteTable
from services.route_tester import RouteTester

logger = logging.getLogger(__name__)

EXTENSION_KEY = "ai_discovery"


@dataclass
class Services:
    config: dict
    store: OptionStore
    route_table: RouteTable
    route_tester: RouteTester
    file_safety: FileSafetyManager
    installer: EndpointInstaller
    ask_proxy: AskProxy
    beacon: MetricsBeacon
    http: Any = None

    def site(self) -> SiteInfo:
        return SiteInfo.load(self.store, self.config, http=self.http)


def build_services(config, http=None, metrics_executor=None) -> Services:
    """
    Wire everything up for one database and web root.

    http replaces the requests module for outbound calls (probes, the /ask
    upstream, metrics and the custom ai-plugin.json).
    """
    init_database(config["database_path"])

    store = OptionStore(config["database_path"])
    route_table = RouteTable(store)
    route_tester = RouteTester(
        route_table,
        config["web_root"],
        config["site_url"],
        store,
        http=http,
        timeout=config["probe_timeout"],
        log_limit=config["probe_log_limit"],
    )
    file_safety = FileSafetyManager(store, config.get("backup_dir"))
    installer = EndpointInstaller(store, route_table, route_tester, file_safety, config["web_root"])
    ask_proxy = AskProxy(
        config["ask_backend_url"],
        config["ask_backend_route"],
        timeout=config["proxy_timeout"],
        http=http,
    )
    beacon = MetricsBeacon(
        config["metrics_base_url"],
        config["metrics_route"],
        timeout=config["metrics_timeout"],
        client_id=lambda: (store.get(SETTINGS_OPTION) or {}).get("client_id"),
        http=http,
        executor=metrics_executor,
        max_pending=config.get("metrics_max_pending", 100),
    )

    return Services(
        config=config,
        store=store,
        route_table=route_table,
        route_tester=route_tester,
        file_safety=file_safety,
        installer=installer,
        ask_proxy=ask_proxy,
        beacon=beacon,
        http=http,
    )


def current_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]
