#!/usr/bin/env python3
"""
AI Discovery Host - serves AI agent discovery endpoints and the /ask proxy
"""
import sys
import logging
import os
import threading
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

import requests
from flask import Flask, jsonify, request
from flask_cors import CORS
from config.settings import CONFIG
from routes import register_all_routes
from services import lifecycle
from services.container import EXTENSION_KEY, build_services
from utils.logger import setup_logger

logger = setup_logger(__name__)

# Reachable without the admin key
PUBLIC_API_PATHS = ('/api/health',)


def create_app(overrides=None, http=None, metrics_executor=None):
    """
    Build the Flask app

    overrides is merged over CONFIG. http replaces the requests module for
    outbound calls (used by tests).
    """
    config = dict(CONFIG)
    config.update(overrides or {})

    app = Flask(__name__)
    CORS(app)

    # ═══════════════════════════════════════════════════════════
    # Initialize Core Services
    # ═══════════════════════════════════════════════════════════

    os.makedirs(config["web_root"], exist_ok=True)
    logger.info(f"✅ Web root: {config['web_root']}")

    services = build_services(config, http=http, metrics_executor=metrics_executor)
    app.extensions[EXTENSION_KEY] = services

    if config.get("admin_api_key"):
        @app.before_request
        def require_api_key():
            if not request.path.startswith('/api/') or request.path in PUBLIC_API_PATHS:
                return None
            if request.method == 'OPTIONS':
                return None
            if request.headers.get('X-API-Key') != config["admin_api_key"]:
                return jsonify({"success": False, "error": "Invalid or missing API key"}), 401
            return None

    register_all_routes(app)
    return app


# ═══════════════════════════════════════════════════════════
# Route Display
# ═══════════════════════════════════════════════════════════


def show_routes(app):
    """Display all registered routes organized by prefix"""
    logger.info("=" * 60)
    logger.info("📋 Registered Routes:")
    logger.info("=" * 60)

    routes_by_prefix = {}

    for rule in app.url_map.iter_rules():
        if rule.endpoint != "static":
            parts = rule.rule.split("/")
            prefix = parts[2] if len(parts) > 2 else "root"

            if prefix not in routes_by_prefix:
                routes_by_prefix[prefix] = []

            methods = ",".join(sorted(rule.methods - {"HEAD", "OPTIONS"}))
            routes_by_prefix[prefix].append((methods, rule.rule))

    for prefix in sorted(routes_by_prefix.keys()):
        logger.info(f"\n  {prefix.upper()}:")
        for methods, path in sorted(routes_by_prefix[prefix]):
            logger.info(f"    {methods:12} {path}")

    logger.info("\n" + "=" * 60)


# ═══════════════════════════════════════════════════════════
# Startup Checks
# ═══════════════════════════════════════════════════════════


def check_web_root_writable(web_root):
    """Static file installs need a writable web root"""
    if os.access(web_root, os.W_OK):
        logger.info("✅ Web root is writable (static file strategy available)")
        return True
    logger.warning("⚠️  Web root is not writable (only dynamic routes will work)")
    logger.warning(f"   Fix: sudo chown -R $USER {web_root}")
    return False


def wait_for_health(port, timeout=60):
    """Poll until this server answers its own health check."""
    url = f"http://127.0.0.1:{port}/api/health"
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            if requests.get(url, timeout=2).status_code == 200:
                return True
        except requests.exceptions.RequestException:
            pass
        time.sleep(1)
    return False


def start_auto_activation(app, port):
    """Activate the endpoints in the background once the server is reachable"""
    services = app.extensions[EXTENSION_KEY]

    def run():
        if not wait_for_health(port):
            logger.error("❌ Server did not become healthy within 60 seconds, endpoints not installed")
            return
        try:
            results = lifecycle.activate(services)
            for kind, result in results.items():
                if result["success"]:
                    logger.info(f"   {kind:12} {result['strategy_used']}")
                else:
                    logger.warning(f"   {kind:12} FAILED: {result['error']}")
        except Exception as e:
            logger.error(f"❌ Auto-activation failed: {e}")

    thread = threading.Thread(target=run, name="auto-activate", daemon=True)
    thread.start()
    return thread


# ═══════════════════════════════════════════════════════════
# Main
# ═══════════════════════════════════════════════════════════

if __name__ == "__main__":
    app = create_app()

    logger.info("=" * 60)
    logger.info("🚀 AI Discovery Host Starting")
    logger.info("=" * 60)
    logger.info(f"Database: {CONFIG['database_path']}")
    logger.info(f"Web Root: {CONFIG['web_root']}")
    logger.info(f"Site URL: {CONFIG['site_url']}")
    logger.info(f"/ask upstream: {CONFIG['ask_backend_url']}{CONFIG['ask_backend_route']}")
    logger.info("=" * 60)

    check_web_root_writable(CONFIG["web_root"])

    show_routes(app)

    if CONFIG["auto_install"]:
        start_auto_activation(app, CONFIG["port"])

    logger.info(f"🌐 Server starting on http://{CONFIG['host']}:{CONFIG['port']}")
    logger.info("=" * 60 + "\n")

    app.run(host=CONFIG["host"], port=CONFIG["port"], debug=False, threaded=True)
