"""Application configuration"""
import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name, default="false"):
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


CONFIG = {
    "database_path": os.getenv("DB_PATH", "/var/lib/ai-discovery-host/host.db"),
    "web_root": os.getenv("WEB_ROOT", "/var/www/site"),
    "backup_dir": os.getenv("BACKUP_DIR", "/var/lib/ai-discovery-host/backups"),
    "site_url": os.getenv("SITE_URL", "http://localhost:5000").rstrip("/"),
    "site_name": os.getenv("SITE_NAME", ""),
    "admin_email": os.getenv("ADMIN_EMAIL", "admin@localhost"),
    "admin_api_key": os.getenv("ADMIN_API_KEY", ""),
    # /ask upstream
    "ask_backend_url": os.getenv("ASK_BACKEND_URL", "https://api.makekismet.com").rstrip("/"),
    "ask_backend_route": os.getenv("ASK_BACKEND_ROUTE", "/ask"),
    "proxy_timeout": float(os.getenv("PROXY_TIMEOUT", "30")),
    # Usage metrics (disabled when no base URL is set)
    "metrics_base_url": os.getenv("METRICS_BASE_URL", "").rstrip("/"),
    "metrics_route": os.getenv("METRICS_ROUTE", "/api/PluginMetrics/event"),
    "metrics_timeout": float(os.getenv("METRICS_TIMEOUT", "2")),
    "metrics_max_pending": int(os.getenv("METRICS_MAX_PENDING", "100")),
    # Environment probing
    "probe_timeout": float(os.getenv("PROBE_TIMEOUT", "10")),
    "probe_log_limit": 50,
    "serve_web_root": _flag("SERVE_WEB_ROOT"),
    "auto_install": _flag("AUTO_INSTALL", "true"),
    "host": os.getenv("HOST", "0.0.0.0"),
    "port": int(os.getenv("PORT", "5000")),
}
