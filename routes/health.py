"""Health and status endpoints"""
from flask import jsonify
from datetime import datetime, timezone
from services.container import current_services
from services.endpoints import CATALOG

def register_routes(app):
    """Register health-related routes"""

    @app.route('/api/health')
    def health():
        return jsonify({
            "status": "healthy",
            "version": "1.0.0",
            "timestamp": datetime.now(timezone.utc).isoformat()
        })

    @app.route('/api/status')
    def status():
        try:
            services = current_services()
            records = services.installer.records()

            return jsonify({
                "success": True,
                "activated_at": services.store.get("activated_at"),
                "site_url": services.config["site_url"],
                "installed_count": len(records),
                "endpoint_count": len(CATALOG),
                "dynamic_routes": len(services.route_table.all()),
                "metrics_enabled": services.beacon.enabled,
                "timestamp": datetime.now(timezone.utc).isoformat()
            })
        except Exception as e:
            return jsonify({"success": False, "error": str(e)}), 500
