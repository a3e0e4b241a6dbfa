"""Business information settings endpoints"""
from flask import jsonify, request
from services import lifecycle
from services.container import current_services
from services.content import SETTINGS_FIELDS, SETTINGS_OPTION
from services.models import utc_now
import logging

logger = logging.getLogger(__name__)


def register_routes(app):
    """Register settings routes"""

    @app.route('/api/settings', methods=['GET'])
    def get_settings():
        try:
            services = current_services()
            stored = services.store.get(SETTINGS_OPTION) or {}
            site = services.site()
            return jsonify({
                "success": True,
                "settings": {key: stored.get(key, "") for key in SETTINGS_FIELDS},
                "display_name": site.display_name,
                "site_url": site.site_url,
                "updated_at": services.store.get("settings_updated_at")
            })
        except Exception as e:
            return jsonify({"success": False, "error": str(e)}), 500

    @app.route('/api/settings', methods=['PUT'])
    def update_settings():
        """
        Update business information and re-render installed endpoints

        Body: any subset of
        {
            "business_name": "The Knollcroft Inn",
            "business_description": "...",
            "logo_url": "...",
            "contact_email": "...",
            "legal_info_url": "...",
            "custom_ai_plugin_url": "...",
            "client_id": "...",
            "robots_base": "..."
        }
        """
        try:
            data = request.get_json(silent=True)
            if not isinstance(data, dict):
                return jsonify({"success": False, "error": "Expected a JSON object"}), 400

            unknown = sorted(set(data) - set(SETTINGS_FIELDS))
            if unknown:
                return jsonify({
                    "success": False,
                    "error": f"Unknown settings: {', '.join(unknown)}"
                }), 400

            for key, value in data.items():
                if value is not None and not isinstance(value, str):
                    return jsonify({"success": False, "error": f"{key} must be a string"}), 400

            services = current_services()
            settings = services.store.get(SETTINGS_OPTION) or {}
            settings.update({key: (value or "").strip() for key, value in data.items()})
            services.store.set(SETTINGS_OPTION, settings)
            services.store.set("settings_updated_at", utc_now())
            logger.info(f"✅ Settings updated: {', '.join(sorted(data)) or 'nothing'}")

            refreshed = lifecycle.refresh_installed(services)
            return jsonify({
                "success": True,
                "settings": {key: settings.get(key, "") for key in SETTINGS_FIELDS},
                "refreshed": refreshed
            })
        except Exception as e:
            logger.error(f"Failed to update settings: {e}")
            return jsonify({"success": False, "error": str(e)}), 500
