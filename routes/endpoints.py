"""Endpoint management endpoints"""
from flask import jsonify, request
from services import lifecycle
from services.container import current_services
from services.endpoints import CATALOG, EndpointKind
from services.errors import InstallError
from services.metrics import RequestContext
from services.nginx_config import render_site_config
from urllib.parse import urlparse
import logging

logger = logging.getLogger(__name__)


def _lookup(kind):
    """Catalog entry for a kind name, or None"""
    try:
        return CATALOG[EndpointKind(kind)]
    except ValueError:
        return None


def _unknown(kind):
    return jsonify({
        "success": False,
        "error": f"Unknown endpoint: {kind}",
        "available": [k.value for k in CATALOG]
    }), 404


def _describe(services, spec, check=False):
    record = services.installer.get_record(spec.path)
    preference = services.installer.get_preference(spec.path)
    info = {
        "kind": spec.kind.value,
        "path": spec.path,
        "content_type": spec.content_type,
        "strategies": [s.value for s in spec.strategies],
        "installed": record is not None,
        "strategy": record.strategy.value if record else None,
        "installed_at": record.installed_at if record else None,
        "preference": preference.value if preference else None,
        "last_error": services.installer.get_error(spec.path),
    }
    if check:
        info["active"] = services.route_tester.is_route_active(spec.path)
    return info


def register_routes(app):
    """Register endpoint management routes"""

    @app.route('/api/endpoints', methods=['GET'])
    def list_endpoints():
        """List every discovery endpoint and how it is served. ?check=true also fetches each one."""
        try:
            services = current_services()
            check = request.args.get('check', 'false').lower() in ('1', 'true', 'yes')
            endpoints = [_describe(services, spec, check) for spec in CATALOG.values()]
            return jsonify({"success": True, "endpoints": endpoints, "count": len(endpoints)})
        except Exception as e:
            logger.error(f"Failed to list endpoints: {e}")
            return jsonify({"success": False, "error": str(e)}), 500

    @app.route('/api/endpoints/<kind>/install', methods=['POST'])
    def install_endpoint(kind):
        """
        Install one endpoint

        Body (optional):
        {
            "strategy": "static_file" | "dynamic_route"
        }
        """
        spec = _lookup(kind)
        if spec is None:
            return _unknown(kind)
        try:
            data = request.get_json(silent=True) or {}
            result = lifecycle.install_endpoint(current_services(), spec.kind, data.get('strategy'))
            status = 200 if result.success else 409
            return jsonify({"success": result.success, "result": result.to_dict()}), status
        except Exception as e:
            logger.error(f"Failed to install {spec.path}: {e}")
            return jsonify({"success": False, "error": str(e)}), 500

    @app.route('/api/endpoints/<kind>', methods=['DELETE'])
    def uninstall_endpoint(kind):
        spec = _lookup(kind)
        if spec is None:
            return _unknown(kind)
        try:
            removed = lifecycle.uninstall_endpoint(current_services(), spec.kind)
            return jsonify({"success": True, "removed": removed, "path": spec.path})
        except InstallError as e:
            return jsonify({"success": False, "error": str(e)}), 409
        except Exception as e:
            logger.error(f"Failed to uninstall {spec.path}: {e}")
            return jsonify({"success": False, "error": str(e)}), 500

    @app.route('/api/endpoints/<kind>/probe', methods=['POST'])
    def probe_endpoint(kind):
        """Test which serving strategies work for the endpoint's path"""
        spec = _lookup(kind)
        if spec is None:
            return _unknown(kind)
        try:
            services = current_services()
            sample = spec.render(services.site()) or None
            result = services.route_tester.probe(spec.path, sample)
            return jsonify({"success": True, "probe": result.to_dict()})
        except Exception as e:
            logger.error(f"Probe failed for {spec.path}: {e}")
            return jsonify({"success": False, "error": str(e)}), 500

    @app.route('/api/endpoints/<kind>/strategy', methods=['PUT'])
    def set_strategy(kind):
        """
        Pin (or clear) the serving strategy and reinstall

        A pinned strategy replaces the current one; if it cannot be installed
        the endpoint stays on the strategy it had and the old pin is kept.
        Clearing the pin reinstalls with a freshly chosen strategy, going back
        to the current one if that fails.

        Body:
        {
            "strategy": "static_file" | "dynamic_route" | null
        }
        """
        spec = _lookup(kind)
        if spec is None:
            return _unknown(kind)
        try:
            data = request.get_json(silent=True)
            if data is None or 'strategy' not in data:
                return jsonify({"success": False, "error": "Missing required field: strategy"}), 400

            strategy = data['strategy']
            if strategy is not None and strategy not in [s.value for s in spec.strategies]:
                return jsonify({
                    "success": False,
                    "error": f"Strategy {strategy} is not available for {spec.path}"
                }), 400

            services = current_services()
            previous = services.installer.get_preference(spec.path)
            services.installer.set_preference(spec.path, strategy)
            if strategy is not None:
                result = lifecycle.install_endpoint(services, spec.kind)
                if not result.success:
                    services.installer.set_preference(spec.path, previous.value if previous else None)
            else:
                # unpinned: start over so the strategy is chosen afresh
                record = services.installer.get_record(spec.path)
                lifecycle.uninstall_endpoint(services, spec.kind)
                result = lifecycle.install_endpoint(services, spec.kind)
                if not result.success and record is not None:
                    lifecycle.install_endpoint(services, spec.kind, strategy=record.strategy.value)
            status = 200 if result.success else 409
            return jsonify({"success": result.success, "preference": strategy, "result": result.to_dict()}), status
        except InstallError as e:
            return jsonify({"success": False, "error": str(e)}), 409
        except Exception as e:
            logger.error(f"Failed to set strategy for {spec.path}: {e}")
            return jsonify({"success": False, "error": str(e)}), 500

    @app.route('/api/activate', methods=['POST'])
    def activate():
        """Install every endpoint"""
        try:
            results = lifecycle.activate(current_services(), RequestContext.from_flask(request))
            success = all(r["success"] for r in results.values())
            return jsonify({"success": success, "results": results})
        except Exception as e:
            logger.error(f"Activation failed: {e}")
            return jsonify({"success": False, "error": str(e)}), 500

    @app.route('/api/deactivate', methods=['POST'])
    def deactivate():
        """Remove every endpoint"""
        try:
            results = lifecycle.deactivate(current_services(), RequestContext.from_flask(request))
            success = all(r["error"] is None for r in results.values())
            return jsonify({"success": success, "results": results})
        except Exception as e:
            logger.error(f"Deactivation failed: {e}")
            return jsonify({"success": False, "error": str(e)}), 500

    @app.route('/api/nginx/config', methods=['GET'])
    def nginx_config():
        """Suggested nginx server block for serving the web root in front of this app"""
        try:
            services = current_services()
            domain = request.args.get('domain') or urlparse(services.config["site_url"]).hostname
            port = request.args.get('port', services.config["port"], type=int)
            config = render_site_config(domain, port, services.config["web_root"])
            return jsonify({"success": True, "domain": domain, "port": port, "config": config})
        except Exception as e:
            return jsonify({"success": False, "error": str(e)}), 500
