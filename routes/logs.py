"""Probe diagnostics endpoints"""
from flask import jsonify, request
from services.container import current_services

def register_routes(app):
    """Register log-related routes"""

    @app.route('/api/logs')
    def get_logs():
        """Get the most recent serving-strategy probe results"""
        try:
            limit = request.args.get('limit', 50, type=int)
            path = request.args.get('path')
            logs = current_services().route_tester.recent_logs(limit=limit, path=path)
            return jsonify({"success": True, "logs": logs, "count": len(logs)})
        except Exception as e:
            return jsonify({"success": False, "error": str(e)}), 500
