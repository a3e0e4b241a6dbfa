"""
Discovery endpoint dispatcher

Serves the dynamic route table: every request outside /api/ is looked up
in the table before Flask's own routing. The /ask route is proxied to the
assistant backend; the discovery files are rendered live from their
generators, falling back to the content stored with the route. An
operator-supplied ai-plugin.json is served as stored.
"""
import logging
from flask import Response, request, send_file
from services.container import current_services
from services.endpoints import EndpointKind, spec_for_path
from services.errors import InstallError
from services.file_safety import web_root_path
from services.metrics import RequestContext

logger = logging.getLogger(__name__)

CACHE_CONTROL = "public, max-age=3600"
READ_METHODS = ('GET', 'HEAD')


def _track(services, spec):
    """Report an access to the metrics beacon without affecting the response"""
    if spec is None:
        return
    try:
        services.beacon.emit(spec.event_type, RequestContext.from_flask(request))
    except Exception as e:
        logger.warning(f"⚠️  Metrics event for {spec.path} dropped: {e}")


def _preflight():
    response = Response(status=204)
    response.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin", "*")
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = request.headers.get(
        "Access-Control-Request-Headers", "Content-Type, Authorization"
    )
    response.headers["Access-Control-Max-Age"] = "86400"
    return response


def _proxy_ask(services, spec):
    if request.method == 'OPTIONS':
        return _preflight()

    proxied = services.ask_proxy.forward(
        request.method,
        list(request.headers.items()),
        request.get_data(),
        request.query_string.decode("latin-1"),
    )
    _track(services, spec)
    return Response(proxied.body, status=proxied.status, headers=proxied.headers)


def _serve_from_web_root(services, path):
    """Development stand-in for the front web server"""
    try:
        file_path = web_root_path(services.config["web_root"], path)
    except InstallError:
        return None
    if not file_path.is_file():
        return None

    response = send_file(file_path, max_age=0)
    _track(services, spec_for_path(path))
    return response


def _serve_route(services, route):
    if request.method not in READ_METHODS:
        response = Response("Method Not Allowed\n", status=405, mimetype="text/plain")
        response.headers["Allow"] = ", ".join(READ_METHODS)
        return response

    spec = spec_for_path(route.path)
    if route.transient or spec is None or spec.kind.value != route.endpoint:
        response = Response(route.content, content_type=route.content_type)
        response.headers["Cache-Control"] = "no-store"
        return response

    body = route.content
    try:
        site = services.site()
        # a custom manifest is fetched on install and refresh, never per request
        if not (spec.kind is EndpointKind.AI_PLUGIN and site.custom_ai_plugin_url):
            body = spec.render(site)
    except Exception as e:
        logger.warning(f"⚠️  Rendering {route.path} failed, serving stored content: {e}")

    response = Response(body, content_type=route.content_type)
    response.headers["Cache-Control"] = CACHE_CONTROL
    _track(services, spec)
    return response


def register_routes(app):
    """Register the discovery dispatcher"""

    @app.before_request
    def dispatch_discovery_routes():
        if request.path.startswith('/api/'):
            return None

        services = current_services()

        if services.config.get("serve_web_root") and request.method in READ_METHODS:
            response = _serve_from_web_root(services, request.path)
            if response is not None:
                return response

        route = services.route_table.lookup(request.path)
        if route is None:
            return None

        if route.endpoint == EndpointKind.ASK.value:
            return _proxy_ask(services, spec_for_path(route.path))

        return _serve_route(services, route)
