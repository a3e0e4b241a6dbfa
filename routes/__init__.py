"""
Route registration
Every module in this package (tests excepted) exposes register_routes(app)
"""
import importlib
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def _route_modules():
    for route_file in sorted(Path(__file__).parent.glob('*.py')):
        if route_file.stem == '__init__' or route_file.stem.startswith('test_'):
            continue
        yield route_file.stem


def register_all_routes(app):
    """Import each route module and let it register its routes. Returns the loaded module names."""
    loaded = []
    for name in _route_modules():
        module_name = f"{__name__}.{name}"
        try:
            module = importlib.import_module(module_name)
        except Exception as e:
            logger.error(f"❌ Failed to load {module_name}: {e}")
            continue

        register = getattr(module, 'register_routes', None)
        if register is None:
            logger.warning(f"⚠️  {name} has no register_routes() function")
            continue

        register(app)
        loaded.append(name)
        logger.info(f"✅ Registered routes from {name}")

    logger.info(f"✅ {len(loaded)} route modules registered")
    return loaded
