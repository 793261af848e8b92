"""
FastAPI server for the Namazio API. Run with run_api_server(app) in a background thread.
Central endpoints: GET /api/components, GET /api/tasks, POST /api/position. Per-plugin routes are
mounted from namazio.plugins.<package>.api (get_router(namazio_app)) under /api/components/<package>/.
Docs when enabled: http://<host>:<port>/docs
"""
import importlib
import logging
import pkgutil
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from namazio.core.errors import InvalidCoordinate
from namazio.core.geodesy import Coordinate

logger = logging.getLogger(__name__)

# Keys to exclude from component config in API (secrets)
_CONFIG_SECRET_KEYS = frozenset(
    {"api_key", "password", "token", "secret", "credentials", "client_secret"}
)


class PositionUpdate(BaseModel):
    latitude: float
    longitude: float


def _safe_component_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Return config with secret keys omitted."""
    if not config:
        return {}
    return {k: v for k, v in config.items() if k.lower() not in _CONFIG_SECRET_KEYS}


def _serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Serialize naive local datetime to ISO string."""
    if dt is None:
        return None
    return dt.isoformat()


def create_app(namazio_app: Any) -> FastAPI:
    """Create FastAPI app with routes that use the given NamazioApp instance."""
    app = FastAPI(title="Namazio API", description="Prayer times, countdown and qibla direction")

    @app.get("/api/components")
    def list_components() -> List[Dict[str, Any]]:
        """List registered components with enabled state and safe config."""
        components_data = []
        comp_config = namazio_app.config.data.get("components") or {}
        for name in namazio_app.plugin_manager.components:
            config = comp_config.get(name) or {}
            enabled = config.get("enable", False) if isinstance(config, dict) else False
            components_data.append({
                "name": name,
                "enabled": enabled,
                "running": namazio_app.get_component(name) is not None,
                "config": _safe_component_config(config) if isinstance(config, dict) else {},
            })
        return components_data

    @app.get("/api/tasks")
    def list_tasks() -> Dict[str, Any]:
        """List scheduled tasks: DB schedules and active in-memory timers."""
        from namazio.core.models import get_all_task_schedules

        db_schedules = get_all_task_schedules()
        for row in db_schedules:
            row["next_run_at"] = _serialize_datetime(row.get("next_run_at"))
            row["last_run_at"] = _serialize_datetime(row.get("last_run_at"))

        active_list = [
            {"name": t["name"], "next_run_at": _serialize_datetime(t["next_run_at"])}
            for t in namazio_app.task_manager.get_active_timers()
        ]
        return {"db_schedules": db_schedules, "active_timers": active_list}

    @app.post("/api/position")
    def set_position(update: PositionUpdate) -> Dict[str, Any]:
        """Report a new device position; components refetch for it."""
        try:
            coordinate = Coordinate.of(update.latitude, update.longitude)
        except InvalidCoordinate as e:
            raise HTTPException(status_code=422, detail=str(e))
        namazio_app.set_position(coordinate)
        return {"latitude": coordinate.latitude, "longitude": coordinate.longitude}

    # Mount per-plugin API routers from namazio.plugins.<name>.api (get_router(namazio_app))
    plugins_pkg = importlib.import_module("namazio.plugins")
    for _mod, name, is_pkg in pkgutil.iter_modules(plugins_pkg.__path__):
        if not is_pkg:
            continue
        try:
            api_module = importlib.import_module(f"namazio.plugins.{name}.api")
        except ModuleNotFoundError:
            continue
        if not callable(getattr(api_module, "get_router", None)):
            continue
        router = api_module.get_router(namazio_app)
        if router is not None:
            app.include_router(router, prefix=f"/api/components/{name}")

    return app


def run_api_server(namazio_app: Any) -> Optional[threading.Thread]:
    """
    Start the API server in a daemon thread if api.enabled is true.
    Reads api.host (default 127.0.0.1) and api.port (default 8765) from config.
    """
    api_config = namazio_app.config.data.get("api") or {}
    enabled = api_config.get("enabled", False)
    logger.info(f"API config: enabled={enabled}, api section={list(api_config.keys())}")
    if not enabled:
        logger.info("API server not started: set api.enabled to true in your config file to enable.")
        return None
    host = api_config.get("host", "127.0.0.1")
    port = int(api_config.get("port", 8765))
    fastapi_app = create_app(namazio_app)

    def run_uvicorn():
        try:
            import uvicorn
            logger.info(f"API server listening at http://{host}:{port} (docs at /docs)")
            uvicorn.run(fastapi_app, host=host, port=port, log_config=None)
        except Exception as e:
            logger.exception(f"API server thread failed: {e}")

    thread = threading.Thread(target=run_uvicorn, daemon=True)
    thread.start()
    logger.info("API server thread started.")
    return thread
