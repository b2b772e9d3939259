from __future__ import annotations

from datetime import timedelta

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from .. import __version__
from ..config import MonitorConfig, load_config
from ..errors import NotFoundError, PersistenceError
from ..notifications import AlertSink, NotificationSettings, PushoverNotifier
from ..registry import ServiceRegistry
from ..scheduler import HttpProber, MonitorScheduler
from ..storage import JsonStore
from .schema import (
    BulkCreateServiceRequest,
    BulkDeleteServiceRequest,
    BulkUpdateServiceRequest,
    CreateServiceRequest,
    NotificationConfigRequest,
    UpdateServiceRequest,
)


logger = structlog.get_logger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def create_app(
    config: MonitorConfig | None = None,
    *,
    store: JsonStore | None = None,
    alert_sink: AlertSink | None = None,
) -> FastAPI:
    config = config or load_config()
    store = store or JsonStore(config.data_dir)

    app = FastAPI(title="Gjallarhorn API", version=__version__, description="Uptime monitoring service API")
    registry = ServiceRegistry(
        store,
        failure_threshold=config.failure_threshold,
        reminder_interval=timedelta(seconds=config.reminder_interval_seconds),
    )
    notification_settings = NotificationSettings(store, config.notification_defaults())

    app.state.config = config
    app.state.registry = registry
    app.state.notification_settings = notification_settings
    app.state.scheduler = None

    @app.on_event("startup")
    async def _startup() -> None:
        await registry.load()
        notification_settings.load(config.notification_defaults())

        probe_client = httpx.AsyncClient(verify=not config.skip_tls_verify, timeout=config.probe_timeout_seconds)
        alert_client = httpx.AsyncClient()
        app.state.http_clients = [probe_client, alert_client]

        sink = alert_sink or PushoverNotifier(alert_client, notification_settings)
        prober = HttpProber(probe_client, timeout_seconds=config.probe_timeout_seconds, user_agent=config.user_agent)
        scheduler = MonitorScheduler(
            registry,
            prober,
            sink,
            check_interval_seconds=config.check_interval_seconds,
            reminder_interval_seconds=config.reminder_interval_seconds,
            max_concurrent_checks=config.max_concurrent_checks,
        )
        app.state.scheduler = scheduler
        if config.scheduler_enabled:
            await scheduler.start()
        else:
            logger.info("Background scheduler disabled")

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        scheduler: MonitorScheduler | None = app.state.scheduler
        if scheduler is not None:
            await scheduler.stop()
        for client in getattr(app.state, "http_clients", []):
            await client.aclose()

    # -------- Error mapping --------

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": f"Validation failed: {_validation_message(exc)}"})

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        if request.url.path.endswith("/bulk"):
            content = {"error": "Some services not found", "missing_ids": exc.missing_ids}
        else:
            content = {"error": "service not found"}
        return JSONResponse(status_code=404, content=content)

    @app.exception_handler(PersistenceError)
    async def _persistence_error(request: Request, exc: PersistenceError) -> JSONResponse:
        logger.error("Persistence failure", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"error": f"Failed to persist changes: {exc}"})

    # -------- Health --------

    @app.get("/healthz")
    async def healthz() -> dict:
        scheduler: MonitorScheduler | None = app.state.scheduler
        return {
            "status": "healthy",
            "services": await registry.count(),
            "scheduler": scheduler.get_status() if scheduler is not None else None,
        }

    # -------- Bulk operations (registered before /{service_id} routes) --------

    @app.post("/api/services/bulk", status_code=201)
    async def bulk_create_services(req: BulkCreateServiceRequest) -> dict:
        created = await registry.bulk_create([item.to_spec() for item in req.services])
        return {"success": True, "count": len(created), "services": [r.to_dict() for r in created]}

    @app.put("/api/services/bulk")
    async def bulk_update_services(req: BulkUpdateServiceRequest) -> dict:
        updated = await registry.bulk_update([(item.id, item.to_spec()) for item in req.services])
        return {"success": True, "count": len(updated), "services": [r.to_dict() for r in updated]}

    @app.delete("/api/services/bulk")
    async def bulk_delete_services(req: BulkDeleteServiceRequest) -> dict:
        count = await registry.bulk_delete(req.ids)
        return {"success": True, "count": count}

    # -------- Services --------

    @app.get("/api/services")
    async def list_services() -> list:
        return [r.to_dict() for r in await registry.list()]

    @app.post("/api/services", status_code=201)
    async def create_service(req: CreateServiceRequest) -> dict:
        record = await registry.create(req.to_spec())
        return record.to_dict()

    @app.put("/api/services/{service_id}")
    async def update_service(service_id: str, req: UpdateServiceRequest) -> dict:
        record = await registry.update(service_id, req.to_spec())
        return record.to_dict()

    @app.delete("/api/services/{service_id}", status_code=204)
    async def delete_service(service_id: str) -> Response:
        await registry.delete(service_id)
        return Response(status_code=204)

    @app.get("/api/services/{service_id}/status")
    async def service_status(service_id: str) -> dict:
        view = await registry.status(service_id)
        return view.to_dict()

    # -------- Notifications --------

    @app.get("/api/notifications/config")
    async def get_notification_config() -> dict:
        return notification_settings.get().to_dict()

    @app.post("/api/notifications/config")
    async def update_notification_config(req: NotificationConfigRequest) -> dict:
        notification_settings.replace(req.to_config())
        return {"message": "Notification configuration updated"}

    return app
