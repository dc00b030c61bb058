#!/usr/bin/env python3
"""Floorline — FastAPI Server.

Endpoints:
- /health                               : service + database health
- /api/machines                         : list / register machines
- /api/logs                             : read / insert machine logs
- /api/logs/by-hour                     : logs grouped by local hour
- /api/dates                            : calendar dates that have logs
- /api/machines/{name}/timeline         : day timeline for one machine
- /api/machines/{name}/shift            : per-hour shift rows for one machine
- /api/overview                         : machine cards + factory status
- /api/machine-timeout-check            : run one liveness pass now
- /ws/machines                          : machine-update subscriptions
- /docs                                 : Swagger UI (auto-generated)
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from datetime import date
from typing import Any

from fastapi import (
    Depends,
    FastAPI,
    Query,
    Request,
    WebSocket,
    WebSocketDisconnect,
)
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings, get_settings
from core.exceptions import (
    ExternalServiceError,
    FloorlineError,
    ResourceNotFound,
    ValidationError,
)
from database import (
    check_database_health,
    get_db,
    get_session_maker,
    init_database,
    shutdown_database,
)
from logger import RequestContextMiddleware, configure_logging, get_logger, request_id_var
from schemas.log import LogCreate, LogOut
from schemas.machine import MachineCreate, MachineOut
from schemas.response import APIResponse, ORJSONResponse
from services.dashboard_service import DashboardService
from services.liveness_service import LivenessMonitor
from services.log_service import LogService
from services.machine_service import MachineService
from services.notification_service import (
    CompositeNotifier,
    MachineNotifier,
    NullNotifier,
    RedisNotifier,
    WebSocketHub,
    connect_redis,
)

logger = get_logger("floorline.api")

MONITOR_STOP_TIMEOUT_SECONDS = 5.0


# =============================================================================
# LIFESPAN (Startup/Shutdown)
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store, wire the notifiers, then start the timeout checker."""
    settings = get_settings()
    configure_logging(
        environment=settings.environment,
        log_level=settings.log.level,
        json_format=settings.log.json_output,
        version=settings.app_version,
    )
    logger.info("Floorline API starting", environment=settings.environment)

    await init_database()

    hub = WebSocketHub()
    targets: list[MachineNotifier] = [hub]
    redis_client = None
    if settings.redis.enabled:
        redis_client = await connect_redis(settings.redis)
        if redis_client is not None:
            targets.append(RedisNotifier(redis_client, settings.redis.channel_prefix))

    app.state.hub = hub
    app.state.notifier = CompositeNotifier(targets)
    app.state.monitor = None
    monitor_task = None

    if settings.liveness.enabled:
        monitor = LivenessMonitor(
            get_session_maker(),
            app.state.notifier,
            settings.liveness,
            settings.dashboard.tzinfo,
        )
        app.state.monitor = monitor
        monitor_task = asyncio.create_task(monitor.run_forever(), name="liveness-monitor")

    logger.info("Server ready", redis=redis_client is not None, liveness=settings.liveness.enabled)

    yield  # Server runs here

    logger.info("Shutting down")
    if monitor_task is not None:
        app.state.monitor.stop()
        try:
            await asyncio.wait_for(monitor_task, timeout=MONITOR_STOP_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            monitor_task.cancel()
    await shutdown_database()
    if redis_client is not None:
        await redis_client.aclose()


# =============================================================================
# FASTAPI APP
# =============================================================================
app = FastAPI(
    title="Floorline Production Dashboard API",
    description="Machine liveness, status timelines and production totals for the factory floor.",
    version="1.0.0",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestContextMiddleware)


# =============================================================================
# GLOBAL EXCEPTION HANDLERS
# =============================================================================
def _fail(status_code: int, message: str, **extra_meta: Any) -> ORJSONResponse:
    body = APIResponse.fail(message, request_id=request_id_var.get(), **extra_meta)
    return ORJSONResponse(status_code=status_code, content=body)


@app.exception_handler(ResourceNotFound)
async def not_found_handler(request: Request, exc: ResourceNotFound):
    return _fail(404, exc.message, **exc.details)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _fail(422, exc.message, **exc.details)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Validation error on '{field}': {first.get('msg', 'invalid request')}"
    return _fail(422, message, field=field)


@app.exception_handler(ExternalServiceError)
async def external_service_handler(request: Request, exc: ExternalServiceError):
    logger.error("External service failed", service=exc.service_name, error=exc.original_error)
    return _fail(502, exc.message)


@app.exception_handler(FloorlineError)
async def domain_error_handler(request: Request, exc: FloorlineError):
    return _fail(400, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions - pass through with proper status."""
    return _fail(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log the full trace but return a clean error with a reference id."""
    error_id = str(uuid.uuid4())
    logger.exception(
        "Unhandled error",
        error_id=error_id,
        path=request.url.path,
        method=request.method,
    )
    return _fail(500, f"An internal error occurred. Reference ID: {error_id}", error_id=error_id)


# =============================================================================
# DEPENDENCIES
# =============================================================================
def get_notifier(request: Request) -> MachineNotifier:
    return getattr(request.app.state, "notifier", None) or NullNotifier()


def get_machine_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> MachineService:
    return MachineService(db, tz=settings.dashboard.tzinfo, liveness=settings.liveness)


def get_log_service(
    db: AsyncSession = Depends(get_db),
    notifier: MachineNotifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> LogService:
    return LogService(db, notifier, tz=settings.dashboard.tzinfo, liveness=settings.liveness)


def get_dashboard_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> DashboardService:
    return DashboardService(db, settings.dashboard, settings.liveness)


# =============================================================================
# REST ENDPOINTS
# =============================================================================
@app.get("/", tags=["System"])
async def root():
    return {"message": "Floorline API is running", "docs_url": "/docs"}


@app.get("/health", tags=["System"])
async def health_check(request: Request):
    """Public health check endpoint for load balancers."""
    database = await check_database_health()
    hub = getattr(request.app.state, "hub", None)
    monitor = getattr(request.app.state, "monitor", None)
    data = {
        "status": "ok" if database["status"] == "healthy" else "degraded",
        "database": database,
        "websocket_clients": hub.connection_count if hub else 0,
        "liveness_monitor": {
            "running": monitor is not None,
            "passes": monitor.passes if monitor else 0,
            "failures": monitor.failures if monitor else 0,
        },
    }
    status_code = 200 if database["status"] == "healthy" else 503
    return ORJSONResponse(status_code=status_code, content=APIResponse.ok(data))


@app.get("/api/machines", tags=["Machines"])
async def list_machines(
    service: MachineService = Depends(get_machine_service),
) -> APIResponse[list[MachineOut]]:
    machines = await service.list_machines()
    return APIResponse.ok([MachineOut(**service.describe(m)) for m in machines])


@app.post("/api/machines", status_code=201, tags=["Machines"])
async def register_machine(
    payload: MachineCreate,
    service: MachineService = Depends(get_machine_service),
    notifier: MachineNotifier = Depends(get_notifier),
) -> APIResponse[MachineOut]:
    machine = await service.register(payload.name, payload.last_updated)
    record = service.describe(machine)
    try:
        await notifier.publish(record)
    except Exception as exc:
        logger.error("Machine update notification failed", machine=machine.name, error=str(exc))
    return APIResponse.ok(MachineOut(**record))


@app.get("/api/logs", tags=["Logs"])
async def list_logs(
    machine: str | None = Query(None, description="Filter by machine name"),
    day: date | None = Query(None, alias="date", description="Calendar date (YYYY-MM-DD)"),
    service: LogService = Depends(get_log_service),
) -> APIResponse[list[LogOut]]:
    logs = await service.list_logs(machine, day)
    return APIResponse.ok([LogOut.model_validate(log) for log in logs])


@app.get("/api/logs/by-hour", tags=["Logs"])
async def list_logs_by_hour(
    machine: str | None = Query(None, description="Filter by machine name"),
    day: date | None = Query(None, alias="date", description="Calendar date (YYYY-MM-DD)"),
    service: DashboardService = Depends(get_dashboard_service),
) -> APIResponse[list[dict[str, Any]]]:
    groups = await service.logs_by_hour(machine, day)
    return APIResponse.ok([
        {"hour": hour.isoformat(), "logs": [LogOut.model_validate(log).model_dump() for log in logs]}
        for hour, logs in groups
    ])


@app.post("/api/logs", status_code=201, tags=["Logs"])
async def insert_log(
    payload: LogCreate,
    service: LogService = Depends(get_log_service),
) -> APIResponse[LogOut]:
    entry = await service.insert_log(payload)
    return APIResponse.ok(LogOut.model_validate(entry))


@app.get("/api/dates", tags=["Dashboard"])
async def list_dates(
    service: DashboardService = Depends(get_dashboard_service),
) -> APIResponse[list[str]]:
    return APIResponse.ok([d.isoformat() for d in await service.dates()])


@app.get("/api/machines/{name}/timeline", tags=["Dashboard"])
async def machine_timeline(
    name: str,
    day: date | None = Query(None, alias="date"),
    service: DashboardService = Depends(get_dashboard_service),
) -> APIResponse[dict[str, Any]]:
    timeline = await service.timeline(name, day)
    return APIResponse.ok(timeline.to_dict(), machine=name)


@app.get("/api/machines/{name}/shift", tags=["Dashboard"])
async def machine_shift(
    name: str,
    day: date | None = Query(None, alias="date"),
    service: DashboardService = Depends(get_dashboard_service),
) -> APIResponse[dict[str, Any]]:
    shift = await service.shift(name, day)
    return APIResponse.ok(shift.to_dict(), machine=name)


@app.get("/api/overview", tags=["Dashboard"])
async def overview(
    day: date | None = Query(None, alias="date"),
    service: DashboardService = Depends(get_dashboard_service),
) -> APIResponse[dict[str, Any]]:
    return APIResponse.ok(await service.overview(day))


@app.post("/api/machine-timeout-check", tags=["Machines"])
async def machine_timeout_check(
    db: AsyncSession = Depends(get_db),
    notifier: MachineNotifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> APIResponse[dict[str, int]]:
    """Run one liveness pass now and publish every offline machine."""
    monitor = LivenessMonitor(None, notifier, settings.liveness, settings.dashboard.tzinfo)
    return APIResponse.ok(await monitor.check(db))


# =============================================================================
# WEBSOCKET ENDPOINT
# =============================================================================
@app.websocket("/ws/machines")
async def machine_updates(websocket: WebSocket):
    """Machine-update subscriptions.

    Client messages: ``{"action": "subscribe"|"unsubscribe", "machine": "<name>"}``
    (omit ``machine`` for every machine). Server pushes
    ``{"type": "machine-update", "machine": {...}}``.
    """
    hub: WebSocketHub | None = getattr(websocket.app.state, "hub", None)
    if hub is None:
        hub = websocket.app.state.hub = WebSocketHub()

    await websocket.accept()
    logger.info("WebSocket client connected", clients=hub.connection_count + 1)

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await websocket.send_json({"type": "error", "error": "invalid JSON"})
                continue

            if not isinstance(message, dict):
                await websocket.send_json({"type": "error", "error": "expected an object"})
                continue

            action = message.get("action")
            machine = message.get("machine") or None
            if action == "subscribe":
                hub.subscribe(websocket, machine)
                await websocket.send_json({"type": "subscribed", "machine": machine})
            elif action == "unsubscribe":
                hub.unsubscribe(websocket, machine)
                await websocket.send_json({"type": "unsubscribed", "machine": machine})
            else:
                await websocket.send_json({"type": "error", "error": f"unknown action: {action!r}"})

    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(websocket)
        logger.info("WebSocket client disconnected", clients=hub.connection_count)


# =============================================================================
# MAIN
# =============================================================================
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api_server:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level="info",
    )
