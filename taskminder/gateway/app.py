from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Annotated, Any

import redis
from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskminder.errors import TaskminderError
from taskminder.models.task import TaskCreate, TaskUpdate
from taskminder.observability import (
    configure_uvicorn_logging,
    get_json_logger,
    get_metrics,
    use_request_context,
)
from taskminder.scheduler.reminders import ReminderScheduler
from taskminder.service.tasks import TaskService
from taskminder.store.interface import TaskStore

from .auth import require_owner


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "error", "message": message})


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = str(first.get("msg", "invalid value"))
    return f"{loc}: {msg}" if loc else msg


def create_app(
    store: TaskStore,
    *,
    scheduler: ReminderScheduler | None = None,
    service: TaskService | None = None,
    authenticate: Callable[..., str] = require_owner,
) -> FastAPI:
    """Build the HTTP surface over a task store.

    When a scheduler is given it is started at startup, once the store answers a
    ping, and stopped at shutdown.
    """
    configure_uvicorn_logging()
    logger = get_json_logger("taskminder.gateway")
    metrics = get_metrics()
    tasks = service or TaskService(store)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if scheduler is not None:
            if not await asyncio.to_thread(store.ping):
                logger.error(
                    "store unreachable; refusing to start",
                    extra={"event": "startup_failed"},
                )
                raise RuntimeError("task store is unreachable")
            scheduler.start()
        try:
            yield
        finally:
            if scheduler is not None:
                await scheduler.stop()
            logger.info("gateway shutdown", extra={"event": "gateway_shutdown"})

    app = FastAPI(title="taskminder", lifespan=lifespan)

    # ----------------------------
    # Request context + error mapping
    # ----------------------------

    @app.middleware("http")
    async def request_context(request: Request, call_next: Any) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        started = time.perf_counter()
        with use_request_context(request_id):
            response: Response = await call_next(request)
            logger.debug(
                "request handled",
                extra={
                    "event": "http_request",
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": (time.perf_counter() - started) * 1000.0,
                },
            )
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(TaskminderError)
    async def _task_error(_: Request, exc: TaskminderError) -> JSONResponse:
        metrics.increment("http_errors", {"status": str(exc.status_code)})
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def _bad_request(_: Request, exc: RequestValidationError) -> JSONResponse:
        metrics.increment("http_errors", {"status": "400"})
        return _error(400, _validation_message(exc))

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        metrics.increment("http_errors", {"status": str(exc.status_code)})
        if exc.status_code == 404 and exc.detail == "Not Found":
            return _error(404, "Route not found")
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(redis.exceptions.RedisError)
    async def _store_error(request: Request, exc: redis.exceptions.RedisError) -> JSONResponse:
        logger.error(
            "store error",
            exc_info=exc,
            extra={"event": "store_error", "method": request.method, "path": request.url.path},
        )
        metrics.increment("http_errors", {"status": "500"})
        return _error(500, "Server error")

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled error",
            exc_info=exc,
            extra={"event": "gateway_error", "method": request.method, "path": request.url.path},
        )
        metrics.increment("http_errors", {"status": "500"})
        return _error(500, "Server error")

    # ----------------------------
    # Probes
    # ----------------------------

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "success", "message": "Task Reminder API is running"}

    @app.get("/ready")
    async def ready() -> dict[str, str]:
        if not await asyncio.to_thread(store.ping):
            raise HTTPException(status_code=503, detail="store not ready")
        return {"status": "success"}

    # ----------------------------
    # Tasks
    # ----------------------------

    @app.get("/tasks")
    def list_tasks(
        owner_id: str = Depends(authenticate),
        status: str | None = None,
        priority: str | None = None,
        sort_by: Annotated[str | None, Query(alias="sortBy")] = None,
    ) -> dict[str, Any]:
        items = tasks.list_tasks(owner_id, status=status, priority=priority, sort_by=sort_by)
        return {"status": "success", "count": len(items), "data": [t.to_wire() for t in items]}

    # Declared before /tasks/{task_id} so "stats" is not taken for an id
    @app.get("/tasks/stats")
    def task_stats(owner_id: str = Depends(authenticate)) -> dict[str, Any]:
        return {"status": "success", "data": tasks.stats(owner_id).model_dump()}

    @app.get("/tasks/{task_id}")
    def get_task(task_id: str, owner_id: str = Depends(authenticate)) -> dict[str, Any]:
        return {"status": "success", "data": tasks.get_task(owner_id, task_id).to_wire()}

    @app.post("/tasks", status_code=201)
    def create_task(body: TaskCreate, owner_id: str = Depends(authenticate)) -> dict[str, Any]:
        return {"status": "success", "data": tasks.create_task(owner_id, body).to_wire()}

    @app.put("/tasks/{task_id}")
    def update_task(
        task_id: str, body: TaskUpdate, owner_id: str = Depends(authenticate)
    ) -> dict[str, Any]:
        return {"status": "success", "data": tasks.update_task(owner_id, task_id, body).to_wire()}

    @app.delete("/tasks/{task_id}")
    def delete_task(task_id: str, owner_id: str = Depends(authenticate)) -> dict[str, Any]:
        tasks.delete_task(owner_id, task_id)
        return {"status": "success", "message": "Task deleted successfully", "data": {}}

    @app.post("/tasks/{task_id}/complete")
    def complete_task(task_id: str, owner_id: str = Depends(authenticate)) -> dict[str, Any]:
        return {"status": "success", "data": tasks.complete_task(owner_id, task_id).to_wire()}

    return app


__all__ = ["create_app"]
