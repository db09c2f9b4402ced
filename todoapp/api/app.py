from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from todoapp import __version__
from todoapp.api import envelope
from todoapp.api.schemas import EnhancementPayload, TaskCreate, TaskPatch
from todoapp.api.signature import verify_signature
from todoapp.constants import SIGNATURE_HEADER
from todoapp.domain.common.errors import (
    AuthorizationError,
    DomainError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from todoapp.domain.common.time import to_iso, utc_now
from todoapp.domain.tasks.models import CreateTaskRequest
from todoapp.domain.tasks.service import TaskService

logger = logging.getLogger(__name__)


def _status_for(exc: DomainError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, AuthorizationError):
        return 401
    if isinstance(exc, NotFoundError):
        return 404
    return 500


def _log_failure(request: Request, code: str, message: str, status_code: int, request_id: str) -> None:
    if status_code >= 500:
        logger.error(
            "%s %s -> %s %s: %s (request_id=%s)",
            request.method, request.url.path, status_code, code, message, request_id,
            exc_info=True,
        )
    else:
        logger.warning(
            "%s %s -> %s %s: %s (request_id=%s)",
            request.method, request.url.path, status_code, code, message, request_id,
        )


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    msg = first.get("msg", "Invalid value")
    return f"{loc}: {msg}" if loc else msg


def create_app(
    service: TaskService,
    signing_secret: Optional[str] = None,
    version: str = __version__,
) -> FastAPI:
    app = FastAPI(title="todoapp API", description="Owner-scoped personal task API", version=version)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.service = service
    app.state.signing_secret = signing_secret
    if not signing_secret:
        logger.warning("WORKFLOW_SIGNING_SECRET not set: webhook signatures will not be verified")

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------

    @app.exception_handler(DomainError)
    async def _domain_error(request: Request, exc: DomainError):
        status_code = _status_for(exc)
        code = exc.code
        message = exc.message
        if isinstance(exc, StorageError):
            code, message = envelope.DB_ERROR, "Database error"
        request_id = envelope.new_request_id()
        _log_failure(request, code, exc.message, status_code, request_id)
        return envelope.failure(code, message, status_code, request_id)

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError):
        request_id = envelope.new_request_id()
        message = _first_validation_message(exc)
        _log_failure(request, envelope.VALIDATION_ERROR, message, 400, request_id)
        return envelope.failure(envelope.VALIDATION_ERROR, message, 400, request_id)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        code = envelope.NOT_FOUND if exc.status_code == 404 else envelope.BAD_REQUEST
        if exc.status_code >= 500:
            code = envelope.INTERNAL_SERVER_ERROR
        request_id = envelope.new_request_id()
        _log_failure(request, code, str(exc.detail), exc.status_code, request_id)
        return envelope.failure(code, str(exc.detail), exc.status_code, request_id)

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        request_id = envelope.new_request_id()
        _log_failure(request, envelope.INTERNAL_SERVER_ERROR, repr(exc), 500, request_id)
        return envelope.failure(envelope.INTERNAL_SERVER_ERROR, "An unexpected error occurred", 500, request_id)

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    @app.get("/health")
    async def health():
        return envelope.success({"status": "healthy", "version": version, "ts": to_iso(utc_now())})

    @app.get("/tasks")
    async def list_tasks(owner: str = Query(...)):
        records = await service.list_tasks(owner)
        return envelope.success([r.as_dict() for r in records])

    @app.post("/tasks")
    async def create_task(body: TaskCreate, owner: str = Query(...)):
        record = await service.create_task(
            CreateTaskRequest(
                identifier=owner,
                title=body.title,
                description=body.description,
                project=body.project,
                tags=tuple(body.tags),
                priority=body.priority,
            )
        )
        return envelope.success(record.as_dict(), status_code=201)

    @app.patch("/tasks/{task_id}")
    async def update_task(task_id: str, body: TaskPatch):
        record = await service.update_task(task_id, body.identifier, body.changes())
        return envelope.success(record.as_dict())

    @app.delete("/tasks/{task_id}")
    async def delete_task(task_id: str, owner: str = Query(...)):
        deleted = await service.delete_task(task_id, owner)
        return envelope.success({"id": deleted})

    @app.post("/webhooks/enhance")
    async def enhance(request: Request, signature: Optional[str] = Header(None, alias=SIGNATURE_HEADER)):
        raw = await request.body()
        secret = request.app.state.signing_secret
        if secret:
            if not verify_signature(secret, raw, signature):
                raise AuthorizationError("Invalid signature")
        else:
            logger.warning("Webhook signature verification skipped (no secret configured)")

        try:
            payload = EnhancementPayload.model_validate_json(raw or b"{}")
        except PydanticValidationError:
            request_id = envelope.new_request_id()
            _log_failure(request, envelope.BAD_REQUEST, "Invalid JSON", 400, request_id)
            return envelope.failure(envelope.BAD_REQUEST, "Invalid JSON", 400, request_id)

        record = await service.apply_enhancement(
            payload.todo_id,
            enhanced_description=payload.enhanced_description,
            steps=payload.steps,
        )
        return envelope.success(record.as_dict())

    return app
