"""
Response envelope shared by every route:

    {"ok": true,  "data": ...,                              "request_id": "<uuid4>"}
    {"ok": false, "error": {"code": ..., "message": ...},   "request_id": "<uuid4>"}
"""
from __future__ import annotations

import uuid
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

BAD_REQUEST = "BAD_REQUEST"
VALIDATION_ERROR = "VALIDATION_ERROR"
NOT_FOUND = "NOT_FOUND"
UNAUTHORIZED = "UNAUTHORIZED"
DB_ERROR = "DB_ERROR"
INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


def new_request_id() -> str:
    return str(uuid.uuid4())


def success(data: Any, status_code: int = 200, request_id: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"ok": True, "data": jsonable_encoder(data), "request_id": request_id or new_request_id()},
    )


def failure(code: str, message: str, status_code: int, request_id: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "ok": False,
            "error": {"code": code, "message": message},
            "request_id": request_id or new_request_id(),
        },
    )
