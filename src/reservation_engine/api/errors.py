# src/reservation_engine/api/errors.py

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from reservation_engine.domain.exceptions import (
    ConflictError,
    ExpiredError,
    InvalidStateTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ReservationEngineError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[ReservationEngineError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvalidStateTransitionError, status.HTTP_409_CONFLICT),
    (ExpiredError, status.HTTP_410_GONE),
]


def status_code_for(exc: ReservationEngineError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def reservation_engine_error_handler(
    request: Request,
    exc: ReservationEngineError,
) -> JSONResponse:
    status_code = status_code_for(exc)
    logger.info(
        "Request rejected. method=%s path=%s status=%s error=%s detail=%s",
        request.method,
        request.url.path,
        status_code,
        exc.kind,
        exc,
    )
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.kind, "detail": str(exc)},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReservationEngineError, reservation_engine_error_handler)
