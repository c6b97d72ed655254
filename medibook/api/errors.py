"""Translate engine errors into HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from medibook.scheduling.errors import (
    ConflictError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ScheduleOverlapError,
    SchedulingError,
    SlotUnavailableError,
)

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match wins.
STATUS_CODES: list[tuple[type[SchedulingError], int]] = [
    (ScheduleOverlapError, 409),
    (InvalidInputError, 400),
    (PermissionDeniedError, 403),
    (NotFoundError, 404),
    (SlotUnavailableError, 409),
    (ConflictError, 409),
    (InvalidTransitionError, 409),
]


def status_for(exc: SchedulingError) -> int:
    return next((code for cls, code in STATUS_CODES if isinstance(exc, cls)), 400)


async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    status = status_for(exc)
    logger.info(
        f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}"
    )
    return JSONResponse(
        status_code=status,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


def register_exception_handlers(app: FastAPI, debug: bool = False) -> None:
    app.add_exception_handler(SchedulingError, scheduling_error_handler)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc) if debug else None,
            },
        )
