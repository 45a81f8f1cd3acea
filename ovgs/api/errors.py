"""
Translation of service errors into HTTP responses, following the canonical
gRPC to HTTP status mapping.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from structlog import get_logger

from ovgs.core.errors import (
    AlreadyExistsError,
    FailedPreconditionError,
    InvalidArgumentError,
    NotFoundError,
    OVGSError,
    PermissionDeniedError,
)
from ovgs.core.models import ErrorResponse

STATUS_CODES = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    FailedPreconditionError: status.HTTP_400_BAD_REQUEST,
    AlreadyExistsError: status.HTTP_409_CONFLICT,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    InvalidArgumentError: status.HTTP_400_BAD_REQUEST,
}


def status_code_for(exc: OVGSError) -> int:
    for error_class, status_code in STATUS_CODES.items():
        if isinstance(exc, error_class):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def ovgs_error_handler(request: Request, exc: OVGSError) -> JSONResponse:
    """
    Handles every error raised by the service layer. The transaction for the
    request has already been rolled back by the time we get here.
    """
    status_code = status_code_for(exc)

    log = get_logger()
    await log.ainfo(
        "api.error",
        url=str(request.url),
        code=exc.code,
        error_type=type(exc).__name__,
        status_code=status_code,
    )

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(code=exc.code, detail=str(exc)).model_dump(),
    )


def add_exception_handlers(app: FastAPI) -> FastAPI:
    app.add_exception_handler(OVGSError, ovgs_error_handler)
    return app
