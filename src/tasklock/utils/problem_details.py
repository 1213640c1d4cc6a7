"""
Problem Details for HTTP APIs (RFC 7807) implementation.

This module maps tasklock errors onto standardized error responses according
to the RFC 7807 Problem Details specification. Every problem carries the
stable error ``code`` as an extension member.
"""

import logging
from typing import Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..exceptions import (
    LifecycleError,
    ScopeFormatError,
    ScopeMissingError,
    StoreError,
    TaskAlreadyDoneError,
    TaskLockError,
    TaskNotFoundError,
    TasksFileNotFoundError,
)

logger = logging.getLogger(__name__)

PROBLEM_JSON = "application/problem+json"


class ProblemDetail(BaseModel):
    """Problem Details schema according to RFC 7807."""

    type: str = Field(..., description="A URI reference that identifies the problem type")
    title: str = Field(..., description="A short, human-readable summary of the problem type")
    status: int = Field(..., description="The HTTP status code")
    detail: str = Field(..., description="A human-readable explanation specific to this occurrence")
    instance: str = Field(..., description="The request path that produced the problem")
    code: Optional[str] = Field(None, description="Stable tasklock error code")
    errors: Optional[dict[str, list[str]]] = Field(
        None, description="Optional field for validation errors"
    )


class ErrorTypes:
    """Standard error types for the tasklock API."""

    VALIDATION_ERROR = "https://tasklock.dev/problems/validation-error"
    NOT_FOUND = "https://tasklock.dev/problems/not-found"
    CONFLICT = "https://tasklock.dev/problems/conflict"
    UNAUTHORIZED = "https://tasklock.dev/problems/unauthorized"
    BAD_REQUEST = "https://tasklock.dev/problems/bad-request"
    INTERNAL_ERROR = "https://tasklock.dev/problems/internal-error"
    STATE_ERROR = "https://tasklock.dev/problems/state-error"


class ErrorTitles:
    """Standard error titles for the tasklock API."""

    VALIDATION_ERROR = "Validation Error"
    NOT_FOUND = "Not Found"
    CONFLICT = "Conflict"
    UNAUTHORIZED = "Unauthorized"
    BAD_REQUEST = "Bad Request"
    INTERNAL_ERROR = "Internal Server Error"
    STATE_ERROR = "State Store Error"


def create_problem_detail(
    error_type: str,
    title: str,
    status: int,
    detail: str,
    instance: str,
    code: Optional[str] = None,
    errors: Optional[dict[str, list[str]]] = None,
) -> ProblemDetail:
    """Create a Problem Detail response."""
    return ProblemDetail(
        type=error_type,
        title=title,
        status=status,
        detail=detail,
        instance=instance,
        code=code,
        errors=errors,
    )


def _problem_response(problem: ProblemDetail) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(exclude_none=True),
        media_type=PROBLEM_JSON,
    )


def status_for_error(exc: TaskLockError) -> tuple[int, str, str]:
    """Map a tasklock error to (status, type, title)."""
    if isinstance(exc, (ScopeFormatError, ScopeMissingError)):
        return 422, ErrorTypes.VALIDATION_ERROR, ErrorTitles.VALIDATION_ERROR
    if isinstance(exc, (TaskNotFoundError, TasksFileNotFoundError)):
        return 404, ErrorTypes.NOT_FOUND, ErrorTitles.NOT_FOUND
    if isinstance(exc, (LifecycleError, TaskAlreadyDoneError)):
        return 409, ErrorTypes.CONFLICT, ErrorTitles.CONFLICT
    if isinstance(exc, StoreError):
        return 500, ErrorTypes.STATE_ERROR, ErrorTitles.STATE_ERROR
    return 400, ErrorTypes.BAD_REQUEST, ErrorTitles.BAD_REQUEST


async def tasklock_exception_handler(request: Request, exc: TaskLockError) -> JSONResponse:
    """Handle tasklock errors and return Problem Details response."""
    status, error_type, title = status_for_error(exc)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")

    return _problem_response(
        create_problem_detail(
            error_type=error_type,
            title=title,
            status=status,
            detail=str(exc),
            instance=request.url.path,
            code=exc.code,
        )
    )


async def problem_detail_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTPException and return Problem Details response."""
    error_mappings = {
        400: (ErrorTypes.BAD_REQUEST, ErrorTitles.BAD_REQUEST),
        401: (ErrorTypes.UNAUTHORIZED, ErrorTitles.UNAUTHORIZED),
        404: (ErrorTypes.NOT_FOUND, ErrorTitles.NOT_FOUND),
        409: (ErrorTypes.CONFLICT, ErrorTitles.CONFLICT),
        422: (ErrorTypes.VALIDATION_ERROR, ErrorTitles.VALIDATION_ERROR),
    }
    error_type, title = error_mappings.get(
        exc.status_code, (ErrorTypes.INTERNAL_ERROR, ErrorTitles.INTERNAL_ERROR)
    )

    response = _problem_response(
        create_problem_detail(
            error_type=error_type,
            title=title,
            status=exc.status_code,
            detail=str(exc.detail) if exc.detail else "An error occurred",
            instance=request.url.path,
        )
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation exceptions and return Problem Details response."""
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.setdefault(field, []).append(error["msg"])

    return _problem_response(
        create_problem_detail(
            error_type=ErrorTypes.VALIDATION_ERROR,
            title=ErrorTitles.VALIDATION_ERROR,
            status=422,
            detail="Request validation failed",
            instance=request.url.path,
            errors=errors or None,
        )
    )


def setup_problem_detail_handlers(app) -> None:
    """Set up Problem Details exception handlers for FastAPI app."""
    app.add_exception_handler(TaskLockError, tasklock_exception_handler)
    app.add_exception_handler(HTTPException, problem_detail_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
