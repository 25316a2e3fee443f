# seatshare/api/errors.py
"""
Преобразование результатов операций в HTTP-ответы.
"""

from __future__ import annotations

from typing import TypeVar

from fastapi import Request
from fastapi.responses import JSONResponse

from seatshare.common.results import ErrorKind, OperationError, Result

T = TypeVar("T")

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.CAPACITY_CONFLICT: 409,
    ErrorKind.DUPLICATE: 409,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.NOT_AUTHENTICATED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION: 422,
    ErrorKind.TRANSPORT: 502,
    ErrorKind.PARTIAL_FAILURE: 500,
}


class OperationFailed(Exception):
    """Неуспешный результат операции, который нужно отдать клиенту."""

    def __init__(self, error: OperationError) -> None:
        super().__init__(str(error))
        self.error = error


def unwrap(result: Result[T]) -> T:
    """Значение результата или OperationFailed."""
    if not result.ok:
        raise OperationFailed(result.error)
    return result.value


async def operation_failed_handler(request: Request, exc: OperationFailed) -> JSONResponse:
    error = exc.error
    return JSONResponse(
        status_code=STATUS_BY_KIND.get(error.kind, 500),
        content={"detail": error.message, "kind": error.kind.value, "step": error.step},
    )
