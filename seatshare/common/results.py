# seatshare/common/results.py
"""
Результаты операций ядра.

Операции сервисов не бросают исключения наружу: каждая возвращает Result,
в котором либо значение, либо типизированная ошибка (OperationError).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Категории ошибок, которые видит вызывающий код."""
    CAPACITY_CONFLICT = "capacity_conflict"
    INVALID_TRANSITION = "invalid_transition"
    NOT_AUTHENTICATED = "not_authenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    DUPLICATE = "duplicate"
    TRANSPORT = "transport"
    PARTIAL_FAILURE = "partial_failure"


@dataclass(frozen=True)
class OperationError:
    """
    Описание ошибки операции.

    Attributes:
        kind: Категория ошибки
        message: Сообщение для пользователя
        step: Шаг многошаговой операции, на котором произошёл сбой
    """
    kind: ErrorKind
    message: str
    step: str | None = None

    def __str__(self) -> str:
        if self.step:
            return f"{self.kind.value} at {self.step}: {self.message}"
        return f"{self.kind.value}: {self.message}"


@dataclass(frozen=True)
class Result(Generic[T]):
    """Значение операции либо ошибка."""
    value: T | None = None
    error: OperationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        step: str | None = None,
    ) -> "Result[T]":
        return cls(error=OperationError(kind=kind, message=message, step=step))

    @classmethod
    def from_error(cls, error: OperationError) -> "Result[T]":
        """Пробрасывает ошибку другого результата с новым типом значения."""
        return cls(error=error)

    def unwrap(self) -> T:
        """Возвращает значение или бросает RuntimeError для неуспешного результата."""
        if self.error is not None:
            raise RuntimeError(str(self.error))
        return self.value  # type: ignore[return-value]
