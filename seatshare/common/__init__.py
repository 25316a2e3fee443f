# seatshare/common/__init__.py
"""
Общие утилиты: константы, логгер, результаты операций.
"""

from seatshare.common.logger import get_logger, log_info, log_error, log_warning, log_debug
from seatshare.common.constants import TypeMsg
from seatshare.common.results import ErrorKind, OperationError, Result

__all__ = [
    "get_logger",
    "log_info",
    "log_error",
    "log_warning",
    "log_debug",
    "TypeMsg",
    "ErrorKind",
    "OperationError",
    "Result",
]
