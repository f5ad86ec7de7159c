from src.core.exceptions.base import (
    AppException,
    NotFoundError,
    ValidationError,
    InvalidAmountError,
    InvalidStateError,
    DuplicateError,
)

__all__ = [
    "AppException",
    "NotFoundError",
    "ValidationError",
    "InvalidAmountError",
    "InvalidStateError",
    "DuplicateError",
]
