"""
Shared constants and exceptions
"""

from .exceptions import (
    InvalidStorageModeError,
    LuchaCartError,
    MissingItemIdError,
    PriceRequiredError,
    StorageError,
    ValidationError,
)

__all__ = [
    "LuchaCartError",
    "ValidationError",
    "MissingItemIdError",
    "InvalidStorageModeError",
    "PriceRequiredError",
    "StorageError",
]
