"""
Application constants for the Lucha cart engine

Centralizes the storage keys, event names and defaults shared by the
registry, the persistence layer and the configuration.
"""

from typing import Final


# Storage configuration constants
class StorageSettings:
    """Persistence key and backend defaults"""

    STORAGE_KEY: Final[str] = "lucha_cart_v1"
    DEFAULT_STORAGE_MODE: Final[str] = "local"
    DEFAULT_SESSION_ID: Final[str] = "default"
    SHARED_SCOPE: Final[str] = "local"
    TABLE_NAME: Final[str] = "cart_storage"

    # Debounce and watcher timings
    DEFAULT_DEBOUNCE_MS: Final[int] = 0
    DEFAULT_SYNC_POLL_SECONDS: Final[float] = 0.0


# Event names exposed to UI collaborators
class CartEventNames:
    """Change notification channel names"""

    CART_CHANGED: Final[str] = "cart:changed"
    STORAGE_MODE_CHANGED: Final[str] = "cart:storageModeChanged"


# Money handling constants
class MoneySettings:
    """Currency formatting and rounding"""

    CENTS_PER_UNIT: Final[int] = 100
    DEFAULT_CURRENCY_SYMBOL: Final[str] = "$"


# Error codes and messages
class ErrorCodes:
    """Standardized error codes and messages"""

    GENERAL_ERROR: Final[str] = "GENERAL_ERROR"
    STORAGE_ERROR: Final[str] = "STORAGE_ERROR"
    VALIDATION_ERROR: Final[str] = "VALIDATION_ERROR"

    # User-friendly messages
    GENERIC_ERROR_MESSAGE: Final[str] = "An error occurred. Please try again."
    STORAGE_ERROR_MESSAGE: Final[
        str
    ] = "Your cart could not be saved. It will be kept until you leave the page."
    VALIDATION_ERROR_MESSAGE: Final[str] = "Please check your input and try again."


# File and directory constants
class FileSettings:
    """File paths and directory settings"""

    LOGS_DIRECTORY: Final[str] = "logs"
    DATA_DIRECTORY: Final[str] = "data"
    DEFAULT_DATABASE_PATH: Final[str] = "sqlite:///data/lucha_cart.db"

    # Log file names
    MAIN_LOG_FILE: Final[str] = "lucha_cart.log"
    JSON_LOG_FILE: Final[str] = "lucha_cart.json.log"
