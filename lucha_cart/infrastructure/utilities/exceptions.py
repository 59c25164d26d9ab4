"""
Custom exceptions for the Lucha cart engine
"""

from lucha_cart.infrastructure.utilities.constants import ErrorCodes


class LuchaCartError(Exception):
    """Base exception for the cart engine"""

    def __init__(self, message: str, user_message: str = None, error_code: str = None):
        super().__init__(message)
        self.user_message = user_message or ErrorCodes.GENERIC_ERROR_MESSAGE
        self.error_code = error_code or ErrorCodes.GENERAL_ERROR


class ValidationError(LuchaCartError):
    """Caller contract violations"""

    def __init__(self, message: str, field: str = None):
        super().__init__(
            message, ErrorCodes.VALIDATION_ERROR_MESSAGE, ErrorCodes.VALIDATION_ERROR
        )
        self.field = field


class MissingItemIdError(ValidationError):
    """add_item called without an item id"""

    def __init__(self):
        super().__init__("add_item: item must have an id", field="id")


class InvalidStorageModeError(ValidationError):
    """Unknown storage mode requested"""

    def __init__(self, mode: str):
        super().__init__(
            f'Invalid storage mode {mode!r}. Use "local" or "session".',
            field="mode",
        )
        self.mode = mode


class PriceRequiredError(ValidationError):
    """Item supplied without explicit cents while strict pricing is on"""

    def __init__(self, item_id: str):
        super().__init__(
            f"add_item: item {item_id!r} must supply priceCents", field="priceCents"
        )
        self.item_id = item_id


class StorageError(LuchaCartError):
    """Storage medium failures"""

    def __init__(self, message: str, operation: str = None):
        super().__init__(
            message, ErrorCodes.STORAGE_ERROR_MESSAGE, ErrorCodes.STORAGE_ERROR
        )
        self.operation = operation
