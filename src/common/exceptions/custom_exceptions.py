"""Custom application-wide exceptions."""

from enum import Enum


class ApplicationError(Exception):
    """Base class for application-specific errors."""

    def __init__(
        self, message: str = "An application error occurred", original_exception: Exception | None = None
    ) -> None:
        super().__init__(message)
        self.original_exception = original_exception
        self.message = message

    def __str__(self) -> str:
        if self.original_exception:
            return f"{self.message} (Original error: {self.original_exception})"
        return self.message


class DatabaseError(ApplicationError):
    """Exception raised for errors during database operations."""

    def __init__(self, message: str = "Database operation failed", original_exception: Exception | None = None) -> None:
        super().__init__(message, original_exception)
        self.message = f"Database Error: {message}"


class ErrorKind(str, Enum):
    """Stable error kinds surfaced to callers. Mapping to transport status codes is the caller's job."""

    INVALID_IDENTIFIER = "InvalidIdentifier"
    NOT_FOUND = "NotFound"
    MISSING_FIELD = "MissingField"
    INVALID_QUANTITY = "InvalidQuantity"
    INVALID_VALUE = "InvalidValue"
    INSUFFICIENT_STOCK = "InsufficientStock"
    DUPLICATE_STOCK = "DuplicateStock"
    PERSISTENCE_FAILURE = "PersistenceFailure"
    CONFLICT = "Conflict"


class StockOperationError(ApplicationError):
    """Base class for errors raised by stock operations. Each subclass carries one ErrorKind."""

    kind: ErrorKind

    def __init__(self, message: str, original_exception: Exception | None = None) -> None:
        super().__init__(message, original_exception)


class InvalidIdentifierError(StockOperationError):
    kind = ErrorKind.INVALID_IDENTIFIER

    def __init__(self, stock_id: object) -> None:
        super().__init__(f"Invalid stock identifier: {stock_id!r}")
        self.stock_id = stock_id


class StockNotFoundError(StockOperationError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, stock_id: str) -> None:
        super().__init__(f"Stock item {stock_id} not found")
        self.stock_id = stock_id


class MissingFieldError(StockOperationError):
    kind = ErrorKind.MISSING_FIELD

    def __init__(self, fields: list[str]) -> None:
        super().__init__(f"Missing required field(s): {', '.join(fields)}")
        self.fields = list(fields)


class InvalidQuantityError(StockOperationError):
    kind = ErrorKind.INVALID_QUANTITY

    def __init__(self, quantity: object, message: str = "Quantity must be a whole number greater than 0") -> None:
        super().__init__(f"{message} (got {quantity!r})")
        self.quantity = quantity


class InvalidValueError(StockOperationError):
    kind = ErrorKind.INVALID_VALUE

    def __init__(self, field: str, value: object, message: str) -> None:
        super().__init__(f"Invalid value for {field}: {message} (got {value!r})")
        self.field = field
        self.value = value


class InsufficientStockError(StockOperationError):
    """Raised when a withdrawal asks for more than is on hand."""

    kind = ErrorKind.INSUFFICIENT_STOCK

    def __init__(self, stock_id: str, available: int, requested: int) -> None:
        super().__init__(f"Insufficient stock for {stock_id}: available {available}, requested {requested}")
        self.stock_id = stock_id
        self.available = available
        self.requested = requested


class DuplicateStockError(StockOperationError):
    kind = ErrorKind.DUPLICATE_STOCK

    def __init__(self, product_code: str, original_exception: Exception | None = None) -> None:
        super().__init__(f"A stock item with product code {product_code!r} already exists", original_exception)
        self.product_code = product_code


class PersistenceFailureError(StockOperationError):
    """Wraps a storage failure that happened while writing a stock movement."""

    kind = ErrorKind.PERSISTENCE_FAILURE

    def __init__(
        self, message: str, original_exception: Exception | None = None, compensated: bool | None = None
    ) -> None:
        super().__init__(message, original_exception)
        # None when no compensation was needed: nothing was written or the store rolled back
        self.compensated = compensated


class ConflictError(StockOperationError):
    """
    Signals a concurrent modification of the same stock item.
    The caller may re-fetch and retry the whole operation; nothing was written.
    """

    kind = ErrorKind.CONFLICT

    def __init__(
        self, stock_id: str | None, message: str | None = None, original_exception: Exception | None = None
    ) -> None:
        super().__init__(message or f"Stock item {stock_id} was modified concurrently", original_exception)
        self.stock_id = stock_id
