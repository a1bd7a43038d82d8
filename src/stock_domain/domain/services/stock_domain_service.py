# src/stock_domain/domain/services/stock_domain_service.py
"""Validation rules shared by stock movements and stock record maintenance."""

import math
from typing import Any, Optional

from src.common.exceptions.custom_exceptions import (
    InsufficientStockError,
    InvalidIdentifierError,
    InvalidQuantityError,
    InvalidValueError,
    MissingFieldError,
)
from src.common.utils.id_utils import is_valid_stock_id
from src.stock_domain.domain.entities.stock_item import StockItem


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def coerce_whole_number(value: Any) -> Optional[int]:
    """Returns value as an int if it is an integral number (or numeric string), else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return int(value)
        return None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return coerce_whole_number(float(text))
        except ValueError:
            return None
    return None


def validate_stock_id(stock_id: Any) -> str:
    if not is_valid_stock_id(stock_id):
        raise InvalidIdentifierError(stock_id)
    return stock_id


def validate_movement_quantity(quantity: Any, reason: Any = None) -> int:
    """
    Validates the quantity of a withdraw/add request.
    A missing quantity is reported together with a missing reason so the caller can fix both at once.
    """
    if is_blank(quantity):
        missing = ["quantity"]
        if is_blank(reason):
            missing.append("reason")
        raise MissingFieldError(missing)

    amount = coerce_whole_number(quantity)
    if amount is None or amount <= 0:
        raise InvalidQuantityError(quantity)
    return amount


def validate_reason(reason: Any) -> str:
    if is_blank(reason):
        raise MissingFieldError(["reason"])
    return str(reason).strip()


def ensure_sufficient_stock(stock: StockItem, requested: int) -> None:
    if stock.quantity < requested:
        raise InsufficientStockError(stock.id, available=stock.quantity, requested=requested)


def validate_initial_quantity(quantity: Any) -> int:
    """Quantity for a newly created stock item: a whole number, zero allowed."""
    amount = coerce_whole_number(quantity)
    if amount is None or amount < 0:
        raise InvalidQuantityError(quantity, message="Quantity must be a whole number of at least 0")
    return amount


def validate_price(price: Any) -> float:
    if isinstance(price, bool):
        raise InvalidValueError("price", price, "must be a number")
    try:
        value = float(price)
    except (TypeError, ValueError):
        raise InvalidValueError("price", price, "must be a number")
    if not math.isfinite(value) or value < 0:
        raise InvalidValueError("price", price, "must be 0 or more")
    return value


def require_fields(values: dict[str, Any]) -> None:
    """Raises MissingFieldError listing every blank entry of values, in order."""
    missing = [name for name, value in values.items() if is_blank(value)]
    if missing:
        raise MissingFieldError(missing)
