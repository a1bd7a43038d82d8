"""Tests for stock validation rules."""

import pytest

from src.common.exceptions.custom_exceptions import (
    ErrorKind,
    InsufficientStockError,
    InvalidIdentifierError,
    InvalidQuantityError,
    InvalidValueError,
    MissingFieldError,
)
from src.common.utils.id_utils import generate_stock_id, is_valid_stock_id
from src.stock_domain.domain.services.stock_domain_service import (
    coerce_whole_number,
    ensure_sufficient_stock,
    require_fields,
    validate_initial_quantity,
    validate_movement_quantity,
    validate_price,
    validate_reason,
    validate_stock_id,
)


@pytest.mark.parametrize("stock_id", ["64b7f0c2a1b2c3d4e5f6a7b8", "64B7F0C2A1B2C3D4E5F6A7B8"])
def test_validate_stock_id_accepts_24_hex_characters(stock_id) -> None:
    assert validate_stock_id(stock_id) == stock_id


@pytest.mark.parametrize(
    "stock_id",
    [
        "",
        "abc",
        "64b7f0c2a1b2c3d4e5f6a7b",
        "64b7f0c2a1b2c3d4e5f6a7b8a",
        "zzb7f0c2a1b2c3d4e5f6a7b8",
        "64b7f0c2a1b2c3d4e5f6a7b8\n",
        " 64b7f0c2a1b2c3d4e5f6a7b8",
        None,
        123,
    ],
)
def test_validate_stock_id_rejects_malformed_identifiers(stock_id) -> None:
    with pytest.raises(InvalidIdentifierError) as exc_info:
        validate_stock_id(stock_id)
    assert exc_info.value.kind is ErrorKind.INVALID_IDENTIFIER


def test_generated_stock_ids_are_valid_and_unique() -> None:
    ids = {generate_stock_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(is_valid_stock_id(stock_id) for stock_id in ids)


@pytest.mark.parametrize(
    "value, expected",
    [(5, 5), (5.0, 5), ("5", 5), (" 7 ", 7), ("3.0", 3), (2.5, None), ("abc", None), (True, None), (None, None),
     (float("nan"), None), (float("inf"), None), ("nan", None)],
)
def test_coerce_whole_number(value, expected) -> None:
    assert coerce_whole_number(value) == expected


def test_validate_movement_quantity_reports_both_missing_fields() -> None:
    with pytest.raises(MissingFieldError) as exc_info:
        validate_movement_quantity(None, "")
    assert exc_info.value.fields == ["quantity", "reason"]


def test_validate_movement_quantity_reports_only_quantity_when_reason_given() -> None:
    with pytest.raises(MissingFieldError) as exc_info:
        validate_movement_quantity("", "sale")
    assert exc_info.value.fields == ["quantity"]


@pytest.mark.parametrize("quantity", [0, -1, "-4", "abc", 1.5, False, [], {}])
def test_validate_movement_quantity_rejects_non_positive_or_non_numeric(quantity) -> None:
    with pytest.raises(InvalidQuantityError) as exc_info:
        validate_movement_quantity(quantity, "sale")
    assert exc_info.value.kind is ErrorKind.INVALID_QUANTITY


def test_validate_movement_quantity_checks_quantity_before_reason() -> None:
    with pytest.raises(InvalidQuantityError):
        validate_movement_quantity(-1, None)


def test_validate_reason_strips_and_requires_text() -> None:
    assert validate_reason("  damaged  ") == "damaged"
    with pytest.raises(MissingFieldError) as exc_info:
        validate_reason("   ")
    assert exc_info.value.fields == ["reason"]


def test_ensure_sufficient_stock_carries_available_and_requested(sample_stock_item) -> None:
    ensure_sufficient_stock(sample_stock_item, 10)

    with pytest.raises(InsufficientStockError) as exc_info:
        ensure_sufficient_stock(sample_stock_item, 11)

    assert exc_info.value.available == 10
    assert exc_info.value.requested == 11
    assert exc_info.value.kind is ErrorKind.INSUFFICIENT_STOCK


def test_validate_initial_quantity_allows_zero() -> None:
    assert validate_initial_quantity("0") == 0
    with pytest.raises(InvalidQuantityError):
        validate_initial_quantity(-1)


@pytest.mark.parametrize("price", [-1, "free", None, True, float("inf")])
def test_validate_price_rejects_invalid_values(price) -> None:
    with pytest.raises(InvalidValueError) as exc_info:
        validate_price(price)
    assert exc_info.value.field == "price"


def test_require_fields_lists_every_blank_field_in_order() -> None:
    with pytest.raises(MissingFieldError) as exc_info:
        require_fields({"sku": "", "description": "ok", "category": None})
    assert exc_info.value.fields == ["sku", "category"]
