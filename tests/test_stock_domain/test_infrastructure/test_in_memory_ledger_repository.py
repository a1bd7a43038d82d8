"""Tests for the in-memory ledger repository."""

import dataclasses
from datetime import timedelta

import pytest

from src.common.exceptions.custom_exceptions import DuplicateStockError
from src.stock_domain.domain.entities.history_entry import HistoryEntry, MovementType


def make_entry(stock_item, created_at, quantity=1) -> HistoryEntry:
    return HistoryEntry(
        stock_id=stock_item.id,
        quantity=quantity,
        movement_type=MovementType.WITHDRAW,
        reason="sale",
        user_id=stock_item.created_by,
        created_at=created_at,
    )


def test_is_not_transactional(in_memory_ledger) -> None:
    tx = in_memory_ledger.begin_transaction()

    assert in_memory_ledger.supports_transactions is False
    in_memory_ledger.commit(tx)
    assert tx.active is False


def test_get_stock_returns_a_copy(in_memory_ledger, stored_stock_item) -> None:
    fetched = in_memory_ledger.get_stock(stored_stock_item.id)
    fetched.quantity = 0

    assert in_memory_ledger.get_stock(stored_stock_item.id).quantity == 10


def test_save_stock_guard(in_memory_ledger, stored_stock_item) -> None:
    updated = dataclasses.replace(stored_stock_item, quantity=4)

    assert in_memory_ledger.save_stock(updated, expected_quantity=9) is False
    assert in_memory_ledger.get_stock(stored_stock_item.id).quantity == 10

    assert in_memory_ledger.save_stock(updated, expected_quantity=10) is True
    assert in_memory_ledger.get_stock(stored_stock_item.id).quantity == 4


def test_save_stock_guards_on_updated_at(in_memory_ledger, stored_stock_item) -> None:
    # Arrange: quantity returns to its old value, but the row has been written since
    stale_updated_at = stored_stock_item.updated_at
    assert in_memory_ledger.adjust_quantity(stored_stock_item.id, -3) is True
    assert in_memory_ledger.adjust_quantity(stored_stock_item.id, 3) is True
    updated = dataclasses.replace(stored_stock_item, quantity=0)

    # Act
    saved = in_memory_ledger.save_stock(updated, expected_quantity=10, expected_updated_at=stale_updated_at)

    # Assert
    assert saved is False
    assert in_memory_ledger.get_stock(stored_stock_item.id).quantity == 10


def test_save_stock_moves_updated_at_forward(in_memory_ledger, stored_stock_item) -> None:
    same_timestamp = dataclasses.replace(stored_stock_item, sku="SKU-RED-L")

    assert in_memory_ledger.save_stock(same_timestamp, expected_updated_at=stored_stock_item.updated_at) is True

    stored = in_memory_ledger.get_stock(stored_stock_item.id)
    assert stored.updated_at > stored_stock_item.updated_at
    assert in_memory_ledger.save_stock(same_timestamp, expected_updated_at=stored_stock_item.updated_at) is False


def test_save_stock_missing_row(in_memory_ledger, sample_stock_item) -> None:
    assert in_memory_ledger.save_stock(sample_stock_item) is False


def test_adjust_quantity_refuses_negative(in_memory_ledger, stored_stock_item) -> None:
    assert in_memory_ledger.adjust_quantity(stored_stock_item.id, -11) is False
    assert in_memory_ledger.adjust_quantity(stored_stock_item.id, -10) is True
    assert in_memory_ledger.get_stock(stored_stock_item.id).quantity == 0
    assert in_memory_ledger.adjust_quantity("64b7f0c2a1b2c3d4e5f6ffff", 1) is False


def test_append_history_assigns_increasing_ids_and_monotonic_timestamps(in_memory_ledger, stored_stock_item) -> None:
    now = stored_stock_item.created_at
    first = in_memory_ledger.append_history(make_entry(stored_stock_item, now))
    # clock stepped backwards
    second = in_memory_ledger.append_history(make_entry(stored_stock_item, now - timedelta(seconds=5)))

    assert (first.id, second.id) == (1, 2)
    assert second.created_at == first.created_at
    assert [view.id for view in in_memory_ledger.list_history()] == [2, 1]


def test_create_stock_rejects_duplicate_product_code(in_memory_ledger, stored_stock_item) -> None:
    duplicate = dataclasses.replace(stored_stock_item, id="64b7f0c2a1b2c3d4e5f6aaaa")

    with pytest.raises(DuplicateStockError):
        in_memory_ledger.create_stock(duplicate)


def test_delete_stock_keeps_history(in_memory_ledger, stored_stock_item) -> None:
    in_memory_ledger.append_history(make_entry(stored_stock_item, stored_stock_item.created_at))

    assert in_memory_ledger.delete_stock(stored_stock_item.id) is True
    assert in_memory_ledger.delete_stock(stored_stock_item.id) is False
    assert in_memory_ledger.list_stocks() == []

    history = in_memory_ledger.list_history()
    assert len(history) == 1
    assert history[0].stock is None
