# src/stock_domain/infrastructure/persistence/in_memory_ledger_repository.py
"""In-process implementation of the ledger repository without multi-record transactions."""

import dataclasses
import threading
from datetime import datetime, timedelta
from typing import Optional

from src.common.dtos.stock_dtos import (
    HistoryFilterDTO,
    HistoryViewDTO,
    StockSummaryDTO,
    UserSummaryDTO,
)
from src.common.exceptions.custom_exceptions import DuplicateStockError
from src.common.utils.date_utils import utc_now
from src.stock_domain.domain.entities.history_entry import HistoryEntry
from src.stock_domain.domain.entities.stock_item import StockItem
from src.stock_domain.domain.repositories.ledger_repository import (
    ILedgerRepository,
    LedgerTransaction,
)


class InMemoryLedgerRepository(ILedgerRepository):
    """
    Dictionary-backed ledger for tests and single-process development.

    Each call is atomic on its own (guarded by one lock), but stock and history writes
    cannot be committed together, so the service falls back to compensation on this backend.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stocks: dict[str, StockItem] = {}
        self._history: list[HistoryEntry] = []
        self._users: dict[str, UserSummaryDTO] = {}
        self._next_history_id = 1
        self._last_history_at: Optional[datetime] = None

    @property
    def supports_transactions(self) -> bool:
        return False

    def begin_transaction(self) -> LedgerTransaction:
        return LedgerTransaction()

    def commit(self, tx: LedgerTransaction) -> None:
        tx.active = False

    def abort(self, tx: LedgerTransaction) -> None:
        tx.active = False

    def register_user(self, user_id: str, user: UserSummaryDTO) -> None:
        """Adds user reference data used to enrich history views."""
        with self._lock:
            self._users[user_id] = user

    @staticmethod
    def _next_updated_at(current: StockItem, candidate: Optional[datetime] = None) -> datetime:
        # updated_at doubles as the row version, so every write must move it forward
        updated_at = candidate or utc_now()
        if current.updated_at is not None and updated_at <= current.updated_at:
            updated_at = current.updated_at + timedelta(microseconds=1)
        return updated_at

    def get_stock(
        self, stock_id: str, tx: Optional[LedgerTransaction] = None, for_update: bool = False
    ) -> Optional[StockItem]:
        with self._lock:
            item = self._stocks.get(stock_id)
            return dataclasses.replace(item) if item else None

    def save_stock(
        self,
        item: StockItem,
        tx: Optional[LedgerTransaction] = None,
        expected_quantity: Optional[int] = None,
        expected_updated_at: Optional[datetime] = None,
    ) -> bool:
        with self._lock:
            current = self._stocks.get(item.id)
            if current is None:
                return False
            if expected_quantity is not None and current.quantity != expected_quantity:
                return False
            if expected_updated_at is not None and current.updated_at != expected_updated_at:
                return False
            for other in self._stocks.values():
                if other.id != item.id and other.product_code == item.product_code:
                    raise DuplicateStockError(item.product_code)
            updated_at = self._next_updated_at(current, item.updated_at)
            self._stocks[item.id] = dataclasses.replace(item, updated_at=updated_at)
            return True

    def adjust_quantity(self, stock_id: str, delta: int, tx: Optional[LedgerTransaction] = None) -> bool:
        with self._lock:
            current = self._stocks.get(stock_id)
            if current is None or current.quantity + delta < 0:
                return False
            self._stocks[stock_id] = dataclasses.replace(
                current, quantity=current.quantity + delta, updated_at=self._next_updated_at(current)
            )
            return True

    def append_history(self, entry: HistoryEntry, tx: Optional[LedgerTransaction] = None) -> HistoryEntry:
        with self._lock:
            created_at = entry.created_at
            if self._last_history_at is not None and created_at < self._last_history_at:
                created_at = self._last_history_at
            stored = dataclasses.replace(entry, id=self._next_history_id, created_at=created_at)
            self._history.append(stored)
            self._next_history_id += 1
            self._last_history_at = created_at
            return stored

    def list_history(self, history_filter: Optional[HistoryFilterDTO] = None) -> list[HistoryViewDTO]:
        history_filter = history_filter or HistoryFilterDTO()
        with self._lock:
            entries = [
                entry
                for entry in self._history
                if (not history_filter.stock_id or entry.stock_id == history_filter.stock_id)
                and (not history_filter.user_id or entry.user_id == history_filter.user_id)
                and (not history_filter.movement_type or entry.movement_type.value == history_filter.movement_type)
            ]
            entries.sort(key=lambda entry: (entry.created_at, entry.id), reverse=True)
            if history_filter.limit:
                entries = entries[: history_filter.limit]

            views = []
            for entry in entries:
                stock = self._stocks.get(entry.stock_id)
                user = self._users.get(entry.user_id)
                views.append(
                    HistoryViewDTO(
                        id=entry.id,
                        stock_id=entry.stock_id,
                        quantity=entry.quantity,
                        movement_type=entry.movement_type.value,
                        reason=entry.reason,
                        user_id=entry.user_id,
                        created_at=entry.created_at,
                        stock=(
                            StockSummaryDTO(
                                sku=stock.sku,
                                category=stock.category,
                                quantity=stock.quantity,
                                price=stock.price,
                                image=stock.image,
                            )
                            if stock
                            else None
                        ),
                        user=dataclasses.replace(user) if user else None,
                    )
                )
            return views

    def create_stock(self, item: StockItem) -> StockItem:
        with self._lock:
            if any(other.product_code == item.product_code for other in self._stocks.values()):
                raise DuplicateStockError(item.product_code)
            self._stocks[item.id] = dataclasses.replace(item)
            return item

    def list_stocks(self) -> list[StockItem]:
        with self._lock:
            return [dataclasses.replace(item) for item in self._stocks.values()]

    def delete_stock(self, stock_id: str) -> bool:
        with self._lock:
            return self._stocks.pop(stock_id, None) is not None
