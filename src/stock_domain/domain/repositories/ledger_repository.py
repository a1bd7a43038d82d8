# src/stock_domain/domain/repositories/ledger_repository.py
"""Ledger store interface: stock records plus the append-only history log."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from src.common.dtos.stock_dtos import HistoryFilterDTO, HistoryViewDTO
from src.stock_domain.domain.entities.history_entry import HistoryEntry
from src.stock_domain.domain.entities.stock_item import StockItem


@dataclass
class LedgerTransaction:
    """Handle for one unit of work. `connection` is backend specific (None for non-transactional stores)."""

    connection: Any = None
    active: bool = True


class ILedgerRepository(ABC):

    @property
    @abstractmethod
    def supports_transactions(self) -> bool:
        """True when stock and history writes can be committed or aborted together."""
        pass

    @abstractmethod
    def begin_transaction(self) -> LedgerTransaction:
        """Starts a unit of work. No-op handle on backends without multi-row atomicity."""
        pass

    @abstractmethod
    def commit(self, tx: LedgerTransaction) -> None:
        """Makes every write done under `tx` durable and visible."""
        pass

    @abstractmethod
    def abort(self, tx: LedgerTransaction) -> None:
        """Discards every write done under `tx`."""
        pass

    @abstractmethod
    def get_stock(
        self, stock_id: str, tx: Optional[LedgerTransaction] = None, for_update: bool = False
    ) -> Optional[StockItem]:
        """Retrieves a stock item, optionally locking it for the rest of the transaction."""
        pass

    @abstractmethod
    def save_stock(
        self,
        item: StockItem,
        tx: Optional[LedgerTransaction] = None,
        expected_quantity: Optional[int] = None,
        expected_updated_at: Optional[datetime] = None,
    ) -> bool:
        """
        Updates an existing stock item.
        When expected_quantity or expected_updated_at is given the write only applies if the stored row
        still holds those values; returns False if a guard misses or the row is gone.
        """
        pass

    @abstractmethod
    def adjust_quantity(self, stock_id: str, delta: int, tx: Optional[LedgerTransaction] = None) -> bool:
        """Atomically adds delta to the stored quantity. Refuses (returns False) if the result would be negative."""
        pass

    @abstractmethod
    def append_history(self, entry: HistoryEntry, tx: Optional[LedgerTransaction] = None) -> HistoryEntry:
        """Appends a history entry and returns it with its assigned id."""
        pass

    @abstractmethod
    def list_history(self, history_filter: Optional[HistoryFilterDTO] = None) -> list[HistoryViewDTO]:
        """Retrieves history joined with stock and user summaries, newest first."""
        pass

    @abstractmethod
    def create_stock(self, item: StockItem) -> StockItem:
        """Inserts a new stock item."""
        pass

    @abstractmethod
    def list_stocks(self) -> list[StockItem]:
        """Retrieves all stock items."""
        pass

    @abstractmethod
    def delete_stock(self, stock_id: str) -> bool:
        """Deletes a stock item, leaving its history in place. Returns False if it did not exist."""
        pass
