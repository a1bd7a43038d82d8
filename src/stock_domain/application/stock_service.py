# src/stock_domain/application/stock_service.py
"""Application service for stock items, stock movements and their history."""

import dataclasses
import logging
from typing import Any, Callable, Optional, TypeVar

from src.common.config.settings import settings
from src.common.dtos.stock_dtos import (
    HistoryFilterDTO,
    HistoryViewDTO,
    StockMovementRequestDTO,
)
from src.common.exceptions.custom_exceptions import (
    ConflictError,
    DatabaseError,
    InvalidValueError,
    PersistenceFailureError,
    StockNotFoundError,
    StockOperationError,
)
from src.common.utils.date_utils import utc_now
from src.common.utils.id_utils import generate_stock_id
from src.stock_domain.domain.entities.history_entry import HistoryEntry, MovementType
from src.stock_domain.domain.entities.stock_item import StockItem
from src.stock_domain.domain.repositories.ledger_repository import (
    ILedgerRepository,
    LedgerTransaction,
)
from src.stock_domain.domain.services.stock_domain_service import (
    ensure_sufficient_stock,
    require_fields,
    validate_initial_quantity,
    validate_movement_quantity,
    validate_price,
    validate_reason,
    validate_stock_id,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

EDITABLE_FIELDS = ("product_code", "sku", "description", "category", "price", "image")


class StockApplicationService:
    """
    Stock operations on top of a ledger repository.

    Every quantity change is a movement (withdraw or add) that writes the stock row and a history entry
    as one unit: inside a store transaction when the repository supports it, otherwise with a guarded
    write followed by compensation if the history append fails.
    """

    def __init__(self, ledger_repo: ILedgerRepository) -> None:
        """Initializes the StockApplicationService."""
        self.ledger_repo = ledger_repo

    # --- Movements ---

    def withdraw(self, stock_id: Any, quantity: Any, reason: Any, acting_user_id: Optional[str]) -> StockItem:
        """Decrements stock and records a 'withdraw' history entry. Returns the updated item."""
        request = StockMovementRequestDTO(
            stock_id=stock_id, quantity=quantity, reason=reason, acting_user_id=acting_user_id
        )
        return self.apply_movement(request, MovementType.WITHDRAW)

    def receive(self, stock_id: Any, quantity: Any, reason: Any, acting_user_id: Optional[str]) -> StockItem:
        """Increments stock and records an 'add' history entry. Returns the updated item."""
        request = StockMovementRequestDTO(
            stock_id=stock_id, quantity=quantity, reason=reason, acting_user_id=acting_user_id
        )
        return self.apply_movement(request, MovementType.ADD)

    def apply_movement(self, request: StockMovementRequestDTO, movement_type: MovementType) -> StockItem:
        logger.info(
            f"{movement_type.value.capitalize()} request: stock={request.stock_id!r}, quantity={request.quantity!r}, "
            f"reason={request.reason!r}, user={request.acting_user_id!r}"
        )
        try:
            stock_id = validate_stock_id(request.stock_id)

            def work(tx: LedgerTransaction) -> tuple[StockItem, HistoryEntry]:
                stock = self._load_stock(stock_id, tx=tx, for_update=True)
                updated, entry = self._prepare_movement(stock, request, movement_type)
                if not self.ledger_repo.save_stock(
                    updated, tx=tx, expected_quantity=stock.quantity, expected_updated_at=stock.updated_at
                ):
                    raise ConflictError(stock_id)
                try:
                    recorded = self.ledger_repo.append_history(entry, tx=tx)
                except DatabaseError as e:
                    if self.ledger_repo.supports_transactions:
                        raise
                    compensated = self._compensate(entry)
                    raise PersistenceFailureError(
                        f"Failed to record {movement_type.value} history for stock {stock_id}",
                        original_exception=e,
                        compensated=compensated,
                    ) from e
                return updated, recorded

            updated, recorded = self._run_in_transaction(stock_id, work)
        except PersistenceFailureError as e:
            logger.error(f"{movement_type.value.capitalize()} failed for stock {request.stock_id}: {e}")
            raise
        except StockOperationError as e:
            logger.warning(f"{movement_type.value.capitalize()} rejected ({e.kind.value}): {e.message}")
            raise

        logger.info(
            f"{movement_type.value.capitalize()} successful: stock={updated.id}, new quantity={updated.quantity}, "
            f"history id={recorded.id}"
        )
        return updated

    def _prepare_movement(
        self, stock: StockItem, request: StockMovementRequestDTO, movement_type: MovementType
    ) -> tuple[StockItem, HistoryEntry]:
        """Validates the request against the current stock and builds the two writes. Writes nothing."""
        amount = validate_movement_quantity(request.quantity, request.reason)
        reason = validate_reason(request.reason)
        require_fields({"user": request.acting_user_id})
        if movement_type is MovementType.WITHDRAW:
            ensure_sufficient_stock(stock, amount)

        now = utc_now()
        entry = HistoryEntry(
            stock_id=stock.id,
            quantity=amount,
            movement_type=movement_type,
            reason=reason,
            user_id=request.acting_user_id,
            created_at=now,
        )
        updated = dataclasses.replace(stock, quantity=stock.quantity + entry.delta, updated_at=now)
        return updated, entry

    def _compensate(self, entry: HistoryEntry) -> bool:
        """Reverts the quantity change of an entry whose history append failed."""
        try:
            if self.ledger_repo.adjust_quantity(entry.stock_id, -entry.delta):
                logger.warning(f"Compensated stock {entry.stock_id} by {-entry.delta} after failed history append")
                return True
            reason = "adjustment refused"
        except DatabaseError as e:
            reason = str(e)
        logger.critical(
            f"Compensation failed for stock {entry.stock_id}: quantity changed by {entry.delta} "
            f"without a history entry ({reason})"
        )
        return False

    def _run_in_transaction(self, stock_id: str, work: Callable[[LedgerTransaction], T]) -> T:
        """Runs work inside one ledger transaction, aborting on any failure."""
        try:
            tx = self.ledger_repo.begin_transaction()
        except DatabaseError as e:
            raise PersistenceFailureError(f"Could not start a transaction for stock {stock_id}", original_exception=e)

        try:
            result = work(tx)
            self.ledger_repo.commit(tx)
            return result
        except StockOperationError:
            self.ledger_repo.abort(tx)
            raise
        except DatabaseError as e:
            self.ledger_repo.abort(tx)
            raise PersistenceFailureError(f"Storage failure while updating stock {stock_id}", original_exception=e)
        except Exception:
            self.ledger_repo.abort(tx)
            raise

    def _load_stock(
        self, stock_id: str, tx: Optional[LedgerTransaction] = None, for_update: bool = False
    ) -> StockItem:
        stock = self.ledger_repo.get_stock(stock_id, tx=tx, for_update=for_update)
        if stock is None:
            raise StockNotFoundError(stock_id)
        return stock

    # --- History ---

    def list_history(self, history_filter: Optional[HistoryFilterDTO] = None) -> list[HistoryViewDTO]:
        """Retrieves history entries with stock and user summaries, newest first."""
        history_filter = dataclasses.replace(history_filter) if history_filter else HistoryFilterDTO()
        if history_filter.stock_id is not None:
            validate_stock_id(history_filter.stock_id)
        if history_filter.movement_type is not None:
            try:
                MovementType(history_filter.movement_type)
            except ValueError:
                raise InvalidValueError("movement_type", history_filter.movement_type, "must be 'withdraw' or 'add'")
        if history_filter.limit is None:
            history_filter.limit = settings.HISTORY_DEFAULT_LIMIT
        limit = history_filter.limit
        if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0):
            raise InvalidValueError("limit", limit, "must be a whole number greater than 0")

        try:
            history = self.ledger_repo.list_history(history_filter)
        except DatabaseError as e:
            raise PersistenceFailureError("Failed to fetch stock history", original_exception=e)
        logger.debug(f"Found {len(history)} history records")
        return history

    # --- Stock records ---

    def create_stock(
        self,
        product_code: Any,
        sku: Any,
        description: Any,
        quantity: Any,
        price: Any,
        category: Any,
        created_by: Optional[str],
        image: Optional[str] = None,
    ) -> StockItem:
        """Creates a stock item. The opening quantity is not a movement and records no history."""
        require_fields(
            {
                "product_code": product_code,
                "sku": sku,
                "description": description,
                "quantity": quantity,
                "price": price,
                "category": category,
                "created_by": created_by,
            }
        )
        now = utc_now()
        item = StockItem(
            id=generate_stock_id(),
            product_code=str(product_code).strip(),
            sku=str(sku).strip(),
            description=str(description),
            quantity=validate_initial_quantity(quantity),
            price=validate_price(price),
            category=str(category),
            created_by=created_by,
            image=image,
            created_at=now,
            updated_at=now,
        )
        try:
            self.ledger_repo.create_stock(item)
        except DatabaseError as e:
            raise PersistenceFailureError(f"Failed to create stock {item.product_code}", original_exception=e)
        logger.info(f"Created stock {item.id} ({item.product_code}) with quantity {item.quantity}")
        return item

    def get_stock(self, stock_id: Any) -> StockItem:
        stock_id = validate_stock_id(stock_id)
        try:
            return self._load_stock(stock_id)
        except DatabaseError as e:
            raise PersistenceFailureError(f"Failed to fetch stock {stock_id}", original_exception=e)

    def list_stocks(self) -> list[StockItem]:
        try:
            return self.ledger_repo.list_stocks()
        except DatabaseError as e:
            raise PersistenceFailureError("Failed to fetch stock items", original_exception=e)

    def update_stock_details(self, stock_id: Any, **changes: Any) -> StockItem:
        """
        Updates descriptive fields of a stock item.
        Quantity is not editable here; it only changes through withdraw/receive.
        """
        stock_id = validate_stock_id(stock_id)
        unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
        if unknown:
            raise InvalidValueError(unknown[0], changes[unknown[0]], "field cannot be updated")

        cleaned: dict[str, Any] = {}
        for field_name, value in changes.items():
            if field_name == "price":
                cleaned[field_name] = validate_price(value)
            elif field_name == "image":
                cleaned[field_name] = value
            else:
                require_fields({field_name: value})
                cleaned[field_name] = str(value).strip() if field_name in ("product_code", "sku") else str(value)

        def work(tx: LedgerTransaction) -> StockItem:
            stock = self._load_stock(stock_id, tx=tx, for_update=True)
            updated = dataclasses.replace(stock, updated_at=utc_now(), **cleaned)
            if not self.ledger_repo.save_stock(
                updated, tx=tx, expected_quantity=stock.quantity, expected_updated_at=stock.updated_at
            ):
                raise ConflictError(stock_id)
            return updated

        updated = self._run_in_transaction(stock_id, work)
        logger.info(f"Updated stock {stock_id}: {', '.join(sorted(cleaned)) or 'no changes'}")
        return updated

    def delete_stock(self, stock_id: Any) -> None:
        """Deletes a stock item. Its history entries are kept for audit."""
        stock_id = validate_stock_id(stock_id)
        try:
            deleted = self.ledger_repo.delete_stock(stock_id)
        except DatabaseError as e:
            raise PersistenceFailureError(f"Failed to delete stock {stock_id}", original_exception=e)
        if not deleted:
            raise StockNotFoundError(stock_id)
        logger.info(f"Deleted stock {stock_id}")
