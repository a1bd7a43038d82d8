# src/stock_domain/infrastructure/persistence/mysql_ledger_repository.py
"""MySQL implementation of the ledger repository."""

import dataclasses
import logging
from datetime import datetime
from typing import Any, Optional

import mysql.connector
from mysql.connector import Error, errorcode
from mysql.connector.constants import ClientFlag

from src.common.config.settings import settings
from src.common.dtos.stock_dtos import (
    HistoryFilterDTO,
    HistoryViewDTO,
    StockSummaryDTO,
    UserSummaryDTO,
)
from src.common.exceptions.custom_exceptions import (
    ConflictError,
    DatabaseError,
    DuplicateStockError,
)
from src.common.utils.date_utils import ensure_utc, format_datetime_for_db, utc_now
from src.stock_domain.domain.entities.history_entry import HistoryEntry, MovementType
from src.stock_domain.domain.entities.stock_item import StockItem
from src.stock_domain.domain.repositories.ledger_repository import (
    ILedgerRepository,
    LedgerTransaction,
)

logger = logging.getLogger(__name__)

# MySQL reports these when two transactions fight over the same stock row
CONFLICT_ERRNOS = (errorcode.ER_LOCK_DEADLOCK, errorcode.ER_LOCK_WAIT_TIMEOUT)

STOCK_COLUMNS = (
    "id, product_code, sku, description, quantity, price, category, image, created_by, created_at, updated_at"
)


class MySQLLedgerRepository(ILedgerRepository):
    """MySQL (InnoDB) implementation of the ledger repository. Stock and history writes share one transaction."""

    def __init__(self) -> None:
        """Initializes the repository."""
        self._connection = None

    @property
    def supports_transactions(self) -> bool:
        return True

    def _connect(self):
        """Opens a new MySQL connection."""
        try:
            return mysql.connector.connect(
                host=settings.DB_HOST,
                database=settings.DB_DATABASE,
                user=settings.DB_USER,
                password=settings.DB_PASSWORD,
                autocommit=False,
                charset="utf8mb4",
                use_unicode=True,
                time_zone="+00:00",
                client_flags=[ClientFlag.FOUND_ROWS],  # rowcount = matched rows, not changed rows
            )
        except Error as e:
            raise DatabaseError(f"Failed to connect to MySQL: {e}", original_exception=e)

    def _get_connection(self):
        """Establishes or returns the shared connection used outside explicit transactions."""
        if not self._connection or not self._connection.is_connected():
            self._connection = self._connect()
        return self._connection

    def _translate_error(self, e: Error, message: str, stock_id: Optional[str] = None) -> Exception:
        if getattr(e, "errno", None) in CONFLICT_ERRNOS:
            detail = f" on stock {stock_id}" if stock_id else ""
            return ConflictError(stock_id, f"{message}: concurrent update{detail}", original_exception=e)
        return DatabaseError(f"{message}: {e}", original_exception=e)

    def create_tables(self) -> None:
        """Creates the stock, history and user tables with 'sl_' prefix."""
        create_stock_table_query = """
        CREATE TABLE IF NOT EXISTS sl_stock (
            id CHAR(24) PRIMARY KEY,
            product_code VARCHAR(255) NOT NULL,
            sku VARCHAR(255) NOT NULL,
            description TEXT NOT NULL,
            quantity INT NOT NULL,
            price DECIMAL(12, 2) NOT NULL,
            category VARCHAR(255) NOT NULL,
            image VARCHAR(512),
            created_by CHAR(24) NOT NULL,
            created_at DATETIME(6) NOT NULL,
            updated_at DATETIME(6) NOT NULL,
            UNIQUE KEY uk_product_code (product_code),
            CONSTRAINT chk_stock_quantity CHECK (quantity >= 0),
            CONSTRAINT chk_stock_price CHECK (price >= 0)
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;
        """
        # No foreign key to sl_stock: history outlives deleted stock items
        create_history_table_query = """
        CREATE TABLE IF NOT EXISTS sl_stock_history (
            id BIGINT UNSIGNED PRIMARY KEY AUTO_INCREMENT,
            stock_id CHAR(24) NOT NULL,
            quantity INT NOT NULL,
            movement_type ENUM('withdraw', 'add') NOT NULL,
            reason TEXT NOT NULL,
            user_id CHAR(24) NOT NULL,
            created_at DATETIME(6) NOT NULL,
            INDEX idx_user_created (user_id, created_at),
            INDEX idx_stock_created (stock_id, created_at)
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;
        """
        create_users_table_query = """
        CREATE TABLE IF NOT EXISTS sl_users (
            id CHAR(24) PRIMARY KEY,
            username VARCHAR(255) NOT NULL,
            name VARCHAR(255),
            email VARCHAR(255)
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;
        """
        conn = self._get_connection()
        cursor = None
        try:
            cursor = conn.cursor()
            cursor.execute(create_stock_table_query)
            cursor.execute(create_history_table_query)
            cursor.execute(create_users_table_query)
            conn.commit()
            logger.info("Stock ledger tables checked/created.")
        except Error as e:
            conn.rollback()
            raise DatabaseError(f"Error creating stock ledger tables: {e}", original_exception=e)
        finally:
            if cursor is not None:
                cursor.close()

    # --- Transactions ---

    def begin_transaction(self) -> LedgerTransaction:
        """Opens a dedicated connection so concurrent units of work do not share a session."""
        conn = self._connect()
        try:
            conn.start_transaction(isolation_level="REPEATABLE READ")
        except Error as e:
            conn.close()
            raise DatabaseError(f"Error starting transaction: {e}", original_exception=e)
        return LedgerTransaction(connection=conn)

    def commit(self, tx: LedgerTransaction) -> None:
        if not tx.active:
            raise DatabaseError("Transaction is no longer active")
        try:
            tx.connection.commit()
        except Error as e:
            raise self._translate_error(e, "Error committing transaction")
        finally:
            tx.active = False
            tx.connection.close()

    def abort(self, tx: LedgerTransaction) -> None:
        if not tx.active:
            return
        try:
            tx.connection.rollback()
        except Error as e:
            # The connection is discarded either way; the server drops uncommitted work with it.
            logger.warning(f"Rollback failed, closing connection: {e}")
        finally:
            tx.active = False
            tx.connection.close()

    # --- Stock ---

    def _row_to_stock(self, row: dict[str, Any]) -> StockItem:
        return StockItem(
            id=row["id"],
            product_code=row["product_code"],
            sku=row["sku"],
            description=row["description"],
            quantity=int(row["quantity"]),
            price=float(row["price"]),
            category=row["category"],
            image=row["image"],
            created_by=row["created_by"],
            created_at=ensure_utc(row["created_at"]),
            updated_at=ensure_utc(row["updated_at"]),
        )

    def get_stock(
        self, stock_id: str, tx: Optional[LedgerTransaction] = None, for_update: bool = False
    ) -> Optional[StockItem]:
        """Retrieves a stock item; with for_update inside a transaction the row stays locked until commit/abort."""
        conn = tx.connection if tx else self._get_connection()
        cursor = None
        query = f"SELECT {STOCK_COLUMNS} FROM sl_stock WHERE id = %s"
        if for_update and tx:
            query += " FOR UPDATE"
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(query, (stock_id,))
            row = cursor.fetchone()
            if tx is None:
                conn.commit()  # ends the read snapshot on the shared connection
        except Error as e:
            raise self._translate_error(e, f"Error fetching stock {stock_id}", stock_id)
        finally:
            if cursor is not None:
                cursor.close()
        return self._row_to_stock(row) if row else None

    def save_stock(
        self,
        item: StockItem,
        tx: Optional[LedgerTransaction] = None,
        expected_quantity: Optional[int] = None,
        expected_updated_at: Optional[datetime] = None,
    ) -> bool:
        """Updates a stock row, conditioned on the stored quantity and updated_at when expected values are given."""
        conn = tx.connection if tx else self._get_connection()
        cursor = None

        update_query = """
        UPDATE sl_stock
        SET product_code = %s, sku = %s, description = %s, quantity = %s, price = %s,
            category = %s, image = %s, updated_at = %s
        WHERE id = %s
        """
        params = [
            item.product_code,
            item.sku,
            item.description,
            item.quantity,
            item.price,
            item.category,
            item.image,
            format_datetime_for_db(item.updated_at or utc_now()),
            item.id,
        ]
        if expected_quantity is not None:
            update_query += " AND quantity = %s"
            params.append(expected_quantity)
        if expected_updated_at is not None:
            update_query += " AND updated_at = %s"
            params.append(format_datetime_for_db(expected_updated_at))

        try:
            cursor = conn.cursor()
            cursor.execute(update_query, tuple(params))
            updated = cursor.rowcount == 1
            if tx is None:
                conn.commit()
            return updated
        except Error as e:
            if tx is None:
                conn.rollback()
            if getattr(e, "errno", None) == errorcode.ER_DUP_ENTRY:
                raise DuplicateStockError(item.product_code, original_exception=e)
            raise self._translate_error(e, f"Error saving stock {item.id}", item.id)
        finally:
            if cursor is not None:
                cursor.close()

    def adjust_quantity(self, stock_id: str, delta: int, tx: Optional[LedgerTransaction] = None) -> bool:
        conn = tx.connection if tx else self._get_connection()
        cursor = None
        query = """
        UPDATE sl_stock
        SET quantity = quantity + %s, updated_at = %s
        WHERE id = %s AND quantity + %s >= 0
        """
        try:
            cursor = conn.cursor()
            cursor.execute(query, (delta, format_datetime_for_db(utc_now()), stock_id, delta))
            adjusted = cursor.rowcount == 1
            if tx is None:
                conn.commit()
            return adjusted
        except Error as e:
            if tx is None:
                conn.rollback()
            raise self._translate_error(e, f"Error adjusting quantity of stock {stock_id}", stock_id)
        finally:
            if cursor is not None:
                cursor.close()

    def create_stock(self, item: StockItem) -> StockItem:
        conn = self._get_connection()
        cursor = None
        insert_query = f"""
        INSERT INTO sl_stock ({STOCK_COLUMNS})
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """
        params = (
            item.id,
            item.product_code,
            item.sku,
            item.description,
            item.quantity,
            item.price,
            item.category,
            item.image,
            item.created_by,
            format_datetime_for_db(item.created_at),
            format_datetime_for_db(item.updated_at),
        )
        try:
            cursor = conn.cursor()
            cursor.execute(insert_query, params)
            conn.commit()
        except Error as e:
            conn.rollback()
            if getattr(e, "errno", None) == errorcode.ER_DUP_ENTRY:
                raise DuplicateStockError(item.product_code, original_exception=e)
            raise DatabaseError(f"Error creating stock {item.product_code}: {e}", original_exception=e)
        finally:
            if cursor is not None:
                cursor.close()
        return item

    def list_stocks(self) -> list[StockItem]:
        conn = self._get_connection()
        cursor = None
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(f"SELECT {STOCK_COLUMNS} FROM sl_stock ORDER BY created_at, id")
            rows = cursor.fetchall()
            conn.commit()
            return [self._row_to_stock(row) for row in rows]
        except Error as e:
            raise DatabaseError(f"Error fetching stock items: {e}", original_exception=e)
        finally:
            if cursor is not None:
                cursor.close()

    def delete_stock(self, stock_id: str) -> bool:
        conn = self._get_connection()
        cursor = None
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM sl_stock WHERE id = %s", (stock_id,))
            deleted = cursor.rowcount == 1
            conn.commit()
            return deleted
        except Error as e:
            conn.rollback()
            raise self._translate_error(e, f"Error deleting stock {stock_id}", stock_id)
        finally:
            if cursor is not None:
                cursor.close()

    # --- History ---

    def append_history(self, entry: HistoryEntry, tx: Optional[LedgerTransaction] = None) -> HistoryEntry:
        conn = tx.connection if tx else self._get_connection()
        cursor = None
        insert_query = """
        INSERT INTO sl_stock_history (stock_id, quantity, movement_type, reason, user_id, created_at)
        VALUES (%s, %s, %s, %s, %s, %s)
        """
        params = (
            entry.stock_id,
            entry.quantity,
            entry.movement_type.value,
            entry.reason,
            entry.user_id,
            format_datetime_for_db(entry.created_at),
        )
        try:
            cursor = conn.cursor()
            cursor.execute(insert_query, params)
            history_id = cursor.lastrowid
            if tx is None:
                conn.commit()
        except Error as e:
            if tx is None:
                conn.rollback()
            raise self._translate_error(e, f"Error appending history for stock {entry.stock_id}", entry.stock_id)
        finally:
            if cursor is not None:
                cursor.close()
        return dataclasses.replace(entry, id=history_id)

    def list_history(self, history_filter: Optional[HistoryFilterDTO] = None) -> list[HistoryViewDTO]:
        """Retrieves history newest first; stock and user columns are NULL when the referenced row is gone."""
        history_filter = history_filter or HistoryFilterDTO()
        conditions: list[str] = []
        params: list[Any] = []
        if history_filter.stock_id:
            conditions.append("h.stock_id = %s")
            params.append(history_filter.stock_id)
        if history_filter.user_id:
            conditions.append("h.user_id = %s")
            params.append(history_filter.user_id)
        if history_filter.movement_type:
            conditions.append("h.movement_type = %s")
            params.append(history_filter.movement_type)

        query = """
        SELECT h.id, h.stock_id, h.quantity, h.movement_type, h.reason, h.user_id, h.created_at,
               s.id AS s_id, s.sku AS s_sku, s.category AS s_category, s.quantity AS s_quantity,
               s.price AS s_price, s.image AS s_image,
               u.id AS u_id, u.username AS u_username, u.name AS u_name, u.email AS u_email
        FROM sl_stock_history h
        LEFT JOIN sl_stock s ON s.id = h.stock_id
        LEFT JOIN sl_users u ON u.id = h.user_id
        """
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY h.created_at DESC, h.id DESC"
        if history_filter.limit:
            query += " LIMIT %s"
            params.append(history_filter.limit)

        conn = self._get_connection()
        cursor = None
        try:
            cursor = conn.cursor(dictionary=True)
            cursor.execute(query, tuple(params))
            rows = cursor.fetchall()
            conn.commit()
        except Error as e:
            raise DatabaseError(f"Error fetching stock history: {e}", original_exception=e)
        finally:
            if cursor is not None:
                cursor.close()

        history: list[HistoryViewDTO] = []
        for row in rows:
            stock = None
            if row["s_id"] is not None:
                stock = StockSummaryDTO(
                    sku=row["s_sku"],
                    category=row["s_category"],
                    quantity=int(row["s_quantity"]),
                    price=float(row["s_price"]),
                    image=row["s_image"],
                )
            user = None
            if row["u_id"] is not None:
                user = UserSummaryDTO(username=row["u_username"], name=row["u_name"], email=row["u_email"])
            history.append(
                HistoryViewDTO(
                    id=int(row["id"]),
                    stock_id=row["stock_id"],
                    quantity=int(row["quantity"]),
                    movement_type=MovementType(row["movement_type"]).value,
                    reason=row["reason"],
                    user_id=row["user_id"],
                    created_at=ensure_utc(row["created_at"]),
                    stock=stock,
                    user=user,
                )
            )
        return history

    def __del__(self) -> None:
        """Closes the database connection when the object is destroyed."""
        if self._connection and self._connection.is_connected():
            self._connection.close()
