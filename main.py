# main.py
"""Operator entry point for the stock ledger: schema bootstrap, stock movements and history."""

import argparse
import logging
import sys

from rich.console import Console
from rich.table import Table

from src.common.config.settings import settings
from src.common.dtos.stock_dtos import HistoryFilterDTO
from src.common.exceptions.custom_exceptions import ApplicationError, DatabaseError, StockOperationError
from src.common.logger_config import setup_logging
from src.stock_domain.application.stock_service import StockApplicationService
from src.stock_domain.domain.entities.stock_item import StockItem
from src.stock_domain.domain.repositories.ledger_repository import ILedgerRepository
from src.stock_domain.infrastructure.persistence.in_memory_ledger_repository import InMemoryLedgerRepository
from src.stock_domain.infrastructure.persistence.mysql_ledger_repository import MySQLLedgerRepository

logger = logging.getLogger(__name__)
console = Console()


def create_ledger_repository() -> ILedgerRepository:
    """Builds the ledger repository selected by LEDGER_BACKEND."""
    backend = settings.LEDGER_BACKEND.lower()
    if backend == "mysql":
        return MySQLLedgerRepository()
    if backend == "memory":
        logger.warning("Using the in-memory ledger: data is lost when the process exits.")
        return InMemoryLedgerRepository()
    raise ApplicationError(f"Unknown LEDGER_BACKEND {settings.LEDGER_BACKEND!r} (expected 'mysql' or 'memory')")


def setup_stock_dependencies() -> tuple[StockApplicationService, ILedgerRepository]:
    """Initializes and wires up stock domain dependencies."""
    ledger_repository = create_ledger_repository()
    stock_service = StockApplicationService(ledger_repo=ledger_repository)
    return stock_service, ledger_repository


def create_stock_db_tables(ledger_repository: ILedgerRepository) -> None:
    """Creates tables for the stock domain when the backend has a schema."""
    if not isinstance(ledger_repository, MySQLLedgerRepository):
        return
    try:
        ledger_repository.create_tables()
        logger.info("✅ Database tables created/verified successfully")
    except DatabaseError as e:
        logger.error(f"❌ Error creating stock ledger tables: {e}")
        raise


def print_stock_items(items: list[StockItem]) -> None:
    table = Table(title="Stock items")
    for column in ("ID", "Product code", "SKU", "Category", "Quantity", "Price"):
        table.add_column(column)
    for item in items:
        table.add_row(item.id, item.product_code, item.sku, item.category, str(item.quantity), f"{item.price:.2f}")
    console.print(table)


def print_history(stock_service: StockApplicationService, history_filter: HistoryFilterDTO) -> None:
    history = stock_service.list_history(history_filter)
    table = Table(title=f"Stock history ({len(history)} records)")
    for column in ("When", "Type", "Qty", "Stock", "User", "Reason"):
        table.add_column(column)
    for entry in history:
        table.add_row(
            entry.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            entry.movement_type,
            str(entry.quantity),
            entry.stock.sku if entry.stock else f"{entry.stock_id} (deleted)",
            entry.user.username if entry.user else entry.user_id,
            entry.reason,
        )
    console.print(table)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Stock ledger operations")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create the ledger tables")
    subparsers.add_parser("list", help="List stock items")

    create_parser = subparsers.add_parser("create", help="Create a stock item")
    create_parser.add_argument("--product-code", required=True)
    create_parser.add_argument("--sku", required=True)
    create_parser.add_argument("--description", required=True)
    create_parser.add_argument("--category", required=True)
    create_parser.add_argument("--quantity", required=True)
    create_parser.add_argument("--price", required=True)
    create_parser.add_argument("--image")
    create_parser.add_argument("--user", required=True, help="Id of the acting user")

    for name, help_text in (("withdraw", "Withdraw stock"), ("receive", "Receive stock")):
        movement_parser = subparsers.add_parser(name, help=help_text)
        movement_parser.add_argument("stock_id")
        movement_parser.add_argument("quantity")
        movement_parser.add_argument("reason")
        movement_parser.add_argument("--user", required=True, help="Id of the acting user")

    history_parser = subparsers.add_parser("history", help="Show stock history, newest first")
    history_parser.add_argument("--stock-id")
    history_parser.add_argument("--user-id")
    history_parser.add_argument("--type", choices=("withdraw", "add"))
    history_parser.add_argument("--limit", type=int)
    return parser


def run(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        stock_service, ledger_repository = setup_stock_dependencies()
        if args.command == "init-db":
            create_stock_db_tables(ledger_repository)
        elif args.command == "list":
            print_stock_items(stock_service.list_stocks())
        elif args.command == "create":
            item = stock_service.create_stock(
                product_code=args.product_code,
                sku=args.sku,
                description=args.description,
                quantity=args.quantity,
                price=args.price,
                category=args.category,
                created_by=args.user,
                image=args.image,
            )
            print_stock_items([item])
        elif args.command in ("withdraw", "receive"):
            movement = stock_service.withdraw if args.command == "withdraw" else stock_service.receive
            item = movement(args.stock_id, args.quantity, args.reason, args.user)
            print_stock_items([item])
        elif args.command == "history":
            print_history(
                stock_service,
                HistoryFilterDTO(
                    stock_id=args.stock_id, user_id=args.user_id, movement_type=args.type, limit=args.limit
                ),
            )
    except StockOperationError as e:
        logger.error(f"{e.kind.value}: {e}")
        return 1
    except ApplicationError as e:
        logger.error(f"An error occurred: {e}")
        return 2
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(run())
