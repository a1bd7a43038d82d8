# tests/conftest.py
import dataclasses
from datetime import datetime
from unittest.mock import Mock

import pytest
import pytz

from src.common.config.settings import settings
from src.common.dtos.stock_dtos import UserSummaryDTO
from src.stock_domain.application.stock_service import StockApplicationService
from src.stock_domain.domain.entities.stock_item import StockItem
from src.stock_domain.domain.repositories.ledger_repository import LedgerTransaction
from src.stock_domain.infrastructure.persistence.in_memory_ledger_repository import InMemoryLedgerRepository
from src.stock_domain.infrastructure.persistence.mysql_ledger_repository import MySQLLedgerRepository

STOCK_ID = "64b7f0c2a1b2c3d4e5f6a7b8"
USER_ID = "64b7f0c2a1b2c3d4e5f60001"


@pytest.fixture(autouse=True)
def mock_settings_history_limit(mocker) -> None:
    """Keeps history queries unbounded regardless of the local environment."""
    mocker.patch.object(settings, "HISTORY_DEFAULT_LIMIT", None)


@pytest.fixture
def sample_stock_item() -> StockItem:
    """Sample StockItem with 10 units on hand."""
    created = datetime(2024, 3, 1, 9, 0, 0, tzinfo=pytz.utc)
    return StockItem(
        id=STOCK_ID,
        product_code="PC-1001",
        sku="SKU-RED-M",
        description="Red T-shirt, size M",
        quantity=10,
        price=12.5,
        category="apparel",
        created_by=USER_ID,
        image="/uploads/red-tshirt.png",
        created_at=created,
        updated_at=created,
    )


@pytest.fixture
def mock_transaction() -> LedgerTransaction:
    return LedgerTransaction(connection=Mock())


@pytest.fixture
def mock_ledger_repository(mock_transaction) -> Mock:
    """Mock for MySQLLedgerRepository behaving like a transactional store."""
    # We specify the actual class for a more accurate mock spec
    repo = Mock(spec=MySQLLedgerRepository)
    repo.supports_transactions = True
    repo.begin_transaction.return_value = mock_transaction
    repo.save_stock.return_value = True
    repo.append_history.side_effect = lambda entry, tx=None: dataclasses.replace(entry, id=1)
    return repo


@pytest.fixture
def stock_service(mock_ledger_repository) -> StockApplicationService:
    """Instance of StockApplicationService with a mocked repository."""
    return StockApplicationService(ledger_repo=mock_ledger_repository)


@pytest.fixture
def in_memory_ledger() -> InMemoryLedgerRepository:
    ledger = InMemoryLedgerRepository()
    ledger.register_user(USER_ID, UserSummaryDTO(username="somchai", name="Somchai P.", email="somchai@example.com"))
    return ledger


@pytest.fixture
def memory_stock_service(in_memory_ledger) -> StockApplicationService:
    """Service over the in-memory ledger (compensating strategy)."""
    return StockApplicationService(ledger_repo=in_memory_ledger)


@pytest.fixture
def stored_stock_item(in_memory_ledger, sample_stock_item) -> StockItem:
    """sample_stock_item persisted in the in-memory ledger."""
    return in_memory_ledger.create_stock(sample_stock_item)
