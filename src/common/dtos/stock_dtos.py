"""Data Transfer Objects for stock movements and history views."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional


@dataclass
class StockMovementRequestDTO:
    """Loosely-typed movement request as received from the transport layer, validated by the service."""

    stock_id: Any
    quantity: Any = None
    reason: Any = None
    acting_user_id: Optional[str] = None


@dataclass
class StockSummaryDTO:
    """Stock fields shown next to a history entry."""

    sku: str
    category: str
    quantity: int
    price: float
    image: Optional[str] = None


@dataclass
class UserSummaryDTO:
    """User fields shown next to a history entry."""

    username: str
    name: Optional[str] = None
    email: Optional[str] = None


@dataclass
class HistoryViewDTO:
    """A history entry joined with its stock and user reference data (None when the reference is gone)."""

    id: int
    stock_id: str
    quantity: int
    movement_type: str  # "withdraw" | "add"
    reason: str
    user_id: str
    created_at: datetime
    stock: Optional[StockSummaryDTO] = None
    user: Optional[UserSummaryDTO] = None


@dataclass
class HistoryFilterDTO:
    """Optional narrowing of a history query. Empty filter means all entries."""

    stock_id: Optional[str] = None
    user_id: Optional[str] = None
    movement_type: Optional[str] = None
    limit: Optional[int] = None
