"""Stock history entity."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class MovementType(str, Enum):
    WITHDRAW = "withdraw"
    ADD = "add"


@dataclass(frozen=True)  # History is append-only
class HistoryEntry:
    """Immutable audit record of one quantity change on a stock item."""

    stock_id: str
    quantity: int  # magnitude as requested; direction comes from movement_type
    movement_type: MovementType
    reason: str
    user_id: str
    created_at: datetime
    id: Optional[int] = None  # Assigned by the store on append

    @property
    def delta(self) -> int:
        """Signed change applied to the stock quantity."""
        if self.movement_type is MovementType.WITHDRAW:
            return -self.quantity
        return self.quantity
