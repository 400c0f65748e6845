# Overview: POS session object; owns the cart, the signed-in cashier and sale history.

"""
POS Session

A PosSession replaces process-wide "current user" and "current cart" state.
It is created when a cashier signs in (or for a guest checkout) and torn down
on sign-out. Everything the Cart & Sale Engine needs for one till is reached
through it.

LIFECYCLE:
- open_session(user)  -> fresh empty cart, empty history
- close_session(s)    -> cart cleared, user dropped, history dropped
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from ..models import Transaction, User
from shopkeep.time_utils import utcnow
from .cart_service import Cart
from .inventory_service import DeductionResult


class SessionClosedError(Exception):
    """Raised when a closed session is used for a sale."""
    pass


@dataclass
class PosSession:
    user: User | None = None
    cart: Cart = field(default_factory=Cart)
    # Most recent first
    transactions: list[Transaction] = field(default_factory=list)
    # Shortfalls reported by the last completed sale
    last_shortfalls: list[DeductionResult] = field(default_factory=list)
    opened_at: datetime = field(default_factory=utcnow)
    closed_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.closed_at is None

    @property
    def user_id(self) -> int | None:
        return self.user.id if self.user is not None else None

    def ensure_open(self) -> None:
        if not self.is_open:
            raise SessionClosedError("Session is closed")

    def record_transaction(self, transaction: Transaction) -> None:
        self.transactions.insert(0, transaction)


def open_session(user: User | None = None) -> PosSession:
    return PosSession(user=user)


def close_session(session: PosSession) -> None:
    session.cart.clear()
    session.transactions.clear()
    session.last_shortfalls = []
    session.user = None
    session.closed_at = utcnow()
