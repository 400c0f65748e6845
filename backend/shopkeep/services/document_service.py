# Overview: Service-layer operations for document numbers; human-readable identifiers.

"""
Document number allocation.

FORMATS:
- Transaction: TXN-<YYYYMMDD>-<4 random>     e.g. TXN-20261018-7QXA
- Batch:       BATCH-<epoch millis>-<4 random> e.g. BATCH-1760745600123-K3ZQ
- SKU:         SKU-<epoch millis>-<4 random>

Numbers are opaque apart from the prefix. Uniqueness is checked against the
table before the number is handed out; the unique constraint on each column
is the final guard.
"""

from __future__ import annotations

import secrets
import string
from datetime import datetime

from ..extensions import db
from ..models import InventoryBatch, Product, Transaction
from shopkeep.time_utils import utcnow

SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
SUFFIX_LENGTH = 4
MAX_ATTEMPTS = 10


class DocumentSequenceError(Exception):
    """Raised when no free document number could be allocated."""
    pass


def _random_suffix() -> str:
    return "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))


def _epoch_millis(now: datetime) -> int:
    return int((now - datetime(1970, 1, 1)).total_seconds() * 1000)


def _allocate(build, column) -> str:
    for _ in range(MAX_ATTEMPTS):
        candidate = build()
        taken = db.session.query(column).filter(column == candidate).first()
        if taken is None:
            return candidate
    raise DocumentSequenceError(f"could not allocate a unique {column.key}")


def next_transaction_number(now: datetime | None = None) -> str:
    now = now or utcnow()
    date_part = now.strftime("%Y%m%d")
    return _allocate(
        lambda: f"TXN-{date_part}-{_random_suffix()}",
        Transaction.transaction_number,
    )


def next_batch_number(now: datetime | None = None) -> str:
    now = now or utcnow()
    millis = _epoch_millis(now)
    return _allocate(
        lambda: f"BATCH-{millis}-{_random_suffix()}",
        InventoryBatch.batch_number,
    )


def next_sku(now: datetime | None = None) -> str:
    now = now or utcnow()
    millis = _epoch_millis(now)
    return _allocate(lambda: f"SKU-{millis}-{_random_suffix()}", Product.sku)
