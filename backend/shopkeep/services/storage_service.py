# Overview: Persistence collaborator; per-entity CRUD that reports success instead of raising.

"""
Entity storage boundary.

Every entity the point-of-sale core touches is reached through the same four
verbs: get_all, add, update, delete. Storage failures (SQLAlchemyError, or the
ValueError an append-only guard raises at flush) are rolled back, logged on
the application logger and reported as False/None. They never propagate past
this module.

Append-only entities (transactions, credit entries, price records) reject
update/delete here as well as at the ORM level.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import (
    APPEND_ONLY_MODELS,
    CreditTransaction,
    Customer,
    InventoryBatch,
    Product,
    PurchasePriceRecord,
    Supplier,
    Transaction,
)

M = TypeVar("M")


class EntityStore(Generic[M]):
    """CRUD verbs for one model class."""

    def __init__(self, model: type[M], *, order_by=None):
        self.model = model
        self.order_by = order_by

    @property
    def append_only(self) -> bool:
        return self.model in APPEND_ONLY_MODELS

    def _fail(self, action: str) -> bool:
        db.session.rollback()
        current_app.logger.exception("Failed to %s %s", action, self.model.__name__)
        return False

    def get_all(self) -> list[M]:
        try:
            query = db.session.query(self.model)
            if self.order_by is not None:
                query = query.order_by(*self.order_by)
            return query.all()
        except SQLAlchemyError:
            self._fail("load")
            return []

    def get(self, entity_id: int) -> M | None:
        try:
            return db.session.get(self.model, entity_id)
        except SQLAlchemyError:
            self._fail("load")
            return None

    def add(self, entity: M, *, commit: bool = True) -> bool:
        try:
            db.session.add(entity)
            if commit:
                db.session.commit()
            else:
                db.session.flush()
            return True
        except (SQLAlchemyError, ValueError):
            return self._fail("add")

    def update(self, entity: M, *, commit: bool = True) -> bool:
        if self.append_only:
            current_app.logger.warning("Refused update of append-only %s", self.model.__name__)
            return False
        try:
            db.session.merge(entity)
            if commit:
                db.session.commit()
            else:
                db.session.flush()
            return True
        except (SQLAlchemyError, ValueError):
            return self._fail("update")

    def delete(self, entity_id: int, *, commit: bool = True) -> bool:
        if self.append_only:
            current_app.logger.warning("Refused delete of append-only %s", self.model.__name__)
            return False
        try:
            entity = db.session.get(self.model, entity_id)
            if entity is None:
                return False
            db.session.delete(entity)
            if commit:
                db.session.commit()
            else:
                db.session.flush()
            return True
        except (SQLAlchemyError, ValueError):
            return self._fail("delete")


products = EntityStore(Product, order_by=(Product.name.asc(), Product.id.asc()))
customers = EntityStore(Customer, order_by=(Customer.name.asc(), Customer.id.asc()))
suppliers = EntityStore(Supplier, order_by=(Supplier.name.asc(), Supplier.id.asc()))
batches = EntityStore(InventoryBatch, order_by=(InventoryBatch.product_id.asc(), InventoryBatch.id.asc()))
transactions = EntityStore(Transaction, order_by=(Transaction.transaction_date.desc(), Transaction.id.desc()))
credit_transactions = EntityStore(
    CreditTransaction, order_by=(CreditTransaction.occurred_at.desc(), CreditTransaction.id.desc())
)
price_records = EntityStore(
    PurchasePriceRecord, order_by=(PurchasePriceRecord.purchase_date.desc(), PurchasePriceRecord.id.desc())
)
