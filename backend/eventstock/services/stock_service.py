# Overview: Stock ledger; atomic debit/credit of product and variant pools.

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func, update

from ..extensions import db
from ..models import Product, ProductVariant
from .concurrency import expire_cached, lock_for_update

"""
Stock Ledger Invariants (authoritative)

Pools:
- A pool is the counter an operation debits or credits: a Product's own
  `stock` (DIRECT) or one Variant's `stock` (ALLOCATED).
- An operation targets the variant pool iff it carries a variant_id.

Business invariants:
- stock >= 0 at all times. debit() is a conditional UPDATE
  (... WHERE stock >= quantity); zero affected rows means insufficient stock,
  and nothing was written. There is no read-then-write path.
- credit() has no upper bound.
- Neither function commits: the caller owns the transaction and pairs every
  debit with its Transaction row (see transaction_service / checkout_service).

Allocation:
- Variant stock is carved out of Product.stock at variant creation:
  sum(variant.stock) <= product.stock is checked there, not continuously.
"""

logger = logging.getLogger(__name__)

DIRECT = "DIRECT"
ALLOCATED = "ALLOCATED"


class StockError(Exception):
    """Base for stock business-rule violations."""

    code = "STOCK_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientStockError(StockError):
    code = "INSUFFICIENT_STOCK"


class AllocationExceededError(StockError):
    code = "ALLOCATION_EXCEEDED"


@dataclass(frozen=True)
class StockPool:
    kind: str
    ref_id: int

    @classmethod
    def direct(cls, product_id: int) -> "StockPool":
        return cls(DIRECT, product_id)

    @classmethod
    def allocated(cls, variant_id: int) -> "StockPool":
        return cls(ALLOCATED, variant_id)

    @property
    def model(self):
        return ProductVariant if self.kind == ALLOCATED else Product

    def to_dict(self) -> dict:
        key = "variant_id" if self.kind == ALLOCATED else "product_id"
        return {"pool": self.kind, key: self.ref_id}


def resolve_pool(product_id: int, variant_id: int | None = None) -> StockPool:
    if variant_id is not None:
        return StockPool.allocated(variant_id)
    return StockPool.direct(product_id)


def get_pool_stock(pool: StockPool, *, lock: bool = False) -> int:
    model = pool.model
    query = db.session.query(model.stock).filter(model.id == pool.ref_id)
    if lock:
        query = lock_for_update(query)
    row = query.first()
    if row is None:
        raise ValueError(f"{pool.kind.lower()} pool {pool.ref_id} not found")
    return int(row.stock)


def _check_quantity(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValueError("quantity must be a positive integer")


def _apply_delta(pool: StockPool, delta: int, *, require_available: int | None = None) -> int:
    model = pool.model
    values = {
        "stock": model.stock + delta,
        "version_id": model.version_id + 1,
    }
    if model is Product:
        values["updated_at"] = func.now()

    stmt = update(model).where(model.id == pool.ref_id)
    if require_available is not None:
        stmt = stmt.where(model.stock >= require_available)
    stmt = stmt.values(**values).execution_options(synchronize_session=False)

    result = db.session.execute(stmt)
    expire_cached(model, pool.ref_id)
    return result.rowcount


def debit(pool: StockPool, quantity: int) -> None:
    """
    Decrease pool stock by `quantity`, atomically refusing to go below zero.

    Raises InsufficientStockError (nothing written) or ValueError for a
    missing pool.
    """
    _check_quantity(quantity)

    if _apply_delta(pool, -quantity, require_available=quantity) == 1:
        logger.info("Debited %s %s by %d", pool.kind, pool.ref_id, quantity)
        return

    # Zero rows: either the pool is gone or it holds less than requested
    on_hand = get_pool_stock(pool)
    raise InsufficientStockError(
        "Insufficient stock",
        details={**pool.to_dict(), "requested_quantity": quantity, "on_hand": on_hand},
    )


def credit(pool: StockPool, quantity: int) -> None:
    """Increase pool stock by `quantity`. Raises ValueError for a missing pool."""
    _check_quantity(quantity)

    if _apply_delta(pool, quantity) != 1:
        raise ValueError(f"{pool.kind.lower()} pool {pool.ref_id} not found")
    logger.info("Credited %s %s by %d", pool.kind, pool.ref_id, quantity)


def adjust(pool: StockPool, delta: int) -> None:
    """Apply a signed delta: positive credits, negative debits, zero is a no-op."""
    if delta > 0:
        credit(pool, delta)
    elif delta < 0:
        debit(pool, -delta)


def allocatable_remaining(product_id: int, *, lock: bool = False) -> int:
    """Product ceiling minus what its variants already hold."""
    query = db.session.query(Product.stock).filter(Product.id == product_id)
    if lock:
        query = lock_for_update(query)
    row = query.first()
    if row is None:
        raise ValueError("product not found")

    allocated = db.session.query(
        func.coalesce(func.sum(ProductVariant.stock), 0)
    ).filter(ProductVariant.product_id == product_id).scalar()

    return int(row.stock) - int(allocated or 0)
