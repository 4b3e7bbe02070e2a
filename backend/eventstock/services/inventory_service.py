# Overview: Inventory administration; restocks and variant allocation.

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Product, ProductVariant, Transaction
from ..validation import BulkVariantInput, NotFoundError, RestockInput, VariantInput
from .access_service import AccessContext, require_admin
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .stock_service import AllocationExceededError, StockPool, allocatable_remaining, credit

logger = logging.getLogger(__name__)


def _get_product(product_id: int) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def _get_variant(variant_id: int) -> ProductVariant:
    variant = lock_for_update(db.session.query(ProductVariant).filter_by(id=variant_id)).first()
    if variant is None:
        raise NotFoundError("Variant not found")
    return variant


def restock(ctx: AccessContext, product_id: int, data: RestockInput) -> Product:
    """Add units to a product's own stock (its direct pool, or its variant ceiling)."""
    require_admin(ctx)

    def _op():
        begin_write_transaction()
        product = _get_product(product_id)
        credit(StockPool.direct(product.id), data.quantity)
        db.session.commit()
        logger.info("Restocked product %s by %d", product_id, data.quantity)
        return product

    return run_with_retry(_op)


def restock_variant(ctx: AccessContext, variant_id: int, data: RestockInput) -> ProductVariant:
    """
    Add units to a variant.

    The parent ceiling grows by the same quantity, so the new units do not
    eat into the headroom left for other variants.
    """
    require_admin(ctx)

    def _op():
        begin_write_transaction()
        variant = _get_variant(variant_id)
        credit(StockPool.allocated(variant.id), data.quantity)
        credit(StockPool.direct(variant.product_id), data.quantity)
        db.session.commit()
        logger.info("Restocked variant %s by %d", variant_id, data.quantity)
        return variant

    return run_with_retry(_op)


def _check_allocation(product_id: int, requested: int) -> int:
    try:
        remaining = allocatable_remaining(product_id, lock=True)
    except ValueError:
        raise NotFoundError("Product not found")

    if requested > remaining:
        raise AllocationExceededError(
            "Variant stock exceeds the product's unallocated stock",
            details={
                "product_id": product_id,
                "requested_quantity": requested,
                "remaining": remaining,
            },
        )
    return remaining


def _new_variant(product_id: int, data: VariantInput) -> ProductVariant:
    variant = ProductVariant(
        product_id=product_id,
        size=data.size,
        color=data.color,
        sku=data.sku,
        stock=data.stock,
    )
    db.session.add(variant)
    return variant


def create_variant(ctx: AccessContext, product_id: int, data: VariantInput) -> ProductVariant:
    """
    Carve a variant out of the product's unallocated stock.

    Raises AllocationExceededError when data.stock is larger than what the
    existing variants leave free.
    """
    require_admin(ctx)

    def _op():
        begin_write_transaction()
        _check_allocation(product_id, data.stock)
        variant = _new_variant(product_id, data)
        db.session.commit()
        logger.info("Created variant %s of product %s (stock=%d)", variant.id, product_id, data.stock)
        return variant

    return run_with_retry(_op)


def create_variants_bulk(ctx: AccessContext, product_id: int, data: BulkVariantInput) -> list[ProductVariant]:
    """Create a whole size x color matrix at once; all or nothing."""
    require_admin(ctx)

    def _op():
        begin_write_transaction()
        _check_allocation(product_id, sum(v.stock for v in data.variants))
        variants = [_new_variant(product_id, v) for v in data.variants]
        db.session.commit()
        logger.info("Created %d variants of product %s", len(variants), product_id)
        return variants

    return run_with_retry(_op)


def delete_variant(ctx: AccessContext, variant_id: int) -> int:
    """
    Delete a variant and its transactions.

    Stock is not credited anywhere: the variant's units leave with it and the
    parent ceiling is unchanged. Returns the number of transactions removed.
    """
    require_admin(ctx)

    def _op():
        begin_write_transaction()
        variant = _get_variant(variant_id)
        removed = (
            db.session.query(Transaction)
            .filter(Transaction.variant_id == variant.id)
            .delete(synchronize_session=False)
        )
        db.session.delete(variant)
        db.session.commit()
        logger.info("Deleted variant %s and %d transactions", variant_id, removed)
        return removed

    return run_with_retry(_op)
