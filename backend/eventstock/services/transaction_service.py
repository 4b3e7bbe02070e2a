# Overview: Transaction engine; records, edits and deletes sales and gifts against the stock ledger.

from __future__ import annotations

import logging

from sqlalchemy import select

from ..extensions import db
from ..models import Product, ProductVariant, Project, Transaction
from ..validation import NotFoundError, TransactionInput, TransactionUpdate, ValidationError
from eventstock.time_utils import utcnow
from .access_service import AccessContext, UnauthorizedError, require_admin, require_project_access
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .stock_service import StockPool, adjust, credit, debit, resolve_pool

"""
Transaction Engine Invariants (authoritative)

- One sale/gift = one debit of `quantity` on one pool + one Transaction row,
  committed together or not at all.
- Edits move the pool by (old quantity - new quantity) on the SAME pool; the
  target (product / variant) of a transaction never changes.
- Deletes credit the pool by the row's quantity, then remove the row.
- Clear history deletes rows WITHOUT touching stock (point-in-time reset).
- The caller's project access is checked before any stock is read.
"""

logger = logging.getLogger(__name__)


def _not_found_or_unauthorized(ctx: AccessContext, message: str) -> Exception:
    # Non-admins must not learn whether a row exists outside their projects
    if ctx.is_admin:
        return NotFoundError(message)
    return UnauthorizedError()


def resolve_target(ctx: AccessContext, product_id: int, variant_id: int | None) -> tuple[Product, StockPool]:
    """
    Authorize and resolve the pool a sale or gift draws from.

    Products that have variants can only be sold through a variant; their
    own stock is the allocation ceiling, not a sellable pool.
    """
    product = db.session.query(Product).filter_by(id=product_id).first()
    if product is None:
        raise _not_found_or_unauthorized(ctx, "Product not found")

    require_project_access(ctx, product.project_id)

    if variant_id is not None:
        variant = db.session.query(ProductVariant.id).filter_by(id=variant_id, product_id=product_id).first()
        if variant is None:
            raise ValidationError(
                "Variant does not belong to product",
                {"variant_id": ["does not belong to product"]},
            )
    else:
        has_variants = db.session.query(ProductVariant.id).filter_by(product_id=product_id).first() is not None
        if has_variants:
            raise ValidationError(
                "variant_id is required for products with variants",
                {"variant_id": ["required for products with variants"]},
            )

    return product, resolve_pool(product_id, variant_id)


def apply_transaction(
    ctx: AccessContext,
    data: TransactionInput,
    *,
    sale_group_id: str | None = None,
) -> Transaction:
    """Debit + insert without commit. Caller owns the transaction."""
    _, pool = resolve_target(ctx, data.product_id, data.variant_id)

    debit(pool, data.quantity)

    tx = Transaction(
        product_id=data.product_id,
        variant_id=data.variant_id,
        type=data.type,
        payment_method=data.payment_method,
        quantity=data.quantity,
        amount_cents=data.amount_cents,
        comment=data.comment,
        sale_group_id=sale_group_id,
        created_by_user_id=ctx.user_id,
        created_at=utcnow(),
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def record_transaction(ctx: AccessContext, data: TransactionInput) -> Transaction:
    """
    Record one sale or gift.

    On success exactly one Transaction exists and the pool dropped by
    data.quantity. On any failure nothing changed.
    """
    def _op():
        begin_write_transaction()
        tx = apply_transaction(ctx, data)
        db.session.commit()
        logger.info(
            "Recorded %s transaction %s: product=%s variant=%s qty=%d",
            tx.type, tx.id, tx.product_id, tx.variant_id, tx.quantity,
        )
        return tx

    return run_with_retry(_op)


def _load_transaction(ctx: AccessContext, transaction_id: int) -> Transaction:
    tx = lock_for_update(db.session.query(Transaction).filter_by(id=transaction_id)).first()
    if tx is None:
        raise _not_found_or_unauthorized(ctx, "Transaction not found")

    project_id = db.session.query(Product.project_id).filter_by(id=tx.product_id).scalar()
    require_project_access(ctx, project_id)
    return tx


def update_transaction(ctx: AccessContext, transaction_id: int, patch: TransactionUpdate) -> Transaction:
    """
    Edit a transaction and reconcile its pool.

    - quantity change: the pool moves by (old - new); growing past the
      available stock raises InsufficientStockError and nothing is updated
    - SALE -> GIFT: amount becomes 0, payment method is cleared; a gift
      patch carrying a payment method or a non-zero amount is rejected
    - GIFT -> SALE: payment_method and amount_cents must be supplied
    """
    def _op():
        begin_write_transaction()
        tx = _load_transaction(ctx, transaction_id)

        new_type = patch.type or tx.type
        new_quantity = patch.quantity if patch.quantity is not None else tx.quantity

        if new_type == "GIFT":
            field_errors = {}
            if patch.payment_method is not None:
                field_errors["payment_method"] = ["not allowed for GIFT"]
            if patch.amount_cents:
                field_errors["amount_cents"] = ["must be 0 for GIFT"]
            if field_errors:
                raise ValidationError("A gift has no payment method or amount", field_errors)
            new_payment = None
            new_amount = 0
        else:
            if tx.type == "GIFT" and (patch.payment_method is None or patch.amount_cents is None):
                raise ValidationError(
                    "payment_method and amount_cents are required to turn a gift into a sale",
                    {
                        "payment_method": ["required for SALE"],
                        "amount_cents": ["required for SALE"],
                    },
                )
            new_payment = patch.payment_method or tx.payment_method
            new_amount = patch.amount_cents if patch.amount_cents is not None else tx.amount_cents

        pool = resolve_pool(tx.product_id, tx.variant_id)
        adjust(pool, tx.quantity - new_quantity)

        tx.type = new_type
        tx.quantity = new_quantity
        tx.payment_method = new_payment
        tx.amount_cents = new_amount
        if patch.clear_comment:
            tx.comment = None
        elif patch.comment is not None:
            tx.comment = patch.comment

        db.session.commit()
        logger.info("Updated transaction %s: type=%s qty=%d", tx.id, tx.type, tx.quantity)
        return tx

    return run_with_retry(_op)


def delete_transaction(ctx: AccessContext, transaction_id: int) -> None:
    """Restore the pool by the row's quantity, then delete the row."""
    def _op():
        begin_write_transaction()
        tx = _load_transaction(ctx, transaction_id)

        credit(resolve_pool(tx.product_id, tx.variant_id), tx.quantity)
        db.session.delete(tx)

        db.session.commit()
        logger.info("Deleted transaction %s, restored %d units", transaction_id, tx.quantity)

    run_with_retry(_op)


def clear_history(ctx: AccessContext, project_id: int) -> int:
    """
    Delete every transaction of a project WITHOUT restoring stock.

    This is a point-in-time reset of the history: current stock levels are
    kept as they are. It is irreversible. Returns the number of rows removed.
    """
    require_admin(ctx)

    def _op():
        project = db.session.query(Project.id).filter_by(id=project_id).first()
        if project is None:
            raise NotFoundError("Project not found")

        product_ids = select(Product.id).where(Product.project_id == project_id)
        deleted = (
            db.session.query(Transaction)
            .filter(Transaction.product_id.in_(product_ids))
            .delete(synchronize_session=False)
        )
        db.session.commit()
        logger.warning("Cleared %d transactions of project %s without stock restore", deleted, project_id)
        return deleted

    return run_with_retry(_op)
