from __future__ import annotations

from ..extensions import db
from eventstock.time_utils import to_utc_z

TRANSACTION_TYPES = ("SALE", "GIFT")
PAYMENT_METHODS = ("CASH", "CARD")


class Transaction(db.Model):
    """
    Ledger record of one stock movement out of a pool.

    INVARIANTS:
    - quantity > 0; amount_cents >= 0 and == 0 for GIFT
    - payment_method is set iff type == 'SALE'
    - created_at is immutable
    - every row is backed by a debit of `quantity` on its pool (variant if
      variant_id is set, else product); edits and deletes must reconcile it

    sale_group_id links the rows written by one cart checkout.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_transactions_quantity_positive"),
        db.CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_non_negative"),
        db.CheckConstraint("type IN ('SALE', 'GIFT')", name="ck_transactions_type"),
        db.CheckConstraint(
            "(type = 'SALE' AND payment_method IN ('CASH', 'CARD')) "
            "OR (type = 'GIFT' AND payment_method IS NULL AND amount_cents = 0)",
            name="ck_transactions_payment_matches_type",
        ),
        db.Index("ix_transactions_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True, index=True)

    type = db.Column(db.String(8), nullable=False, index=True)
    payment_method = db.Column(db.String(8), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False, default=0)

    comment = db.Column(db.String(255), nullable=True)
    sale_group_id = db.Column(db.String(36), nullable=True, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", back_populates="transactions")
    variant = db.relationship("ProductVariant", back_populates="transactions")

    def __repr__(self) -> str:
        return (
            f"<Transaction id={self.id} type={self.type} product_id={self.product_id} "
            f"variant_id={self.variant_id} quantity={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "type": self.type,
            "payment_method": self.payment_method,
            "quantity": self.quantity,
            "amount_cents": self.amount_cents,
            "comment": self.comment,
            "sale_group_id": self.sale_group_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
