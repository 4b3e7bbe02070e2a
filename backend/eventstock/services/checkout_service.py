# Overview: Cart checkout; all-or-nothing multi-line sale against the stock ledger.

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from ..extensions import db
from ..models import Transaction
from ..validation import CheckoutInput, NotFoundError, ValidationError
from eventstock.time_utils import utcnow
from .access_service import AccessContext
from .concurrency import begin_write_transaction, run_with_retry
from .stock_service import InsufficientStockError, StockPool, debit, get_pool_stock
from .transaction_service import resolve_target

logger = logging.getLogger(__name__)


class CheckoutFailedError(Exception):
    """A cart line could not be honored; nothing was written."""

    code = "CHECKOUT_FAILED"

    def __init__(self, message: str, *, failed_line: int, reason: str, details: dict | None = None):
        super().__init__(message)
        self.failed_line = failed_line
        self.reason = reason
        self.details = details or {}


@dataclass
class CheckoutResult:
    sale_group_id: str
    transactions: list[Transaction] = field(default_factory=list)

    @property
    def total_cents(self) -> int:
        return sum(tx.amount_cents for tx in self.transactions)

    def to_dict(self) -> dict:
        return {
            "sale_group_id": self.sale_group_id,
            "total_cents": self.total_cents,
            "transactions": [tx.to_dict() for tx in self.transactions],
        }


def _resolve_lines(ctx: AccessContext, data: CheckoutInput) -> list[StockPool]:
    pools = []
    for index, line in enumerate(data.lines):
        try:
            _, pool = resolve_target(ctx, line.product_id, line.variant_id)
        except ValidationError as e:
            raise CheckoutFailedError(
                f"Line {index}: {e}",
                failed_line=index,
                reason="VALIDATION_FAILED",
                details={"field_errors": e.field_errors},
            ) from e
        except NotFoundError as e:
            raise CheckoutFailedError(
                f"Line {index}: {e}",
                failed_line=index,
                reason="VALIDATION_FAILED",
                details={"field_errors": {"product_id": ["does not exist"]}},
            ) from e
        pools.append(pool)
    return pools


def _validate_cumulative_demand(data: CheckoutInput, pools: list[StockPool]) -> dict[StockPool, int]:
    """
    Walk the cart in order, summing demand per pool against the locked
    snapshot. The first line that pushes its pool past on-hand fails the cart.
    """
    on_hand: dict[StockPool, int] = {}
    demand: dict[StockPool, int] = {}

    for index, (line, pool) in enumerate(zip(data.lines, pools)):
        if pool not in on_hand:
            on_hand[pool] = get_pool_stock(pool, lock=True)
        demand[pool] = demand.get(pool, 0) + line.quantity

        if demand[pool] > on_hand[pool]:
            raise CheckoutFailedError(
                f"Insufficient stock for line {index}",
                failed_line=index,
                reason=InsufficientStockError.code,
                details={
                    **pool.to_dict(),
                    "requested_quantity": demand[pool],
                    "on_hand": on_hand[pool],
                },
            )
    return demand


def checkout(ctx: AccessContext, data: CheckoutInput) -> CheckoutResult:
    """
    Record every cart line as one Transaction sharing a sale_group_id.

    Either all lines commit with their debits, or none do and a
    CheckoutFailedError names the first line that could not be honored.
    Line amount = unit price x quantity (0 for gifts).
    """
    def _op():
        begin_write_transaction()

        pools = _resolve_lines(ctx, data)
        demand = _validate_cumulative_demand(data, pools)

        first_line = {}
        for index, pool in enumerate(pools):
            first_line.setdefault(pool, index)

        for pool, quantity in demand.items():
            try:
                debit(pool, quantity)
            except InsufficientStockError as e:
                raise CheckoutFailedError(
                    "Insufficient stock",
                    failed_line=first_line[pool],
                    reason=e.code,
                    details=e.details,
                )

        result = CheckoutResult(sale_group_id=str(uuid.uuid4()))
        now = utcnow()
        for line in data.lines:
            tx = Transaction(
                product_id=line.product_id,
                variant_id=line.variant_id,
                type=data.type,
                payment_method=data.payment_method,
                quantity=line.quantity,
                amount_cents=0 if data.type == "GIFT" else line.unit_price_cents * line.quantity,
                comment=data.comment,
                sale_group_id=result.sale_group_id,
                created_by_user_id=ctx.user_id,
                created_at=now,
            )
            db.session.add(tx)
            result.transactions.append(tx)

        db.session.flush()
        db.session.commit()
        logger.info(
            "Checkout %s: %d lines, total=%d cents",
            result.sale_group_id, len(result.transactions), result.total_cents,
        )
        return result

    return run_with_retry(_op)
