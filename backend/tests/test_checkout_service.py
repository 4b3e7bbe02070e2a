"""
Cart checkout tests.

Verifies:
- N lines -> N rows sharing one sale_group_id, payment method and comment
- any failing line leaves every pool and the ledger untouched
- demand is cumulative per pool across lines
"""

import pytest

from eventstock.extensions import db
from eventstock.models import Product, Transaction
from eventstock.services import checkout_service
from eventstock.services.access_service import UnauthorizedError
from eventstock.services.checkout_service import CheckoutFailedError
from eventstock.validation import CheckoutInput, CheckoutLine, NotFoundError, ValidationError


def cart(*lines, type="SALE", payment_method="CARD", comment=None):
    return CheckoutInput(
        lines=tuple(CheckoutLine(**line) for line in lines),
        type=type,
        payment_method=payment_method,
        comment=comment,
    )


class TestCheckout:
    def test_two_lines_share_group_and_payment(self, db_session, product, shirt, shirt_m, seller_ctx):
        result = checkout_service.checkout(seller_ctx, cart(
            {"product_id": product.id, "quantity": 2, "unit_price_cents": 1000},
            {"product_id": shirt.id, "variant_id": shirt_m.id, "quantity": 1, "unit_price_cents": 2500},
            comment="stand A",
        ))

        rows = db.session.query(Transaction).order_by(Transaction.id).all()
        assert len(rows) == 2
        assert {r.sale_group_id for r in rows} == {result.sale_group_id}
        assert len(result.sale_group_id) == 36
        assert {r.payment_method for r in rows} == {"CARD"}
        assert {r.comment for r in rows} == {"stand A"}
        assert [r.amount_cents for r in rows] == [2000, 2500]
        assert result.total_cents == 4500

        assert product.stock == 8
        assert shirt_m.stock == 4
        assert shirt.stock == 20

    def test_oversold_second_line_changes_nothing(self, db_session, product, shirt, shirt_m, seller_ctx):
        with pytest.raises(CheckoutFailedError) as exc_info:
            checkout_service.checkout(seller_ctx, cart(
                {"product_id": product.id, "quantity": 2, "unit_price_cents": 1000},
                {"product_id": shirt.id, "variant_id": shirt_m.id, "quantity": 6, "unit_price_cents": 2500},
            ))

        assert exc_info.value.failed_line == 1
        assert exc_info.value.reason == "INSUFFICIENT_STOCK"
        assert exc_info.value.details["on_hand"] == 5
        assert product.stock == 10
        assert shirt_m.stock == 5
        assert db.session.query(Transaction).count() == 0

    def test_lines_after_the_oversold_one_are_untouched(self, db_session, project, product, shirt, shirt_m, seller_ctx):
        poster = Product(project_id=project.id, name="Affiche", price_cents=500, stock=4)
        db_session.add(poster)
        db_session.commit()

        with pytest.raises(CheckoutFailedError) as exc_info:
            checkout_service.checkout(seller_ctx, cart(
                {"product_id": product.id, "quantity": 1, "unit_price_cents": 1000},
                {"product_id": shirt.id, "variant_id": shirt_m.id, "quantity": 9, "unit_price_cents": 2500},
                {"product_id": poster.id, "quantity": 2, "unit_price_cents": 500},
            ))

        assert exc_info.value.failed_line == 1
        assert exc_info.value.reason == "INSUFFICIENT_STOCK"
        assert product.stock == 10
        assert shirt_m.stock == 5
        assert poster.stock == 4
        assert db.session.query(Transaction).count() == 0

    def test_demand_is_cumulative_per_pool(self, db_session, product, seller_ctx):
        with pytest.raises(CheckoutFailedError) as exc_info:
            checkout_service.checkout(seller_ctx, cart(
                {"product_id": product.id, "quantity": 6, "unit_price_cents": 1000},
                {"product_id": product.id, "quantity": 6, "unit_price_cents": 900},
            ))

        assert exc_info.value.failed_line == 1
        assert exc_info.value.details["requested_quantity"] == 12
        assert product.stock == 10

    def test_same_pool_within_stock_is_debited_once_per_line_total(self, db_session, product, seller_ctx):
        result = checkout_service.checkout(seller_ctx, cart(
            {"product_id": product.id, "quantity": 4, "unit_price_cents": 1000},
            {"product_id": product.id, "quantity": 6, "unit_price_cents": 800},
            payment_method="CASH",
        ))

        assert len(result.transactions) == 2
        assert product.stock == 0
        assert result.total_cents == 4000 + 4800

    def test_gift_cart_has_zero_amounts(self, db_session, product, seller_ctx):
        result = checkout_service.checkout(seller_ctx, cart(
            {"product_id": product.id, "quantity": 3, "unit_price_cents": 1000},
            type="GIFT",
        ))

        tx = result.transactions[0]
        assert tx.type == "GIFT"
        assert tx.amount_cents == 0
        assert tx.payment_method is None
        assert product.stock == 7

    def test_line_without_required_variant_fails_validation(self, db_session, product, shirt, shirt_m, seller_ctx):
        with pytest.raises(CheckoutFailedError) as exc_info:
            checkout_service.checkout(seller_ctx, cart(
                {"product_id": product.id, "quantity": 1, "unit_price_cents": 1000},
                {"product_id": shirt.id, "quantity": 1, "unit_price_cents": 2500},
            ))

        assert exc_info.value.failed_line == 1
        assert exc_info.value.reason == "VALIDATION_FAILED"
        assert product.stock == 10

    def test_unknown_product_line_fails_validation(self, db_session, product, admin_ctx):
        with pytest.raises(CheckoutFailedError) as exc_info:
            checkout_service.checkout(admin_ctx, cart(
                {"product_id": product.id, "quantity": 1, "unit_price_cents": 1000},
                {"product_id": 999999, "quantity": 1, "unit_price_cents": 1000},
            ))

        assert exc_info.value.failed_line == 1
        assert exc_info.value.reason == "VALIDATION_FAILED"
        assert isinstance(exc_info.value.__cause__, NotFoundError)
        assert product.stock == 10
        assert db.session.query(Transaction).count() == 0

    def test_unassigned_seller(self, db_session, product, outsider_ctx):
        with pytest.raises(UnauthorizedError):
            checkout_service.checkout(outsider_ctx, cart(
                {"product_id": product.id, "quantity": 1, "unit_price_cents": 1000},
            ))
        assert product.stock == 10


class TestCheckoutInput:
    def test_empty_cart_is_rejected(self):
        with pytest.raises(ValidationError):
            CheckoutInput.from_payload({"lines": [], "payment_method": "CASH"})

    def test_sale_cart_requires_payment_method(self):
        with pytest.raises(ValidationError):
            CheckoutInput.from_payload({"lines": [{"product_id": 1, "quantity": 1, "unit_price_cents": 100}]})

    def test_line_errors_are_prefixed(self):
        with pytest.raises(ValidationError) as exc_info:
            CheckoutInput.from_payload({
                "lines": [
                    {"product_id": 1, "quantity": 1, "unit_price_cents": 100},
                    {"product_id": 1, "quantity": 0, "unit_price_cents": 100},
                ],
                "payment_method": "CASH",
            })
        assert "lines[1].quantity" in exc_info.value.field_errors

    def test_unknown_fields_are_rejected(self):
        with pytest.raises(ValidationError):
            CheckoutInput.from_payload({
                "lines": [{"product_id": 1, "quantity": 1, "unit_price_cents": 100}],
                "payment_method": "CASH",
                "discount": 10,
            })
