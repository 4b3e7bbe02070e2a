"""
Reporting tests: project totals, search, dashboard aggregates, CSV export.
"""

import csv
import io
from datetime import date, datetime

import pytest

from eventstock.extensions import db
from eventstock.models import Product
from eventstock.services import reporting_service, transaction_service
from eventstock.services.access_service import UnauthorizedError
from eventstock.validation import TransactionInput


def record(ctx, product_id, type="SALE", quantity=1, amount_cents=0, payment_method="CASH", variant_id=None, comment=None):
    return transaction_service.record_transaction(ctx, TransactionInput(
        product_id=product_id,
        variant_id=variant_id,
        type=type,
        payment_method=payment_method if type == "SALE" else None,
        quantity=quantity,
        amount_cents=amount_cents,
        comment=comment,
    ))


@pytest.fixture
def history(db_session, product, shirt, shirt_m, seller_ctx):
    """Two cash sales, one card sale on a variant, one gift."""
    rows = [
        record(seller_ctx, product.id, quantity=2, amount_cents=2000),
        record(seller_ctx, product.id, quantity=1, amount_cents=1000, comment="Tarif bénévole"),
        record(seller_ctx, shirt.id, variant_id=shirt_m.id, quantity=1, amount_cents=2500, payment_method="CARD"),
        record(seller_ctx, product.id, type="GIFT", quantity=3),
    ]
    stamps = [
        datetime(2026, 7, 14, 10, 0, 0),
        datetime(2026, 7, 14, 18, 30, 0),
        datetime(2026, 7, 15, 9, 15, 5),
        datetime(2026, 7, 15, 12, 0, 0),
    ]
    for tx, stamp in zip(rows, stamps):
        tx.created_at = stamp
    db_session.commit()
    return rows


class TestProjectSummary:
    def test_totals(self, history, project, seller_ctx):
        totals = reporting_service.project_summary(seller_ctx, project.id)["totals"]

        assert totals["total_sales_cents"] == 5500
        assert totals["cash_cents"] == 3000
        assert totals["card_cents"] == 2500
        assert totals["sales_count"] == 3
        assert totals["gifts_count"] == 1
        assert totals["gift_articles"] == 3
        assert totals["gifts_value_cents"] == 3000
        assert totals["average_basket_cents"] == round(5500 / 3)

    def test_daily_breakdown(self, history, project, seller_ctx):
        daily = reporting_service.project_summary(seller_ctx, project.id)["daily"]

        assert daily == [
            {"date": "2026-07-14", "cash_cents": 3000, "card_cents": 0, "total_cents": 3000},
            {"date": "2026-07-15", "cash_cents": 0, "card_cents": 2500, "total_cents": 2500},
        ]

    def test_product_and_variant_stats(self, history, project, product, shirt_m, seller_ctx):
        stats = {p["product_id"]: p for p in reporting_service.project_summary(seller_ctx, project.id)["products"]}

        mug = stats[product.id]
        assert mug["sold_quantity"] == 3
        assert mug["gifted_quantity"] == 3
        assert mug["revenue_cents"] == 3000

        variant_stats = stats[shirt_m.product_id]["variants"]
        assert variant_stats == [{
            "variant_id": shirt_m.id,
            "label": "M / Noir",
            "stock": 4,
            "sold_quantity": 1,
            "gifted_quantity": 0,
            "revenue_cents": 2500,
        }]

    def test_outsider_is_rejected(self, history, project, outsider_ctx):
        with pytest.raises(UnauthorizedError):
            reporting_service.project_summary(outsider_ctx, project.id)


class TestSearch:
    @pytest.mark.parametrize("query,expected", [
        ("mug", 3),
        ("noir", 1),
        ("bénévole", 1),
        ("don", 1),
        ("vente", 3),
        ("carte", 1),
        ("espèces", 2),
        ("14/07/2026", 2),
        ("", 4),
        ("introuvable", 0),
    ])
    def test_search(self, history, project, seller_ctx, query, expected):
        rows = reporting_service.list_transactions(seller_ctx, project.id, query)
        assert len(rows) == expected

    def test_newest_first(self, history, project, seller_ctx):
        rows = reporting_service.list_transactions(seller_ctx, project.id)
        assert [r.id for r in rows] == [tx.id for tx in reversed(history)]


class TestDashboard:
    def test_requires_admin(self, db_session, seller_ctx):
        with pytest.raises(UnauthorizedError):
            reporting_service.dashboard(seller_ctx)

    def test_aggregates(self, history, admin_ctx, project, product, shirt):
        empty = Product(project_id=project.id, name="Badge", price_cents=100, stock=0)
        db.session.add(empty)
        db.session.commit()

        data = reporting_service.dashboard(admin_ctx)

        assert data["totals"]["total_sales_cents"] == 5500
        assert data["projects_count"] == 1
        assert data["active_projects_count"] == 1
        # mug: 10 - 3 sold - 3 gifted = 4 (low); shirt variants hold 4 (low); badge 0
        assert data["low_stock_count"] == 2
        assert data["out_of_stock_count"] == 1
        assert len(data["sales_by_day"]) == 14
        assert data["top_products"][0]["product_id"] == product.id
        assert data["top_products"][0]["quantity_sold"] == 3


class TestCsvExport:
    def test_format(self, history, project, seller_ctx):
        filename, content = reporting_service.export_csv(seller_ctx, project.id)

        assert filename.startswith("export-Festival-d'été-")
        assert filename.endswith(".csv")
        assert content.startswith("\ufeff")

        rows = list(csv.reader(io.StringIO(content[1:]), delimiter=";"))
        assert rows[0] == ["Date", "Produit", "Variante", "SKU", "Type", "Quantité", "Montant (€)"]
        assert len(rows) == 5

        # newest first
        assert rows[1] == ["15/07/2026 12:00:00", "Mug", "", "MUG-01", "Don", "3", "0.00"]
        assert rows[2] == ["15/07/2026 09:15:05", "T-shirt", "M / Noir", "TS-M-N", "Vente", "1", "25.00"]
        assert rows[4] == ["14/07/2026 10:00:00", "Mug", "", "MUG-01", "Vente", "2", "20.00"]

    def test_filename(self, db_session, project):
        assert reporting_service.export_filename(project, date(2026, 7, 16)) == "export-Festival-d'été-2026-07-16.csv"

    def test_format_cents(self):
        assert reporting_service.format_cents(1250) == "12.50"
        assert reporting_service.format_cents(5) == "0.05"
