# Overview: Read-only aggregation over transactions; history, stats, dashboard and CSV export.

from __future__ import annotations

import csv
import io
import logging
from datetime import date, timedelta

from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload, selectinload

from ..extensions import db
from ..models import Product, Project, Transaction
from eventstock.time_utils import format_fr_date, format_fr_datetime, utcnow
from .access_service import AccessContext, require_admin
from .catalog_service import get_project

logger = logging.getLogger(__name__)

TYPE_LABELS = {"SALE": "Vente", "GIFT": "Don"}
PAYMENT_LABELS = {"CASH": "Espèces", "CARD": "Carte"}

CSV_HEADER = ["Date", "Produit", "Variante", "SKU", "Type", "Quantité", "Montant (€)"]

SALES_BY_DAY_WINDOW = 14
TOP_PRODUCTS_LIMIT = 5


def format_cents(cents: int) -> str:
    return f"{cents / 100:.2f}"


def _variant_text(tx: Transaction) -> str:
    if tx.variant is None:
        return ""
    return " ".join(p for p in (tx.variant.size, tx.variant.color) if p)


def _project_transactions(project_id: int) -> list[Transaction]:
    return (
        db.session.query(Transaction)
        .join(Product, Product.id == Transaction.product_id)
        .options(joinedload(Transaction.product), joinedload(Transaction.variant))
        .filter(Product.project_id == project_id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .all()
    )


def matches_search(tx: Transaction, query: str) -> bool:
    """
    Case-insensitive match on product name, variant size/color, comment,
    type and payment labels (French and codes) and the dd/mm/yyyy date.
    """
    needle = query.strip().lower()
    if not needle:
        return True

    haystack = [
        tx.product.name if tx.product else "",
        _variant_text(tx),
        tx.comment or "",
        tx.type,
        TYPE_LABELS.get(tx.type, ""),
        tx.payment_method or "",
        PAYMENT_LABELS.get(tx.payment_method, ""),
        format_fr_date(tx.created_at) if tx.created_at else "",
    ]
    return any(needle in value.lower() for value in haystack)


def list_transactions(ctx: AccessContext, project_id: int, search: str | None = None) -> list[Transaction]:
    """Project history, newest first, optionally filtered by a free-text query."""
    get_project(ctx, project_id)
    try:
        rows = _project_transactions(project_id)
    except SQLAlchemyError:
        logger.exception("Failed to load transactions for project %s", project_id)
        return []

    if search:
        rows = [tx for tx in rows if matches_search(tx, search)]
    return rows


def _stats_bucket() -> dict:
    return {"sold_quantity": 0, "gifted_quantity": 0, "revenue_cents": 0}


def _add_to_bucket(bucket: dict, tx: Transaction) -> None:
    if tx.type == "SALE":
        bucket["sold_quantity"] += tx.quantity
        bucket["revenue_cents"] += tx.amount_cents
    else:
        bucket["gifted_quantity"] += tx.quantity


def summarize(transactions: list[Transaction]) -> dict:
    """
    Money and count totals over a list of transactions.

    Gift value is the product's current price times the gifted quantity.
    The average basket is total sales over the number of sale rows.
    """
    totals = {
        "total_sales_cents": 0,
        "cash_cents": 0,
        "card_cents": 0,
        "sales_count": 0,
        "gifts_count": 0,
        "gift_articles": 0,
        "gifts_value_cents": 0,
        "items_sold": 0,
    }
    for tx in transactions:
        if tx.type == "SALE":
            totals["total_sales_cents"] += tx.amount_cents
            totals["sales_count"] += 1
            totals["items_sold"] += tx.quantity
            if tx.payment_method == "CASH":
                totals["cash_cents"] += tx.amount_cents
            else:
                totals["card_cents"] += tx.amount_cents
        else:
            totals["gifts_count"] += 1
            totals["gift_articles"] += tx.quantity
            price = tx.product.price_cents if tx.product else 0
            totals["gifts_value_cents"] += price * tx.quantity

    count = totals["sales_count"]
    totals["average_basket_cents"] = round(totals["total_sales_cents"] / count) if count else 0
    return totals


def daily_breakdown(transactions: list[Transaction]) -> list[dict]:
    """Sales per calendar day (UTC), split cash/card, oldest day first."""
    days: dict[date, dict] = {}
    for tx in transactions:
        if tx.type != "SALE" or tx.created_at is None:
            continue
        day = tx.created_at.date()
        entry = days.setdefault(day, {"date": day.isoformat(), "cash_cents": 0, "card_cents": 0, "total_cents": 0})
        key = "cash_cents" if tx.payment_method == "CASH" else "card_cents"
        entry[key] += tx.amount_cents
        entry["total_cents"] += tx.amount_cents
    return [days[d] for d in sorted(days)]


def product_stats(products: list[Product], transactions: list[Transaction]) -> list[dict]:
    by_product: dict[int, dict] = {}
    for product in products:
        by_product[product.id] = {
            "product_id": product.id,
            "name": product.name,
            "stock": product.stock,
            **_stats_bucket(),
            "variants": {
                v.id: {"variant_id": v.id, "label": v.label, "stock": v.stock, **_stats_bucket()}
                for v in product.variants
            },
        }

    for tx in transactions:
        entry = by_product.get(tx.product_id)
        if entry is None:
            continue
        _add_to_bucket(entry, tx)
        if tx.variant_id is not None and tx.variant_id in entry["variants"]:
            _add_to_bucket(entry["variants"][tx.variant_id], tx)

    result = []
    for entry in by_product.values():
        entry["variants"] = list(entry["variants"].values())
        result.append(entry)
    return result


def project_summary(ctx: AccessContext, project_id: int) -> dict:
    project = get_project(ctx, project_id)
    try:
        transactions = _project_transactions(project_id)
        products = (
            db.session.query(Product)
            .options(selectinload(Product.variants))
            .filter(Product.project_id == project_id)
            .order_by(Product.name.asc())
            .all()
        )
    except SQLAlchemyError:
        logger.exception("Failed to build summary for project %s", project_id)
        transactions, products = [], []

    return {
        "project": project.to_dict(),
        "totals": summarize(transactions),
        "daily": daily_breakdown(transactions),
        "products": product_stats(products, transactions),
    }


def _effective_stock(product: Product) -> int:
    # With variants the sellable units live in the variants
    if product.variants:
        return sum(v.stock for v in product.variants)
    return product.stock


def dashboard(ctx: AccessContext) -> dict:
    """Global admin overview across every project."""
    require_admin(ctx)
    threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 5)
    today = utcnow().date()
    window_start = today - timedelta(days=SALES_BY_DAY_WINDOW - 1)

    try:
        transactions = (
            db.session.query(Transaction)
            .options(joinedload(Transaction.product))
            .all()
        )
        products = db.session.query(Product).options(selectinload(Product.variants)).all()

        quantity_sold = func.coalesce(
            func.sum(case((Transaction.type == "SALE", Transaction.quantity), else_=0)), 0
        ).label("quantity_sold")
        top_rows = (
            db.session.query(Product.id, Product.name, Project.name.label("project_name"), quantity_sold)
            .join(Transaction, Transaction.product_id == Product.id)
            .join(Project, Project.id == Product.project_id)
            .group_by(Product.id, Product.name, Project.name)
            .order_by(quantity_sold.desc(), Product.id.asc())
            .limit(TOP_PRODUCTS_LIMIT)
            .all()
        )
        project_counts = db.session.query(
            func.count(Project.id),
            func.coalesce(func.sum(case((Project.archived.is_(False), 1), else_=0)), 0),
        ).one()
    except SQLAlchemyError:
        logger.exception("Failed to build dashboard")
        transactions, products, top_rows, project_counts = [], [], [], (0, 0)

    by_day = {window_start + timedelta(days=i): 0 for i in range(SALES_BY_DAY_WINDOW)}
    for tx in transactions:
        if tx.type == "SALE" and tx.created_at is not None and tx.created_at.date() in by_day:
            by_day[tx.created_at.date()] += tx.amount_cents

    stocks = [_effective_stock(p) for p in products]

    return {
        "totals": summarize(transactions),
        "projects_count": int(project_counts[0] or 0),
        "active_projects_count": int(project_counts[1] or 0),
        "products_count": len(products),
        "low_stock_count": sum(1 for s in stocks if 0 < s <= threshold),
        "out_of_stock_count": sum(1 for s in stocks if s == 0),
        "sales_by_day": [{"date": d.isoformat(), "total_cents": v} for d, v in sorted(by_day.items())],
        "top_products": [
            {
                "product_id": row.id,
                "name": row.name,
                "project_name": row.project_name,
                "quantity_sold": int(row.quantity_sold),
            }
            for row in top_rows
        ],
    }


def export_filename(project: Project, today: date | None = None) -> str:
    today = today or utcnow().date()
    slug = "-".join(project.name.split())
    return f"export-{slug}-{today.isoformat()}.csv"


def export_csv(ctx: AccessContext, project_id: int) -> tuple[str, str]:
    """
    Project history as a spreadsheet-friendly CSV (BOM, ';' separated).

    Returns (filename, content).
    """
    project = get_project(ctx, project_id)
    try:
        transactions = _project_transactions(project_id)
    except SQLAlchemyError:
        logger.exception("Failed to export project %s", project_id)
        transactions = []

    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=";", lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for tx in transactions:
        variant = tx.variant
        writer.writerow([
            format_fr_datetime(tx.created_at),
            tx.product.name,
            variant.label if variant is not None else "",
            (variant.sku if variant is not None and variant.sku else tx.product.sku) or "",
            TYPE_LABELS.get(tx.type, tx.type),
            tx.quantity,
            format_cents(tx.amount_cents),
        ])

    return export_filename(project), "\ufeff" + buffer.getvalue()
