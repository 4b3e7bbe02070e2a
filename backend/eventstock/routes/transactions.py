# Overview: Flask API routes for sales and gifts; parses input and returns JSON responses.

# backend/eventstock/routes/transactions.py
"""
Transaction API routes.

Sellers may record, edit and delete transactions on the projects they are
assigned to. Clearing a project's history is admin-only.
"""

from flask import Blueprint, request, g

from ..services import reporting_service, transaction_service
from ..validation import TransactionInput, TransactionUpdate
from ..decorators import require_auth, require_admin
from .errors import service_error_response, success


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api")


def transaction_row(tx) -> dict:
    variant = tx.variant
    return {
        **tx.to_dict(),
        "product_name": tx.product.name if tx.product else None,
        "variant_label": variant.label if variant is not None else None,
    }


@transactions_bp.post("/transactions")
@require_auth
def record_transaction_route():
    try:
        data = TransactionInput.from_payload(request.get_json(silent=True))
        tx = transaction_service.record_transaction(g.access, data)
        return success(201, transaction=tx.to_dict())
    except Exception as e:
        return service_error_response(e, "record transaction")


@transactions_bp.patch("/transactions/<int:transaction_id>")
@require_auth
def update_transaction_route(transaction_id: int):
    try:
        patch = TransactionUpdate.from_payload(request.get_json(silent=True))
        tx = transaction_service.update_transaction(g.access, transaction_id, patch)
        return success(transaction=tx.to_dict())
    except Exception as e:
        return service_error_response(e, "update transaction")


@transactions_bp.delete("/transactions/<int:transaction_id>")
@require_auth
def delete_transaction_route(transaction_id: int):
    """Deletes the row and puts its quantity back in stock."""
    try:
        transaction_service.delete_transaction(g.access, transaction_id)
        return success(message="Transaction deleted")
    except Exception as e:
        return service_error_response(e, "delete transaction")


@transactions_bp.get("/projects/<int:project_id>/transactions")
@require_auth
def list_transactions_route(project_id: int):
    try:
        rows = reporting_service.list_transactions(g.access, project_id, request.args.get("q"))
        return success(transactions=[transaction_row(tx) for tx in rows])
    except Exception as e:
        return service_error_response(e, "list transactions")


@transactions_bp.delete("/projects/<int:project_id>/transactions")
@require_auth
@require_admin
def clear_history_route(project_id: int):
    """Irreversible. Stock levels are NOT restored."""
    try:
        deleted = transaction_service.clear_history(g.access, project_id)
        return success(deleted=deleted)
    except Exception as e:
        return service_error_response(e, "clear history")
