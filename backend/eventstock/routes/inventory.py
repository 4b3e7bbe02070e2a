# Overview: Flask API routes for restocks and variant allocation.

# backend/eventstock/routes/inventory.py
"""
Inventory API routes.

All endpoints are admin-only. Stock only moves through inventory_service,
never through direct column writes here.
"""

from flask import Blueprint, request, g

from ..services import inventory_service
from ..validation import BulkVariantInput, RestockInput, VariantInput
from ..decorators import require_auth, require_admin
from .errors import service_error_response, success


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api")


@inventory_bp.post("/products/<int:product_id>/restock")
@require_auth
@require_admin
def restock_product_route(product_id: int):
    try:
        data = RestockInput.from_payload(request.get_json(silent=True))
        product = inventory_service.restock(g.access, product_id, data)
        return success(product=product.to_dict())
    except Exception as e:
        return service_error_response(e, "restock product")


@inventory_bp.post("/products/<int:product_id>/variants")
@require_auth
@require_admin
def create_variant_route(product_id: int):
    try:
        data = VariantInput.from_payload(request.get_json(silent=True))
        variant = inventory_service.create_variant(g.access, product_id, data)
        return success(201, variant=variant.to_dict())
    except Exception as e:
        return service_error_response(e, "create variant")


@inventory_bp.post("/products/<int:product_id>/variants/bulk")
@require_auth
@require_admin
def create_variants_bulk_route(product_id: int):
    """
    Body: {"sizes": [...], "colors": [...], "stock_per_variant": n}
    or {"variants": [{"size", "color", "stock", "sku"}, ...]}.
    """
    try:
        data = BulkVariantInput.from_payload(request.get_json(silent=True))
        variants = inventory_service.create_variants_bulk(g.access, product_id, data)
        return success(201, variants=[v.to_dict() for v in variants])
    except Exception as e:
        return service_error_response(e, "create variants")


@inventory_bp.delete("/variants/<int:variant_id>")
@require_auth
@require_admin
def delete_variant_route(variant_id: int):
    try:
        removed = inventory_service.delete_variant(g.access, variant_id)
        return success(removed_transactions=removed)
    except Exception as e:
        return service_error_response(e, "delete variant")


@inventory_bp.post("/variants/<int:variant_id>/restock")
@require_auth
@require_admin
def restock_variant_route(variant_id: int):
    try:
        data = RestockInput.from_payload(request.get_json(silent=True))
        variant = inventory_service.restock_variant(g.access, variant_id, data)
        return success(variant=variant.to_dict())
    except Exception as e:
        return service_error_response(e, "restock variant")
