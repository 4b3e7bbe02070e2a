# Overview: Flask API routes for product edits and deletion.

from flask import Blueprint, request, g

from ..services import catalog_service
from ..validation import ProductInput
from ..decorators import require_auth, require_admin
from .errors import service_error_response, success


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.put("/<int:product_id>")
@require_auth
@require_admin
def update_product_route(product_id: int):
    try:
        data = ProductInput.from_payload(request.get_json(silent=True))
        product = catalog_service.update_product(g.access, product_id, data)
        return success(product=product.to_dict(include_variants=True))
    except Exception as e:
        return service_error_response(e, "update product")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_admin
def delete_product_route(product_id: int):
    try:
        catalog_service.delete_product(g.access, product_id)
        return success(message="Product deleted")
    except Exception as e:
        return service_error_response(e, "delete product")
