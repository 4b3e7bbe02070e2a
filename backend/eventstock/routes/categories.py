# Overview: Flask API routes for product categories.

from flask import Blueprint, request, g

from ..services import catalog_service
from ..validation import parse_name
from ..decorators import require_auth, require_admin
from .errors import service_error_response, success


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
def list_categories_route():
    return success(categories=[c.to_dict() for c in catalog_service.list_categories()])


@categories_bp.post("")
@require_auth
@require_admin
def create_category_route():
    try:
        name = parse_name(request.get_json(silent=True))
        category = catalog_service.create_category(g.access, name)
        return success(201, category=category.to_dict())
    except Exception as e:
        return service_error_response(e, "create category")


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_admin
def delete_category_route(category_id: int):
    """Products of the category are kept and become uncategorized."""
    try:
        catalog_service.delete_category(g.access, category_id)
        return success(message="Category deleted")
    except Exception as e:
        return service_error_response(e, "delete category")
