# Overview: Flask API routes for projects and their products; parses input and returns JSON responses.

from flask import Blueprint, request, g

from ..services import catalog_service
from ..validation import ProductInput, ProjectInput, parse_flag
from ..decorators import require_auth, require_admin
from .errors import service_error_response, success


projects_bp = Blueprint("projects", __name__, url_prefix="/api/projects")


@projects_bp.get("")
@require_auth
def list_projects_route():
    """Projects visible to the caller; `?active=1` hides archived ones."""
    try:
        include_archived = request.args.get("active") not in ("1", "true")
        projects = catalog_service.list_projects(g.access, include_archived=include_archived)
        return success(projects=[p.to_dict() for p in projects])
    except Exception as e:
        return service_error_response(e, "list projects")


@projects_bp.post("")
@require_auth
@require_admin
def create_project_route():
    try:
        data = ProjectInput.from_payload(request.get_json(silent=True))
        project = catalog_service.create_project(g.access, data)
        return success(201, project=project.to_dict())
    except Exception as e:
        return service_error_response(e, "create project")


@projects_bp.patch("/<int:project_id>/archive")
@require_auth
@require_admin
def archive_project_route(project_id: int):
    try:
        archived = parse_flag(request.get_json(silent=True), "archived")
        project = catalog_service.set_project_archived(g.access, project_id, archived)
        return success(project=project.to_dict())
    except Exception as e:
        return service_error_response(e, "archive project")


@projects_bp.delete("/<int:project_id>")
@require_auth
@require_admin
def delete_project_route(project_id: int):
    """Deletes the project with its products, variants and transactions."""
    try:
        catalog_service.delete_project(g.access, project_id)
        return success(message="Project deleted")
    except Exception as e:
        return service_error_response(e, "delete project")


@projects_bp.get("/<int:project_id>/products")
@require_auth
def list_products_route(project_id: int):
    try:
        products = catalog_service.list_products(g.access, project_id)
        return success(products=[p.to_dict(include_variants=True) for p in products])
    except Exception as e:
        return service_error_response(e, "list products")


@projects_bp.post("/<int:project_id>/products")
@require_auth
@require_admin
def create_product_route(project_id: int):
    try:
        data = ProductInput.from_payload(request.get_json(silent=True))
        product = catalog_service.create_product(g.access, project_id, data)
        return success(201, product=product.to_dict(include_variants=True))
    except Exception as e:
        return service_error_response(e, "create product")
