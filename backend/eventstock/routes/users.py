# Overview: Flask API routes for user administration; admin-only.

from flask import Blueprint, request, g

from ..services import user_service
from ..validation import SellerInput, parse_role
from ..decorators import require_auth, require_admin
from .errors import service_error_response, success


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def user_row(user) -> dict:
    return {**user.to_dict(), "project_ids": sorted(a.project_id for a in user.assignments)}


@users_bp.get("")
@require_auth
@require_admin
def list_users_route():
    try:
        return success(users=[user_row(u) for u in user_service.list_users(g.access)])
    except Exception as e:
        return service_error_response(e, "list users")


@users_bp.post("")
@require_auth
@require_admin
def create_user_route():
    try:
        data = SellerInput.from_payload(request.get_json(silent=True))
        user = user_service.create_seller_account(g.access, data)
        return success(201, user=user_row(user))
    except Exception as e:
        return service_error_response(e, "create user")


@users_bp.patch("/<int:user_id>/role")
@require_auth
@require_admin
def update_role_route(user_id: int):
    try:
        role = parse_role(request.get_json(silent=True))
        user = user_service.update_user_role(g.access, user_id, role)
        return success(user=user_row(user))
    except Exception as e:
        return service_error_response(e, "update user role")


@users_bp.delete("/<int:user_id>")
@require_auth
@require_admin
def delete_user_route(user_id: int):
    try:
        user_service.delete_user(g.access, user_id)
        return success(message="User deleted")
    except Exception as e:
        return service_error_response(e, "delete user")


@users_bp.post("/<int:user_id>/projects/<int:project_id>")
@require_auth
@require_admin
def assign_route(user_id: int, project_id: int):
    try:
        assignment = user_service.assign_user_to_project(g.access, user_id, project_id)
        return success(201, assignment=assignment.to_dict())
    except Exception as e:
        return service_error_response(e, "assign user")


@users_bp.delete("/<int:user_id>/projects/<int:project_id>")
@require_auth
@require_admin
def unassign_route(user_id: int, project_id: int):
    try:
        user_service.remove_user_from_project(g.access, user_id, project_id)
        return success(message="Assignment removed")
    except Exception as e:
        return service_error_response(e, "remove assignment")
