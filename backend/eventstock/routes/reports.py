# Overview: Flask API routes for project statistics, dashboard and CSV export.

from flask import Blueprint, Response, g

from ..services import reporting_service
from ..decorators import require_auth, require_admin
from .errors import service_error_response, success


reports_bp = Blueprint("reports", __name__, url_prefix="/api")


@reports_bp.get("/projects/<int:project_id>/summary")
@require_auth
def project_summary_route(project_id: int):
    try:
        return success(**reporting_service.project_summary(g.access, project_id))
    except Exception as e:
        return service_error_response(e, "build project summary")


@reports_bp.get("/projects/<int:project_id>/export")
@require_auth
def export_route(project_id: int):
    try:
        filename, content = reporting_service.export_csv(g.access, project_id)
    except Exception as e:
        return service_error_response(e, "export project")

    return Response(
        content.encode("utf-8"),
        mimetype="text/csv",
        headers={
            "Content-Type": "text/csv; charset=utf-8",
            "Content-Disposition": f'attachment; filename="{filename}"',
        },
    )


@reports_bp.get("/dashboard")
@require_auth
@require_admin
def dashboard_route():
    try:
        return success(**reporting_service.dashboard(g.access))
    except Exception as e:
        return service_error_response(e, "build dashboard")
