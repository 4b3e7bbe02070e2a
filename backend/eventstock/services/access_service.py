# Overview: Access control gate; role lookup and project-assignment checks.

"""
Authorization decisions for every mutation.

The caller identity and role are resolved once per request into an
AccessContext and passed to each service call. Services never read request
globals.

Rules:
- admin: every project, every mutation
- seller: only projects with a ProjectAssignment row; sales, gifts, checkout
  and transaction edits on those projects; no catalog or user mutations
- none (unknown / inactive user): nothing
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..extensions import db
from ..models import Project, ProjectAssignment, User

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_SELLER = "seller"
ROLE_NONE = "none"


class UnauthorizedError(Exception):
    """Raised when the caller may not perform the operation.

    The message never says whether the target exists.
    """

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)


@dataclass(frozen=True)
class AccessContext:
    user_id: int | None
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @classmethod
    def anonymous(cls) -> "AccessContext":
        return cls(user_id=None, role=ROLE_NONE)


def resolve_access_context(user_id: int | None) -> AccessContext:
    """Load the caller's role once; inactive or unknown users get role 'none'."""
    if user_id is None:
        return AccessContext.anonymous()

    user = db.session.query(User).filter_by(id=user_id).first()
    if user is None or not user.is_active:
        return AccessContext(user_id=user_id, role=ROLE_NONE)
    return AccessContext(user_id=user.id, role=user.role)


def current_role(ctx: AccessContext) -> str:
    if ctx.role in (ROLE_ADMIN, ROLE_SELLER):
        return ctx.role
    return ROLE_NONE


def can_access_project(ctx: AccessContext, project_id: int) -> bool:
    role = current_role(ctx)
    if role == ROLE_ADMIN:
        return True
    if role != ROLE_SELLER:
        return False

    assignment = db.session.query(ProjectAssignment.id).filter_by(
        user_id=ctx.user_id,
        project_id=project_id,
    ).first()
    return assignment is not None


def require_project_access(ctx: AccessContext, project_id: int | None) -> None:
    if project_id is None or not can_access_project(ctx, project_id):
        logger.warning("Denied project access: user=%s project=%s", ctx.user_id, project_id)
        raise UnauthorizedError()


def require_admin(ctx: AccessContext) -> None:
    if current_role(ctx) != ROLE_ADMIN:
        logger.warning("Denied admin operation: user=%s role=%s", ctx.user_id, ctx.role)
        raise UnauthorizedError()


def accessible_project_ids(ctx: AccessContext, *, include_archived: bool = True) -> list[int]:
    role = current_role(ctx)
    if role == ROLE_NONE:
        return []

    query = db.session.query(Project.id)
    if role == ROLE_SELLER:
        query = query.join(ProjectAssignment, ProjectAssignment.project_id == Project.id).filter(
            ProjectAssignment.user_id == ctx.user_id
        )
    if not include_archived:
        query = query.filter(Project.archived.is_(False))
    return [row.id for row in query.order_by(Project.id.asc()).all()]
