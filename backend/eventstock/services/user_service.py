# Overview: User administration; seller accounts, roles and project assignments.

from __future__ import annotations

import logging

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import ROLES, Project, ProjectAssignment, Transaction, User
from ..validation import NotFoundError, SellerInput, ValidationError
from .access_service import AccessContext, require_admin
from .auth_service import hash_password
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)


def _check_role(role: str) -> str:
    if role not in ROLES:
        raise ValidationError(f"role must be one of {', '.join(ROLES)}", {"role": ["invalid"]})
    return role


def _get_user(user_id: int) -> User:
    user = db.session.query(User).filter_by(id=user_id).first()
    if user is None:
        raise NotFoundError("User not found")
    return user


def list_users(ctx: AccessContext) -> list[User]:
    require_admin(ctx)
    return (
        db.session.query(User)
        .options(selectinload(User.assignments))
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )


def create_user(data: SellerInput) -> User:
    """Create an account. No access check; used by bootstrap commands."""
    role = _check_role(data.role)
    if db.session.query(User.id).filter_by(email=data.email).first() is not None:
        raise ValidationError("A user with this email already exists", {"email": ["already exists"]})

    user = User(email=data.email, password_hash=hash_password(data.password), role=role, is_active=True)
    db.session.add(user)
    db.session.commit()
    logger.info("Created %s account %s", role, user.id)
    return user


def create_seller_account(ctx: AccessContext, data: SellerInput) -> User:
    require_admin(ctx)
    return run_with_retry(lambda: create_user(data))


def assign_user_to_project(ctx: AccessContext, user_id: int, project_id: int) -> ProjectAssignment:
    require_admin(ctx)

    def _op():
        _get_user(user_id)
        if db.session.query(Project.id).filter_by(id=project_id).first() is None:
            raise NotFoundError("Project not found")

        existing = db.session.query(ProjectAssignment.id).filter_by(user_id=user_id, project_id=project_id).first()
        if existing is not None:
            raise ValidationError(
                "User is already assigned to this project",
                {"project_id": ["already assigned"]},
            )

        assignment = ProjectAssignment(user_id=user_id, project_id=project_id)
        db.session.add(assignment)
        db.session.commit()
        logger.info("Assigned user %s to project %s", user_id, project_id)
        return assignment

    return run_with_retry(_op)


def remove_user_from_project(ctx: AccessContext, user_id: int, project_id: int) -> None:
    require_admin(ctx)

    def _op():
        removed = db.session.query(ProjectAssignment).filter_by(
            user_id=user_id,
            project_id=project_id,
        ).delete(synchronize_session=False)
        if not removed:
            raise NotFoundError("Assignment not found")
        db.session.commit()
        logger.info("Removed user %s from project %s", user_id, project_id)

    run_with_retry(_op)


def update_user_role(ctx: AccessContext, user_id: int, role: str) -> User:
    require_admin(ctx)
    role = _check_role(role)

    def _op():
        user = _get_user(user_id)
        user.role = role
        db.session.commit()
        logger.info("User %s role set to %s", user_id, role)
        return user

    return run_with_retry(_op)


def delete_user(ctx: AccessContext, user_id: int) -> None:
    """
    Delete an account with its assignments and sessions.

    Transactions it recorded are kept with created_by_user_id cleared.
    An admin cannot delete their own account.
    """
    require_admin(ctx)
    if ctx.user_id == user_id:
        raise ValidationError("You cannot delete your own account", {"user_id": ["cannot delete yourself"]})

    def _op():
        user = _get_user(user_id)
        db.session.query(Transaction).filter(Transaction.created_by_user_id == user_id).update(
            {Transaction.created_by_user_id: None},
            synchronize_session=False,
        )
        db.session.delete(user)
        db.session.commit()
        logger.info("Deleted user %s", user_id)

    run_with_retry(_op)
