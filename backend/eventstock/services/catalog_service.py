# Overview: Catalog administration; projects, categories and products.

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Category, Product, ProductVariant, Project, ProjectAssignment, Transaction
from ..validation import NotFoundError, ProductInput, ProjectInput, ValidationError
from .access_service import AccessContext, UnauthorizedError, accessible_project_ids, require_admin, require_project_access
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .stock_service import AllocationExceededError

logger = logging.getLogger(__name__)


# =============================================================================
# PROJECTS
# =============================================================================


def list_projects(ctx: AccessContext, *, include_archived: bool = True) -> list[Project]:
    ids = accessible_project_ids(ctx, include_archived=include_archived)
    if not ids:
        return []
    return (
        db.session.query(Project)
        .filter(Project.id.in_(ids))
        .order_by(Project.archived.asc(), Project.created_at.desc(), Project.id.desc())
        .all()
    )


def get_project(ctx: AccessContext, project_id: int) -> Project:
    project = db.session.query(Project).filter_by(id=project_id).first()
    if project is None:
        if ctx.is_admin:
            raise NotFoundError("Project not found")
        raise UnauthorizedError()
    require_project_access(ctx, project.id)
    return project


def create_project(ctx: AccessContext, data: ProjectInput) -> Project:
    require_admin(ctx)

    def _op():
        project = Project(name=data.name, start_date=data.start_date, end_date=data.end_date, archived=False)
        db.session.add(project)
        db.session.commit()
        logger.info("Created project %s", project.id)
        return project

    return run_with_retry(_op)


def set_project_archived(ctx: AccessContext, project_id: int, archived: bool) -> Project:
    require_admin(ctx)

    def _op():
        project = db.session.query(Project).filter_by(id=project_id).first()
        if project is None:
            raise NotFoundError("Project not found")
        project.archived = archived
        db.session.commit()
        logger.info("Project %s archived=%s", project_id, archived)
        return project

    return run_with_retry(_op)


def _delete_products(product_ids) -> int:
    """Remove products with their variants and transactions. No stock bookkeeping."""
    removed = (
        db.session.query(Transaction)
        .filter(Transaction.product_id.in_(product_ids))
        .delete(synchronize_session=False)
    )
    db.session.query(ProductVariant).filter(
        ProductVariant.product_id.in_(product_ids)
    ).delete(synchronize_session=False)
    db.session.query(Product).filter(Product.id.in_(product_ids)).delete(synchronize_session=False)
    return removed


def delete_project(ctx: AccessContext, project_id: int) -> None:
    """Delete a project with its products, variants, transactions and assignments."""
    require_admin(ctx)

    def _op():
        begin_write_transaction()
        project = db.session.query(Project.id).filter_by(id=project_id).first()
        if project is None:
            raise NotFoundError("Project not found")

        product_ids = db.session.execute(
            select(Product.id).where(Product.project_id == project_id)
        ).scalars().all()
        removed = _delete_products(product_ids) if product_ids else 0

        db.session.query(ProjectAssignment).filter_by(project_id=project_id).delete(synchronize_session=False)
        db.session.query(Project).filter_by(id=project_id).delete(synchronize_session=False)

        db.session.commit()
        logger.info(
            "Deleted project %s (%d products, %d transactions)",
            project_id, len(product_ids), removed,
        )

    run_with_retry(_op)


# =============================================================================
# CATEGORIES
# =============================================================================


def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc()).all()


def create_category(ctx: AccessContext, name: str) -> Category:
    require_admin(ctx)

    def _op():
        existing = db.session.query(Category.id).filter(db.func.lower(Category.name) == name.lower()).first()
        if existing is not None:
            raise ValidationError("Category already exists", {"name": ["already exists"]})
        category = Category(name=name)
        db.session.add(category)
        db.session.commit()
        logger.info("Created category %s", category.id)
        return category

    return run_with_retry(_op)


def delete_category(ctx: AccessContext, category_id: int) -> None:
    """Delete a category; its products stay, uncategorized."""
    require_admin(ctx)

    def _op():
        category = db.session.query(Category).filter_by(id=category_id).first()
        if category is None:
            raise NotFoundError("Category not found")

        db.session.query(Product).filter(Product.category_id == category_id).update(
            {Product.category_id: None},
            synchronize_session=False,
        )
        db.session.delete(category)
        db.session.commit()
        logger.info("Deleted category %s", category_id)

    run_with_retry(_op)


# =============================================================================
# PRODUCTS
# =============================================================================


def list_products(ctx: AccessContext, project_id: int) -> list[Product]:
    get_project(ctx, project_id)
    return (
        db.session.query(Product)
        .options(selectinload(Product.variants))
        .filter(Product.project_id == project_id)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )


def _check_category(category_id: int | None) -> None:
    if category_id is None:
        return
    if db.session.query(Category.id).filter_by(id=category_id).first() is None:
        raise ValidationError("Unknown category", {"category_id": ["does not exist"]})


def create_product(ctx: AccessContext, project_id: int, data: ProductInput) -> Product:
    require_admin(ctx)

    def _op():
        if db.session.query(Project.id).filter_by(id=project_id).first() is None:
            raise NotFoundError("Project not found")
        _check_category(data.category_id)

        product = Product(
            project_id=project_id,
            name=data.name,
            sku=data.sku,
            price_cents=data.price_cents,
            stock=data.stock,
            category_id=data.category_id,
            image_url=data.image_url,
        )
        db.session.add(product)
        db.session.commit()
        logger.info("Created product %s in project %s (stock=%d)", product.id, project_id, data.stock)
        return product

    return run_with_retry(_op)


def update_product(ctx: AccessContext, product_id: int, data: ProductInput) -> Product:
    """
    Replace a product's editable fields.

    With variants, `stock` is the allocation ceiling: it cannot drop below
    what the variants already hold.
    """
    require_admin(ctx)

    def _op():
        begin_write_transaction()
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFoundError("Product not found")
        _check_category(data.category_id)

        allocated = product.allocated_stock()
        if product.has_variants and data.stock < allocated:
            raise AllocationExceededError(
                "Stock cannot drop below what variants already hold",
                details={"product_id": product_id, "requested_quantity": data.stock, "allocated": allocated},
            )

        product.name = data.name
        product.sku = data.sku
        product.price_cents = data.price_cents
        product.stock = data.stock
        product.category_id = data.category_id
        product.image_url = data.image_url

        db.session.commit()
        logger.info("Updated product %s", product_id)
        return product

    return run_with_retry(_op)


def delete_product(ctx: AccessContext, product_id: int) -> None:
    """Delete a product with its variants and transactions."""
    require_admin(ctx)

    def _op():
        begin_write_transaction()
        if db.session.query(Product.id).filter_by(id=product_id).first() is None:
            raise NotFoundError("Product not found")
        removed = _delete_products([product_id])
        db.session.commit()
        logger.info("Deleted product %s and %d transactions", product_id, removed)

    run_with_retry(_op)
