from __future__ import annotations

from ..extensions import db
from eventstock.time_utils import to_utc_z


class Project(db.Model):
    """
    An event: the unit of stock ownership and seller assignment.

    Archival is a soft toggle; deleting a project removes its products,
    variants, transactions and seller assignments.
    """
    __tablename__ = "projects"
    __table_args__ = (
        db.Index("ix_projects_archived", "archived"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    archived = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    products = db.relationship(
        "Product",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="Product.name",
        lazy=True,
    )
    assignments = db.relationship(
        "ProjectAssignment",
        back_populates="project",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Project id={self.id} name={self.name!r} archived={self.archived}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "archived": self.archived,
            "created_at": to_utc_z(self.created_at),
        }


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_categories_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Sellable item of a project.

    STOCK SEMANTICS:
    - Without variants, `stock` is the directly sellable pool.
    - With variants, `stock` is the allocation ceiling ("total owned").
      Variant stock is carved out of it at variant creation time and sales
      must target a variant. Use allocatable_remaining() for the headroom
      left for new variants; never reinterpret `stock` itself.

    SKU is optional and NOT unique (several events may reuse the same code).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        db.Index("ix_products_project_name", "project_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    stock = db.Column(db.Integer, nullable=False, default=0)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    image_url = db.Column(db.String(1024), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    project = db.relationship("Project", back_populates="products")
    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    variants = db.relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductVariant.id",
        lazy=True,
    )
    transactions = db.relationship(
        "Transaction",
        back_populates="product",
        cascade="all, delete",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock} project_id={self.project_id}>"

    @property
    def has_variants(self) -> bool:
        return len(self.variants) > 0

    def allocated_stock(self) -> int:
        return sum(v.stock for v in self.variants)

    def allocatable_remaining(self) -> int:
        """Stock still available for carving into new variants."""
        return self.stock - self.allocated_stock()

    def to_dict(self, include_variants: bool = False) -> dict:
        data = {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "sku": self.sku,
            "price_cents": self.price_cents,
            "stock": self.stock,
            "category_id": self.category_id,
            "image_url": self.image_url,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_variants:
            data["variants"] = [v.to_dict() for v in self.variants]
            data["allocatable_remaining"] = self.allocatable_remaining()
        return data


class ProductVariant(db.Model):
    __tablename__ = "product_variants"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_product_variants_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    size = db.Column(db.String(32), nullable=True)
    color = db.Column(db.String(64), nullable=True)
    sku = db.Column(db.String(64), nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", back_populates="variants")
    transactions = db.relationship(
        "Transaction",
        back_populates="variant",
        cascade="all, delete",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def label(self) -> str:
        parts = [p for p in (self.size, self.color) if p]
        return " / ".join(parts) if parts else "Variante"

    def __repr__(self) -> str:
        return f"<ProductVariant id={self.id} product_id={self.product_id} label={self.label!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "size": self.size,
            "color": self.color,
            "sku": self.sku,
            "label": self.label,
            "stock": self.stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
