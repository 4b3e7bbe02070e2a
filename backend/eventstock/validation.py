"""
Strict input structs for every operation that reaches the stock ledger.

Payloads arrive as loosely typed JSON. Each operation gets a frozen dataclass
with a `from_payload()` constructor that:
- rejects unknown fields (security boundary, nothing unexpected reaches services)
- enforces required fields
- coerces and range-checks values
Services accept the dataclasses, never raw dicts.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from eventstock.models.ledger import TRANSACTION_TYPES, PAYMENT_METHODS
from eventstock.time_utils import parse_iso_date


# Maximum price: 9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999
MAX_QUANTITY = 1_000_000
MAX_COMMENT_LENGTH = 255


class ValidationError(ValueError):
    """400-level input problem."""

    def __init__(self, message: str, field_errors: dict | None = None):
        super().__init__(message)
        self.field_errors = field_errors or {}


class NotFoundError(LookupError):
    """404-level: referenced row does not exist."""


def _check_fields(payload: Any, *, allowed: set[str], required: set[str] = frozenset()) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    unknown = sorted(k for k in payload if k not in allowed)
    if unknown:
        raise ValidationError(
            f"Field not allowed: {', '.join(unknown)}",
            field_errors={k: ["not allowed"] for k in unknown},
        )

    missing = sorted(k for k in required if payload.get(k) is None)
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            field_errors={k: ["required"] for k in missing},
        )
    return payload


def coerce_int(name: str, value: Any, *, minimum: int | None = None, maximum: int | None = None) -> int:
    """Strict integer: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer", {name: ["must be an integer"]})

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{name} must be an integer", {name: ["must be an integer"]})
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer", {name: ["must be an integer"]})
    else:
        raise ValidationError(f"{name} must be an integer", {name: ["must be an integer"]})

    if minimum is not None and result < minimum:
        raise ValidationError(f"{name} must be >= {minimum}", {name: [f"must be >= {minimum}"]})
    if maximum is not None and result > maximum:
        raise ValidationError(f"{name} must be <= {maximum}", {name: [f"must be <= {maximum}"]})
    return result


def _optional_int(name: str, value: Any, **kwargs) -> int | None:
    if value is None or value == "":
        return None
    return coerce_int(name, value, **kwargs)


def _optional_text(name: str, value: Any, *, max_length: int) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string", {name: ["must be a string"]})
    text = value.strip()
    if not text:
        return None
    if len(text) > max_length:
        raise ValidationError(f"{name} exceeds max length {max_length}", {name: [f"max length {max_length}"]})
    return text


def _required_text(name: str, value: Any, *, max_length: int) -> str:
    text = _optional_text(name, value, max_length=max_length)
    if text is None:
        raise ValidationError(f"{name} cannot be blank", {name: ["cannot be blank"]})
    return text


def _choice(name: str, value: Any, choices: tuple[str, ...]) -> str:
    if not isinstance(value, str) or value.strip().upper() not in choices:
        raise ValidationError(
            f"{name} must be one of {', '.join(choices)}",
            {name: [f"must be one of {', '.join(choices)}"]},
        )
    return value.strip().upper()


def _optional_choice(name: str, value: Any, choices: tuple[str, ...]) -> str | None:
    if value is None or value == "":
        return None
    return _choice(name, value, choices)


def _optional_date(name: str, value: Any) -> date | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be an ISO-8601 date", {name: ["must be an ISO-8601 date"]})
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date", {name: ["must be an ISO-8601 date"]})


# =============================================================================
# TRANSACTIONS
# =============================================================================


@dataclass(frozen=True)
class TransactionInput:
    product_id: int
    type: str
    quantity: int
    amount_cents: int
    variant_id: int | None = None
    payment_method: str | None = None
    comment: str | None = None

    FIELDS = frozenset({"product_id", "variant_id", "type", "payment_method", "quantity", "amount_cents", "comment"})

    def __post_init__(self):
        # GIFT rows never carry money or a payment method
        if self.type == "GIFT":
            object.__setattr__(self, "payment_method", None)
            object.__setattr__(self, "amount_cents", 0)
        elif self.payment_method is None:
            raise ValidationError(
                "payment_method is required for SALE",
                {"payment_method": ["required for SALE"]},
            )

    @classmethod
    def from_payload(cls, payload: Any) -> "TransactionInput":
        data = _check_fields(payload, allowed=cls.FIELDS, required={"product_id", "type", "quantity"})
        tx_type = _choice("type", data["type"], TRANSACTION_TYPES)
        amount_raw = data.get("amount_cents")
        if tx_type == "SALE" and amount_raw is None:
            raise ValidationError("amount_cents is required for SALE", {"amount_cents": ["required for SALE"]})
        return cls(
            product_id=coerce_int("product_id", data["product_id"], minimum=1),
            variant_id=_optional_int("variant_id", data.get("variant_id"), minimum=1),
            type=tx_type,
            payment_method=(
                _optional_choice("payment_method", data.get("payment_method"), PAYMENT_METHODS)
                if tx_type == "SALE" else None
            ),
            quantity=coerce_int("quantity", data["quantity"], minimum=1, maximum=MAX_QUANTITY),
            amount_cents=(
                coerce_int("amount_cents", amount_raw, minimum=0, maximum=MAX_PRICE_CENTS * MAX_QUANTITY)
                if amount_raw is not None else 0
            ),
            comment=_optional_text("comment", data.get("comment"), max_length=MAX_COMMENT_LENGTH),
        )


@dataclass(frozen=True)
class TransactionUpdate:
    """
    Patch for an existing transaction. Fields left as None are unchanged,
    except `comment`, which is cleared when `clear_comment` is set.

    The target pool (product_id / variant_id) is immutable.
    """
    quantity: int | None = None
    amount_cents: int | None = None
    payment_method: str | None = None
    type: str | None = None
    comment: str | None = None
    clear_comment: bool = False

    FIELDS = frozenset({"quantity", "amount_cents", "payment_method", "type", "comment"})

    @classmethod
    def from_payload(cls, payload: Any) -> "TransactionUpdate":
        data = _check_fields(payload, allowed=cls.FIELDS)
        if not data:
            raise ValidationError("No fields to update")
        comment = _optional_text("comment", data.get("comment"), max_length=MAX_COMMENT_LENGTH)
        return cls(
            quantity=_optional_int("quantity", data.get("quantity"), minimum=1, maximum=MAX_QUANTITY),
            amount_cents=_optional_int(
                "amount_cents", data.get("amount_cents"), minimum=0, maximum=MAX_PRICE_CENTS * MAX_QUANTITY
            ),
            payment_method=_optional_choice("payment_method", data.get("payment_method"), PAYMENT_METHODS),
            type=_optional_choice("type", data.get("type"), TRANSACTION_TYPES),
            comment=comment,
            clear_comment="comment" in data and comment is None,
        )


# =============================================================================
# CHECKOUT
# =============================================================================


@dataclass(frozen=True)
class CheckoutLine:
    product_id: int
    quantity: int
    unit_price_cents: int
    variant_id: int | None = None

    FIELDS = frozenset({"product_id", "variant_id", "quantity", "unit_price_cents"})

    @classmethod
    def from_payload(cls, payload: Any, index: int) -> "CheckoutLine":
        prefix = f"lines[{index}]"
        try:
            data = _check_fields(payload, allowed=cls.FIELDS, required={"product_id", "quantity", "unit_price_cents"})
            return cls(
                product_id=coerce_int("product_id", data["product_id"], minimum=1),
                variant_id=_optional_int("variant_id", data.get("variant_id"), minimum=1),
                quantity=coerce_int("quantity", data["quantity"], minimum=1, maximum=MAX_QUANTITY),
                unit_price_cents=coerce_int("unit_price_cents", data["unit_price_cents"], minimum=0, maximum=MAX_PRICE_CENTS),
            )
        except ValidationError as e:
            raise ValidationError(
                f"{prefix}: {e}",
                {f"{prefix}.{k}": v for k, v in e.field_errors.items()},
            )


@dataclass(frozen=True)
class CheckoutInput:
    lines: tuple[CheckoutLine, ...]
    type: str = "SALE"
    payment_method: str | None = None
    comment: str | None = None

    FIELDS = frozenset({"lines", "type", "payment_method", "comment"})

    def __post_init__(self):
        if not self.lines:
            raise ValidationError("lines cannot be empty", {"lines": ["cannot be empty"]})
        if self.type == "GIFT":
            object.__setattr__(self, "payment_method", None)
        elif self.payment_method is None:
            raise ValidationError(
                "payment_method is required for SALE",
                {"payment_method": ["required for SALE"]},
            )

    @classmethod
    def from_payload(cls, payload: Any) -> "CheckoutInput":
        data = _check_fields(payload, allowed=cls.FIELDS, required={"lines"})
        raw_lines = data["lines"]
        if not isinstance(raw_lines, list):
            raise ValidationError("lines must be a list", {"lines": ["must be a list"]})
        tx_type = _choice("type", data.get("type") or "SALE", TRANSACTION_TYPES)
        return cls(
            lines=tuple(CheckoutLine.from_payload(line, i) for i, line in enumerate(raw_lines)),
            type=tx_type,
            payment_method=(
                _optional_choice("payment_method", data.get("payment_method"), PAYMENT_METHODS)
                if tx_type == "SALE" else None
            ),
            comment=_optional_text("comment", data.get("comment"), max_length=MAX_COMMENT_LENGTH),
        )


# =============================================================================
# INVENTORY
# =============================================================================


@dataclass(frozen=True)
class VariantInput:
    stock: int
    size: str | None = None
    color: str | None = None
    sku: str | None = None

    FIELDS = frozenset({"size", "color", "stock", "sku"})

    @classmethod
    def from_payload(cls, payload: Any) -> "VariantInput":
        data = _check_fields(payload, allowed=cls.FIELDS, required={"stock"})
        return cls(
            size=_optional_text("size", data.get("size"), max_length=32),
            color=_optional_text("color", data.get("color"), max_length=64),
            sku=_optional_text("sku", data.get("sku"), max_length=64),
            stock=coerce_int("stock", data["stock"], minimum=0, maximum=MAX_QUANTITY),
        )


@dataclass(frozen=True)
class BulkVariantInput:
    """Size x color matrix, each combination getting `stock_per_variant`."""
    variants: tuple[VariantInput, ...]

    FIELDS = frozenset({"sizes", "colors", "stock_per_variant", "variants"})

    @classmethod
    def from_payload(cls, payload: Any) -> "BulkVariantInput":
        data = _check_fields(payload, allowed=cls.FIELDS)

        if data.get("variants") is not None:
            if not isinstance(data["variants"], list):
                raise ValidationError("variants must be a list", {"variants": ["must be a list"]})
            variants = tuple(VariantInput.from_payload(v) for v in data["variants"])
        else:
            sizes = data.get("sizes") or []
            colors = data.get("colors") or []
            if not isinstance(sizes, list) or not isinstance(colors, list):
                raise ValidationError("sizes and colors must be lists")
            stock = coerce_int("stock_per_variant", data.get("stock_per_variant", 0), minimum=0, maximum=MAX_QUANTITY)
            sizes = [_optional_text("sizes", s, max_length=32) for s in sizes] or [None]
            colors = [_optional_text("colors", c, max_length=64) for c in colors] or [None]
            variants = tuple(
                VariantInput(size=size, color=color, stock=stock)
                for size in sizes
                for color in colors
            )

        if not variants:
            raise ValidationError("No variants to create", {"variants": ["cannot be empty"]})
        return cls(variants=variants)


@dataclass(frozen=True)
class RestockInput:
    quantity: int

    FIELDS = frozenset({"quantity"})

    @classmethod
    def from_payload(cls, payload: Any) -> "RestockInput":
        data = _check_fields(payload, allowed=cls.FIELDS, required={"quantity"})
        return cls(quantity=coerce_int("quantity", data["quantity"], minimum=1, maximum=MAX_QUANTITY))


# =============================================================================
# CATALOG
# =============================================================================


@dataclass(frozen=True)
class ProductInput:
    name: str
    price_cents: int
    stock: int
    sku: str | None = None
    category_id: int | None = None
    image_url: str | None = None

    FIELDS = frozenset({"name", "sku", "price_cents", "stock", "category_id", "image_url"})

    @classmethod
    def from_payload(cls, payload: Any) -> "ProductInput":
        data = _check_fields(payload, allowed=cls.FIELDS, required={"name", "price_cents", "stock"})
        return cls(
            name=_required_text("name", data["name"], max_length=255),
            sku=_optional_text("sku", data.get("sku"), max_length=64),
            price_cents=coerce_int("price_cents", data["price_cents"], minimum=0, maximum=MAX_PRICE_CENTS),
            stock=coerce_int("stock", data["stock"], minimum=0, maximum=MAX_QUANTITY),
            category_id=_optional_int("category_id", data.get("category_id"), minimum=1),
            image_url=_optional_text("image_url", data.get("image_url"), max_length=1024),
        )


@dataclass(frozen=True)
class ProjectInput:
    name: str
    start_date: date | None = None
    end_date: date | None = None

    FIELDS = frozenset({"name", "start_date", "end_date"})

    def __post_init__(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError("end_date must be on or after start_date", {"end_date": ["before start_date"]})

    @classmethod
    def from_payload(cls, payload: Any) -> "ProjectInput":
        data = _check_fields(payload, allowed=cls.FIELDS, required={"name"})
        return cls(
            name=_required_text("name", data["name"], max_length=255),
            start_date=_optional_date("start_date", data.get("start_date")),
            end_date=_optional_date("end_date", data.get("end_date")),
        )


@dataclass(frozen=True)
class SellerInput:
    email: str
    password: str
    role: str = "seller"

    FIELDS = frozenset({"email", "password", "role"})

    @classmethod
    def from_payload(cls, payload: Any) -> "SellerInput":
        data = _check_fields(payload, allowed=cls.FIELDS, required={"email", "password"})
        email = _required_text("email", data["email"], max_length=255).lower()
        if "@" not in email:
            raise ValidationError("email is invalid", {"email": ["invalid"]})
        password = data["password"]
        if not isinstance(password, str):
            raise ValidationError("password must be a string", {"password": ["must be a string"]})
        return cls(
            email=email,
            password=password,
            role=(data.get("role") or "seller").strip().lower(),
        )


def parse_name(payload: Any) -> str:
    """Single-field payloads ({"name": ...}) such as categories."""
    data = _check_fields(payload, allowed={"name"}, required={"name"})
    return _required_text("name", data["name"], max_length=255)


def parse_flag(payload: Any, name: str) -> bool:
    data = _check_fields(payload, allowed={name}, required={name})
    value = data[name]
    if not isinstance(value, bool):
        raise ValidationError(f"{name} must be a boolean", {name: ["must be a boolean"]})
    return value


def parse_role(payload: Any) -> str:
    data = _check_fields(payload, allowed={"role"}, required={"role"})
    return _choice("role", data["role"], ("ADMIN", "SELLER")).lower()
