# Overview: Flask API route for cart checkout.

from flask import Blueprint, request, g

from ..services import checkout_service
from ..validation import CheckoutInput
from ..decorators import require_auth
from .errors import service_error_response, success


checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


@checkout_bp.post("")
@require_auth
def checkout_route():
    """
    Body: {"lines": [{"product_id", "variant_id", "quantity", "unit_price_cents"}],
           "type": "SALE", "payment_method": "CASH", "comment": "..."}

    All lines are recorded or none; a 409 names the failing line.
    """
    try:
        data = CheckoutInput.from_payload(request.get_json(silent=True))
        result = checkout_service.checkout(g.access, data)
        return success(201, **result.to_dict())
    except Exception as e:
        return service_error_response(e, "check out cart")
