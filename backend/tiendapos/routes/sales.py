# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/tiendapos/routes/sales.py
"""Sales API routes with capability enforcement"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor, require_capability
from ..errors import PosError
from ..models.auth import CAP_CREATE_SALE, CAP_VIEW_REPORTS, CAP_VOID_SALE
from ..services import receipt_service, reporting_service, sales_service
from ..services.receipt_service import ReceiptSettings
from .helpers import error_response, internal_error, json_body, period_from_args


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_actor
@require_capability(CAP_CREATE_SALE)
def post_sale_route():
    """
    Post a sale from a cart.

    Body:
        items: [{"product_id": 1, "quantity": 2}, ...]
        payment_method: cash | card | transfer (efectivo, tarjeta, transferencia)
        tendered: amount handed over (cash)
        client_id: existing client, or
        client: {"name": "...", "phone": "..."} to register one inline
        tax: optional
    """
    try:
        data = json_body()
        client_ref = data.get("client") if data.get("client") is not None else data.get("client_id")

        sale = sales_service.post_sale(
            data.get("items"),
            data.get("payment_method"),
            data.get("tendered"),
            client_ref,
            cashier_user_id=g.current_user.id,
            tax=data.get("tax"),
        )
        return jsonify({"sale": sale.to_dict(include_details=True)}), 201

    except PosError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to post sale")


@sales_bp.get("")
@require_actor
@require_capability(CAP_VIEW_REPORTS)
def list_sales_route():
    try:
        start, end = period_from_args()
        include_voided = request.args.get("include_voided", "false").lower() == "true"
        sales = reporting_service.list_sales(
            start,
            end,
            payment_method=request.args.get("payment_method"),
            include_voided=include_voided,
            client_id=request.args.get("client_id"),
        )
        return jsonify({"sales": [s.to_dict() for s in sales]}), 200

    except PosError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list sales")


@sales_bp.get("/<int:sale_id>")
@require_actor
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return jsonify({"sale": sale.to_dict(include_details=True)}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to get sale")


@sales_bp.get("/folio/<string:folio>")
@require_actor
def get_sale_by_folio_route(folio: str):
    try:
        sale = sales_service.get_sale_by_folio(folio.strip().upper())
        return jsonify({"sale": sale.to_dict(include_details=True)}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to get sale")


@sales_bp.post("/<int:sale_id>/void")
@require_actor
@require_capability(CAP_VOID_SALE)
def void_sale_route(sale_id: int):
    """
    Void a sale and return its stock.

    Voiding twice answers 409 with kind "already_voided".
    """
    try:
        data = json_body()
        sale = sales_service.void_sale(sale_id, g.current_user.id, data.get("reason"))
        return jsonify({"sale": sale.to_dict(include_details=True)}), 200

    except PosError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to void sale")


@sales_bp.get("/<int:sale_id>/receipt")
@require_actor
def receipt_route(sale_id: int):
    try:
        settings = ReceiptSettings.from_config(current_app.config)
        return jsonify({"receipt": receipt_service.build_receipt(sale_id, settings)}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to build receipt")
