# Overview: Flask API routes for reports; margins, gross profit and low stock.

from flask import Blueprint, jsonify

from ..decorators import require_actor, require_capability
from ..errors import PosError
from ..models.auth import CAP_VIEW_REPORTS
from ..services import reporting_service
from .helpers import error_response, internal_error, period_from_args


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/gross-profit")
@require_actor
@require_capability(CAP_VIEW_REPORTS)
def gross_profit_route():
    try:
        start, end = period_from_args()
        return jsonify(reporting_service.gross_profit_summary(start, end)), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to build gross profit report")


@reports_bp.get("/sales/<int:sale_id>/margin")
@require_actor
@require_capability(CAP_VIEW_REPORTS)
def sale_margin_route(sale_id: int):
    try:
        return jsonify(reporting_service.sale_margin(sale_id)), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to build sale margin")


@reports_bp.get("/low-stock")
@require_actor
@require_capability(CAP_VIEW_REPORTS)
def low_stock_route():
    try:
        products = reporting_service.low_stock_products()
        return jsonify({"products": [p.to_dict() for p in products]}), 200
    except Exception:
        return internal_error("Failed to list low stock products")
