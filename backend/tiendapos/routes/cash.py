# Overview: Flask API routes for the cash screen; movements, summary and closings.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_actor, require_capability
from ..errors import PosError
from ..models.auth import CAP_CLOSE_CASH, CAP_DELETE_CASH_MOVEMENT, CAP_MANAGE_CASH
from ..services import cash_service, closing_service, reporting_service
from .helpers import error_response, internal_error, json_body, period_from_args


cash_bp = Blueprint("cash", __name__, url_prefix="/api/cash")


def _closing_payload(closing) -> dict:
    data = closing.to_dict()
    overlapping = getattr(closing, "overlapping_closing_ids", None)
    if overlapping is not None:
        data["overlapping_closing_ids"] = overlapping
    return data


# =============================================================================
# MOVEMENTS
# =============================================================================

@cash_bp.get("/movements")
@require_actor
@require_capability(CAP_MANAGE_CASH)
def list_movements_route():
    try:
        start, end = period_from_args()
        movements = cash_service.list_movements(start, end, type=request.args.get("type"))
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list cash movements")


@cash_bp.post("/movements")
@require_actor
@require_capability(CAP_MANAGE_CASH)
def record_movement_route():
    """
    Record a manual income or expense.

    Body: {"type": "income"|"expense", "amount": "100.00", "description": "..."}
    """
    try:
        data = json_body()
        movement = cash_service.record_movement(
            data.get("type"),
            data.get("amount"),
            data.get("description"),
            g.current_user.id,
        )
        return jsonify({"movement": movement.to_dict()}), 201
    except PosError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to record cash movement")


@cash_bp.delete("/movements/<int:movement_id>")
@require_actor
@require_capability(CAP_DELETE_CASH_MOVEMENT)
def delete_movement_route(movement_id: int):
    try:
        data = json_body()
        deleted = cash_service.delete_movement(movement_id, g.current_user.id, data.get("reason"))
        return jsonify({"deleted": deleted}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to delete cash movement")


@cash_bp.get("/summary")
@require_actor
@require_capability(CAP_MANAGE_CASH)
def cash_summary_route():
    try:
        start, end = period_from_args()
        return jsonify({"summary": reporting_service.cash_summary(start, end)}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to build cash summary")


# =============================================================================
# CLOSINGS
# =============================================================================

@cash_bp.get("/closings/preview")
@require_actor
@require_capability(CAP_CLOSE_CASH)
def preview_closing_route():
    try:
        start, end = period_from_args()
        preview = closing_service.preview_cash_session(start, end, request.args.get("counted_cash"))
        return jsonify({"preview": preview}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to preview cash closing")


@cash_bp.post("/closings")
@require_actor
@require_capability(CAP_CLOSE_CASH)
def close_cash_route():
    """
    Close the drawer for a period.

    Body: {"period_start": iso, "period_end": iso, "counted_cash": "1500.00", "notes": "..."}
    Shortage and surplus are stored like a balanced closing (201).
    """
    try:
        data = json_body()
        closing = closing_service.close_cash_session(
            data.get("period_start"),
            data.get("period_end"),
            data.get("counted_cash"),
            data.get("notes"),
            g.current_user.id,
        )
        return jsonify({"closing": _closing_payload(closing)}), 201
    except PosError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to close cash session")


@cash_bp.get("/closings")
@require_actor
@require_capability(CAP_CLOSE_CASH)
def list_closings_route():
    try:
        closings = closing_service.list_closings(request.args.get("start"), request.args.get("end"))
        return jsonify({"closings": [c.to_dict() for c in closings]}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list cash closings")


@cash_bp.get("/closings/<int:closing_id>")
@require_actor
@require_capability(CAP_CLOSE_CASH)
def get_closing_route(closing_id: int):
    try:
        closing = closing_service.get_closing(closing_id)
        return jsonify({"closing": closing.to_dict()}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to get cash closing")
