# Overview: Shared request parsing and error serialization for the JSON routes.

from flask import current_app, jsonify, request

from ..errors import PosError, http_status_for
from ..time_utils import day_bounds


def error_response(e: PosError):
    return jsonify(e.to_dict()), http_status_for(e.kind)


def internal_error(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500


def period_from_args():
    """
    (start, end) from ?start=&end= query args.

    Either bound missing falls back to the current UTC day; values are
    validated by the service that receives them.
    """
    default_start, default_end = day_bounds()
    start = request.args.get("start") or default_start
    end = request.args.get("end") or default_end
    return start, end


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
