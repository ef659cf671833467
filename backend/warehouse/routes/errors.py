# Overview: Maps service exceptions to JSON error responses.

from flask import current_app, jsonify

from ..extensions import db
from ..services.lot_service import InsufficientStockError
from ..validation import NotFoundError, StateError, ValidationError


def service_error_response(exc: Exception, action: str):
    """
    Roll back and translate a service exception into (body, status).

    ValidationError -> 400, NotFoundError -> 404, StateError and
    InsufficientStockError -> 409. Anything else is logged and returned as 500.
    """
    db.session.rollback()
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, InsufficientStockError):
        return jsonify({"error": str(exc), "shortfall": exc.result.to_dict()}), 409
    if isinstance(exc, StateError):
        return jsonify({"error": str(exc)}), 409
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": f"Failed to {action}"}), 500
