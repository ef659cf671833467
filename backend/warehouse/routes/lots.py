# Overview: Flask API routes for inventory lots; parses input and returns JSON responses.

# backend/warehouse/routes/lots.py
"""
Inventory lot routes (FIFO order).
"""
from flask import Blueprint, jsonify, request

from ..extensions import db
from ..services import lot_service
from .errors import service_error_response

lots_bp = Blueprint("lots", __name__, url_prefix="/api/lots")


@lots_bp.get("")
def list_lots():
    """
    Query params:
    - company_id: int (required)
    - product_id: int (optional)
    """
    company_id = request.args.get("company_id", type=int)
    if not company_id:
        return jsonify({"error": "company_id is required"}), 400
    try:
        lots = lot_service.list_lots(
            company_id=company_id,
            product_id=request.args.get("product_id", type=int),
        )
        return jsonify({"lots": [lot.to_dict() for lot in lots]}), 200
    except Exception as e:
        return service_error_response(e, "list lots")


@lots_bp.post("")
def receive_lot():
    """
    Request body:
    {
        "company_id": int,
        "product_id": int,
        "quantity": int,
        "variant_attribute": str (optional),
        "variant_value": str (optional),
        "received_date": ISO-8601 (optional, defaults to now),
        "note": str (optional),
        "actor_user_id": int (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        lot = lot_service.receive_lot(
            product_id=data["product_id"],
            company_id=data["company_id"],
            quantity=data["quantity"],
            variant_attribute=data.get("variant_attribute"),
            variant_value=data.get("variant_value"),
            received_date=data.get("received_date"),
            note=data.get("note"),
            actor_user_id=data.get("actor_user_id"),
        )
        return jsonify(lot.to_dict()), 201
    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except Exception as e:
        return service_error_response(e, "receive lot")
