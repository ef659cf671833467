# Overview: Flask API routes for shipments; parses input and returns JSON responses.

# backend/warehouse/routes/shipments.py
"""
Outbound shipment routes.

Creating a shipment deducts stock immediately (lots FIFO, then catalog).
Status moves forward only: pending -> in_transit -> delivered.
"""
from flask import Blueprint, jsonify, request

from ..extensions import db
from ..services import shipment_service
from .errors import service_error_response

shipments_bp = Blueprint("shipments", __name__, url_prefix="/api/shipments")


@shipments_bp.post("")
def create_shipment():
    """
    Request body:
    {
        "company_id": int,
        "destination_address": str,
        "items": [{"product_id": int, "quantity": int,
                   "variant_path": str | "variant_attribute": str, "variant_value": str}],
        "destination_contact": str (optional),
        "destination_phone": str (optional),
        "carrier": str (optional),
        "tracking_number": str (optional),
        "notes": str (optional),
        "shipment_date": ISO-8601 (optional),
        "shipped_by": int (optional),
        "allow_shortfall": bool (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        shipment, deductions = shipment_service.create_shipment(
            company_id=data["company_id"],
            destination_address=data.get("destination_address"),
            items=data.get("items"),
            destination_contact=data.get("destination_contact"),
            destination_phone=data.get("destination_phone"),
            carrier=data.get("carrier"),
            tracking_number=data.get("tracking_number"),
            notes=data.get("notes"),
            shipment_date=data.get("shipment_date"),
            shipped_by=data.get("shipped_by"),
            allow_shortfall=data.get("allow_shortfall"),
        )
        return jsonify({
            "shipment": shipment.to_dict(),
            "deductions": [d.to_dict() for d in deductions],
        }), 201
    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except Exception as e:
        return service_error_response(e, "create shipment")


@shipments_bp.get("")
def list_shipments():
    try:
        rows, total = shipment_service.list_shipments(
            company_id=request.args.get("company_id", type=int),
            status=request.args.get("status"),
            limit=request.args.get("limit", 100, type=int),
            offset=request.args.get("offset", 0, type=int),
        )
        return jsonify({
            "shipments": [s.to_dict(include_items=False) for s in rows],
            "total": total,
        }), 200
    except Exception as e:
        return service_error_response(e, "list shipments")


@shipments_bp.get("/<int:shipment_id>")
def get_shipment(shipment_id: int):
    try:
        return jsonify(shipment_service.get_shipment(shipment_id).to_dict()), 200
    except Exception as e:
        return service_error_response(e, "get shipment")


@shipments_bp.post("/<int:shipment_id>/status")
def update_status(shipment_id: int):
    """
    Request body:
    {
        "status": "in_transit" | "delivered",
        "tracking_number": str (optional),
        "actor_user_id": int (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        shipment = shipment_service.update_shipment_status(
            shipment_id,
            data["status"],
            tracking_number=data.get("tracking_number"),
            actor_user_id=data.get("actor_user_id"),
        )
        return jsonify(shipment.to_dict()), 200
    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except Exception as e:
        return service_error_response(e, "update shipment status")
