# Overview: Flask API routes for check-out requests; parses input and returns JSON responses.

# backend/warehouse/routes/check_outs.py
"""
Check-out request routes. Approval deducts stock from lots and catalog.
"""
from flask import Blueprint, jsonify, request

from ..extensions import db
from ..services import check_out_service
from .errors import service_error_response

check_outs_bp = Blueprint("check_outs", __name__, url_prefix="/api/check-outs")


@check_outs_bp.post("")
def create_check_out():
    """
    Request body:
    {
        "company_id": int,
        "items": [{"product_id": int, "quantity": int,
                   "variant_attribute": str, "variant_value": str,
                   "sub_variant_attribute": str, "sub_variant_value": str}],
        "requested_by": int (optional),
        "notes": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        req = check_out_service.create_check_out_request(
            company_id=data["company_id"],
            items=data.get("items"),
            requested_by=data.get("requested_by"),
            notes=data.get("notes"),
        )
        return jsonify(req.to_dict()), 201
    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except Exception as e:
        return service_error_response(e, "create check-out request")


@check_outs_bp.get("")
def list_check_outs():
    try:
        rows, total = check_out_service.list_check_outs(
            company_id=request.args.get("company_id", type=int),
            status=request.args.get("status"),
            limit=request.args.get("limit", 100, type=int),
            offset=request.args.get("offset", 0, type=int),
        )
        return jsonify({"check_outs": [r.to_dict() for r in rows], "total": total}), 200
    except Exception as e:
        return service_error_response(e, "list check-out requests")


@check_outs_bp.get("/<int:request_id>")
def get_check_out(request_id: int):
    try:
        return jsonify(check_out_service.get_check_out(request_id).to_dict()), 200
    except Exception as e:
        return service_error_response(e, "get check-out request")


@check_outs_bp.post("/<int:request_id>/approve")
def approve_check_out(request_id: int):
    """
    Request body:
    {
        "reviewed_by": int (optional),
        "reviewed_at": ISO-8601 (optional),
        "allow_shortfall": bool (optional, defaults to ALLOW_SHIPMENT_SHORTFALL)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        req, result = check_out_service.approve_check_out(
            request_id,
            reviewed_by=data.get("reviewed_by"),
            reviewed_at=data.get("reviewed_at"),
            allow_shortfall=data.get("allow_shortfall"),
        )
        return jsonify({"check_out": req.to_dict(), "result": result.to_dict()}), 200
    except Exception as e:
        return service_error_response(e, "approve check-out request")


@check_outs_bp.post("/<int:request_id>/reject")
def reject_check_out(request_id: int):
    data = request.get_json(silent=True) or {}
    try:
        req = check_out_service.reject_check_out(
            request_id,
            reason=data.get("rejection_reason"),
            reviewed_by=data.get("reviewed_by"),
        )
        return jsonify(req.to_dict()), 200
    except Exception as e:
        return service_error_response(e, "reject check-out request")
