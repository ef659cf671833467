# Overview: Flask API routes for check-in requests; parses input and returns JSON responses.

# backend/warehouse/routes/check_ins.py
"""
Check-in request routes.

LIFECYCLE: pending -> approved | rejected
"""
from flask import Blueprint, jsonify, request

from ..extensions import db
from ..services import check_in_service
from .errors import service_error_response

check_ins_bp = Blueprint("check_ins", __name__, url_prefix="/api/check-ins")


@check_ins_bp.post("")
def create_check_in():
    """
    Request body:
    {
        "company_id": int,
        "products": [{"name": str, "quantity": int, "variants": [...], "sku": str}],
        "requested_by": int (optional),
        "notes": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        req = check_in_service.create_check_in_request(
            company_id=data["company_id"],
            products=data.get("products"),
            requested_by=data.get("requested_by"),
            notes=data.get("notes"),
        )
        return jsonify(req.to_dict()), 201
    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except Exception as e:
        return service_error_response(e, "create check-in request")


@check_ins_bp.get("")
def list_check_ins():
    try:
        rows, total = check_in_service.list_check_ins(
            company_id=request.args.get("company_id", type=int),
            status=request.args.get("status"),
            limit=request.args.get("limit", 100, type=int),
            offset=request.args.get("offset", 0, type=int),
        )
        return jsonify({"check_ins": [r.to_dict() for r in rows], "total": total}), 200
    except Exception as e:
        return service_error_response(e, "list check-in requests")


@check_ins_bp.get("/<int:request_id>")
def get_check_in(request_id: int):
    try:
        return jsonify(check_in_service.get_check_in(request_id).to_dict()), 200
    except Exception as e:
        return service_error_response(e, "get check-in request")


@check_ins_bp.post("/<int:request_id>/approve")
def approve_check_in(request_id: int):
    """
    Request body:
    {
        "reviewed_by": int (optional),
        "reviewed_at": ISO-8601 (optional, defaults to now)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        req, result = check_in_service.approve_check_in(
            request_id,
            reviewed_by=data.get("reviewed_by"),
            reviewed_at=data.get("reviewed_at"),
        )
        return jsonify({"check_in": req.to_dict(), "result": result.to_dict()}), 200
    except Exception as e:
        return service_error_response(e, "approve check-in request")


@check_ins_bp.post("/<int:request_id>/amend-and-approve")
def amend_and_approve_check_in(request_id: int):
    """
    Request body:
    {
        "amended_products": [...],
        "amendment_notes": str (optional),
        "reviewed_by": int (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        req, result = check_in_service.amend_and_approve_check_in(
            request_id,
            amended_products=data["amended_products"],
            amendment_notes=data.get("amendment_notes"),
            reviewed_by=data.get("reviewed_by"),
            reviewed_at=data.get("reviewed_at"),
        )
        return jsonify({"check_in": req.to_dict(), "result": result.to_dict()}), 200
    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except Exception as e:
        return service_error_response(e, "amend check-in request")


@check_ins_bp.post("/<int:request_id>/reject")
def reject_check_in(request_id: int):
    """
    Request body:
    {
        "rejection_reason": str,
        "reviewed_by": int (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        req = check_in_service.reject_check_in(
            request_id,
            reason=data.get("rejection_reason"),
            reviewed_by=data.get("reviewed_by"),
        )
        return jsonify(req.to_dict()), 200
    except Exception as e:
        return service_error_response(e, "reject check-in request")
