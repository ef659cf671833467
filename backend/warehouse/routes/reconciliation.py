# Overview: Flask API routes for reconciliation reports; parses input and returns JSON responses.

# backend/warehouse/routes/reconciliation.py
"""
JARDE reconciliation routes.

/reports computes reports on the fly (read-only). /saved stores a snapshot
with physical counts; applying a saved report writes the counts into stock.
"""
from flask import Blueprint, jsonify, request

from ..extensions import db
from ..services import reconciliation_service
from .errors import service_error_response

reconciliation_bp = Blueprint("reconciliation", __name__, url_prefix="/api/reconciliation")


@reconciliation_bp.post("/reports")
def generate_reports():
    """
    Request body:
    {
        "start_date": "YYYY-MM-DD",
        "end_date": "YYYY-MM-DD",
        "company_id": int (optional, all active companies when omitted),
        "match_mode": "name" | "id" (optional),
        "actuals": {row_key: int} | [{"row_key": str, "actual_quantity": int}] (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        reports = reconciliation_service.generate_report(
            company_id=data.get("company_id"),
            start=data["start_date"],
            end=data["end_date"],
            match_mode=data.get("match_mode", reconciliation_service.MATCH_BY_NAME),
            actuals=data.get("actuals"),
        )
        return jsonify({"reports": [r.to_dict() for r in reports]}), 200
    except KeyError as e:
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except Exception as e:
        return service_error_response(e, "generate reconciliation report")


@reconciliation_bp.post("/saved")
def save_report():
    data = request.get_json(silent=True) or {}
    try:
        saved = reconciliation_service.save_report(
            company_id=data["company_id"],
            start=data["start_date"],
            end=data["end_date"],
            match_mode=data.get("match_mode", reconciliation_service.MATCH_BY_NAME),
            actuals=data.get("actuals"),
            notes=data.get("notes"),
            created_by=data.get("created_by"),
        )
        return jsonify(saved.to_dict()), 201
    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except Exception as e:
        return service_error_response(e, "save reconciliation report")


@reconciliation_bp.get("/saved")
def list_saved():
    try:
        rows = reconciliation_service.list_reports(
            company_id=request.args.get("company_id", type=int),
            limit=request.args.get("limit", 100, type=int),
        )
        return jsonify({"reports": [r.to_dict(include_rows=False) for r in rows]}), 200
    except Exception as e:
        return service_error_response(e, "list reconciliation reports")


@reconciliation_bp.get("/saved/<int:report_id>")
def get_saved(report_id: int):
    try:
        return jsonify(reconciliation_service.get_report(report_id).to_dict()), 200
    except Exception as e:
        return service_error_response(e, "get reconciliation report")


@reconciliation_bp.delete("/saved/<int:report_id>")
def delete_saved(report_id: int):
    try:
        reconciliation_service.delete_report(report_id)
        return jsonify({"deleted": report_id}), 200
    except Exception as e:
        return service_error_response(e, "delete reconciliation report")


@reconciliation_bp.post("/saved/<int:report_id>/apply")
def apply_saved(report_id: int):
    """Write counted quantities with a non-zero variance into catalog and lots."""
    data = request.get_json(silent=True) or {}
    try:
        saved, result = reconciliation_service.apply_counts(
            report_id,
            applied_by=data.get("applied_by"),
        )
        return jsonify({"report": saved.to_dict(include_rows=False), "result": result.to_dict()}), 200
    except Exception as e:
        return service_error_response(e, "apply reconciliation counts")
