# backend/warehouse/routes/cleanup.py
"""
Catalog data-quality routes: scan, bulk repairs and product deletion.
"""
from flask import Blueprint, jsonify, request

from ..services import cleanup_service
from .errors import service_error_response

cleanup_bp = Blueprint("cleanup", __name__, url_prefix="/api/cleanup")


@cleanup_bp.get("/scan")
def scan():
    try:
        return jsonify(cleanup_service.scan_products(request.args.get("company_id", type=int))), 200
    except Exception as e:
        return service_error_response(e, "scan products")


@cleanup_bp.post("/fix-names")
def fix_names():
    data = request.get_json(silent=True) or {}
    try:
        result = cleanup_service.bulk_fix_empty_names(data.get("company_id"))
        return jsonify(result.to_dict()), 200
    except Exception as e:
        return service_error_response(e, "fix product names")


@cleanup_bp.post("/clean-variants")
def clean_variants():
    data = request.get_json(silent=True) or {}
    try:
        result = cleanup_service.bulk_clean_variants(data.get("company_id"))
        return jsonify(result.to_dict()), 200
    except Exception as e:
        return service_error_response(e, "clean product variants")


@cleanup_bp.delete("/products/<int:product_id>")
def delete_product(product_id: int):
    data = request.get_json(silent=True) or {}
    try:
        cleanup_service.delete_product(product_id, actor_user_id=data.get("actor_user_id"))
        return jsonify({"deleted": product_id}), 200
    except Exception as e:
        return service_error_response(e, "delete product")
