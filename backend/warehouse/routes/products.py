# Overview: Flask API routes for catalog products; parses input and returns JSON responses.

# backend/warehouse/routes/products.py
"""
Catalog product routes.

Authentication is handled upstream; actor ids arrive in the request body.
"""
from flask import Blueprint, jsonify, request

from ..extensions import db
from ..services import check_in_service, product_service
from .errors import service_error_response

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    Query params:
    - company_id: int (optional)
    - name: str (optional) - case-insensitive substring
    - include_inactive: bool (optional)
    - limit / offset: int (optional)
    """
    try:
        rows, total = product_service.list_products(
            company_id=request.args.get("company_id", type=int),
            name=request.args.get("name"),
            include_inactive=request.args.get("include_inactive", "false").lower() == "true",
            limit=request.args.get("limit", 200, type=int),
            offset=request.args.get("offset", 0, type=int),
        )
        return jsonify({"products": [p.to_dict() for p in rows], "total": total}), 200
    except Exception as e:
        return service_error_response(e, "list products")


@products_bp.post("")
def create_product():
    """
    Request body:
    {
        "company_id": int,
        "name": str,
        "sku": str (optional),
        "description": str (optional),
        "variants": [...] (optional),
        "quantity": int (optional, products without variants),
        "minimum_quantity": int (optional),
        "created_by": int (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        product = product_service.create_product(
            company_id=data["company_id"],
            name=data.get("name"),
            sku=data.get("sku"),
            description=data.get("description"),
            variants=data.get("variants"),
            quantity=data.get("quantity", 0),
            minimum_quantity=data.get("minimum_quantity"),
            received_date=data.get("received_date"),
            created_by=data.get("created_by"),
        )
        return jsonify(product.to_dict()), 201
    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except Exception as e:
        return service_error_response(e, "create product")


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    try:
        return jsonify(product_service.get_product(product_id).to_dict()), 200
    except Exception as e:
        return service_error_response(e, "get product")


@products_bp.get("/<int:product_id>/stock")
def get_stock(product_id: int):
    """Catalog total, lot total, per-leaf breakdown and drift."""
    try:
        return jsonify(product_service.get_stock_summary(product_id)), 200
    except Exception as e:
        return service_error_response(e, "get stock summary")


@products_bp.get("/<int:product_id>/check-in-template")
def get_check_in_template(product_id: int):
    try:
        return jsonify(check_in_service.check_in_template(product_id)), 200
    except Exception as e:
        return service_error_response(e, "build check-in template")
