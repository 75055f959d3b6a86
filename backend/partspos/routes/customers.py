# Overview: Flask API routes for customer reads.

from flask import Blueprint

from ..services import customer_service

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("/<customer_id>")
def get_customer_route(customer_id: str):
    """Customer with purchase count, total spent and outstanding balance."""
    return customer_service.get_customer(customer_id).to_dict()
