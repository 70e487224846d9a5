from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from app.services import library
from app.utils.auth import current_user_id, optional_user_id
from app.utils.pagination import page_args, pagination_meta

bp = Blueprint("library", __name__)


@bp.route("", methods=["GET"])
def list_items():
    user_id = optional_user_id()
    page, limit = page_args(default_limit=12)
    result = library.list_items(
        category=request.args.get("category"),
        item_format=request.args.get("format"),
        search=request.args.get("search"),
        members_only=request.args.get("members_only") == "true",
        authenticated=user_id is not None,
        page=page,
        limit=limit,
    )
    # Listings never carry download links
    return jsonify({
        "success": True,
        "data": {
            "items": [item.to_dict(expose_download=not item.is_paid_item) for item in result.items],
            "pagination": pagination_meta(result),
        },
    }), 200


@bp.route("/<slug>", methods=["GET"])
def get_item(slug):
    user_id = optional_user_id()
    item = library.get_item(slug=slug)
    access = library.item_access(item, user_id)
    return jsonify({
        "success": True,
        "data": {
            "item": item.to_dict(expose_download=access["can_download"]),
            "access": access,
        },
    }), 200


# Manual payment request for a paid item
@bp.route("/<slug>/purchase", methods=["POST"])
@jwt_required()
def purchase(slug):
    data = request.get_json(silent=True) or {}
    purchase = library.request_purchase(
        current_user_id(),
        slug,
        payment_method=data.get("payment_method", "manual"),
        transaction_id=data.get("transaction_id", ""),
        phone_number=data.get("phone_number", ""),
        note=data.get("note", ""),
    )
    return jsonify({
        "success": True,
        "message": "Purchase request submitted. Waiting for admin approval.",
        "data": {"purchase": purchase.to_dict()},
    }), 200
