from flask import Blueprint, request, jsonify, redirect, current_app
from flask_jwt_extended import jwt_required

from app.errors import AppError
from app.extensions import db
from app.services import payments
from app.utils.auth import current_user_id, role_required

bp = Blueprint("payments", __name__)


@bp.route("/methods", methods=["GET"])
def payment_methods():
    return jsonify({"success": True, "data": {"methods": payments.list_payment_methods()}}), 200


@bp.route("/initiate", methods=["POST"])
@jwt_required()
@role_required("student")
def initiate():
    data = request.get_json(silent=True) or {}
    result = payments.initiate_payment(
        current_user_id(),
        data.get("payment_method"),
        batch_id=data.get("batch_id"),
        product_type=data.get("product_type"),
        item_id=data.get("item_id"),
        item_slug=data.get("item_slug"),
        course_slug=data.get("course_slug"),
    )
    return jsonify({
        "success": True,
        "message": "Payment session created",
        "data": {"payment_url": result["payment_url"], "tran_id": result["transaction_id"]},
    }), 200


# Called by the frontend callback page after the gateway redirects back
@bp.route("/confirm", methods=["GET"])
@jwt_required()
def confirm():
    result = payments.confirm_payment(request.args.get("tranId"), request.args.get("method"))
    return jsonify({
        "success": True,
        "message": "Payment confirmed" if result["changed"] else "Payment already confirmed",
        "data": result,
    }), 200


@bp.route("/confirm-fail", methods=["GET"])
@jwt_required()
def confirm_fail():
    result = payments.confirm_fail(request.args.get("tranId"))
    return jsonify({
        "success": True,
        "message": "Payment marked as failed" if result["changed"] else "Payment status unchanged",
        "data": result,
    }), 200


def _dashboard(query):
    return redirect(f"{current_app.config['FRONTEND_URL'].rstrip('/')}/student/dashboard?{query}")


@bp.route("/success", methods=["GET"])
@jwt_required()
def success():
    try:
        payments.confirm_payment(request.args.get("tranId"), request.args.get("method"))
    except AppError as e:
        db.session.rollback()
        current_app.logger.warning(f"Payment success callback rejected: {e.message}")
        return _dashboard("error=payment_verification_failed")
    return _dashboard("success=payment_completed")


@bp.route("/fail", methods=["GET"])
@jwt_required()
def fail():
    try:
        payments.confirm_fail(request.args.get("tranId"))
    except AppError as e:
        db.session.rollback()
        current_app.logger.warning(f"Payment fail callback rejected: {e.message}")
        return _dashboard("error=payment_error")
    return _dashboard("error=payment_failed")
