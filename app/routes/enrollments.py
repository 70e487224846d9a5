from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from app.services import enrollment as enrollment_service
from app.utils.auth import current_user_id, role_required

bp = Blueprint("enrollment", __name__)


# Direct enroll (pay later); gateway checkouts go through /payments/initiate
@bp.route("", methods=["POST"])
@jwt_required()
@role_required("student")
def enroll():
    data = request.get_json(silent=True) or {}
    enrollment = enrollment_service.create_enrollment(
        current_user_id(),
        data.get("batch_id"),
        data.get("payment_method", "pay_later"),
        transaction_id=data.get("transaction_id"),
        amount=data.get("amount"),
    )
    return jsonify({
        "success": True,
        "message": "Enrollment successful",
        "data": {"enrollment": enrollment.to_dict()},
    }), 201


@bp.route("/my-enrollments", methods=["GET"])
@jwt_required()
def my_enrollments():
    enrollments = enrollment_service.list_student_enrollments(current_user_id())
    return jsonify({
        "success": True,
        "data": {"enrollments": [enrollment.to_dict() for enrollment in enrollments]},
    }), 200
