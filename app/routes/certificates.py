from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required

from app.services import certificates
from app.utils.auth import current_user_id

bp = Blueprint("certificates", __name__)


@bp.route("/my-certificates", methods=["GET"])
@jwt_required()
def my_certificates():
    rows = certificates.list_student_certificates(current_user_id())
    return jsonify({"success": True, "data": {"certificates": [row.to_dict() for row in rows]}}), 200


# Public verification
@bp.route("/verify/<verification_number>", methods=["GET"])
def verify(verification_number):
    certificate = certificates.verify_certificate(verification_number)
    return jsonify({"success": True, "data": {"certificate": certificate.to_dict()}}), 200
