from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from app.services import certificates
from app.utils.auth import role_required
from app.utils.pagination import page_args, pagination_meta

bp = Blueprint("admin_certificates", __name__)


@bp.before_request
@jwt_required()
@role_required("admin")
def require_admin():
    pass


@bp.route("", methods=["GET"])
def list_certificates():
    page, limit = page_args()
    result = certificates.list_certificates(
        search=request.args.get("search"),
        category=request.args.get("category"),
        status=request.args.get("status"),
        student_id=request.args.get("student_id", type=int),
        course_id=request.args.get("course_id", type=int),
        page=page,
        limit=limit,
    )
    return jsonify({
        "success": True,
        "data": {
            "certificates": [row.to_dict() for row in result.items],
            "pagination": pagination_meta(result),
        },
    }), 200


@bp.route("/categories", methods=["GET"])
def categories():
    return jsonify({"success": True, "data": {"categories": certificates.list_categories()}}), 200


@bp.route("/<int:certificate_id>", methods=["GET"])
def get_certificate(certificate_id):
    certificate = certificates.get_certificate(certificate_id)
    return jsonify({"success": True, "data": {"certificate": certificate.to_dict()}}), 200


@bp.route("/verify/<verification_number>", methods=["GET"])
def verify(verification_number):
    certificate = certificates.verify_certificate(verification_number)
    return jsonify({"success": True, "data": {"certificate": certificate.to_dict()}}), 200


@bp.route("", methods=["POST"])
def create_certificate():
    data = request.get_json(silent=True) or {}
    certificate = certificates.create_manual_certificate(
        data.get("student_id"),
        data.get("student_name"),
        data.get("course_name"),
        course_id=data.get("course_id"),
        batch_id=data.get("batch_id"),
        completion_date=data.get("completion_date"),
        issuer_name=data.get("issuer_name", ""),
        issuer_title=data.get("issuer_title", ""),
        category=data.get("category"),
    )
    return jsonify({
        "success": True,
        "message": "Certificate created successfully",
        "data": {"certificate": certificate.to_dict()},
    }), 201


@bp.route("/generate", methods=["POST"])
def generate_certificate():
    data = request.get_json(silent=True) or {}
    certificate = certificates.generate_certificate(
        enrollment_id=data.get("enrollment_id"),
        student_id=data.get("student_id"),
        course_id=data.get("course_id"),
        completion_date=data.get("completion_date"),
    )
    return jsonify({
        "success": True,
        "message": "Certificate generated successfully",
        "data": {"certificate": certificate.to_dict()},
    }), 201


@bp.route("/<int:certificate_id>", methods=["PUT"])
def update_certificate(certificate_id):
    data = request.get_json(silent=True) or {}
    certificate = certificates.update_certificate(
        certificate_id,
        student_name=data.get("student_name"),
        course_name=data.get("course_name"),
        completion_date=data.get("completion_date"),
        status=data.get("status"),
        template_id=data.get("template_id"),
        issuer_name=data.get("issuer_name"),
        issuer_title=data.get("issuer_title"),
    )
    return jsonify({
        "success": True,
        "message": "Certificate updated successfully",
        "data": {"certificate": certificate.to_dict()},
    }), 200


@bp.route("/<int:certificate_id>", methods=["DELETE"])
def delete_certificate(certificate_id):
    certificates.delete_certificate(certificate_id)
    return jsonify({"success": True, "message": "Certificate deleted successfully"}), 200


# Templates

@bp.route("/templates/all", methods=["GET"])
def list_templates():
    templates = certificates.list_templates()
    return jsonify({"success": True, "data": {"templates": [t.to_dict() for t in templates]}}), 200


@bp.route("/templates/<int:template_id>", methods=["GET"])
def get_template(template_id):
    template = certificates.get_template(template_id)
    return jsonify({"success": True, "data": {"template": template.to_dict()}}), 200


@bp.route("/templates", methods=["POST"])
def create_template():
    template = certificates.create_template(request.get_json(silent=True) or {})
    return jsonify({
        "success": True,
        "message": "Template created successfully",
        "data": {"template": template.to_dict()},
    }), 201


@bp.route("/templates/<int:template_id>", methods=["PUT"])
def update_template(template_id):
    template = certificates.update_template(template_id, request.get_json(silent=True) or {})
    return jsonify({
        "success": True,
        "message": "Template updated successfully",
        "data": {"template": template.to_dict()},
    }), 200


@bp.route("/templates/<int:template_id>", methods=["DELETE"])
def delete_template(template_id):
    certificates.delete_template(template_id)
    return jsonify({"success": True, "message": "Template deleted successfully"}), 200
