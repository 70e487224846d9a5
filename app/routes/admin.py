from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from app.models import PaymentGatewaySettings
from app.services import enrollment as enrollment_service
from app.services import catalog, library, payments
from app.utils.auth import current_user_id, role_required
from app.utils.pagination import page_args, pagination_meta

bp = Blueprint("admin", __name__)


@bp.before_request
@jwt_required()
@role_required("admin")
def require_admin():
    pass


# Enrollments

@bp.route("/enrollments", methods=["GET"])
def list_enrollments():
    page, limit = page_args()
    result = enrollment_service.list_enrollments(
        course_id=request.args.get("course_id", type=int),
        batch_id=request.args.get("batch_id", type=int),
        payment_status=request.args.get("payment_status"),
        since=request.args.get("since"),
        page=page,
        limit=limit,
    )
    return jsonify({
        "success": True,
        "data": {
            "enrollments": [row.to_dict(include_student=True) for row in result.items],
            "pagination": pagination_meta(result),
        },
    }), 200


@bp.route("/enrollments/<int:enrollment_id>", methods=["GET"])
def get_enrollment(enrollment_id):
    enrollment = enrollment_service.get_enrollment(enrollment_id)
    return jsonify({"success": True, "data": {"enrollment": enrollment.to_dict(include_student=True)}}), 200


@bp.route("/enrollments/<int:enrollment_id>", methods=["PUT"])
def update_enrollment(enrollment_id):
    data = request.get_json(silent=True) or {}
    enrollment, changed = enrollment_service.set_payment_status(
        enrollment_id,
        data.get("payment_status"),
        payment_method=data.get("payment_method"),
        transaction_id=data.get("transaction_id"),
        amount_paid=data.get("amount_paid"),
    )
    return jsonify({
        "success": True,
        "message": "Enrollment updated successfully" if changed else "Enrollment status unchanged",
        "data": {"enrollment": enrollment.to_dict(include_student=True), "changed": changed},
    }), 200


# Library purchases

@bp.route("/library-purchases", methods=["GET"])
def list_library_purchases():
    page, limit = page_args()
    result = library.list_purchases(status=request.args.get("status"), page=page, limit=limit)
    return jsonify({
        "success": True,
        "data": {
            "purchases": [row.to_dict() for row in result.items],
            "pagination": pagination_meta(result),
        },
    }), 200


@bp.route("/library-purchases/<int:purchase_id>", methods=["PUT"])
def update_library_purchase(purchase_id):
    data = request.get_json(silent=True) or {}
    purchase, changed = library.set_purchase_status(purchase_id, data.get("payment_status"), current_user_id())
    return jsonify({
        "success": True,
        "message": "Purchase updated" if changed else "Purchase status unchanged",
        "data": {"purchase": purchase.to_dict(), "changed": changed},
    }), 200


# Payment gateway settings

@bp.route("/payment-gateways", methods=["GET"])
def get_payment_gateways():
    settings = PaymentGatewaySettings.get()
    return jsonify({"success": True, "data": {"settings": settings.to_dict()}}), 200


@bp.route("/payment-gateways", methods=["PUT"])
def update_payment_gateways():
    settings = payments.update_gateway_settings(request.get_json(silent=True) or {})
    return jsonify({
        "success": True,
        "message": "Payment gateway settings updated",
        "data": {"settings": settings.to_dict()},
    }), 200


# Catalog

@bp.route("/courses", methods=["POST"])
def create_course():
    course = catalog.create_course(request.get_json(silent=True) or {})
    return jsonify({
        "success": True,
        "message": "Course created successfully",
        "data": {"course": course.to_dict()},
    }), 201


@bp.route("/courses/<int:course_id>", methods=["PUT"])
def update_course(course_id):
    course = catalog.update_course(course_id, request.get_json(silent=True) or {})
    return jsonify({
        "success": True,
        "message": "Course updated successfully",
        "data": {"course": course.to_dict()},
    }), 200


@bp.route("/courses/<int:course_id>/lessons", methods=["POST"])
def add_lesson(course_id):
    lesson = catalog.add_lesson(course_id, request.get_json(silent=True) or {})
    return jsonify({
        "success": True,
        "message": "Lesson added successfully",
        "data": {"lesson": lesson.to_dict()},
    }), 201


@bp.route("/batches", methods=["POST"])
def create_batch():
    batch = catalog.create_batch(request.get_json(silent=True) or {})
    return jsonify({
        "success": True,
        "message": "Batch created successfully",
        "data": {"batch": batch.to_dict()},
    }), 201


@bp.route("/batches/<int:batch_id>", methods=["PUT"])
def update_batch(batch_id):
    batch = catalog.update_batch(batch_id, request.get_json(silent=True) or {})
    return jsonify({
        "success": True,
        "message": "Batch updated successfully",
        "data": {"batch": batch.to_dict()},
    }), 200


@bp.route("/library", methods=["POST"])
def create_library_item():
    item = catalog.create_library_item(request.get_json(silent=True) or {})
    return jsonify({
        "success": True,
        "message": "Library item created successfully",
        "data": {"item": item.to_dict()},
    }), 201


@bp.route("/library/<int:item_id>", methods=["PUT"])
def update_library_item(item_id):
    item = catalog.update_library_item(item_id, request.get_json(silent=True) or {})
    return jsonify({
        "success": True,
        "message": "Library item updated successfully",
        "data": {"item": item.to_dict()},
    }), 200
