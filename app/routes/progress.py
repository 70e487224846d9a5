from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from app.services import progress as progress_service
from app.utils.auth import current_user_id

bp = Blueprint("progress", __name__)


@bp.route("/course/<int:course_id>", methods=["GET"])
@jwt_required()
def course_progress(course_id):
    progress = progress_service.get_course_progress(current_user_id(), course_id)
    return jsonify({"success": True, "data": {"progress": progress.to_dict()}}), 200


# Mark lesson complete
@bp.route("/lesson/complete", methods=["POST"])
@jwt_required()
def mark_complete():
    data = request.get_json(silent=True) or {}
    result = progress_service.mark_lesson_complete(
        current_user_id(),
        data.get("course_id"),
        data.get("lesson_id"),
        watch_time=data.get("watch_time", 0),
    )
    return jsonify({
        "success": True,
        "message": "Lesson marked as complete",
        "data": {
            "progress": result["progress"].to_dict(),
            "completion_percentage": result["completion_percentage"],
            "is_completed": result["is_completed"],
            "certificate_generated": result["certificate_generated"],
        },
    }), 200


@bp.route("/my-progress", methods=["GET"])
@jwt_required()
def my_progress():
    progress = progress_service.list_progress(current_user_id())
    return jsonify({"success": True, "data": {"progress": [row.to_dict() for row in progress]}}), 200
