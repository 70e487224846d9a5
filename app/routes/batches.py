from flask import Blueprint, request, jsonify

from app.services import catalog
from app.utils.pagination import page_args, pagination_meta

bp = Blueprint("batches", __name__)


@bp.route("", methods=["GET"])
def list_batches():
    page, limit = page_args()
    result = catalog.list_batches(
        course_id=request.args.get("course_id", type=int),
        trainer_id=request.args.get("trainer_id", type=int),
        status=request.args.get("status"),
        mode=request.args.get("mode"),
        start_from=request.args.get("start_date_from"),
        start_to=request.args.get("start_date_to"),
        page=page,
        limit=limit,
    )
    return jsonify({
        "success": True,
        "data": {
            "batches": [batch.to_summary() for batch in result.items],
            "pagination": pagination_meta(result),
        },
    }), 200


@bp.route("/<int:batch_id>", methods=["GET"])
def get_batch(batch_id):
    batch = catalog.get_batch(batch_id)
    return jsonify({"success": True, "data": {"batch": batch.to_summary()}}), 200
