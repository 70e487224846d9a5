from flask import Blueprint, request, jsonify, current_app
from app.extensions import db
from app.models import User
from flask_jwt_extended import create_access_token, jwt_required

from app.utils.auth import current_user

bp = Blueprint('auth', __name__)


def _token_payload(user):
    token = create_access_token(identity=str(user.id), additional_claims={"role": user.role})
    return {
        "access_token": token,
        "user": {**user.to_summary(), "role": user.role},
    }


@bp.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    full_name = (data.get('full_name') or '').strip().title()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password')
    phone = (data.get('phone') or '').strip() or None

    # Validate input
    if not all([full_name, email, password]):
        return jsonify({"success": False, "message": "Missing required fields"}), 400

    if User.query.filter_by(email=email).first():
        return jsonify({"success": False, "message": "Email already exists."}), 409

    # Self-registration always creates students
    user = User(full_name=full_name, email=email, phone=phone, role="student")
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    current_app.logger.info(f"Registered student {user.id}")
    return jsonify({"success": True, "data": _token_payload(user)}), 201


@bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"success": False, "message": "Missing JSON data"}), 400

    email = (data.get('email') or '').strip().lower()
    password = data.get('password')

    user = User.query.filter_by(email=email).first()

    if not user or not user.check_password(password):
        return jsonify({"success": False, "message": "Invalid credentials"}), 401

    if not user.is_active:
        return jsonify({"success": False, "message": "Account suspended"}), 403

    return jsonify({"success": True, "data": _token_payload(user)}), 200


@bp.route('/me', methods=['GET'])
@jwt_required()
def me():
    user = current_user()
    if not user:
        return jsonify({"success": False, "message": "User not found"}), 404
    return jsonify({"success": True, "data": {"user": {**user.to_summary(), "role": user.role}}}), 200
