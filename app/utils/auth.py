from functools import wraps

from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from app.errors import ForbiddenError
from app.extensions import db
from app.models import User


def current_user_id():
    identity = get_jwt_identity()
    return int(identity) if identity is not None else None


def current_user():
    user_id = current_user_id()
    return db.session.get(User, user_id) if user_id is not None else None


def optional_user_id():
    """User id when a valid bearer token is present, else None."""
    verify_jwt_in_request(optional=True)
    return current_user_id()


def role_required(*roles):
    """Reject the request unless the JWT user has one of ``roles``.

    Goes below ``@jwt_required()``.
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            user = current_user()
            if user is None or not user.is_active or user.role not in roles:
                raise ForbiddenError("Unauthorized")
            return func(*args, **kwargs)

        return wrapper

    return decorator
