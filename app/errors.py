"""
Application exceptions and their JSON rendering.

Services raise these; the handlers registered in ``register_error_handlers``
turn them into ``{"success": false, ...}`` responses so routes never need to
catch them.
"""
import logging
from typing import Any, Dict, Optional

from flask import jsonify
from werkzeug.exceptions import HTTPException

from app.extensions import db

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base application error."""

    status_code = 500
    error_code = "APP_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self):
        return {
            "success": False,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class NotFoundError(AppError):
    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any = None, error_code: Optional[str] = None):
        details = {"resource": resource}
        if identifier is not None:
            details["identifier"] = str(identifier)
        super().__init__(f"{resource} not found", error_code, details)


class ConflictError(AppError):
    status_code = 409
    error_code = "CONFLICT"


class ValidationError(AppError):
    status_code = 400
    error_code = "VALIDATION_ERROR"


class StateError(AppError):
    """A transition the ledger state machine does not allow."""

    status_code = 409
    error_code = "STATE_ERROR"


class ForbiddenError(AppError):
    status_code = 403
    error_code = "FORBIDDEN"


class NoTemplateConfigured(AppError):
    status_code = 400
    error_code = "NO_TEMPLATE_CONFIGURED"

    def __init__(self):
        super().__init__(
            "No certificate template found. Please create a default template "
            "in Settings > Certificates > Settings."
        )


class DependencyFailure(AppError):
    """Side-effect collaborator failed (template store, mailer).

    Never rendered to clients: callers catch it and report a boolean flag.
    """

    status_code = 502
    error_code = "DEPENDENCY_FAILURE"


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(error):
        db.session.rollback()
        app.logger.info(f"{error.error_code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({
            "success": False,
            "message": error.description,
            "error_code": error.name.upper().replace(" ", "_"),
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        db.session.rollback()
        app.logger.exception(f"Unhandled error: {error}")
        return jsonify({
            "success": False,
            "message": "Internal server error",
            "error_code": "INTERNAL_ERROR",
        }), 500
