import logging

from flask import Flask
from .config import Config
from .errors import register_error_handlers
from .extensions import db, migrate, jwt, mail
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix


def create_app(config_class=Config):
    app = Flask(__name__)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1)
    CORS(app, resources={r"/*": {"origins": "*"}})
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    mail.init_app(app)

    # Models must be imported before create_all/migrations see the metadata;
    # services connects the course_completed receivers.
    from . import models, services  # noqa: F401
    from .routes import admin, admin_certificates, auth, batches, certificates, enrollments, library, payments, progress

    # Register blueprints
    app.register_blueprint(auth.bp, url_prefix="/auth")
    app.register_blueprint(batches.bp, url_prefix="/batches")
    app.register_blueprint(enrollments.bp, url_prefix="/enrollments")
    app.register_blueprint(payments.bp, url_prefix="/payments")
    app.register_blueprint(progress.bp, url_prefix="/progress")
    app.register_blueprint(library.bp, url_prefix="/library")
    app.register_blueprint(certificates.bp, url_prefix="/certificates")
    app.register_blueprint(admin.bp, url_prefix="/admin")
    app.register_blueprint(admin_certificates.bp, url_prefix="/admin/certificates")

    register_error_handlers(app)

    return app
