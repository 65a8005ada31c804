"""Flask application factory for the Fast Shipper backend."""
from flask import Flask, request
import logging
from pathlib import Path
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException
from .models import db, now
from .blueprints import (
    auth, packages, consolidations, photo_requests, shipments, notifications, webhooks,
    admin_auth, admin_packages, admin_consolidations, admin_photo_requests, admin_shipments,
    admin_users, admin_transactions, admin_dashboard
)
from .cli import init_db_command, create_admin_command, update_storage_days_command
from .config import env_config
from .logging_config import setup_logging
from .utils import api_success, api_error

logger = logging.getLogger(__name__)

BLUEPRINTS = (
    auth, packages, consolidations, photo_requests, shipments, notifications, webhooks,
    admin_auth, admin_packages, admin_consolidations, admin_photo_requests, admin_shipments,
    admin_users, admin_transactions, admin_dashboard,
)


def integrity_field(error):
    """Best-effort column name from a unique constraint violation."""
    detail = str(getattr(error, 'orig', error))
    if 'UNIQUE constraint failed:' in detail:
        column = detail.split('UNIQUE constraint failed:')[1].split(',')[0].strip()
        return column.split('.')[-1]
    return 'Record'


def register_error_handlers(app):
    @app.errorhandler(404)
    def handle_not_found(e):
        return api_error(f"Route {request.path} not found", 404)

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return api_error('Method not allowed', 405)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(e):
        db.session.rollback()
        return api_error(f"{integrity_field(e)} already exists", 400)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return api_error(e.description or e.name, e.code)
        db.session.rollback()
        logger.error(f"Unhandled error on {request.method} {request.path}: {e}", exc_info=True)
        return api_error('Internal server error', 500, 'error')


def create_app(test_config=None):
    """Flask application factory for the Fast Shipper backend.

    Creates and configures a Flask application instance with:
    - SQLAlchemy database integration
    - Blueprint registration for customer, admin and webhook endpoints
    - Bearer token authentication
    - JSON error handlers
    - CLI command registration

    Args:
        test_config (dict, optional): Configuration overrides for testing

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_mapping(env_config())
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    if test_config is None:
        loaded = app.config.from_pyfile('config.py', silent=True)
    else:
        app.config.from_mapping(test_config)

    setup_logging(app)
    if test_config is not None:
        logger.info("Loaded test configuration")
    elif loaded:
        logger.info("Loaded configuration from instance/config.py")
    else:
        logger.debug("No instance config file found, using environment defaults")

    try:
        Path(app.instance_path).mkdir(parents=True, exist_ok=True)
    except OSError:
        logger.debug(f"Could not create instance directory: {app.instance_path}")

    logger.info(f"Using database URI: {app.config['SQLALCHEMY_DATABASE_URI']}")
    db.init_app(app)

    for module in BLUEPRINTS:
        app.register_blueprint(module.bp)
        logger.debug(f"Registered {module.bp.name} blueprint")
    logger.info(f"Registered {len(BLUEPRINTS)} API blueprints")

    auth.init_auth(app)
    register_error_handlers(app)

    @app.route('/api/health')
    def health():
        return api_success({'status': 'ok', 'timestamp': now().isoformat()})

    app.cli.add_command(init_db_command)
    app.cli.add_command(create_admin_command)
    app.cli.add_command(update_storage_days_command)

    logger.info("Flask application initialization completed successfully")
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=True)
