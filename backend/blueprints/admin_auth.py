"""Admin authentication blueprint."""
from flask import Blueprint, g
import logging
from pydantic import ValidationError as PydanticValidationError
from werkzeug.security import check_password_hash
from ..models import db, now, Admin
from ..serializers import serialize_admin
from ..utils import (
    api_success, api_error, forbidden, handle_api_exception, validation_error_response, parse_body
)
from .auth import issue_token, revoke_token, admin_required, ADMIN_TOKEN_CATEGORY
from shared.schemas import LoginRequest
from shared.validation import ValidationError

bp = Blueprint('admin_auth', __name__, url_prefix='/api/admin')
logger = logging.getLogger(__name__)


@bp.route('/auth/login', methods=['POST'])
def login():
    """Login admin, record the login time and return a token."""
    try:
        data = parse_body(LoginRequest)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    admin = Admin.query.filter_by(email=data.email).first()
    if not admin or not check_password_hash(admin.password_hash, data.password):
        logger.warning(f"Failed admin login for {data.email}")
        return api_error('Invalid credentials', 401, 'info')
    if not admin.is_active:
        return forbidden('Account is disabled')

    try:
        admin.last_login = now()
        token = issue_token(admin, ADMIN_TOKEN_CATEGORY)
        db.session.commit()
        logger.info(f"Admin {admin.id} logged in")
        return api_success({'admin': serialize_admin(admin), 'token': token}, 'Login successful')
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'log in')


@bp.route('/auth/me', methods=['GET'])
@admin_required
def me():
    return api_success({'admin': serialize_admin(g.admin)})


@bp.route('/auth/logout', methods=['POST'])
@admin_required
def logout():
    try:
        revoke_token(g.token)
        db.session.commit()
        return api_success(message='Logged out successfully')
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'log out')
