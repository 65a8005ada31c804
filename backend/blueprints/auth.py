"""Authentication blueprint for customer accounts and bearer tokens."""
from functools import wraps
from flask import Blueprint, request, g
import logging
import secrets
from pydantic import ValidationError as PydanticValidationError
from werkzeug.security import generate_password_hash, check_password_hash
from ..models import db, AppConfig, User, Admin
from ..utils import (
    api_success, api_error, handle_api_exception, unauthorized, forbidden,
    validation_error_response, parse_body
)
from ..serializers import serialize_user
from ..config import us_address_for
from shared.schemas import RegisterRequest, LoginRequest, ProfileUpdate
from shared.validation import ValidationError
from shared.utils import generate_suite_number

bp = Blueprint('auth', __name__, url_prefix='/api')
logger = logging.getLogger(__name__)

USER_TOKEN_CATEGORY = 'user_token'
ADMIN_TOKEN_CATEGORY = 'admin_token'
SUITE_NUMBER_ATTEMPTS = 20

PUBLIC_PATHS = (
    '/api/health',
    '/api/auth/login',
    '/api/auth/register',
    '/api/admin/auth/login',
    '/api/webhooks/',
)


def issue_token(principal, category):
    """Create and store a bearer token for a user or admin (caller commits)."""
    token = secrets.token_urlsafe(32)
    db.session.add(AppConfig(
        key=f'token_{token}',
        value=str(principal.id),
        description=f'Token for {principal.email}',
        category=category
    ))
    return token


def revoke_token(token):
    """Delete a stored token. Returns True when one was removed (caller commits)."""
    entry = AppConfig.query.filter_by(key=f'token_{token}').first()
    if entry:
        db.session.delete(entry)
        return True
    return False


def bearer_token():
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header[len('Bearer '):].strip() or None
    return None


def login_required(view):
    """Require an authenticated, active customer in ``g.user``."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        if getattr(g, 'user', None) is None:
            if getattr(g, 'admin', None) is not None:
                return forbidden('Customer account required')
            return unauthorized()
        return view(*args, **kwargs)
    return wrapped


def admin_required(view):
    """Require an authenticated, active admin in ``g.admin``."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        if getattr(g, 'admin', None) is None:
            if getattr(g, 'user', None) is not None:
                return forbidden('Admin access required')
            return unauthorized()
        return view(*args, **kwargs)
    return wrapped


def authenticated_required(view):
    """Require either a customer or an admin (used by shared quote endpoints)."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        if getattr(g, 'user', None) is None and getattr(g, 'admin', None) is None:
            return unauthorized()
        return view(*args, **kwargs)
    return wrapped


def _unique_suite_number():
    for _ in range(SUITE_NUMBER_ATTEMPTS):
        candidate = generate_suite_number()
        if not User.query.filter_by(suite_number=candidate).first():
            return candidate
    raise RuntimeError('Could not allocate a free suite number')


@bp.route('/auth/register', methods=['POST'])
def register():
    """Register a new customer and return a token plus their US address."""
    try:
        data = parse_body(RegisterRequest)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    if User.query.filter_by(email=data.email).first():
        return api_error('Email already registered', 400)

    try:
        user = User(
            name=data.name,
            email=data.email,
            password_hash=generate_password_hash(data.password),
            suite_number=_unique_suite_number(),
            phone=data.phone,
            city=data.city,
            street=data.street or '',
            postal_code=data.postal_code or '',
        )
        db.session.add(user)
        db.session.flush()
        token = issue_token(user, USER_TOKEN_CATEGORY)
        db.session.commit()

        logger.info(f"Registered user {user.id} with suite {user.suite_number}")
        return api_success({
            'user': serialize_user(user),
            'token': token,
            'us_address': us_address_for(user),
        }, 'Registration successful', 201)
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'register user')


@bp.route('/auth/login', methods=['POST'])
def login():
    """Login customer and return token."""
    try:
        data = parse_body(LoginRequest)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    user = User.query.filter_by(email=data.email).first()
    if not user or not check_password_hash(user.password_hash, data.password):
        return api_error('Invalid credentials', 401, 'info')
    if not user.is_active:
        return forbidden('Account is disabled')

    try:
        token = issue_token(user, USER_TOKEN_CATEGORY)
        db.session.commit()
        return api_success({
            'user': serialize_user(user),
            'token': token,
            'us_address': us_address_for(user),
        }, 'Login successful')
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'log in')


@bp.route('/auth/logout', methods=['POST'])
@login_required
def logout():
    """Logout customer by invalidating token."""
    try:
        revoke_token(g.token)
        db.session.commit()
        return api_success(message='Logged out successfully')
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'log out')


@bp.route('/auth/me', methods=['GET'])
@login_required
def me():
    """Get current customer info."""
    return api_success({'user': serialize_user(g.user), 'us_address': us_address_for(g.user)})


@bp.route('/auth/profile', methods=['PUT'])
@login_required
def update_profile():
    try:
        data = parse_body(ProfileUpdate)
    except (ValidationError, PydanticValidationError) as e:
        return validation_error_response(e)

    try:
        for key, value in data.model_dump(exclude_none=True).items():
            setattr(g.user, key, value)
        db.session.commit()
        return api_success({'user': serialize_user(g.user)}, 'Profile updated successfully')
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, 'update profile')


def init_auth(app):
    """Resolve bearer tokens to ``g.user`` / ``g.admin`` before each API request."""
    @app.before_request
    def check_auth():
        g.user = None
        g.admin = None
        g.token = None

        if not request.path.startswith('/api'):
            return None

        is_public = any(request.path.startswith(path) for path in PUBLIC_PATHS)
        token = bearer_token()
        if token:
            entry = AppConfig.query.filter_by(key=f'token_{token}').first()
            if entry and entry.category == USER_TOKEN_CATEGORY:
                user = db.session.get(User, int(entry.value))
                if user and user.is_active:
                    g.user = user
                    g.token = token
                    return None
            elif entry and entry.category == ADMIN_TOKEN_CATEGORY:
                admin = db.session.get(Admin, int(entry.value))
                if admin and admin.is_active:
                    g.admin = admin
                    g.token = token
                    return None
            if not is_public:
                return unauthorized('Invalid or expired token')

        if is_public:
            return None
        return unauthorized()
