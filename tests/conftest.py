"""Pytest configuration and fixtures for Fast Shipper tests."""
import pytest
import tempfile
import os
from werkzeug.security import generate_password_hash
from backend.app import create_app
from backend.models import db, AppConfig, User, Admin, Package
from backend.blueprints.auth import USER_TOKEN_CATEGORY, ADMIN_TOKEN_CATEGORY
from shared.enums import PackageStatus, AdminRole


@pytest.fixture
def app():
    """Create and configure a test app instance."""
    db_fd, db_path = tempfile.mkstemp()

    test_config = {
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DHL_API_KEY': '',
        'DHL_API_SECRET': '',
        'DHL_ACCOUNT_NUMBER': '',
    }

    app = create_app(test_config)

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


def _token(principal_id, token, category):
    db.session.add(AppConfig(key=f'token_{token}', value=str(principal_id), category=category))


def make_user(app, email='customer@example.com', suite='MA-1234', name='Amina Customer', token=None):
    """Create a customer (and optionally a bearer token); returns its id."""
    with app.app_context():
        user = User(
            name=name,
            email=email,
            password_hash=generate_password_hash('secret123'),
            suite_number=suite,
            phone='+212600000000',
            city='Casablanca',
        )
        db.session.add(user)
        db.session.flush()
        if token:
            _token(user.id, token, USER_TOKEN_CATEGORY)
        db.session.commit()
        return user.id


def make_package(app, user_id, tracking='TRK0001', status=PackageStatus.RECEIVED,
                 weight=2.0, length=30, width=20, height=10, retailer='Amazon', storage_days=0):
    with app.app_context():
        package = Package(
            user_id=user_id,
            tracking_number=tracking,
            retailer=retailer,
            status=status,
            weight_value=weight,
            length=length,
            width=width,
            height=height,
            storage_days=storage_days,
            estimated_value=50,
        )
        db.session.add(package)
        db.session.commit()
        return package.id


@pytest.fixture
def customer(app):
    """A customer with a token; yields ``{'id', 'headers'}``."""
    user_id = make_user(app, token='customer-token')
    return {'id': user_id, 'headers': {'Authorization': 'Bearer customer-token'}}


@pytest.fixture
def other_customer(app):
    user_id = make_user(app, email='other@example.com', suite='MA-5678', name='Youssef Other',
                        token='other-token')
    return {'id': user_id, 'headers': {'Authorization': 'Bearer other-token'}}


@pytest.fixture
def admin(app):
    """An admin with a token; yields ``{'id', 'headers'}``."""
    with app.app_context():
        admin = Admin(
            name='Warehouse Admin',
            email='admin@fastshipper.com',
            password_hash=generate_password_hash('adminpass123'),
            role=AdminRole.SUPER_ADMIN,
        )
        db.session.add(admin)
        db.session.flush()
        _token(admin.id, 'admin-token', ADMIN_TOKEN_CATEGORY)
        db.session.commit()
        admin_id = admin.id
    return {'id': admin_id, 'headers': {'Authorization': 'Bearer admin-token'}}


@pytest.fixture
def received_packages(app, customer):
    """Three received packages owned by ``customer``."""
    return [
        make_package(app, customer['id'], tracking=f'TRK000{i}', weight=1.0 + i)
        for i in range(1, 4)
    ]
