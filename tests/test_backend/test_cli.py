"""Tests for the flask CLI commands."""
from datetime import timedelta
from werkzeug.security import check_password_hash
from backend.models import db, now, Admin, Package, Notification
from shared.enums import AdminRole, PackageStatus
from tests.conftest import make_package


def test_init_db(runner):
    result = runner.invoke(args=['init-db'])
    assert result.exit_code == 0
    assert 'Initialized the database.' in result.output


def test_create_admin(runner, app):
    result = runner.invoke(args=['create-admin', '--email', 'Ops@FastShipper.com', '--name', 'Ops Lead',
                                 '--password', 'longenough', '--role', 'super_admin'])
    assert result.exit_code == 0, result.output
    assert 'Created admin ops@fastshipper.com (super_admin)' in result.output

    with app.app_context():
        admin = Admin.query.filter_by(email='ops@fastshipper.com').one()
        assert admin.role == AdminRole.SUPER_ADMIN
        assert check_password_hash(admin.password_hash, 'longenough')

    result = runner.invoke(args=['create-admin', '--email', 'ops@fastshipper.com', '--name', 'Again',
                                 '--password', 'longenough'])
    assert result.exit_code != 0
    assert 'already exists' in result.output


def test_create_admin_validates_password(runner):
    result = runner.invoke(args=['create-admin', '--email', 'ops@fastshipper.com', '--name', 'Ops',
                                 '--password', 'short'])
    assert result.exit_code != 0


def set_received(app, package_id, days_ago):
    with app.app_context():
        package = db.session.get(Package, package_id)
        package.received_date = now() - timedelta(days=days_ago, hours=1)
        db.session.commit()


def test_update_storage_days_warns_once(runner, app, customer):
    fresh = make_package(app, customer['id'], tracking='FRESH')
    old = make_package(app, customer['id'], tracking='OLD')
    shipped = make_package(app, customer['id'], tracking='SHIPPED', status=PackageStatus.SHIPPED)
    set_received(app, fresh, 3)
    set_received(app, old, 41)
    set_received(app, shipped, 60)

    result = runner.invoke(args=['update-storage-days'])
    assert result.exit_code == 0, result.output
    assert 'Updated 2 packages, sent 1 storage warnings' in result.output

    with app.app_context():
        assert db.session.get(Package, fresh).storage_days == 3
        assert db.session.get(Package, old).storage_days == 41
        assert db.session.get(Package, shipped).storage_days == 0
        warning = Notification.query.one()
        assert warning.title == 'Storage Time Running Out'
        assert 'Free storage ends in 4 days' in warning.message

    result = runner.invoke(args=['update-storage-days'])
    assert 'sent 0 storage warnings' in result.output
