import click
import logging
from flask.cli import with_appcontext
from pydantic import ValidationError as PydanticValidationError
from werkzeug.security import generate_password_hash
from .models import db, now, Admin, Package
from .services.notification_service import create_notification
from shared.enums import AdminRole, PackageStatus, NotificationType, NotificationPriority
from shared.schemas import AdminCreate
from shared import pricing

logger = logging.getLogger(__name__)


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create any missing tables."""
    logger.info("Creating database tables and schema")
    db.create_all()
    logger.info("Database initialization completed successfully")
    click.echo('Initialized the database.')


@click.command('create-admin')
@click.option('--email', required=True, help='Login email for the admin')
@click.option('--name', required=True, help='Display name')
@click.option('--password', required=True, help='Initial password (at least 8 characters)')
@click.option('--role', type=click.Choice([r.value for r in AdminRole]), default=AdminRole.ADMIN.value,
              show_default=True)
@with_appcontext
def create_admin_command(email, name, password, role):
    """Create a back-office admin account."""
    try:
        data = AdminCreate(email=email, name=name, password=password, role=role)
    except PydanticValidationError as e:
        raise click.BadParameter('; '.join(err['msg'] for err in e.errors()))

    if Admin.query.filter_by(email=data.email).first():
        raise click.ClickException(f"An admin with email {data.email} already exists")

    admin = Admin(
        name=data.name,
        email=data.email,
        password_hash=generate_password_hash(data.password),
        role=AdminRole(data.role),
    )
    db.session.add(admin)
    db.session.commit()
    logger.info(f"Created admin {admin.email} with role {admin.role.value}")
    click.echo(f"Created admin {admin.email} ({admin.role.value})")


@click.command('update-storage-days')
@with_appcontext
def update_storage_days_command():
    """Recompute storage days for packages waiting in the warehouse.

    Customers get a single storage warning on the run where a package first
    reaches the warning threshold.
    """
    at = now()
    packages = Package.query.filter(Package.status == PackageStatus.RECEIVED).all()
    warned = 0
    for package in packages:
        previous = package.storage_days or 0
        days = package.update_storage_days(at)
        if previous < pricing.STORAGE_WARNING_THRESHOLD <= days:
            create_notification(
                package.user_id, NotificationType.STORAGE_WARNING,
                'Storage Time Running Out',
                f"Your package {package.tracking_number} has been in storage for {days} days. "
                f"Free storage ends in {pricing.storage_days_left(days)} days.",
                related=package,
                priority=NotificationPriority.HIGH,
            )
            warned += 1
    db.session.commit()
    logger.info(f"Updated storage days for {len(packages)} packages, sent {warned} warnings")
    click.echo(f"Updated {len(packages)} packages, sent {warned} storage warnings")
