"""Back-office commands: receive packages, work the queues and manage DHL shipments."""
from contextlib import contextmanager

import click

from shared.utils import CorruptedImageError
from .handlers.admin_consolidation_handler import AdminConsolidationHandler
from .handlers.admin_package_handler import AdminPackageHandler
from .handlers.admin_photo_request_handler import AdminPhotoRequestHandler
from .handlers.admin_shipment_handler import AdminShipmentHandler
from .services.api_service import ApiError
from .services.image_service import ImageService, ImageUploadError

SHIPMENT_STATUSES = ('pending', 'processing', 'in_transit', 'delivered', 'cancelled')
QUEUE_STATUSES = ('pending', 'processing', 'completed', 'cancelled')


@contextmanager
def _admin_errors():
    try:
        yield
    except ApiError as e:
        raise click.ClickException(e.message)
    except (ImageUploadError, CorruptedImageError, ValueError) as e:
        raise click.ClickException(str(e))


def _image_service(ctx, paths):
    """Cloudinary uploader, only built when there are local files to send."""
    return ImageService.from_config(ctx.obj['config']) if paths else None


@click.group()
@click.pass_context
def admin(ctx):
    """Warehouse and back-office tools (admin sign-in required)."""
    auth = ctx.obj['auth']
    if not auth.is_admin():
        raise click.ClickException('Admin session required. Run "fast-shipper login --admin" first.')
    ctx.obj['api'] = auth.api


@admin.command('register-package')
@click.argument('suite_number')
@click.argument('tracking_number')
@click.option('--retailer', required=True)
@click.option('--weight', type=float, required=True)
@click.option('--weight-unit', type=click.Choice(['kg', 'lb']), default='kg')
@click.option('--size', nargs=3, type=float, required=True, metavar='L W H', help='Dimensions in cm')
@click.option('--value', 'estimated_value', type=float, default=None, help='Declared value in USD')
@click.option('--description', default='')
@click.option('--photo', 'photo_paths', multiple=True, type=click.Path(exists=True, dir_okay=False),
              help='Arrival photo to upload, repeatable')
@click.pass_context
def register_package(ctx, suite_number, tracking_number, retailer, weight, weight_unit, size,
                     estimated_value, description, photo_paths):
    """Log a package that arrived at the US warehouse."""
    length, width, height = size
    handler = AdminPackageHandler(ctx.obj['api'], image_service=_image_service(ctx, photo_paths))
    with _admin_errors():
        package = handler.register(
            suite_number, tracking_number, retailer, weight,
            {'length': length, 'width': width, 'height': height},
            weight_unit=weight_unit, estimated_value=estimated_value, description=description,
            photo_paths=list(photo_paths),
        )
    click.echo(f"Registered package #{package['id']} ({package['tracking_number']}) "
               f"with {len(package.get('photos') or [])} photos")


@admin.command()
@click.option('--status', type=click.Choice(QUEUE_STATUSES), default=None)
@click.option('--search', default=None)
@click.pass_context
def consolidations(ctx, status, search):
    """List consolidation requests and the queue totals."""
    handler = AdminConsolidationHandler(ctx.obj['api'])
    with _admin_errors():
        rows = handler.load(status=status, search=search)
        stats = handler.load_statistics()
    for row in rows:
        click.echo(f"{row['id']:>5}  {row['status']:<11} {len(row.get('package_ids') or []):>2} packages  "
                   f"{row['cost']['total']} {row['cost']['currency']}")
    by_status = stats.get('by_status', {})
    click.echo(f"{by_status.get('pending', 0)} pending, {by_status.get('processing', 0)} processing, "
               f"{by_status.get('completed', 0)} completed, {stats.get('completed_today', 0)} completed today")


@admin.command('complete-consolidation')
@click.argument('consolidation_id', type=int)
@click.option('--weight', type=float, required=True, help='Final weight in kg')
@click.option('--size', nargs=3, type=float, required=True, metavar='L W H', help='Final box in cm')
@click.option('--photo', 'photo_paths', multiple=True, type=click.Path(exists=True, dir_okay=False),
              help='Photo of the finished box, repeatable')
@click.option('--notes', default='')
@click.pass_context
def complete_consolidation(ctx, consolidation_id, weight, size, photo_paths, notes):
    """Record the consolidated box and hand it back to the customer's shelf."""
    length, width, height = size
    handler = AdminConsolidationHandler(ctx.obj['api'], image_service=_image_service(ctx, photo_paths))
    with _admin_errors():
        if photo_paths:
            handler.upload_photos(consolidation_id, paths=list(photo_paths), photo_type='after')
        consolidation = handler.complete(consolidation_id, weight, length, width, height, notes=notes)
    click.echo(f"Consolidation #{consolidation['id']} {consolidation['status']}")


@admin.command('photo-requests')
@click.option('--status', type=click.Choice(QUEUE_STATUSES), default=None)
@click.pass_context
def photo_requests(ctx, status):
    """List photo and information requests."""
    handler = AdminPhotoRequestHandler(ctx.obj['api'])
    with _admin_errors():
        rows = handler.load(status=status)
    for row in rows:
        click.echo(f"{row['id']:>5}  {row['status']:<11} {row['request_type']:<12} "
                   f"package {row['package_id']}  {row.get('payment_status', '')}")


@admin.command('answer-photo-request')
@click.argument('request_id', type=int)
@click.option('--photo', 'photo_paths', multiple=True, type=click.Path(exists=True, dir_okay=False),
              help='Photo to upload, repeatable')
@click.option('--report', default=None, help='Written information report')
@click.pass_context
def answer_photo_request(ctx, request_id, photo_paths, report):
    """Upload photos and/or the information report for a request."""
    if not photo_paths and not report:
        raise click.UsageError('Give at least one --photo or a --report')
    handler = AdminPhotoRequestHandler(ctx.obj['api'], image_service=_image_service(ctx, photo_paths))
    with _admin_errors():
        photo_request = None
        if photo_paths:
            photo_request = handler.upload_photos(request_id, paths=list(photo_paths))
        if report:
            photo_request = handler.submit_report(request_id, report)
    click.echo(f"Photo request #{request_id} {photo_request['status']}")


@admin.command()
@click.option('--status', type=click.Choice(SHIPMENT_STATUSES), default=None)
@click.option('--search', default=None, help='Tracking number or carrier')
@click.option('--user', 'user_id', type=int, default=None)
@click.pass_context
def shipments(ctx, status, search, user_id):
    """List shipments across all customers."""
    handler = AdminShipmentHandler(ctx.obj['api'])
    with _admin_errors():
        rows = handler.load(status=status, search=search, user_id=user_id)
    for row in rows:
        owner = (row.get('user') or {}).get('suite_number', '')
        click.echo(f"{row['id']:>5}  {row['tracking_number']:<24} {row['carrier']:<7} "
                   f"{row['status']:<11} {owner}")


@admin.command('shipment-status')
@click.argument('shipment_id', type=int)
@click.argument('status', type=click.Choice(SHIPMENT_STATUSES))
@click.option('--notes', default=None, help='Shown as the tracking event description')
@click.pass_context
def shipment_status(ctx, shipment_id, status, notes):
    """Move a shipment to a new status."""
    handler = AdminShipmentHandler(ctx.obj['api'])
    with _admin_errors():
        shipment = handler.update_status(shipment_id, status, notes=notes)
    click.echo(f"Shipment {shipment['tracking_number']} is now {shipment['status']}")


@admin.command('create-label')
@click.argument('shipment_id', type=int)
@click.pass_context
def create_label(ctx, shipment_id):
    """Book the shipment with DHL and print the waybill."""
    handler = AdminShipmentHandler(ctx.obj['api'])
    with _admin_errors():
        result = handler.create_label(shipment_id)
    click.echo(f"DHL waybill {result['dhl']['tracking_number']}")
    label = handler.label_url(result['shipment'])
    click.echo(f"Label: {label}" if label else 'DHL did not return a label document')


@admin.command('sync-tracking')
@click.argument('shipment_id', type=int)
@click.pass_context
def sync_tracking(ctx, shipment_id):
    """Pull the latest DHL checkpoints for a shipment."""
    handler = AdminShipmentHandler(ctx.obj['api'])
    with _admin_errors():
        result = handler.sync_tracking(shipment_id)
    shipment = result['shipment']
    click.echo(f"{result['new_events']} new checkpoints, shipment is {shipment['status']}")


@admin.command()
@click.pass_context
def report(ctx):
    """Queue and shipment totals for the back office."""
    api = ctx.obj['api']
    with _admin_errors():
        consolidation_stats = AdminConsolidationHandler(api).load_statistics()
        photo_stats = AdminPhotoRequestHandler(api).load_statistics()
        shipment_stats = AdminShipmentHandler(api).load_statistics()
    click.echo(f"Consolidations pending: {consolidation_stats['by_status'].get('pending', 0)}")
    click.echo(f"Photo requests pending: {photo_stats['by_status'].get('pending', 0)}")
    click.echo(f"Shipments: {shipment_stats['total']}, delivered today {shipment_stats['delivered_today']}, "
               f"average {shipment_stats['avg_delivery_days']} days door to door")
    click.echo(f"Shipping revenue: {shipment_stats['total_revenue']:.0f} MAD")
