"""Command line client for customers: sign in, manage packages, request services and quote them."""
from contextlib import contextmanager

import click

from shared import pricing
from . import admin_cli
from .config_manager import ConfigManager
from .logging_config import setup_logging
from .services.api_service import ApiError
from .services.auth_service import AuthService
from .state import PackageStore, NotificationStore, DashboardStore, SessionState
from .workflows.base import WorkflowError
from .workflows.consolidation import ConsolidationWorkflow
from .workflows.photo_request import PhotoRequestWorkflow, PHOTO_OPTIONS, INFORMATION_OPTIONS
from .workflows.repack import RepackWorkflow
from .workflows.shipping import ShippingWorkflow

# The API caps a page at 100 rows
PACKAGE_PAGE_SIZE = 100


def _auth(ctx):
    return ctx.obj['auth']


def _require_login(auth):
    if not auth.is_authenticated():
        raise click.ClickException('Not signed in. Run "fast-shipper login" first.')


@contextmanager
def _user_errors():
    """Report wizard and API failures as a one-line error and exit 1."""
    try:
        yield
    except (WorkflowError, ApiError) as e:
        raise click.ClickException(getattr(e, 'message', None) or str(e))


def _stored_packages(auth):
    store = PackageStore(api=auth.api)
    store.fetch(limit=PACKAGE_PAGE_SIZE)
    if store.error:
        raise click.ClickException(store.error)
    return store.packages


def _confirm(prompt, assume_yes):
    if not assume_yes and not click.confirm(prompt, default=True):
        raise click.Abort()


def _parse_customs_item(ctx, param, values):
    """``description:quantity:value_usd[:hs_code]`` into customs item dicts."""
    items = []
    for raw in values:
        parts = raw.split(':')
        if len(parts) not in (3, 4):
            raise click.BadParameter(f"expected description:quantity:value[:hs_code], got {raw!r}")
        try:
            quantity, value = int(parts[1]), float(parts[2])
        except ValueError:
            raise click.BadParameter(f"quantity and value must be numbers in {raw!r}")
        items.append({
            'description': parts[0],
            'quantity': quantity,
            'value': value,
            'hs_code': parts[3] if len(parts) == 4 else '',
        })
    return items


@click.group()
@click.pass_context
def main(ctx):
    """Fast Shipper client."""
    setup_logging()
    ctx.ensure_object(dict)
    config = ctx.obj.setdefault('config', ConfigManager())
    if 'auth' not in ctx.obj:
        ctx.obj['auth'] = AuthService.from_config(config)


@main.command()
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True)
@click.option('--admin', is_flag=True, help='Sign in to the back office')
@click.pass_context
def login(ctx, email, password, admin):
    """Sign in and remember the session."""
    auth = _auth(ctx)
    ok, error = auth.admin_login(email, password) if admin else auth.login(email, password)
    if not ok:
        raise click.ClickException(error)
    name = (auth.user or {}).get('name', email)
    suite = (auth.user or {}).get('suite_number')
    click.echo(f"Signed in as {name}" + (f" (suite {suite})" if suite else ''))


@main.command()
@click.pass_context
def logout(ctx):
    """Sign out and forget the stored session."""
    _auth(ctx).logout()
    click.echo('Signed out')


@main.command()
@click.option('--name', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--phone', prompt=True)
@click.option('--city', prompt=True)
@click.option('--street', default='')
@click.option('--postal-code', default='')
@click.pass_context
def register(ctx, name, email, password, phone, city, street, postal_code):
    """Open an account and get a US suite number."""
    auth = _auth(ctx)
    ok, error = auth.register(name, email, password, phone, city, street=street, postal_code=postal_code)
    if not ok:
        raise click.ClickException(error)
    ctx.invoke(whoami)


@main.command()
@click.pass_context
def whoami(ctx):
    """Show the signed-in account and the US address to give retailers."""
    auth = _auth(ctx)
    _require_login(auth)
    if not auth.is_admin() and auth.us_address is None:
        with _user_errors():
            auth.me()
    session = SessionState.from_auth(auth)
    user = session.user or {}
    click.echo(f"{user.get('name', '')} <{user.get('email', '')}> ({session.role})")
    address = session.us_address
    if address:
        click.echo('Ship your online orders to:')
        click.echo(f"  {address['name']}")
        click.echo(f"  {address['street']}, {address['suite']}")
        click.echo(f"  {address['city']}")
        click.echo(f"  {address['country']}  {address['phone']}")


@main.command()
@click.pass_context
def dashboard(ctx):
    """Packages, shipments and storage at a glance."""
    auth = _auth(ctx)
    _require_login(auth)
    store = DashboardStore(api=auth.api)
    data = store.load()
    if store.error:
        raise click.ClickException(store.error)
    package_stats = data['package_stats']
    shipment_stats = data['shipment_stats']
    click.echo(f"Packages: {package_stats.get('total', 0)} total, {package_stats.get('in_storage', 0)} in storage, "
               f"{package_stats.get('consolidated', 0)} consolidated, {package_stats.get('shipped', 0)} shipped")
    click.echo(f"Average storage: {package_stats.get('avg_storage_days', 0)} days "
               f"({package_stats.get('storage_days_left', 0)} free days left)")
    click.echo(f"Shipments: {shipment_stats.get('total', 0)} total, {shipment_stats.get('in_transit', 0)} in transit, "
               f"{shipment_stats.get('delivered', 0)} delivered")
    for shipment in data['shipments'][:5]:
        click.echo(f"  {shipment['tracking_number']:<24} {shipment['status']}")


@main.command()
@click.option('-p', '--package', 'package_ids', type=int, multiple=True, required=True,
              help='Package id, repeat for each package')
@click.option('--keep-packaging', is_flag=True, help='Leave the original boxes on')
@click.option('--protection', is_flag=True, help='Extra protective packing')
@click.option('--unpacked-photos', is_flag=True, help='Photograph the contents before repacking')
@click.option('--instructions', default='', help='Notes for the warehouse team')
@click.option('--yes', 'assume_yes', is_flag=True, help='Submit without asking')
@click.pass_context
def consolidate(ctx, package_ids, keep_packaging, protection, unpacked_photos, instructions, assume_yes):
    """Combine stored packages into one box."""
    auth = _auth(ctx)
    _require_login(auth)
    workflow = ConsolidationWorkflow(auth.api, _stored_packages(auth))
    with _user_errors():
        for package_id in package_ids:
            workflow.toggle(package_id)
        workflow.next()
        workflow.remove_packaging = not keep_packaging
        workflow.add_protection = protection
        workflow.request_unpacked_photos = unpacked_photos
        workflow.special_instructions = instructions
        workflow.next()

        summary = workflow.summary()
        box = summary['estimated_dimensions']
        click.echo(f"{summary['package_count']} packages, {summary['total_weight']} kg, "
                   f"estimated box {box['length']}x{box['width']}x{box['height']} cm")
        click.echo(f"Fee: {pricing.format_mad(summary['fee'])}, "
                   f"estimated savings: {pricing.format_mad(summary['savings'])}")
        _confirm('Submit this consolidation?', assume_yes)
        consolidation = workflow.submit()
    click.echo(f"Consolidation #{consolidation['id']} created ({consolidation['status']})")


@main.command()
@click.option('-p', '--package', 'package_ids', type=int, multiple=True, required=True,
              help='Package id, repeat for each package')
@click.option('--keep-retail-box', is_flag=True, help='Repack inside the retail box')
@click.option('--protection', is_flag=True, help='Add protective padding')
@click.option('--no-minimize', is_flag=True, help='Do not trim the box to the smallest size')
@click.option('--instructions', default='', help='Notes for the warehouse team')
@click.option('--yes', 'assume_yes', is_flag=True, help='Submit without asking')
@click.pass_context
def repack(ctx, package_ids, keep_retail_box, protection, no_minimize, instructions, assume_yes):
    """Repack stored packages into smaller boxes to cut dimensional weight."""
    auth = _auth(ctx)
    _require_login(auth)
    workflow = RepackWorkflow(auth.api, _stored_packages(auth))
    with _user_errors():
        for package_id in package_ids:
            workflow.toggle(package_id)
        workflow.next()
        for package_id in package_ids:
            workflow.set_option(package_id, 'remove_retail_box', not keep_retail_box)
            workflow.set_option(package_id, 'add_protection', protection)
            workflow.set_option(package_id, 'minimize_size', not no_minimize)
            workflow.set_option(package_id, 'special_instructions', instructions)
        workflow.next()

        summary = workflow.summary()
        for estimate in summary['packages']:
            box = estimate['estimated_dimensions']
            click.echo(f"Package {estimate['package_id']}: {estimate['current_dim_weight']} kg -> "
                       f"{estimate['estimated_dim_weight']} kg dimensional weight "
                       f"({box['length']}x{box['width']}x{box['height']} cm), "
                       f"saves ~{pricing.format_mad(estimate['savings'])}")
        click.echo(f"Repack fee: {pricing.format_mad(summary['total_cost'])}, "
                   f"estimated savings: {pricing.format_mad(summary['total_savings'])}")
        _confirm('Submit this repack request?', assume_yes)
        result = workflow.submit()
    click.echo(f"Repack request {result['request_id']} received, ready in 1-2 business days")


@main.command()
@click.option('-p', '--package', 'package_ids', type=int, multiple=True, required=True,
              help='Package id, repeat for each package')
@click.option('--name', 'full_name', default=None, help='Recipient, defaults to your profile')
@click.option('--street', default=None)
@click.option('--city', default=None)
@click.option('--postal-code', default=None)
@click.option('--phone', default=None)
@click.option('--carrier', type=click.Choice(list(pricing.CARRIER_MULTIPLIERS)), default=None,
              help='Carrier to use, defaults to the cheapest rate')
@click.option('--insure', 'coverage', type=float, default=None, help='Insurance coverage in USD')
@click.option('--item', 'customs_items', multiple=True, required=True, callback=_parse_customs_item,
              help='Customs line as description:quantity:value_usd[:hs_code]')
@click.option('--yes', 'assume_yes', is_flag=True, help='Pay without asking')
@click.pass_context
def ship(ctx, package_ids, full_name, street, city, postal_code, phone, carrier, coverage, customs_items,
         assume_yes):
    """Ship stored packages to Morocco."""
    auth = _auth(ctx)
    _require_login(auth)
    workflow = ShippingWorkflow(auth.api, _stored_packages(auth), user=auth.user)
    overrides = {'full_name': full_name, 'street': street, 'city': city,
                 'postal_code': postal_code, 'phone': phone}
    with _user_errors():
        for package_id in package_ids:
            workflow.toggle(package_id)
        workflow.next()
        workflow.destination.update({k: v for k, v in overrides.items() if v is not None})
        workflow.next()
        if carrier:
            rate = next((r for r in workflow.rates if r.get('product_code') == carrier), None)
            if rate is None:
                raise click.ClickException(f"No {carrier} rate available for these packages")
            workflow.select_rate(rate)
        workflow.next()
        workflow.insurance_enabled = bool(coverage)
        workflow.insurance_coverage = coverage or 0
        workflow.next()
        for item in customs_items:
            workflow.add_customs_item(**item)
        workflow.next()

        summary = workflow.summary()
        click.echo(f"{summary['package_count']} packages, {summary['total_weight']} kg via {workflow.carrier} "
                   f"to {workflow.destination['city']}")
        click.echo(f"Shipping {pricing.format_mad(summary['shipping'])} + insurance "
                   f"{pricing.format_mad(summary['insurance'])} = {pricing.format_mad(summary['total'])}")
        _confirm('Pay and create the shipment?', assume_yes)
        workflow.next()
        shipment = workflow.submit()
    click.echo(f"Shipment {shipment['tracking_number']} created ({shipment['status']})")


@main.command('request-photos')
@click.argument('package_id', type=int)
@click.option('--check', 'checks', multiple=True,
              type=click.Choice(sorted(list(PHOTO_OPTIONS) + list(INFORMATION_OPTIONS))),
              help='What to photograph or check, repeatable')
@click.option('--photos', 'photo_count', type=click.IntRange(1, pricing.QUOTE_MAX_PHOTOS), default=1)
@click.option('--instructions', default='', help='Anything else to look at')
@click.option('--yes', 'assume_yes', is_flag=True, help='Pay without asking')
@click.pass_context
def request_photos(ctx, package_id, checks, photo_count, instructions, assume_yes):
    """Ask the warehouse for photos of a package or a check of its contents."""
    auth = _auth(ctx)
    _require_login(auth)
    workflow = PhotoRequestWorkflow(auth.api, _stored_packages(auth))
    with _user_errors():
        if not any(p.get('id') == package_id for p in workflow.available_packages()):
            raise WorkflowError(f"Package {package_id} is not in storage")
        workflow.package_id = package_id
        workflow.next()
        for option in checks:
            workflow.toggle_request(option)
        workflow.set_photo_count(photo_count)
        workflow.custom_instructions = instructions
        workflow.next()

        summary = workflow.summary()
        click.echo(f"Request type: {summary['request_type']}, cost {pricing.format_mad(summary['total'])}")
        _confirm('Pay and send the request?', assume_yes)
        photo_request = workflow.submit()
    click.echo(f"Photo request #{photo_request['id']} paid ({photo_request['status']})")


@main.command()
@click.option('--status', help='Only show packages with this status')
@click.option('--search', help='Match tracking number, retailer or description')
@click.pass_context
def packages(ctx, status, search):
    """List your packages at the US warehouse."""
    auth = _auth(ctx)
    _require_login(auth)
    store = PackageStore(api=auth.api)
    store.fetch(status=status, search=search)
    if store.error:
        raise click.ClickException(store.error)
    if not store.packages:
        click.echo('No packages found')
        return
    for package in store.packages:
        weight = package['weight']
        click.echo(
            f"{package['id']:>5}  {package['tracking_number']:<24} {package['retailer']:<16} "
            f"{package['status']:<12} {weight['value']} {weight['unit']}  "
            f"{package['storage_days_left']} free days left"
        )


@main.command()
@click.option('--unread', is_flag=True, help='Only unread notifications')
@click.option('--mark-read', is_flag=True, help='Mark everything as read afterwards')
@click.pass_context
def notifications(ctx, unread, mark_read):
    """Show your notifications."""
    auth = _auth(ctx)
    _require_login(auth)
    store = NotificationStore(api=auth.api)
    store.fetch(unread_only=unread)
    if store.error:
        raise click.ClickException(store.error)
    for notification in store.notifications:
        marker = ' ' if notification['is_read'] else '*'
        click.echo(f"{marker} {(notification['created_at'] or '')[:16]}  {notification['title']}: {notification['message']}")
    click.echo(f"{store.unread_count()} unread")
    if mark_read:
        try:
            updated = store.mark_all_read()
        except ApiError as e:
            raise click.ClickException(e.message)
        click.echo(f"Marked {updated} as read")


@main.group()
def quote():
    """Price estimates, no sign-in needed."""


@quote.command('consolidation')
@click.argument('package_count', type=click.IntRange(min=1))
@click.option('--unpacked-photos', is_flag=True)
@click.option('--protection', is_flag=True, help='Extra protective packing')
def quote_consolidation(package_count, unpacked_photos, protection):
    fee = pricing.consolidation_fee_quote(package_count, unpacked_photos, protection)
    savings = pricing.consolidation_savings(package_count, fee)
    click.echo(f"Consolidation fee: {pricing.format_mad(fee)}")
    click.echo(f"Estimated savings: {pricing.format_mad(savings)} ({pricing.format_usd(pricing.mad_to_usd(savings))})")


@quote.command('shipping')
@click.argument('weight', type=float)
@click.argument('length', type=float)
@click.argument('width', type=float)
@click.argument('height', type=float)
@click.option('--carrier', type=click.Choice(list(pricing.CARRIER_MULTIPLIERS)), default=None,
              help='Quote a single carrier')
@click.option('--coverage', type=float, default=None, help='Insurance coverage in USD')
def quote_shipping(weight, length, width, height, carrier, coverage):
    """Shipping cost for a parcel in kg and cm."""
    carriers = [carrier] if carrier else list(pricing.CARRIER_MULTIPLIERS)
    chargeable = pricing.chargeable_weight(weight, length, width, height)
    click.echo(f"Chargeable weight: {chargeable:.2f} kg")
    insurance = pricing.insurance_cost(coverage)
    for name in carriers:
        cost = pricing.shipping_cost(weight, length, width, height, name)
        click.echo(f"{name:<8} {pricing.format_mad(cost + insurance)}")
    if insurance:
        click.echo(f"(includes {pricing.format_mad(insurance)} insurance)")


@quote.command('photos')
@click.argument('photo_count', type=click.IntRange(min=0, max=pricing.QUOTE_MAX_PHOTOS))
@click.option('--information', is_flag=True, help='Add a written information report')
def quote_photos(photo_count, information):
    cost = pricing.photo_package_quote(photo_count, information)
    click.echo(f"Photo package: {pricing.format_mad(cost)}")


main.add_command(admin_cli.admin)


if __name__ == '__main__':
    main()
