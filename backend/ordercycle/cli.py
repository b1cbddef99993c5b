# Overview: Flask CLI command groups for the cutoff window, order cycle, supplier messaging and bootstrap.

# backend/ordercycle/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (dev only; use `flask db upgrade` elsewhere).
# - python -m flask system seed-demo
#   Insert a demo supplier, customer and products (needs DEBUG_SEED_ENABLED).
#
# Cutoff window:
# - python -m flask cutoff status
# - python -m flask cutoff open
# - python -m flask cutoff close --actor manager
#   Close, generate purchase orders and message suppliers.
# - python -m flask cutoff close-only --actor manager
#
# Order cycle:
# - python -m flask cycle status
# - python -m flask cycle confirm --actor manager
# - python -m flask cycle reset
# - python -m flask cycle auto-reset
#   Reset when the scheduled auto reset time has passed (run from cron).
#
# Purchase orders:
# - python -m flask purchase-orders send-sms PO-260301-001 PO-260301-002 [--no-promote]

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Customer, Product, Supplier
from .services import cutoff_service, cycle_service, notification_service, purchase_order_service
from .services.errors import ServiceError
from .time_utils import to_utc_z


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    click.echo("BUILD  Creating all tables...")
    db.create_all()
    click.echo("PASS Database ready.")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Insert one supplier, one customer and three products for local testing.

    Idempotent: rows are matched on business number / product code.
    """
    if not current_app.config.get("DEBUG_SEED_ENABLED"):
        raise click.ClickException("Demo seeding is disabled (set DEBUG_SEED_ENABLED=1)")

    category = current_app.config["WATCHED_CATEGORY"]

    supplier = db.session.query(Supplier).filter_by(business_number="000-00-00001").first()
    if not supplier:
        supplier = Supplier(
            business_number="000-00-00001",
            name="Demo Farms",
            primary_contact_name="Demo Contact",
            primary_contact_mobile="010-0000-0001",
        )
        db.session.add(supplier)
        db.session.flush()
        click.echo(f"PASS Created supplier: {supplier.name} (ID: {supplier.id})")

    customer = db.session.query(Customer).filter_by(business_number="000-00-00002").first()
    if not customer:
        customer = Customer(business_number="000-00-00002", name="Demo Market")
        db.session.add(customer)
        click.echo("PASS Created customer: Demo Market")

    demo_products = [
        ("DEMO-TOFU", "Tofu", "300g", 900, 1500),
        ("DEMO-SPROUT", "Bean sprouts", "1kg", 1200, 2000),
        ("DEMO-NOODLE", "Fresh noodles", "2kg", 2500, 3800),
    ]
    for code, name, spec, purchase_price, sale_price in demo_products:
        if db.session.query(Product).filter_by(code=code).first():
            continue
        db.session.add(Product(
            code=code,
            name=name,
            specification=spec,
            category=category,
            supplier_id=supplier.id,
            purchase_price=purchase_price,
            sale_price=sale_price,
        ))
        click.echo(f"PASS Created product: {code}")

    db.session.commit()
    click.echo("PASS Demo data ready.")


@click.group('cutoff')
def cutoff_group():
    """Cutoff window commands."""


def _echo_cutoff(info):
    click.echo(f"Status:    {info.status}")
    click.echo(f"Opened at: {to_utc_z(info.opened_at) or '-'}")
    click.echo(f"Closed at: {to_utc_z(info.closed_at) or '-'}")
    click.echo(f"Closed by: {info.closed_by or '-'}")


@cutoff_group.command('status')
@with_appcontext
def cutoff_status():
    _echo_cutoff(cutoff_service.get_info())


@cutoff_group.command('open')
@with_appcontext
def cutoff_open():
    _echo_cutoff(cutoff_service.open_window())


@cutoff_group.command('close')
@click.option('--actor', required=True, help='Who is closing the window')
@with_appcontext
def cutoff_close(actor):
    """Close the window and run purchase order generation and messaging."""
    try:
        result = cutoff_service.close_window(actor)
    except ServiceError as e:
        raise click.ClickException(str(e))

    click.echo(f"Aggregated orders: {result.aggregated_order_count}")
    for gen in result.generation_results:
        if gen.success:
            click.echo(f"PASS {gen.supplier_name}: {gen.purchase_order_number}")
        else:
            click.echo(f"FAIL {gen.supplier_name}: {gen.error}")
    if result.notification:
        click.echo(
            f"Messages: {result.notification.total_success}/{result.notification.total_sent} recipients succeeded"
        )
    promoted = [p.purchase_order_number for p in result.promotions if p.promoted]
    click.echo(f"Confirmed purchase orders: {', '.join(promoted) or 'none'}")


@cutoff_group.command('close-only')
@click.option('--actor', required=True, help='Who is closing the window')
@with_appcontext
def cutoff_close_only(actor):
    try:
        _echo_cutoff(cutoff_service.close_only(actor))
    except ServiceError as e:
        raise click.ClickException(str(e))


@click.group('cycle')
def cycle_group():
    """Order cycle commands."""


def _echo_cycle(status):
    click.echo(f"Reset at:        {to_utc_z(status.reset_at)}")
    click.echo(f"Confirmed:       {'yes' if status.is_confirmed else 'no'}")
    click.echo(f"Last confirmed:  {to_utc_z(status.last_confirmed_at) or '-'}")
    click.echo(f"Auto reset at:   {to_utc_z(status.auto_reset_scheduled_at) or '-'}")


@cycle_group.command('status')
@with_appcontext
def cycle_status():
    _echo_cycle(cycle_service.get_status())


@cycle_group.command('confirm')
@click.option('--actor', required=True, help='Who is confirming the cycle')
@with_appcontext
def cycle_confirm(actor):
    result = cycle_service.confirm(actor)
    if result.already_confirmed:
        click.echo("WARN Cycle was already confirmed; original confirmation kept")
    click.echo(f"Confirmed sale orders: {result.confirmed_order_count} (failed: {result.failed_order_count})")
    for gen in result.generation_results:
        if gen.success:
            click.echo(f"PASS {gen.supplier_name}: {gen.purchase_order_number}")
        else:
            click.echo(f"SKIP {gen.supplier_name}: {gen.error}")
    if result.generation_error:
        click.echo(f"FAIL Purchase order generation: {result.generation_error}")


@cycle_group.command('reset')
@with_appcontext
def cycle_reset():
    _echo_cycle(cycle_service.reset())


@cycle_group.command('auto-reset')
@with_appcontext
def cycle_auto_reset():
    """Reset the cycle if its auto reset time has passed."""
    if cycle_service.run_scheduled_reset():
        click.echo("PASS Cycle reset")
    else:
        click.echo("SKIP Auto reset not due")


@click.group('purchase-orders')
def purchase_orders_group():
    """Purchase order commands."""


@purchase_orders_group.command('send-sms')
@click.argument('numbers', nargs=-1, required=True)
@click.option('--promote/--no-promote', default=True, help='Confirm orders whose messages went through')
@with_appcontext
def send_sms(numbers, promote):
    batch = notification_service.send_batch(list(numbers))
    for result in batch.results:
        marker = "PASS" if result.success else "FAIL"
        click.echo(f"{marker} {result.purchase_order_number}: {result.success_count}/{result.sent_count}"
                   + (f" ({result.error})" if result.error else ""))
    if promote:
        for promotion in purchase_order_service.promote_notified(batch.results):
            if promotion.promoted:
                click.echo(f"PASS Confirmed {promotion.purchase_order_number}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(cutoff_group)
    app.cli.add_command(cycle_group)
    app.cli.add_command(purchase_orders_group)
