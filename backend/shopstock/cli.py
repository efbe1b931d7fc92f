# Overview: Flask CLI command groups for bootstrap, session tokens and event delivery.

# backend/shopstock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` for migrated deployments).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Idempotent demo tenant: company, shop, supplier, category, raw-material products, users.
#
# Sessions:
# - python -m flask users issue-token --user-id U-ADMIN [--hours 24]
#   Issue a bearer token for an existing user and print it once.
#
# Events:
# - python -m flask events dispatch [--limit 200] [--include-failed]
#   Publish pending outbox events.

import click
from datetime import timedelta
from flask.cli import with_appcontext

from .extensions import db
from .models import Company, Shop, Supplier, Category, Product, User
from .services import session_service, event_service
from .services.session_service import SessionError


DEMO_COMPANY_ID = "C-DEMO"
DEMO_SHOP_ID = "S-DEMO-1"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' to add demo data.")


def _get_or_create(model, key: str, **fields):
    instance = db.session.get(model, key)
    if instance is None:
        instance = model(**fields)
        db.session.add(instance)
        return instance, True
    return instance, False


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Idempotently create a demo tenant with stock-manageable products."""
    click.echo("START Seeding demo tenant...")

    company, created = _get_or_create(
        Company, DEMO_COMPANY_ID,
        company_id=DEMO_COMPANY_ID, name="Demo Company", is_active=True,
    )
    click.echo(f"{'PASS Created' if created else 'PASS Using existing'} company {company.company_id}")

    _get_or_create(Shop, DEMO_SHOP_ID, shop_id=DEMO_SHOP_ID, company_id=DEMO_COMPANY_ID, name="Main Shop")
    _get_or_create(
        Supplier, "SUP-DEMO-1",
        supplier_id="SUP-DEMO-1", company_id=DEMO_COMPANY_ID, name="Demo Supplier", credit_period_days=30,
    )
    _get_or_create(Category, "CAT-RAW", category_id="CAT-RAW", company_id=DEMO_COMPANY_ID, name="Raw Materials")

    demo_products = [
        ("P-FLOUR", "Flour", "Raw Material", "kg", 50),
        ("P-SUGAR", "Sugar", "Raw Material", "kg", 20),
        ("P-BUTTER", "Butter", "Raw Material", "kg", None),
    ]
    for product_id, name, product_type, uom_id, minimum_quantity in demo_products:
        _, created = _get_or_create(
            Product, product_id,
            product_id=product_id,
            company_id=DEMO_COMPANY_ID,
            category_id="CAT-RAW",
            name=name,
            product_type=product_type,
            uom_id=uom_id,
            minimum_quantity=minimum_quantity,
        )
        if created:
            click.echo(f"PASS Created product {product_id}")

    demo_users = [
        ("U-SUPER", "superadmin", "superAdmin", None, None),
        ("U-ADMIN", "admin", "admin", DEMO_COMPANY_ID, DEMO_SHOP_ID),
        ("U-STOCK", "stock", "stockManager", DEMO_COMPANY_ID, DEMO_SHOP_ID),
        ("U-CASHIER", "cashier", "cashier", DEMO_COMPANY_ID, DEMO_SHOP_ID),
    ]
    for user_id, username, role, company_id, shop_id in demo_users:
        _, created = _get_or_create(
            User, user_id,
            user_id=user_id, username=username, role=role,
            company_id=company_id, shop_id=shop_id, is_active=True,
        )
        if created:
            click.echo(f"PASS Created user {username} ({role})")

    db.session.commit()
    click.echo("DONE Demo tenant ready.")


@click.group('users')
def users_group():
    """Session token commands."""


@users_group.command('issue-token')
@click.option('--user-id', required=True, help='User ID')
@click.option('--hours', default=24, show_default=True, type=int, help='Token lifetime in hours')
@with_appcontext
def issue_token_cli(user_id, hours):
    """Issue a bearer token. The plaintext token is shown only once."""
    try:
        session, token = session_service.issue_session(user_id, ttl=timedelta(hours=hours))
    except SessionError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Token for {user_id} (expires {session.expires_at.isoformat()}Z):")
    click.echo(token)


@click.group('events')
def events_group():
    """Outbox event delivery."""


@events_group.command('dispatch')
@click.option('--limit', default=None, type=int, help='Max events to publish (default EVENT_DISPATCH_BATCH)')
@click.option('--include-failed', is_flag=True, help='Retry events that previously failed')
@with_appcontext
def dispatch_events_cli(limit, include_failed):
    result = event_service.dispatch_pending(limit, include_failed=include_failed)
    click.echo(f"PASS Dispatched {result['dispatched']} event(s), {result['failed']} failed.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(events_group)
