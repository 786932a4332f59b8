# Overview: Flask CLI command groups for bootstrap, catalog import and ledger checks.

# backend/storedesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system cleanup-sessions
#   Delete expired and revoked session tokens.
#
# Businesses (tenants):
# - python -m flask businesses list
# - python -m flask businesses create --name "Corner Shop" --admin-email owner@shop.test
#   Create a business; with --admin-email also its first ADMIN user (prompts for username/password).
#
# Users:
# - python -m flask users list [--business-id 1]
# - python -m flask users create --business-id 1 --username ana --email ana@shop.test --role CASHIER
#
# Catalog:
# - python -m flask catalog import products.csv --business-id 1
#   Preview only; add --yes to commit the staged rows.
#
# Stock ledger:
# - python -m flask stock verify --business-id 1
#   Replay every product's ledger; exits 1 when any product is inconsistent.

import click
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .models import Business, ROLES, User
from .services import auth_service, import_service, ledger_service, session_service, tenant_service


def _fail(exc: ServiceError):
    click.echo(f"FAIL {exc}")
    for key, value in exc.details.items():
        click.echo(f"     {key}: {value}")
    raise click.exceptions.Exit(1)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables. Safe to run repeatedly."""
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

    click.echo("PASS Database reset complete. Run 'python -m flask businesses create' next.")


@system_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions():
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} expired or revoked sessions.")


@click.group('businesses')
def businesses_group():
    """Business (tenant) management."""


@businesses_group.command('list')
@with_appcontext
def list_businesses():
    businesses = db.session.query(Business).order_by(Business.id.asc()).all()
    if not businesses:
        click.echo("No businesses found.")
        return

    click.echo(f"{'ID':<5} {'Name':<30} {'Active':<8} {'Users'}")
    for business in businesses:
        user_count = db.session.query(User).filter_by(business_id=business.id).count()
        active_str = "Yes" if business.is_active else "No"
        click.echo(f"{business.id:<5} {business.name:<30} {active_str:<8} {user_count}")


@businesses_group.command('create')
@click.option('--name', required=True, help='Business name')
@click.option('--admin-email', default=None, help='Email of the first ADMIN user')
@click.option('--admin-username', default=None, help='Username of the first ADMIN user')
@click.option('--admin-password', default=None, help='Password of the first ADMIN user')
@with_appcontext
def create_business_cli(name, admin_email, admin_username, admin_password):
    """
    Create a business.

    With --admin-email the business is created through signup, so it starts
    with an ADMIN user. Username and password are prompted for when omitted.
    """
    try:
        if admin_email is None:
            business = tenant_service.create_business(name)
            click.echo(f"PASS Created business: {business.name} (ID: {business.id})")
            return

        if admin_username is None:
            admin_username = click.prompt("Admin username")
        if admin_password is None:
            admin_password = click.prompt("Admin password", hide_input=True, confirmation_prompt=True)

        business, user = auth_service.signup(
            business_name=name,
            username=admin_username,
            email=admin_email,
            password=admin_password,
        )
    except ServiceError as exc:
        _fail(exc)

    click.echo(f"PASS Created business: {business.name} (ID: {business.id})")
    click.echo(f"     Admin: {user.username} ({user.email})")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--business-id', type=int, required=True, help='Business ID')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLES, case_sensitive=False), default='SALES', show_default=True)
@with_appcontext
def create_user_cli(business_id, username, email, password, role):
    """
    Create a staff user in a business.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = auth_service.create_user(
            business_id,
            username=username,
            email=email,
            password=password,
            role=role,
        )
    except ServiceError as exc:
        _fail(exc)

    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")


@users_group.command('list')
@click.option('--business-id', type=int, help='Filter by business ID')
@with_appcontext
def list_users(business_id):
    """List all users with their roles."""
    query = db.session.query(User)
    if business_id:
        query = query.filter_by(business_id=business_id)
    users = query.order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 90)
    click.echo(f"{'ID':<5} {'Biz':<5} {'Username':<20} {'Email':<30} {'Active':<8} {'Role'}")
    click.echo("=" * 90)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.business_id:<5} {user.username:<20} {user.email:<30} {active_str:<8} {user.role}")
    click.echo("=" * 90 + "\n")


@click.group('catalog')
def catalog_group():
    """Catalog bulk operations."""


@catalog_group.command('import')
@click.argument('csv_file', type=click.File('r', encoding='utf-8-sig'))
@click.option('--business-id', type=int, required=True, help='Business ID')
@click.option('--yes', is_flag=True, help='Commit the staged rows (default is preview only)')
@with_appcontext
def import_catalog(csv_file, business_id, yes):
    """Import products from a CSV file. Duplicate names are skipped."""
    try:
        tenant_service.require_active_business(business_id)
        result = import_service.import_products(business_id, csv_file.read(), confirm=yes)
    except ServiceError as exc:
        _fail(exc)

    plan = result.plan
    click.echo(f"Staged: {len(plan.staged)}  Duplicates: {result.duplicates_skipped}  Invalid: {len(result.invalid)}")
    for row in result.invalid:
        click.echo(f"  line {row.get('line')}: {row.get('reason')}")
    for warning in plan.warnings:
        click.echo(f"  WARN line {warning.get('line')}: {warning.get('reason')}")

    if yes:
        click.echo(f"PASS Imported {result.imported} products.")
    else:
        click.echo("Preview only. Re-run with --yes to import.")


@click.group('stock')
def stock_group():
    """Stock ledger checks."""


@stock_group.command('verify')
@click.option('--business-id', type=int, required=True, help='Business ID')
@with_appcontext
def verify_stock(business_id):
    """Replay each product's ledger and compare with its current quantity."""
    checks = ledger_service.verify_business_ledger(business_id)
    broken = [c for c in checks if not c.consistent]

    for check in broken:
        click.echo(f"FAIL product {check.product_id}: quantity={check.current_quantity} last_balance={check.last_balance}")
        for mismatch in check.mismatches:
            click.echo(f"     {mismatch}")

    click.echo(f"Checked {len(checks)} products, {len(broken)} inconsistent.")
    if broken:
        raise click.exceptions.Exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(businesses_group)
    app.cli.add_command(users_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(stock_group)
