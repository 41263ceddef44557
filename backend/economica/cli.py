# Overview: Flask CLI command groups for bootstrap and maintenance.

# backend/economica/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, the default store, and one user per role.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
#   List all users with roles and active status.
# - python -m flask users create --username caja2 --email caja2@economica.local --password "Password123!" --role cashier
#   Create a user (prompts if options are omitted).
#
# Catalog:
# - python -m flask products seed-demo
#   Insert a small demo catalog (piece, kg, gramo and litro products).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Store, User, Product
from .permissions import ROLES
from .services.auth_service import create_user, PasswordValidationError
from .services.products_service import create_product
from .validation import ConflictError


DEFAULT_PASSWORD = "Password123!"

DEFAULT_USERS = [
    ("admin", "admin@economica.local", "admin"),
    ("gerente", "gerente@economica.local", "manager"),
    ("cajero", "cajero@economica.local", "cashier"),
    ("cliente", "cliente@economica.local", "customer"),
]

DEMO_PRODUCTS = [
    {"sku": "ARZ-1KG", "barcode": "7501000000011", "name": "Arroz 1kg", "price_cents": 2550,
     "unit": "pieza", "stock_quantity": 50},
    {"sku": "FRJ-900", "barcode": "7501000000028", "name": "Frijol negro 900g", "price_cents": 3490,
     "unit": "pieza", "stock_quantity": 40},
    {"sku": "MNZ-KG", "barcode": "2000000000015", "name": "Manzana roja", "price_cents": 4590,
     "unit": "kg", "sell_by_weight": True, "stock_quantity": 25.5, "max_quantity": 10},
    {"sku": "QSO-GR", "barcode": "2000000000022", "name": "Queso Oaxaca", "price_cents": 18,
     "unit": "gramo", "sell_by_weight": True, "stock_quantity": 5000},
    {"sku": "LCH-LT", "barcode": "2000000000039", "name": "Leche a granel", "price_cents": 2390,
     "unit": "litro", "sell_by_weight": True, "stock_quantity": 30},
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--store-name', default='La Económica Centro', help='Default store name')
@click.option('--store-code', default='CENTRO', help='Default store code')
@with_appcontext
def init_system(store_name, store_code):
    """
    Initialize the system: tables, default store, and default users.

    Users: admin, gerente, cajero, cliente (one per role).
    All passwords default to: "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing La Económica...")

    db.create_all()

    store = db.session.query(Store).first()
    if not store:
        store = Store(name=store_name, code=store_code, is_active=True)
        db.session.add(store)
        db.session.commit()
        click.echo(f"PASS Created default store: {store.name} (ID: {store.id})")
    else:
        click.echo(f"PASS Using existing store: {store.name} (ID: {store.id})")

    click.echo("\nUSERS Creating default users...")
    for username, email, role in DEFAULT_USERS:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        try:
            create_user(
                username=username,
                email=email,
                password=DEFAULT_PASSWORD,
                role=role,
                store_id=store.id,
            )
            click.echo(f"PASS Created user: {username} ({email}) with role '{role}'")
        except (PasswordValidationError, ConflictError, ValueError) as e:
            click.echo(f"FAIL Failed to create user '{username}': {str(e)}")

    click.echo("\n" + "="*60)
    click.echo("DONE System Initialized Successfully!")
    click.echo("="*60)
    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    for username, email, role in DEFAULT_USERS:
        click.echo(f"   {username:<8} -> {email:<26} / {DEFAULT_PASSWORD}")
    click.echo("")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and creation."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with roles and active status."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found. Run 'python -m flask system init' first.")
        return

    for u in users:
        status = "active" if u.is_active else "inactive"
        click.echo(f"{u.id:>4}  {u.username:<16} {u.email:<32} {u.role:<10} {status}")


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@click.option('--store-id', type=int, default=None, help='Store ID (defaults to the first store)')
@with_appcontext
def create_user_cli(username, email, password, role, store_id):
    """Create a new user. Password must be at least 8 characters."""
    if store_id is None:
        store = db.session.query(Store).first()
        store_id = store.id if store else None

    try:
        user = create_user(
            username=username,
            email=email,
            password=password,
            role=role,
            store_id=store_id,
        )
        click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
    except (ConflictError, ValueError) as e:
        click.echo(f"FAIL {str(e)}")


@click.group('products')
def products_group():
    """Catalog helpers."""


@products_group.command('seed-demo')
@with_appcontext
def seed_demo_products():
    """Insert the demo catalog. Existing SKUs are skipped."""
    store = db.session.query(Store).first()
    created = 0
    for entry in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(sku=entry["sku"]).first():
            click.echo(f"WARN  Product '{entry['sku']}' already exists, skipping...")
            continue
        patch = dict(entry)
        patch["store_id"] = store.id if store else None
        product = create_product(patch)
        created += 1
        click.echo(f"PASS Created product: {product.name} ({product.unit}, stock {product.stock_quantity})")

    click.echo(f"DONE {created} products created")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
