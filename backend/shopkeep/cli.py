# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/shopkeep/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default admin and cashier users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --email cashier2@shop.local --full-name "Jane" --password "Password123!" --role cashier --pin 1234
#
# Catalog:
# - python -m flask catalog seed-demo
#   Demo products with opening stock, one supplier and one credit customer.
#
# Inventory:
# - python -m flask inventory low-stock
#   Active products at or below their reorder level.
# - python -m flask inventory verify-ledger --customer-id 1
#   Check that a customer's credit entries chain to the stored balance.

import click
from flask.cli import with_appcontext

from .constants import VALID_ROLES
from .extensions import db
from .models import Customer, Product, User
from .services.auth_service import AuthError, PasswordValidationError, create_user
from .services.ledger_service import verify_ledger_chain
from .services.products_service import add_product, get_low_stock_products
from .services.supplier_service import get_or_create_supplier
from .validation import ValidationError


DEFAULT_PASSWORD = "Password123!"

DEMO_PRODUCTS = [
    # name, category, unit, retail, wholesale, cost (cents), opening stock
    ("Layers Mash 70kg", "feeds", "bags", 380000, 360000, 330000, 20),
    ("Chick Mash 50kg", "feeds", "bags", 310000, 295000, 270000, 15),
    ("DAP Fertilizer 50kg", "fertilizers", "bags", 650000, 620000, 580000, 8),
    ("Dairy Meal (loose)", "feeds", "kg", 7500, 7000, 6000, 120),
    ("Newcastle Vaccine 100 doses", "veterinary", "bottles", 45000, 42000, 35000, 5),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables and default users.

    Users: admin@shop.local (admin), cashier@shop.local (cashier, PIN 1234).
    All passwords default to "Password123!". Change them in production.
    """
    click.echo("START Initializing shopkeep...")
    db.create_all()
    click.echo("PASS Tables ready")

    default_users = [
        ("admin@shop.local", "Admin", "admin", None),
        ("cashier@shop.local", "Cashier", "cashier", "1234"),
    ]
    for email, full_name, role, pin in default_users:
        if db.session.query(User).filter_by(email=email).first():
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        try:
            create_user(email=email, full_name=full_name, password=DEFAULT_PASSWORD, role=role, pin=pin)
            click.echo(f"PASS Created user: {email} with role '{role}'")
        except (AuthError, PasswordValidationError, ValidationError) as e:
            click.echo(f"FAIL Failed to create user '{email}': {e}")

    click.echo("DONE shopkeep initialized. Default password: Password123!")


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
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<5} {'Email':<30} {'Role':<10} {'Active':<8} {'PIN'}")
    for user in users:
        click.echo(
            f"{user.id:<5} {user.email:<30} {user.role:<10} {str(user.is_active):<8} "
            f"{'yes' if user.pin_hash else 'no'}"
        )


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--full-name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(VALID_ROLES), default='cashier', help='Role')
@click.option('--pin', default=None, help='Optional 4-6 digit till PIN')
@with_appcontext
def create_user_cli(email, full_name, password, role, pin):
    """
    Create a new user.

    Password must be 8+ chars with upper, lower, digit and special char.
    """
    try:
        user = create_user(email=email, full_name=full_name, password=password, role=role, pin=pin)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        return
    except (AuthError, ValidationError) as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created user {user.email} (ID: {user.id}) with role '{user.role}'")


@click.group('catalog')
def catalog_group():
    """Catalog helpers."""


@catalog_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Demo catalog for a farm supplies shop. Skips products that already exist."""
    supplier = get_or_create_supplier("Demo Agrovet Supplies")
    click.echo(f"PASS Supplier: {supplier.name} (ID: {supplier.id})")

    for name, category, unit, retail, wholesale, cost, stock in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(name=name).first():
            click.echo(f"WARN  Product '{name}' already exists, skipping...")
            continue
        p = add_product(
            patch={
                "name": name,
                "category": category,
                "unit": unit,
                "retail_price_cents": retail,
                "wholesale_price_cents": wholesale,
                "cost_price_cents": cost,
            },
            initial_stock=stock,
            supplier_id=supplier.id,
        )
        click.echo(f"PASS Created product {p.sku}: {p.name} ({stock} {unit})")

    if not db.session.query(Customer).filter_by(phone="0700000000").first():
        customer = Customer(
            name="Demo Farmer",
            phone="0700000000",
            customer_type="retail",
            credit_limit_cents=500000,
            current_balance_cents=0,
        )
        db.session.add(customer)
        db.session.commit()
        click.echo(f"PASS Created credit customer: {customer.name} (limit {customer.credit_limit_cents})")


@click.group('inventory')
def inventory_group():
    """Stock inspection."""


@inventory_group.command('low-stock')
@with_appcontext
def low_stock():
    items = get_low_stock_products()
    if not items:
        click.echo("PASS No products at or below reorder level.")
        return

    click.echo(f"{'ID':<5} {'SKU':<26} {'Name':<32} {'Stock':>10} {'Reorder':>10}")
    for item in items:
        click.echo(
            f"{item['id']:<5} {item['sku']:<26} {item['name'][:32]:<32} "
            f"{item['stock']:>10} {item['reorder_level']:>10}"
        )


@inventory_group.command('verify-ledger')
@click.option('--customer-id', type=int, required=True)
@with_appcontext
def verify_ledger(customer_id):
    problems = verify_ledger_chain(customer_id)
    if not problems:
        click.echo(f"PASS Credit ledger for customer {customer_id} is consistent")
        return
    for problem in problems:
        click.echo(f"FAIL {problem}")
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(inventory_group)
