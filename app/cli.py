import os
from decimal import Decimal

import click
from flask import current_app
from flask.cli import with_appcontext
from flask_migrate import upgrade as alembic_upgrade, stamp as alembic_stamp, migrate as alembic_migrate

from models import db, User, Address, Shop, Product, InventoryEntry


def _assert_safe_for_upgrade():
    # Prevent accidental prod upgrades unless explicitly allowed
    env = (current_app.config.get("ENV") or "").lower()
    app_env = (os.getenv("APP_ENV") or "").lower()
    if app_env == "production" or env == "production":
        if (os.getenv("ALLOW_DB_MIGRATIONS") or "").lower() not in ("1", "true", "yes"):
            raise click.ClickException("Refusing to run DB migration in production without ALLOW_DB_MIGRATIONS=true")


@click.command("db-migrate-safe")
@click.option("-m", "--message", default="auto migration", help="Migration message")
@with_appcontext
def db_migrate_safe(message):
    """Generate a new migration script from current models."""
    alembic_migrate(message=message)
    click.echo("Migration script generated.")


@click.command("db-upgrade-safe")
@with_appcontext
def db_upgrade_safe():
    """Apply migrations to the configured database."""
    _assert_safe_for_upgrade()
    alembic_upgrade()
    click.echo("Database upgraded.")


@click.command("db-stamp-safe")
@click.option("--revision", default="head", help="Revision to stamp, default 'head'")
@with_appcontext
def db_stamp_safe(revision):
    """Mark the database at a given revision without running migrations."""
    _assert_safe_for_upgrade()
    alembic_stamp(revision)
    click.echo(f"Database stamped at {revision}.")


DEMO_PRODUCTS = [
    ("Toned Milk", "Amul", "dairy", "500", "ml"),
    ("Brown Bread", "Harvest Gold", "bakery", "400", "g"),
    ("Basmati Rice", "India Gate", "staples", "1", "kg"),
]

# (store_name, lat, lng, delivery_time, [(price, quantity) per DEMO_PRODUCTS row])
DEMO_SHOPS = [
    ("Corner Kirana", 12.9716, 77.5946, 10, [("28.00", 40), ("45.00", 15), ("189.00", 8)]),
    ("Fresh Basket", 12.9810, 77.6010, 15, [("27.00", 25), ("42.00", 0), ("199.00", 12)]),
    ("Far Mart", 13.2000, 77.7000, 30, [("25.00", 100), ("40.00", 50), ("175.00", 30)]),
]


@click.command("seed-demo")
@with_appcontext
def seed_demo():
    """Populate an empty database with a customer, three shops and stock."""
    if _has_users():
        click.echo("Database already has users; skipping seed.")
        return

    customer = User(email="customer@example.com", fullname="Demo Customer", role="customer")
    owner = User(email="owner@example.com", fullname="Demo Owner", role="shop_owner")
    db.session.add_all([customer, owner])
    db.session.flush()
    db.session.add(Address(
        user_id=customer.id, line1="1 MG Road", city="Bengaluru",
        latitude=12.9750, longitude=77.5990, is_default=True,
    ))

    products = []
    for name, brand, category, net_qty, unit in DEMO_PRODUCTS:
        p = Product(name=name, brand=brand, category=category, net_qty=net_qty, unit=unit)
        db.session.add(p)
        products.append(p)
    db.session.flush()

    for store_name, lat, lng, eta, stock in DEMO_SHOPS:
        shop = Shop(
            user_id=owner.id, store_name=store_name, city="Bengaluru",
            address=f"{store_name} street", latitude=lat, longitude=lng, delivery_time=eta,
        )
        db.session.add(shop)
        db.session.flush()
        for product, (price, qty) in zip(products, stock):
            db.session.add(InventoryEntry(
                shop_id=shop.id, product_id=product.id, price=Decimal(price), quantity=qty,
            ))
    db.session.commit()
    click.echo(f"Seeded {len(DEMO_SHOPS)} shops and {len(products)} products.")


def _has_users():
    return db.session.query(User.id).first() is not None


def register_cli(app):
    app.cli.add_command(db_migrate_safe)
    app.cli.add_command(db_upgrade_safe)
    app.cli.add_command(db_stamp_safe)
    app.cli.add_command(seed_demo)
