# Overview: Flask CLI command groups for bootstrap and stock inspection.

# backend/pharmapos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system seed-demo
#   Create a demo outlet with a few products, pack variants and stock.
#
# Stock inspection:
# - python -m flask inventory status --outlet-id 1
#   List stock per product with status and pack display.
# - python -m flask inventory decompose --product-id 1 --units 25
#   Show how a unit count splits into packs and loose units.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import InventoryRecord, Outlet, PackVariant, Product
from .services.catalog_service import SqlCatalog
from .services.decomposer import decompose, format_inventory_display
from .services.inventory_service import list_records, stock_status
from .services.pack_catalog import PackCatalog


DEMO_PRODUCTS = [
    # sku, name, category, unit, unit price, cost price, reorder level, stock, packs [(size, pack price)]
    ("PARA-500", "Paracetamol 500mg", "Analgesics", "tablet", 500, 300, 20, 250, [(10, 4500), (100, 40000)]),
    ("AMOX-250", "Amoxicillin 250mg", "Antibiotics", "capsule", 1200, 800, 30, 90, [(21, 24000)]),
    ("ORS-1L", "Oral Rehydration Salts", "Rehydration", "sachet", 2500, 1500, 10, 8, [(3, 7000)]),
    ("VITC-100", "Vitamin C 100mg", "Supplements", "tablet", 200, 100, 50, 0, []),
]


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('seed-demo')
@click.option('--outlet-code', default='MAIN', help='Outlet code')
@click.option('--outlet-name', default='Main Pharmacy', help='Outlet name')
@with_appcontext
def seed_demo(outlet_code, outlet_name):
    """
    Seed a demo outlet and catalog (idempotent by outlet code and SKU).

    Existing products are left untouched.
    """
    db.create_all()

    outlet = db.session.query(Outlet).filter_by(code=outlet_code).first()
    if outlet is None:
        outlet = Outlet(code=outlet_code, name=outlet_name)
        db.session.add(outlet)
        db.session.flush()
        click.echo(f"PASS Created outlet: {outlet.name} (ID: {outlet.id})")
    else:
        click.echo(f"PASS Using existing outlet: {outlet.name} (ID: {outlet.id})")

    created = 0
    for sku, name, category, unit, price, cost, reorder, stock, packs in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(sku=sku).first() is not None:
            continue
        product = Product(
            sku=sku,
            name=name,
            category=category,
            unit=unit,
            unit_price_cents=price,
            cost_price_cents=cost,
            reorder_level=reorder,
        )
        db.session.add(product)
        db.session.flush()
        for size, pack_price in packs:
            db.session.add(PackVariant(
                product_id=product.id,
                pack_size=size,
                pack_price_cents=pack_price,
                unit_price_cents=pack_price // size,
            ))
        db.session.add(InventoryRecord(
            product_id=product.id,
            outlet_id=outlet.id,
            current_stock=stock,
            minimum_stock=reorder,
            maximum_stock=0,
        ))
        created += 1

    db.session.commit()
    click.echo(f"PASS Seeded {created} products")


@click.group('inventory')
def inventory_group():
    """Stock inspection commands."""


@inventory_group.command('status')
@click.option('--outlet-id', type=int, required=True, help='Outlet ID')
@with_appcontext
def inventory_status(outlet_id):
    """List stock per product at an outlet."""
    outlet = db.session.get(Outlet, outlet_id)
    if outlet is None:
        raise click.ClickException(f"Outlet {outlet_id} not found")

    packs = PackCatalog(SqlCatalog())
    pairs = list_records(outlet_id)
    if not pairs:
        click.echo("No stock records found.")
        return

    for record, product in pairs:
        minimum = record.minimum_stock or product.reorder_level or 0
        status = stock_status(record.current_stock, minimum, record.maximum_stock or 0)
        display = format_inventory_display(record.current_stock, packs.variants_or_empty(product.id))
        click.echo(f"{product.id}\t{product.sku}\t{product.name}\t{record.current_stock}\t{status}\t{display}")


@inventory_group.command('decompose')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--units', type=int, required=True, help='Total atomic units')
@with_appcontext
def inventory_decompose(product_id, units):
    """Split a unit count into packs (largest first) plus loose units."""
    if units < 0:
        raise click.ClickException("--units cannot be negative")

    product = db.session.get(Product, product_id)
    if product is None:
        raise click.ClickException(f"Product {product_id} not found")

    variants = PackCatalog(SqlCatalog()).variants_for(product_id)
    result = decompose(units, variants, product.unit_price_cents)

    click.echo(f"{product.name}: {format_inventory_display(units, variants)}")
    for pc in result.pack_breakdown:
        click.echo(f"  {pc.pack_count} x {pc.variant.display_name} ({pc.units} units)")
    click.echo(f"  loose: {result.loose_units}")
    click.echo(f"  value_cents: {result.total_value_cents}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
