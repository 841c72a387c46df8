# Overview: Flask CLI command groups for bootstrap, tenant setup, and ledger housekeeping.

# backend/docledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create all tables (idempotent). Use Flask-Migrate (flask db upgrade) for real deployments.
#
# Tenant management (MULTI-TENANT):
# - python -m flask tenants list
# - python -m flask tenants create --name "Acme Corp" --code "ACME"
#
# Ledger housekeeping (schedule these periodically):
# - python -m flask ledger sweep-overdue [--tenant-id 1]
#   Stamp overdue_at on invoices that are past due.
# - python -m flask ledger expire-quotes [--tenant-id 1]
#   Expire sent quotes whose valid_until has passed.
# - python -m flask ledger stock --tenant-id 1 SKU-001
#   Show one stock item's position and recent movements.
# - python -m flask ledger add-item --tenant-id 1 --sku SKU-001 --name "Widget" --price 20.00 [--vat-percent 15]
#   Create a stock item (amounts in rands, VAT in percent).
# - python -m flask ledger receive --tenant-id 1 --cost 12.50 SKU-001 10
#   Receive opening or counted stock as an ADJUSTMENT movement.
# - python -m flask ledger audit-numbers [--tenant-id 1]
#   Check this period's document numbers for gaps and duplicates.

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .services import document_service, inventory_service, sweep_service, tenant_service
from .money import bps_from_percent, format_cents, parse_cents


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create all tables that do not exist yet."""
    from . import models  # noqa: F401

    db.create_all()
    click.echo("PASS Database schema ready")


@click.group('tenants')
def tenants_group():
    """Tenant management commands."""


@tenants_group.command('list')
@with_appcontext
def list_tenants_cli():
    """List all tenants."""
    tenants = tenant_service.list_tenants()
    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "=" * 60)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active'}")
    click.echo("=" * 60)
    for tenant in tenants:
        active_str = "Yes" if tenant.is_active else "No"
        click.echo(f"{tenant.id:<5} {tenant.name:<30} {tenant.code:<15} {active_str}")
    click.echo("=" * 60 + "\n")


@tenants_group.command('create')
@click.option('--name', required=True, help='Tenant name')
@click.option('--code', required=True, help='Short code (unique)')
@with_appcontext
def create_tenant_cli(name, code):
    """Create a new tenant."""
    try:
        tenant = tenant_service.create_tenant(name=name, code=code)
    except LedgerError as exc:
        raise click.ClickException(exc.message)
    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id}, Code: {tenant.code})")


def _target_tenants(tenant_id):
    if tenant_id:
        return [tenant_service.require_tenant(tenant_id)]
    return [t for t in tenant_service.list_tenants() if t.is_active]


@click.group('ledger')
def ledger_group():
    """Ledger housekeeping commands."""


@ledger_group.command('sweep-overdue')
@click.option('--tenant-id', type=int, default=None, help='Limit to one tenant')
@with_appcontext
def sweep_overdue_cli(tenant_id):
    """Stamp overdue_at on past-due invoices."""
    total = 0
    for tenant in _target_tenants(tenant_id):
        count = sweep_service.sweep_overdue(tenant.id)
        total += count
        click.echo(f"{tenant.code}: {count} invoice(s) newly overdue")
    click.echo(f"PASS {total} invoice(s) stamped")


@ledger_group.command('expire-quotes')
@click.option('--tenant-id', type=int, default=None, help='Limit to one tenant')
@with_appcontext
def expire_quotes_cli(tenant_id):
    """Expire sent quotes past valid_until."""
    total = 0
    for tenant in _target_tenants(tenant_id):
        count = sweep_service.expire_quotes(tenant.id)
        total += count
        click.echo(f"{tenant.code}: {count} quote(s) expired")
    click.echo(f"PASS {total} quote(s) expired")


@ledger_group.command('stock')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--limit', type=int, default=10, help='Movements to show')
@click.argument('sku')
@with_appcontext
def stock_cli(tenant_id, limit, sku):
    """Show a stock item's position and its latest movements."""
    try:
        item = inventory_service.find_stock_item_by_sku(tenant_id, sku)
    except LedgerError as exc:
        raise click.ClickException(exc.message)

    summary = inventory_service.get_stock_summary(tenant_id, item.id)
    click.echo(f"{item.sku} - {item.name}")
    click.echo(
        f"  on hand {summary['on_hand']}  reserved {summary['reserved']}  available {summary['available']}"
    )
    click.echo(
        f"  avg cost {format_cents(summary['average_cost_cents'])}  "
        f"value {format_cents(summary['inventory_value_cents'])}"
    )
    if summary["below_reorder_level"]:
        click.echo(f"  WARN at or below reorder level ({summary['reorder_level']})")

    for m in inventory_service.list_movements(tenant_id, item.id, limit=limit):
        flag = " REVIEW" if m.needs_review else ""
        click.echo(
            f"  #{m.id:<6} {m.movement_type:<3} {m.quantity:>6} @ {format_cents(m.unit_cost_cents):>12} "
            f"{m.source_type}:{m.source_id or '-'} {m.quantity_before}->{m.quantity_after}{flag}"
        )

@ledger_group.command('add-item')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--sku', required=True, help='Stock keeping unit (unique per tenant)')
@click.option('--name', required=True, help='Item name')
@click.option('--unit', default='each', help='Unit of measure')
@click.option('--price', default='0', help='Sale price, e.g. "20.00"')
@click.option('--vat-percent', default=None, help='VAT rate in percent (default: tenant default)')
@click.option('--vat-exempt', is_flag=True, help='Item is VAT exempt')
@click.option('--untracked', is_flag=True, help='Do not track on-hand quantity')
@click.option('--reorder-level', type=int, default=0, help='Warn at or below this quantity')
@with_appcontext
def add_item_cli(tenant_id, sku, name, unit, price, vat_percent, vat_exempt, untracked, reorder_level):
    """Create a stock item."""
    try:
        tenant_service.require_tenant(tenant_id)
        item = inventory_service.create_stock_item(
            tenant_id=tenant_id,
            sku=sku,
            name=name,
            unit=unit,
            vat_rate_bps=bps_from_percent(vat_percent) if vat_percent is not None else None,
            is_vat_exempt=vat_exempt,
            track_inventory=not untracked,
            reorder_level=reorder_level,
            sale_price_cents=parse_cents(price),
        )
    except LedgerError as exc:
        raise click.ClickException(exc.message)
    click.echo(
        f"PASS Created {item.sku} (ID: {item.id}, price {format_cents(item.sale_price_cents)}, "
        f"VAT {item.vat_rate_bps / 100:.2f}%)"
    )


@ledger_group.command('receive')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--cost', required=True, help='Unit cost, e.g. "12.50"')
@click.option('--note', default=None, help='Reason for the adjustment')
@click.argument('sku')
@click.argument('quantity', type=int)
@with_appcontext
def receive_cli(tenant_id, cost, note, sku, quantity):
    """Receive stock outside a GRV (opening balances, stock counts)."""
    try:
        item = inventory_service.find_stock_item_by_sku(tenant_id, sku)
        movement = inventory_service.receive(
            tenant_id, item.id, quantity, parse_cents(cost), source_type="ADJUSTMENT", note=note
        )
    except LedgerError as exc:
        raise click.ClickException(exc.message)
    click.echo(
        f"PASS {item.sku}: {movement.quantity_before}->{movement.quantity_after}, "
        f"avg cost {format_cents(movement.cost_after_cents)}"
    )


@ledger_group.command('audit-numbers')
@click.option('--tenant-id', type=int, default=None, help='Limit to one tenant')
@with_appcontext
def audit_numbers_cli(tenant_id):
    """Check this period's document numbers against their counters."""
    problems = 0
    for tenant in _target_tenants(tenant_id):
        for kind in document_service.NUMBERING:
            report = document_service.audit_numbering(tenant.id, kind)
            faults = {
                name: report[name]
                for name in ("missing", "duplicates", "ahead_of_counter")
                if report[name]
            }
            if faults:
                problems += 1
                click.echo(f"FAIL {tenant.code} {report['key']}: {faults}")
            else:
                click.echo(f"PASS {tenant.code} {report['key']}: {report['issued']} issued")
    if problems:
        raise click.ClickException(f"{problems} numbering sequence(s) out of step")



def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)
    app.cli.add_command(ledger_group)
