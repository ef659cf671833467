# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/warehouse/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Client companies:
# - python -m flask companies list
# - python -m flask companies create --name "Acme Corp" --code "ACME"
#
# Stock inspection:
# - python -m flask lots list --company-id 1 [--product-id 5]
#   List lots in FIFO order.
#
# Reconciliation:
# - python -m flask jarde report --company-id 1 --start 2026-01-01 --end 2026-01-31 [--match-mode id]
#   Print the JARDE table (start / check-ins / check-outs / expected).
#
# Data cleanup:
# - python -m flask cleanup scan [--company-id 1]
# - python -m flask cleanup fix-names [--company-id 1]
# - python -m flask cleanup clean-variants [--company-id 1]

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Company, Product
from .services import cleanup_service, lot_service, reconciliation_service
from .validation import ValidationError, NotFoundError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables (use migrations for schema changes)."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation prompt')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.confirm("WARN This will DELETE all data. Are you sure?", abort=True)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('companies')
def companies_group():
    """Client company management."""


@companies_group.command('list')
@with_appcontext
def list_companies():
    companies = db.session.query(Company).order_by(Company.id.asc()).all()
    if not companies:
        click.echo("No companies found.")
        return
    for company in companies:
        product_count = db.session.query(Product).filter_by(company_id=company.id).count()
        active_str = "Yes" if company.is_active else "No"
        click.echo(
            f"  [{company.id}] {company.name} (code: {company.code or '-'}) "
            f"products: {product_count} active: {active_str}"
        )


@companies_group.command('create')
@click.option('--name', required=True, help='Company name')
@click.option('--code', default=None, help='Short code (unique)')
@with_appcontext
def create_company(name, code):
    name = name.strip()
    if not name:
        raise click.ClickException("name must not be empty")
    if code and db.session.query(Company).filter_by(code=code).first():
        raise click.ClickException(f"Company code {code!r} already exists")
    company = Company(name=name, code=code or None, is_active=True)
    db.session.add(company)
    db.session.commit()
    click.echo(f"PASS Created company: {company.name} (ID: {company.id})")


@click.group('lots')
def lots_group():
    """Inventory lot inspection."""


@lots_group.command('list')
@click.option('--company-id', type=int, required=True, help='Company ID')
@click.option('--product-id', type=int, default=None, help='Product ID')
@with_appcontext
def list_lots(company_id, product_id):
    lots = lot_service.list_lots(company_id=company_id, product_id=product_id)
    if not lots:
        click.echo("No lots found.")
        return
    for lot in lots:
        key = lot.variant_key
        label = f"{key[0]}={key[1]}" if key else "base"
        click.echo(
            f"  [{lot.id}] product {lot.product_id} {label:<20} qty {lot.quantity:>6} "
            f"received {lot.received_date:%Y-%m-%d %H:%M}"
        )


@click.group('jarde')
def jarde_group():
    """JARDE reconciliation reports."""


@jarde_group.command('report')
@click.option('--company-id', type=int, default=None, help='Company ID (all active when omitted)')
@click.option('--start', required=True, help='Start date YYYY-MM-DD')
@click.option('--end', required=True, help='End date YYYY-MM-DD')
@click.option('--match-mode', type=click.Choice(reconciliation_service.MATCH_MODES), default=reconciliation_service.MATCH_BY_NAME)
@with_appcontext
def jarde_report(company_id, start, end, match_mode):
    try:
        reports = reconciliation_service.generate_report(
            company_id=company_id, start=start, end=end, match_mode=match_mode,
        )
    except (ValidationError, NotFoundError) as e:
        raise click.ClickException(str(e))

    if not reports:
        click.echo("No activity in range.")
        return
    for report in reports:
        click.echo(f"\n{report.company_name} (ID: {report.company_id}) {report.start} .. {report.end}")
        click.echo(f"  {'Product':<30} {'Variant':<24} {'Start':>7} {'In':>7} {'Out':>7} {'Expected':>9}")
        for row in report.rows:
            click.echo(
                f"  {(row.product_name or '')[:30]:<30} {(row.variant_path or '-')[:24]:<24} "
                f"{row.starting_quantity:>7} {row.check_ins:>7} {row.check_outs:>7} {row.expected_quantity:>9}"
            )
        totals = report.totals
        click.echo(
            f"  {'TOTAL':<55} {totals['starting_quantity']:>7} {totals['check_ins']:>7} "
            f"{totals['check_outs']:>7} {totals['expected_quantity']:>9}"
        )


@click.group('cleanup')
def cleanup_group():
    """Catalog data-quality scan and repair."""


@cleanup_group.command('scan')
@click.option('--company-id', type=int, default=None, help='Company ID')
@with_appcontext
def cleanup_scan(company_id):
    found = cleanup_service.scan_products(company_id)
    click.echo(f"Empty names: {found['empty_names']}  Malformed variants: {found['malformed_variants']}")
    for company in found['companies']:
        click.echo(
            f"  [{company['severity'].upper():<8}] {company['company_name']} (ID: {company['company_id']}) "
            f"{company['total_issues']} issue(s)"
        )
    for product in found['products']:
        click.echo(f"    product {product['id']}: {product['issue_type']} - {'; '.join(product['issues'])}")


def _echo_bulk(result):
    for outcome in result.outcomes:
        status = "PASS" if outcome.ok else "FAIL"
        click.echo(f"  {status} product {outcome.item}: {outcome.detail if outcome.ok else outcome.error}")
    click.echo(f"Done: {result.succeeded} fixed, {result.failed} failed")


@cleanup_group.command('fix-names')
@click.option('--company-id', type=int, default=None, help='Company ID')
@with_appcontext
def cleanup_fix_names(company_id):
    _echo_bulk(cleanup_service.bulk_fix_empty_names(company_id))


@cleanup_group.command('clean-variants')
@click.option('--company-id', type=int, default=None, help='Company ID')
@with_appcontext
def cleanup_clean_variants(company_id):
    _echo_bulk(cleanup_service.bulk_clean_variants(company_id))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(companies_group)
    app.cli.add_command(lots_group)
    app.cli.add_command(jarde_group)
    app.cli.add_command(cleanup_group)
