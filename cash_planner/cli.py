# cash_planner/cli.py
import logging
import os

import click
from dotenv import load_dotenv

from cash_planner import accounts, database
from cash_planner.config import load_config
from cash_planner.core.validation import validate_window
from cash_planner.errors import CashPlannerError
from cash_planner.manual import import_manual_transactions
from cash_planner.outputs import get_output
from cash_planner.projection import cash_flow_summary, occurrence_to_line, project


def configure_logging():
    level = os.getenv("CASH_PLANNER_LOG_LEVEL") or os.getenv("LLM_DEBUG", "INFO")
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _owner_option(func):
    return click.option(
        '--owner', 'owner_id',
        default=None,
        help='Owner id (defaults to auth.default_owner_id from config)'
    )(func)


def _resolve_owner(cfg, owner_id):
    return owner_id or str(cfg['auth']['default_owner_id'])


@click.group()
@click.option(
    '--config', 'config_path',
    default='config.yaml',
    type=click.Path(dir_okay=False),
    help='Path to config.yaml (missing file means defaults)'
)
@click.option(
    '--env-file', 'env_file',
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help='Optional .env file containing API keys and secrets'
)
@click.option(
    '--db', 'db_path',
    default=None,
    type=click.Path(dir_okay=False),
    help='SQLite database file (overrides config)'
)
@click.pass_context
def main(ctx, config_path, env_file, db_path):
    """
    Plan recurring income and expenses: store transactions, project them
    onto a calendar window, export the plan, or serve the HTTP API.
    """
    if env_file:
        load_dotenv(env_file)
    configure_logging()

    cfg = load_config(config_path)
    if db_path:
        cfg['db_path'] = db_path
    ctx.obj = cfg


@main.command()
@click.option('--host', default='127.0.0.1', help='Host to bind (default: 127.0.0.1)')
@click.option('--port', type=int, default=3000, help='Port to bind (default: 3000)')
@click.pass_obj
def serve(cfg, host, port):
    """Run the HTTP API."""
    import uvicorn

    from cash_planner.api import create_app

    try:
        app = create_app(cfg)
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"Cash Planner API running at http://{host}:{port} (db: {cfg['db_path']})")
    uvicorn.run(app, host=host, port=port)


@main.command('create-account')
@click.argument('username')
@click.password_option()
@click.pass_obj
def create_account(cfg, username, password):
    """Create an account and print its owner id."""
    try:
        owner_id = accounts.create_account(cfg['db_path'], username, password)
    except CashPlannerError as e:
        raise click.ClickException(e.message)
    click.echo(f"Created account {username} (owner id: {owner_id})")


@main.command('list')
@_owner_option
@click.pass_obj
def list_command(cfg, owner_id):
    """List the stored transactions of an owner."""
    owner_id = _resolve_owner(cfg, owner_id)
    records = database.list_transactions(cfg['db_path'], owner_id)
    if not records:
        click.echo("No transactions.")
        return
    for r in records:
        cadence = "once" if r.frequency == "none" else f"every {r.interval} {r.frequency}"
        until = f" until {r.end_date.isoformat()}" if r.end_date else ""
        click.echo(
            f"{r.id} | {r.name} | {r.type} | {r.amount:.2f} | "
            f"{r.start_date.isoformat()} {cadence}{until}"
        )


@main.command('project')
@_owner_option
@click.option('--start', required=True, help='Window start (YYYY-MM-DD)')
@click.option('--end', required=True, help='Window end (YYYY-MM-DD)')
@click.option(
    '--output', 'output_format',
    default=None,
    type=click.Choice(['csv', 'excel']),
    help='Export occurrences instead of printing them'
)
@click.option('--opening-balance', type=float, default=0.0, help='Balance before the window')
@click.pass_obj
def project_command(cfg, owner_id, start, end, output_format, opening_balance):
    """Project an owner's transactions onto a date window."""
    owner_id = _resolve_owner(cfg, owner_id)
    try:
        window_start, window_end = validate_window(start, end)
    except CashPlannerError as e:
        raise click.ClickException(e.message)

    records = database.list_transactions(cfg['db_path'], owner_id)
    occurrences = project(records, window_start, window_end)

    if output_format:
        path = get_output(output_format, cfg).write(occurrences, window_start, window_end)
        click.echo(f"Exported {len(occurrences)} occurrence(s) to {path}.")
        return

    for occ in occurrences:
        click.echo(occurrence_to_line(occ))
    summary = cash_flow_summary(occurrences, opening_balance=opening_balance)
    click.echo(
        f"\nIncome {summary['income']:.2f} | Expense {summary['expense']:.2f} | "
        f"Net {summary['net']:.2f} | Closing balance {summary['closing_balance']:.2f}"
    )


@main.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@_owner_option
@click.pass_obj
def import_command(cfg, path, owner_id):
    """Import transactions from a YAML file (all or nothing)."""
    owner_id = _resolve_owner(cfg, owner_id)
    try:
        records = import_manual_transactions(path, cfg['db_path'], owner_id)
    except CashPlannerError as e:
        raise click.ClickException(e.message)
    click.echo(f"Imported {len(records)} transaction(s) into {cfg['db_path']}.")
