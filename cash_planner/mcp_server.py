from __future__ import annotations

import os
from pathlib import Path

import anyio
from mcp.server.fastmcp import FastMCP

from cash_planner.accounts import resolve_owner
from cash_planner.config import load_config
from cash_planner.core.validation import validate_window
from cash_planner.database import list_transactions as _list_transactions
from cash_planner.database import record_to_dict
from cash_planner.projection import cash_flow_summary, project

server = FastMCP(name="CashPlanner", instructions="Expose Cash Planner projections as MCP tools")


def _require_db(db_path: str) -> None:
    if not Path(db_path).exists():
        raise FileNotFoundError(f"Database not found: {db_path}")


def _owner_for(token: str | None) -> str:
    # Same auth settings as the HTTP API; CASH_PLANNER_CONFIG points at the YAML.
    config = load_config(os.environ.get("CASH_PLANNER_CONFIG", "config.yaml"))
    return resolve_owner(config["auth"], token)


@server.tool(
    name="list_transactions", description="List the caller's stored transaction records"
)
async def list_transactions(db_path: str, token: str | None = None) -> list[dict]:
    owner_id = _owner_for(token)
    _require_db(db_path)

    def _run() -> list[dict]:
        return [record_to_dict(r) for r in _list_transactions(db_path, owner_id)]

    return await anyio.to_thread.run_sync(_run)


@server.tool(
    name="project_occurrences",
    description="Expand the caller's recurring transactions into dated occurrences",
)
async def project_occurrences(
    db_path: str,
    start_date: str,
    end_date: str,
    token: str | None = None,
) -> list[dict]:
    """Return occurrences between ``start_date`` and ``end_date`` (inclusive).

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.
    start_date, end_date:
        ISO formatted dates bounding the window.
    token:
        Bearer token from ``/login``; ignored when auth is disabled.
    """
    start, end = validate_window(start_date, end_date)
    owner_id = _owner_for(token)
    _require_db(db_path)

    def _run() -> list[dict]:
        records = _list_transactions(db_path, owner_id)
        return [o.to_dict() for o in project(records, start, end)]

    return await anyio.to_thread.run_sync(_run)


@server.tool(
    name="summarize_cash_flow",
    description="Income, expense, net and running balance per period for a window",
)
async def summarize_cash_flow(
    db_path: str,
    start_date: str,
    end_date: str,
    period: str = "month",
    opening_balance: float = 0.0,
    token: str | None = None,
) -> dict:
    start, end = validate_window(start_date, end_date)
    owner_id = _owner_for(token)
    _require_db(db_path)

    def _run() -> dict:
        records = _list_transactions(db_path, owner_id)
        return cash_flow_summary(
            project(records, start, end), period=period, opening_balance=opening_balance
        )

    return await anyio.to_thread.run_sync(_run)


def main() -> None:
    server.run()


if __name__ == "__main__":
    main()
