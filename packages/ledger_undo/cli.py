"""CLI for the ``ledger_undo`` package.

A Typer console over one undo session per invocation. Environment variables
(``DATABASE_URL``, ``LEDGER_UNDO_OWNER_ID``, ``LEDGER_UNDO_STATE_DIR``) are
loaded from a local ``.env`` using ``python-dotenv`` in the root callback;
command-line options override them. Business logic lives in
``ledger_undo.api`` and the modules it composes.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from pathlib import Path
from typing import Any, NoReturn

import typer
from dotenv import load_dotenv

from .api import (
    MutationResult,
    delete_transaction,
    undo_session,
    update_future_transaction,
    update_transaction,
)
from .controller import UndoController
from .logging_setup import configure_logging
from .store import SqlRecordStore

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Inspect and undo recent changes to ledger transactions. "
        "Loads DATABASE_URL and LEDGER_UNDO_OWNER_ID from a local .env before running."
    ),
)


# ---- Helpers -----------------------------------------------------------------


def _session(ctx: typer.Context) -> tuple[AbstractContextManager[UndoController], SqlRecordStore]:
    opts: dict[str, Any] = ctx.obj or {}
    store = SqlRecordStore(database_url=opts.get("database_url"), owner_id=opts.get("owner"))
    return undo_session(store=store, state_dir=opts.get("state_dir")), store


def _fail(message: str) -> NoReturn:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(1)


def _report_mutation(result: MutationResult, verb: str, record_id: str) -> None:
    if not result.ok:
        _fail(result.error or f"{verb} failed")
    if result.action is None:
        typer.echo(f"{verb} {record_id} (no change recorded)")
    else:
        typer.echo(f"{verb} {record_id}; undo with: ledger-undo undo ({result.action.description})")


def _non_empty(changes: dict[str, str | None]) -> dict[str, str]:
    return {k: v for k, v in changes.items() if v is not None}


# ---- Commands ----------------------------------------------------------------


@app.command("history")
def history_cmd(ctx: typer.Context) -> None:
    """List recorded actions, newest first."""

    session, _store = _session(ctx)
    with session as controller:
        actions = controller.history.actions()
        if not actions:
            typer.echo("No actions recorded.")
            return
        for action in reversed(actions):
            age = controller.history.format_age(action.timestamp)
            typer.echo(f"{age}\t{action.kind.value}\t{action.target_id}\t{action.description}")


@app.command("status")
def status_cmd(ctx: typer.Context) -> None:
    """Show undo statistics."""

    session, _store = _session(ctx)
    with session as controller:
        stats = controller.stats()
        last = controller.last_action_description()
        controller.log_history()
    typer.echo(f"actions: {stats.total_actions}")
    typer.echo(f"last: {last or 'none'}")
    typer.echo(f"can undo: {'yes' if stats.can_execute_undo else 'no'}")


@app.command("undo")
def undo_cmd(ctx: typer.Context) -> None:
    """Undo the most recent action."""

    session, _store = _session(ctx)
    with session as controller:
        outcome = controller.undo()
    if not outcome.success:
        _fail(outcome.message)
    typer.echo(outcome.message)


@app.command("clear")
def clear_cmd(ctx: typer.Context) -> None:
    """Forget every recorded action."""

    session, _store = _session(ctx)
    with session as controller:
        controller.clear_history()
    typer.echo("History cleared.")


@app.command("prune")
def prune_cmd(ctx: typer.Context) -> None:
    """Drop actions older than 24 hours."""

    session, _store = _session(ctx)
    with session as controller:
        removed = controller.history.prune_stale()
    typer.echo(f"Removed {removed} stale action(s).")


@app.command("classify")
def classify_cmd(
    ctx: typer.Context,
    record_id: str = typer.Argument(..., help="Transaction id."),
    *,
    account: str | None = typer.Option(None, help="New account."),
    category: str | None = typer.Option(None, help="New category."),
    subtype: str | None = typer.Option(None, help="New subtype."),
    quick: bool = typer.Option(False, "--quick", help="Record as a quick classification."),
) -> None:
    """Reclassify a posted transaction (undoable)."""

    changes = _non_empty({"account": account, "category": category, "subtype": subtype})
    if not changes:
        _fail("nothing to change; pass --account, --category or --subtype")

    session, store = _session(ctx)
    with session as controller:
        result = update_transaction(controller, store, record_id, changes, quick_classify=quick)
    _report_mutation(result, "Classified", record_id)


@app.command("classify-future")
def classify_future_cmd(
    ctx: typer.Context,
    record_id: str = typer.Argument(..., help="Projected transaction id."),
    *,
    category: str | None = typer.Option(None, help="New category."),
    subtype: str | None = typer.Option(None, help="New subtype."),
) -> None:
    """Reclassify a projected transaction (undoable)."""

    changes = _non_empty({"category": category, "subtype": subtype})
    if not changes:
        _fail("nothing to change; pass --category or --subtype")

    session, store = _session(ctx)
    with session as controller:
        result = update_future_transaction(controller, store, record_id, changes)
    _report_mutation(result, "Classified", record_id)


@app.command("delete")
def delete_cmd(
    ctx: typer.Context,
    record_id: str = typer.Argument(..., help="Transaction id."),
) -> None:
    """Delete a posted transaction (undoable)."""

    session, store = _session(ctx)
    with session as controller:
        result = delete_transaction(controller, store, record_id)
    _report_mutation(result, "Deleted", record_id)


@app.callback()
def _root(
    ctx: typer.Context,
    *,
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
    owner: str | None = typer.Option(
        None, envvar="LEDGER_UNDO_OWNER_ID", help="Owner (user id) of this session."
    ),
    state_dir: Path | None = typer.Option(
        None,
        envvar="LEDGER_UNDO_STATE_DIR",
        help="Directory holding the persisted undo history (default ./.state).",
    ),
    log_level: str | None = typer.Option(
        None, help="Log level (falls back to LEDGER_UNDO_LOG_LEVEL, then INFO)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and stores the shared options for the
    subcommands.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging(log_level)

    ctx.obj = {"database_url": database_url, "owner": owner, "state_dir": state_dir}


if __name__ == "__main__":  # pragma: no cover
    app()
