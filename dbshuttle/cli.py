"""Command line interface for running database migrations."""

from __future__ import annotations

from pathlib import Path
from typing import NoReturn, Optional

import typer

from .config import ShuttleConfig, load_config, validate_config
from .controller import Confirm, InvocationController, InvocationOutcome
from .credentials import get_secret_provider
from .engine import WorkflowEngine
from .exceptions import (
    ConfigError,
    ExecutorFailure,
    SecretError,
    SelectionError,
    StoreError,
    UnitLocked,
)
from .executors import build_executors
from .log import configure_logging
from .persistence import get_state_store
from .resolver import EntityResolver
from .resources import RestorePod
from .selection import DatabaseCatalog, default_selector

EXIT_STEP_FAILED = 1
EXIT_INVALID = 2
EXIT_STORE = 3
EXIT_LOCKED = 4

app = typer.Typer(help="Resumable PostgreSQL migration: dump, upload to S3, restore.")


def _fail(message: str, code: int) -> NoReturn:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=code)


def _confirmer(answer: Optional[bool]) -> Confirm:
    if answer is not None:
        return lambda prompt: answer
    return lambda prompt: typer.confirm(prompt, default=False)


def _load(config_path: Optional[Path], debug: bool) -> ShuttleConfig:
    config = load_config(str(config_path) if config_path else None)
    if debug:
        config.debug = True
    configure_logging(config.debug)
    return config


def _migrate(
    config: ShuttleConfig,
    database: Optional[str],
    dry_run: bool,
    retry: bool,
    teardown: Optional[bool],
) -> InvocationOutcome:
    validate_config(config)
    store = get_state_store(config)
    secrets = get_secret_provider(config)

    candidates = None
    label = database
    if label is None:
        catalog = DatabaseCatalog(secrets, config.secrets.source_prefix, config.label_suffix)
        candidates = catalog.list_labels()
        if not candidates:
            raise SelectionError("No databases available to migrate")
        typer.echo("Please select a database to migrate:")
        label = default_selector().choose(candidates)

    pod = RestorePod.from_config(config)
    engine = WorkflowEngine(store, build_executors(config, secrets, pod))
    controller = InvocationController(
        store,
        engine,
        EntityResolver.from_config(config),
        confirm=_confirmer(teardown),
        shared_resource=pod,
        lock_file=config.state_file if config.state_backend == "yaml" else None,
    )
    return controller.run(label, dry_run=dry_run, retry=retry, candidates=candidates)


def _report(outcome: InvocationOutcome) -> None:
    if outcome.dry_run:
        if not outcome.plan:
            typer.echo(f"Nothing to do: all steps already completed for {outcome.unit_id}")
            return
        typer.echo(f"Would perform the following steps for database {outcome.unit_id}:")
        for index, step in enumerate(outcome.plan, start=1):
            typer.echo(f"{index}. {step.value}")
        return

    report = outcome.report
    typer.secho(f"Migration of {outcome.unit_id} completed successfully!", fg=typer.colors.GREEN)
    if report is not None:
        if report.skipped:
            typer.echo("Already completed: " + ", ".join(s.value for s in report.skipped))
        if report.attempted:
            typer.echo("Completed now: " + ", ".join(s.value for s in report.attempted))


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show what would be done without performing the migration"
    ),
    retry: bool = typer.Option(
        False, "--retry", help="Retry failed or pending steps from previous migration attempts"
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug output for troubleshooting"),
    database: Optional[str] = typer.Option(
        None, "--database", "-d", help="Database to migrate; skips interactive selection"
    ),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to YAML configuration"),
    teardown: Optional[bool] = typer.Option(
        None,
        "--teardown/--no-teardown",
        help="Answer the restore pod deletion prompt without asking",
    ),
) -> None:
    """
    Migrate one database: dump it from the source, upload the dump to S3 and
    restore it into the target.

    Progress is recorded per step in the state file. Re-running (with or
    without --retry) resumes at the first step that has not succeeded.

    Example:
        dbshuttle --database sales_db
        dbshuttle --dry-run --database sales_db
        dbshuttle --retry
    """
    ctx.obj = {"config_path": config, "debug": debug}
    if ctx.invoked_subcommand is not None:
        return

    try:
        shuttle_config = _load(config, debug)
        outcome = _migrate(shuttle_config, database, dry_run, retry, teardown)
    except ExecutorFailure as exc:
        _fail(
            f"Migration of {exc.unit_id} failed at step {exc.step}: {exc.reason}\n"
            "Re-run with --retry to resume from the failed step.",
            EXIT_STEP_FAILED,
        )
    except (ConfigError, SelectionError, SecretError) as exc:
        _fail(f"Error: {exc}", EXIT_INVALID)
    except UnitLocked as exc:
        _fail(f"Error: {exc}", EXIT_LOCKED)
    except StoreError as exc:
        _fail(f"State store error, aborting: {exc}", EXIT_STORE)
    else:
        _report(outcome)


@app.command("status")
def status(ctx: typer.Context) -> None:
    """
    List every database recorded in the state file with its step statuses.

    Example:
        dbshuttle status
        # Output: sales    dump=success    upload=failed    restore=pending    2025-06-19T10:00:00Z
    """
    obj = ctx.obj or {}
    try:
        config = _load(obj.get("config_path"), obj.get("debug", False))
        units = get_state_store(config).list_units()
    except ConfigError as exc:
        _fail(f"Error: {exc}", EXIT_INVALID)
    except StoreError as exc:
        _fail(f"State store error: {exc}", EXIT_STORE)

    if not units:
        typer.echo("No migrations recorded")
        return
    for unit in units:
        steps = "\t".join(f"{step.value}={state.value}" for step, state in unit.steps.items())
        typer.echo(f"{unit.name}\t{steps}\t{unit.model_dump(mode='json')['last_updated']}")


@app.command("show")
def show(ctx: typer.Context, name: str) -> None:
    """
    Show the per-step state of one database.

    Example:
        dbshuttle show sales_db
    """
    obj = ctx.obj or {}
    try:
        config = _load(obj.get("config_path"), obj.get("debug", False))
        unit_id = EntityResolver.from_config(config).canonical_id(name)
        unit = get_state_store(config).get(unit_id)
    except (ConfigError, SelectionError) as exc:
        _fail(f"Error: {exc}", EXIT_INVALID)
    except StoreError as exc:
        _fail(f"State store error: {exc}", EXIT_STORE)

    if unit is None:
        typer.echo("Migration unit not found")
        raise typer.Exit(code=1)
    typer.echo(f"Database {unit.name}: {'migrated' if unit.is_complete() else 'incomplete'}")
    for step, state in unit.steps.items():
        typer.echo(f"- {step.value}: {state.value}")
    typer.echo(f"Last updated: {unit.model_dump(mode='json')['last_updated']}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
