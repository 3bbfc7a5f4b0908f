"""recall CLI: root commands and subgroup registration."""

import json
import logging
import sys
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Annotated

import typer
import yaml
import yaml.error

from recall.domain.errors import InvalidSettings, RecallError
from recall.domain.models import CardRef, CardReviewState
from recall.infrastructure.adapters.sqlite_store import SqliteStore
from recall.infrastructure.adapters.yaml_settings import load_settings_file
from recall.interface._common import _resolve_with_overrides, fail, open_service

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="recall: spaced-repetition scheduling for flashcard projects.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Subgroups
# ---------------------------------------------------------------------------

cards_app = typer.Typer(help="Manage cards and their review state.", no_args_is_help=True)
app.add_typer(cards_app, name="cards")

settings_app = typer.Typer(help="Inspect SRS settings files.", no_args_is_help=True)
app.add_typer(settings_app, name="settings")

config_app = typer.Typer(help="Manage recall configuration.")
app.add_typer(config_app, name="config")


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    db: Annotated[Path | None, typer.Option("--db", help="SQLite database path.")] = None,
    settings_file: Annotated[
        Path | None, typer.Option("--settings", help="YAML file of per-project SRS settings.")
    ] = None,
    user: Annotated[str | None, typer.Option("--user", help="User id to study as.")] = None,
    tz: Annotated[
        str | None, typer.Option("--timezone", help="IANA timezone defining the study day.")
    ] = None,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for recall."""
    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {
        "database_path": db,
        "settings_file": settings_file,
        "user_id": user,
        "timezone": tz,
    }
    if verbose:
        logging.getLogger().setLevel(logging.INFO if verbose == 1 else logging.DEBUG)


def _config(ctx: typer.Context):
    overrides = (ctx.obj or {}).get("overrides", {})
    try:
        return _resolve_with_overrides(**overrides)
    except ValueError as e:
        typer.secho(f"Invalid configuration: {e}", fg="red", err=True)
        raise typer.Exit(1) from e


def _state_dict(state: CardReviewState) -> dict:
    return {
        "card_id": state.card_id,
        "state": state.state.value,
        "due": state.due.isoformat(),
        "interval_days": state.interval_days,
        "ease": state.ease,
        "learning_step": state.learning_step,
        "repetitions": state.repetitions,
        "lapses": state.lapses,
        "is_suspended": state.is_suspended,
        "is_leech": state.is_leech,
        "version": state.version,
    }


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command("queue")
def queue(
    ctx: typer.Context,
    project: Annotated[str, typer.Argument(help="Project id.")],
    limit: Annotated[int | None, typer.Option(help="Show at most this many cards.")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show today's study queue: learning, then reviews, then new cards."""
    config = _config(ctx)
    try:
        with open_service(config) as service:
            card_ids = []
            for card_id in service.build_queue(config.user_id, project):
                if limit is not None and len(card_ids) >= limit:
                    break
                card_ids.append(card_id)
    except RecallError as e:
        fail(e)

    if json_output:
        typer.echo(json.dumps({"project": project, "queue": card_ids}, indent=2))
        return
    if not card_ids:
        typer.secho("Nothing to study.", fg="green")
        return
    for position, card_id in enumerate(card_ids, start=1):
        typer.echo(f"{position:>4}  {card_id}")


@app.command("rate")
def rate(
    ctx: typer.Context,
    project: Annotated[str, typer.Argument(help="Project id.")],
    card_id: Annotated[str, typer.Argument(help="Card id.")],
    rating: Annotated[str, typer.Argument(help="again, hard, good, easy (or 1-4).")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """[bold green]Rate[/bold green] an answered card and store its next schedule."""
    config = _config(ctx)
    try:
        with open_service(config) as service:
            result = service.rate(config.user_id, project, card_id, rating)
    except RecallError as e:
        fail(e)

    state = result.state
    if json_output:
        payload = _state_dict(state)
        payload["counters"] = {
            "study_date": result.counters.study_date.isoformat(),
            "new_cards_introduced": result.counters.new_cards_introduced,
            "reviews_completed": result.counters.reviews_completed,
        }
        typer.echo(json.dumps(payload, indent=2))
        return

    typer.echo(f"{card_id}: {state.state.value}, due {state.due.isoformat()}")
    if state.is_leech:
        typer.secho(
            f"{card_id} is a leech ({state.lapses} lapses)"
            + (" and was suspended" if state.is_suspended else ""),
            fg="yellow",
        )


@app.command("summary")
def summary(
    ctx: typer.Context,
    project: Annotated[str, typer.Argument(help="Project id.")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Counts of new, learning, review and due cards."""
    config = _config(ctx)
    try:
        with open_service(config) as service:
            result = service.summary(config.user_id, project)
    except RecallError as e:
        fail(e)

    if json_output:
        payload = asdict(result)
        payload["due_now"] = result.due_now
        typer.echo(json.dumps(payload, indent=2))
        return

    typer.echo(
        f"Total: {result.total}  New: {result.new}  Learning: {result.learning}"
        f"  Review: {result.review}  Suspended: {result.suspended}"
    )
    typer.echo(
        f"Due now: {result.due_now} (learning {result.due_learning}, "
        f"review {result.due_review}, new {result.new_available})"
    )
    if result.leeches:
        typer.secho(f"Leeches: {result.leeches}", fg="yellow")


# ---------------------------------------------------------------------------
# Cards subgroup
# ---------------------------------------------------------------------------


@cards_app.command("add")
def cards_add(
    ctx: typer.Context,
    project: Annotated[str, typer.Argument(help="Project id.")],
    card_id: Annotated[str, typer.Argument(help="Card id.")],
    sibling_group: Annotated[
        str | None, typer.Option(help="Group shared with sibling cards (e.g. note id).")
    ] = None,
):
    """Register a card in the local catalog."""
    config = _config(ctx)
    with SqliteStore(config.database_path) as store:
        store.add_card(
            CardRef(
                card_id=card_id,
                project_id=project,
                created_at=datetime.now(timezone.utc),
                sibling_group=sibling_group,
            )
        )
    typer.echo(f"Added {card_id} to {project}.")


@cards_app.command("import")
def cards_import(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="YAML list of cards (id, project, sibling_group).")],
):
    """Import cards from a YAML file, keeping file order as creation order."""
    config = _config(ctx)
    try:
        entries = yaml.safe_load(path.read_text(encoding="utf-8")) or []
    except (OSError, yaml.error.YAMLError) as e:
        typer.secho(f"Could not read {path}: {e}", fg="red", err=True)
        raise typer.Exit(1) from e

    if not isinstance(entries, list):
        typer.secho(f"{path} must contain a list of cards.", fg="red", err=True)
        raise typer.Exit(1)

    base = datetime.now(timezone.utc)
    imported = 0
    with SqliteStore(config.database_path) as store:
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict) or "id" not in entry or "project" not in entry:
                typer.secho(f"Skipping entry {index}: needs 'id' and 'project'.", fg="yellow")
                continue
            created_at = entry.get("created_at")
            if isinstance(created_at, datetime):
                if created_at.tzinfo is None:
                    created_at = created_at.replace(tzinfo=timezone.utc)
            else:
                created_at = base.replace(microsecond=0) + timedelta(microseconds=index)
            store.add_card(
                CardRef(
                    card_id=str(entry["id"]),
                    project_id=str(entry["project"]),
                    created_at=created_at,
                    sibling_group=(
                        str(entry["sibling_group"]) if entry.get("sibling_group") else None
                    ),
                )
            )
            imported += 1
    typer.secho(f"Imported {imported} card(s).", fg="green")


@cards_app.command("suspend")
def cards_suspend(
    ctx: typer.Context,
    project: Annotated[str, typer.Argument(help="Project id.")],
    card_id: Annotated[str, typer.Argument(help="Card id.")],
):
    """Exclude a card from all queues."""
    config = _config(ctx)
    try:
        with open_service(config) as service:
            service.suspend_card(config.user_id, project, card_id)
    except RecallError as e:
        fail(e)
    typer.echo(f"Suspended {card_id}.")


@cards_app.command("unsuspend")
def cards_unsuspend(
    ctx: typer.Context,
    project: Annotated[str, typer.Argument(help="Project id.")],
    card_id: Annotated[str, typer.Argument(help="Card id.")],
):
    """Return a suspended card to the queues."""
    config = _config(ctx)
    try:
        with open_service(config) as service:
            service.unsuspend_card(config.user_id, project, card_id)
    except RecallError as e:
        fail(e)
    typer.echo(f"Unsuspended {card_id}.")


@cards_app.command("reset")
def cards_reset(
    ctx: typer.Context,
    project: Annotated[str, typer.Argument(help="Project id.")],
    card_id: Annotated[str, typer.Argument(help="Card id.")],
):
    """Forget a card's progress and make it new again."""
    config = _config(ctx)
    try:
        with open_service(config) as service:
            service.reset_card(config.user_id, project, card_id)
    except RecallError as e:
        fail(e)
    typer.echo(f"Reset {card_id}.")


@cards_app.command("show")
def cards_show(
    ctx: typer.Context,
    project: Annotated[str, typer.Argument(help="Project id.")],
    card_id: Annotated[str, typer.Argument(help="Card id.")],
):
    """Print a card's stored review state as JSON."""
    config = _config(ctx)
    with SqliteStore(config.database_path) as store:
        state = store.get_state(config.user_id, project, card_id)
    if state is None:
        typer.secho(f"{card_id} has no review state yet (new).", fg="yellow")
        return
    typer.echo(json.dumps(_state_dict(state), indent=2))


# ---------------------------------------------------------------------------
# Settings subgroup
# ---------------------------------------------------------------------------


@settings_app.command("check")
def settings_check(
    path: Annotated[Path, typer.Argument(help="YAML settings file to validate.")],
):
    """Validate a settings file without touching any data."""
    try:
        default, per_project = load_settings_file(path)
    except InvalidSettings as e:
        typer.secho(str(e), fg="red", err=True)
        raise typer.Exit(1) from e
    typer.secho(f"OK: default + {len(per_project)} project(s).", fg="green")


@settings_app.command("show")
def settings_show(
    ctx: typer.Context,
    project: Annotated[str, typer.Argument(help="Project id.")],
):
    """Display the effective settings for a project."""
    from recall.application.factory import get_settings_provider

    config = _config(ctx)
    try:
        settings = get_settings_provider(config).get_settings(project)
    except RecallError as e:
        fail(e)
    typer.echo(json.dumps(settings.to_document(), indent=2))


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _config(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))


def main():
    app()
