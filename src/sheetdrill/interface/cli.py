"""sheetdrill CLI: interactive study loop, sheet provisioning and config."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Any

import typer

from sheetdrill.application.config import AppConfig, resolve_config
from sheetdrill.domain.errors import SheetdrillError

app = typer.Typer(
    help="sheetdrill: Adaptive multiple-choice drills from a spreadsheet deck.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

config_app = typer.Typer(help="Manage sheetdrill configuration.")
app.add_typer(config_app, name="config")

QUIT_KEYS = {"q", "quit", "exit"}
SYNC_KEYS = {"s", "sync"}


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
):
    """Global settings for sheetdrill."""
    logging.getLogger().setLevel(logging.DEBUG if verbose > 1 else logging.INFO)


def _resolve_with_overrides(**overrides: Any) -> AppConfig:
    """resolve_config() with CLI overrides; None means 'not given on the command line'."""
    try:
        return resolve_config(overrides)
    except ValueError as e:
        typer.secho(f"Invalid configuration: {e}", fg="red")
        raise typer.Exit(1) from e


def _require_spreadsheet(config: AppConfig) -> str:
    if not config.spreadsheet:
        typer.secho(
            "No spreadsheet given. Pass a sheet URL or ID, or set 'spreadsheet' in config.",
            fg="red",
        )
        raise typer.Exit(1)
    return config.spreadsheet


def _run(coro) -> Any:
    """Run a coroutine and turn domain errors into a red message plus exit code 1."""
    try:
        return asyncio.run(coro)
    except SheetdrillError as e:
        typer.secho(str(e), fg="red")
        raise typer.Exit(1) from e


# ---------------------------------------------------------------------------
# Study
# ---------------------------------------------------------------------------


@app.command()
def study(
    spreadsheet: Annotated[
        str | None,
        typer.Argument(help="Sheet URL or spreadsheet ID. Defaults to 'spreadsheet' in config."),
    ] = None,
    backend: Annotated[str | None, typer.Option(help="Store backend: sheets, local.")] = None,
    local_dir: Annotated[
        Path | None, typer.Option(help="Directory holding local CSV spreadsheets.")
    ] = None,
    mode: Annotated[
        str | None, typer.Option("--mode", help="front_only, back_only or random.")
    ] = None,
    token_file: Annotated[
        Path | None, typer.Option(help="File containing the OAuth access token.")
    ] = None,
    seed: Annotated[int | None, typer.Option(help="Seed for reproducible draws.")] = None,
):
    """[bold green]Study[/bold green] a deck interactively in the terminal."""
    config = _resolve_with_overrides(
        spreadsheet=spreadsheet,
        backend=backend,
        local_dir=local_dir,
        study_mode=mode,
        token_file=token_file,
        seed=seed,
        # Feedback is shown until the next keypress instead of a timer.
        advance_mode="manual",
    )
    ref = _require_spreadsheet(config)
    _run(run_study(config, ref))


async def run_study(config: AppConfig, ref: str) -> None:
    from sheetdrill.application.factory import get_sheet_store
    from sheetdrill.application.session import StudySession

    store = get_sheet_store(config)
    session = StudySession.from_config(store, config)
    try:
        result = await session.load(ref)
        typer.secho(session.status, fg="green")
        if result.new_mutations:
            typer.echo(f"Allocated {len(result.new_mutations)} new progress row(s).")

        session.start_round()
        while await _study_turn(session, config):
            pass
    finally:
        if session.ctx.loaded:
            await session.unload(sync_first=True)
            typer.echo(session.status)
        await session.close()
        await store.close()


async def _study_turn(session, config: AppConfig) -> bool:
    """Show one draw and handle one keypress. Returns False when the user quits."""
    from sheetdrill.application.summary import card_hint
    from sheetdrill.application.workflow import AnswerOutcome

    draw = session.current
    if draw is None:
        typer.secho("No cards to study.", fg="yellow")
        return False

    item = session.ctx.current_item
    typer.echo("")
    typer.secho(draw.prompt, bold=True)
    hint = card_hint(item, config.show_pronunciation) if item else ""
    if hint:
        typer.echo(f"  ({hint})")
    if draw.prompt_explanation:
        typer.echo(f"  {draw.prompt_explanation}")
    for number, option in enumerate(draw.options, start=1):
        typer.echo(f"  {number}. {option}")

    raw = await asyncio.to_thread(
        typer.prompt, "Answer [number, s=sync, q=quit]", default="", show_default=False
    )
    key = raw.strip().lower()
    if key in QUIT_KEYS:
        return False
    if key in SYNC_KEYS:
        flushed = await session.sync()
        typer.echo(session.status if flushed else "Nothing to sync.")
        return True
    if not key.isdigit() or not 1 <= int(key) <= len(draw.options):
        typer.secho("Pick one of the listed numbers.", fg="yellow")
        return True

    result = session.answer(draw.options[int(key) - 1])
    if result.outcome == AnswerOutcome.CORRECTION_REQUIRED:
        typer.secho(f"Wrong. The answer is: {draw.expected}. Pick it to continue.", fg="red")
        return True
    if result.outcome != AnswerOutcome.COMPLETED:
        return True

    typer.secho("Correct." if not result.had_mistake else "Recorded as a miss.", fg="green")
    if draw.answer_explanation:
        typer.echo(f"  {draw.answer_explanation}")

    if result.round_ended:
        _print_summary(session)
        again = await asyncio.to_thread(typer.confirm, "Start another round?", default=False)
        if not again:
            return False
        session.start_round()
        return True

    session.advance()
    return True


def _print_summary(session) -> None:
    summary = session.summary()
    typer.secho("Round complete.", fg="green", bold=True)
    typer.echo(f"  Progress:        {summary.round_progress}")
    typer.echo(f"  Answers:         {summary.answers}")
    typer.echo(f"  Accuracy:        {summary.accuracy_text}")
    typer.echo(f"  Tap accuracy:    {summary.tap_accuracy_text}")
    typer.echo(f"  Wrong cards:     {summary.wrong_cards}")
    typer.echo(f"  Most missed:     {summary.most_missed}")


# ---------------------------------------------------------------------------
# Deck management
# ---------------------------------------------------------------------------


@app.command()
def load(
    spreadsheet: Annotated[
        str | None, typer.Argument(help="Sheet URL or spreadsheet ID.")
    ] = None,
    backend: Annotated[str | None, typer.Option(help="Store backend: sheets, local.")] = None,
    local_dir: Annotated[
        Path | None, typer.Option(help="Directory holding local CSV spreadsheets.")
    ] = None,
):
    """Load and reconcile a deck, writing any newly allocated progress rows."""
    config = _resolve_with_overrides(
        spreadsheet=spreadsheet, backend=backend, local_dir=local_dir
    )
    ref = _require_spreadsheet(config)

    async def run():
        from sheetdrill.application.factory import get_sheet_store
        from sheetdrill.application.session import StudySession

        store = get_sheet_store(config)
        session = StudySession.from_config(store, config)
        try:
            result = await session.load(ref)
            typer.secho(session.status, fg="green")
            typer.echo(f"Cards: {len(result.items)}")
            typer.echo(f"New progress rows: {len(result.new_mutations)}")
            if result.skipped_rows:
                typer.echo(f"Blank card rows skipped: {result.skipped_rows}")
            if result.orphaned_stats:
                typer.secho(
                    f"Progress rows without a matching card: {result.orphaned_stats}",
                    fg="yellow",
                )
            flushed = await session.sync()
            if flushed is not None and not flushed.ok:
                typer.secho(session.status, fg="red")
                raise typer.Exit(1)
        finally:
            await session.close()
            await store.close()

    _run(run())


@app.command("init-sheet")
def init_sheet(
    spreadsheet: Annotated[
        str | None, typer.Argument(help="Sheet URL or spreadsheet ID.")
    ] = None,
    backend: Annotated[str | None, typer.Option(help="Store backend: sheets, local.")] = None,
    local_dir: Annotated[
        Path | None, typer.Option(help="Directory holding local CSV spreadsheets.")
    ] = None,
):
    """Create the card and progress tabs (if missing) and write their headers."""
    config = _resolve_with_overrides(
        spreadsheet=spreadsheet, backend=backend, local_dir=local_dir
    )
    ref = _require_spreadsheet(config)

    async def run():
        from sheetdrill.application.factory import get_sheet_store
        from sheetdrill.application.template import initialize_template

        store = get_sheet_store(config)
        try:
            spreadsheet_id = store.parse_ref(ref)
            if not spreadsheet_id:
                typer.secho("Invalid sheet URL or spreadsheet ID.", fg="red")
                raise typer.Exit(1)
            created = await initialize_template(
                store, spreadsheet_id, config.content_sheet, config.stats_sheet
            )
        finally:
            await store.close()

        if created:
            typer.echo(f"Created tabs: {', '.join(created)}")
        typer.secho(
            f"Template ready: {config.content_sheet} and {config.stats_sheet}.", fg="green"
        )

    _run(run())


@app.command("create-sheet")
def create_sheet(
    title: Annotated[
        str | None, typer.Option(help="Spreadsheet title. Defaults to 'Sheet Cards <date>'.")
    ] = None,
    backend: Annotated[str | None, typer.Option(help="Store backend: sheets, local.")] = None,
    local_dir: Annotated[
        Path | None, typer.Option(help="Directory holding local CSV spreadsheets.")
    ] = None,
):
    """Create a new spreadsheet that already has the template tabs."""
    config = _resolve_with_overrides(backend=backend, local_dir=local_dir)

    async def run():
        from sheetdrill.application.factory import get_sheet_store
        from sheetdrill.application.template import create_template_spreadsheet

        store = get_sheet_store(config)
        try:
            info = await create_template_spreadsheet(
                store, title, config.content_sheet, config.stats_sheet
            )
        finally:
            await store.close()

        typer.secho(f"Created '{info.title}'", fg="green")
        typer.echo(f"ID:  {info.spreadsheet_id}")
        if info.url:
            typer.echo(f"URL: {info.url}")

    _run(run())


@app.command()
def prompt(
    notes: Annotated[
        Path | None,
        typer.Option("--notes", help="Text file with study material to embed in the prompt."),
    ] = None,
):
    """Print an LLM prompt that turns study material into card rows (TSV)."""
    from sheetdrill.application.template import build_tsv_prompt

    material = ""
    if notes is not None:
        try:
            material = notes.read_text(encoding="utf-8")
        except OSError as e:
            typer.secho(f"Could not read {notes}: {e}", fg="red")
            raise typer.Exit(1) from e
    typer.echo(build_tsv_prompt(material))


@app.command()
def server(
    host: Annotated[str, typer.Option(help="Interface to bind.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Port to listen on.")] = 8777,
    reload: Annotated[bool, typer.Option(help="Auto-reload on code changes.")] = False,
):
    """Run the HTTP study server."""
    import uvicorn

    uvicorn.run("sheetdrill.server:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = config.model_dump(mode="json")
    if d.get("access_token"):
        d["access_token"] = "***"
    typer.echo(json.dumps(d, indent=2))
