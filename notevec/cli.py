"""[Layer: Presentation] Typer CLI Commands."""

import asyncio
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version as get_package_version
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from notevec.config import (
    DEFAULT_CONFIG_PATH,
    PERSISTED_FIELDS,
    Settings,
    get_example_config,
    load_settings,
    update_setting,
)
from notevec.core.service import NoteIndexService
from notevec.errors import ConfigurationError, NoteIndexError
from notevec.models import SimilarNote

T = TypeVar("T")

# Preview characters shown per result row
RESULT_PREVIEW_CHARS = 200

console = Console()
err_console = Console(stderr=True)


def _get_version() -> str:
    """Get version from package metadata (single source of truth: pyproject.toml)."""
    try:
        return get_package_version("notevec")
    except PackageNotFoundError:
        return "0.0.0-dev"


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"notevec {_get_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="notevec",
    help="Semantic similarity search over a vault of markdown notes.",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Show or change persisted settings.", no_args_is_help=True)
app.add_typer(config_app, name="config")


@dataclass
class CliState:
    """Global options shared by all commands."""

    config_path: Optional[Path] = None
    vault: Optional[Path] = None
    # Set by the entry point; receives the --config path
    configure_logging: Optional[Callable[[Optional[Path]], None]] = None


class CliNotifier:
    """Prints status lines and renders results as a table."""

    def notify(self, message: str) -> None:
        typer.echo(message)

    def show_results(self, results: list[SimilarNote]) -> None:
        table = Table(title="Similar Notes")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Note", style="bold")
        table.add_column("Similarity", justify="right", style="green")
        table.add_column("Preview", overflow="fold")
        for rank, result in enumerate(results, start=1):
            preview = result.content[:RESULT_PREVIEW_CHARS]
            if len(result.content) > RESULT_PREVIEW_CHARS:
                preview += "..."
            table.add_row(str(rank), result.file_path, result.percent, preview)
        console.print(table)


class CliPrompter:
    """Terminal prompts; `assume_yes` answers confirmations without asking."""

    def __init__(self, assume_yes: bool = False) -> None:
        self._assume_yes = assume_yes

    async def confirm(self, title: str, message: str) -> bool:
        if self._assume_yes:
            return True
        return await asyncio.to_thread(typer.confirm, f"{title}: {message}", default=False)

    async def prompt_text(self, label: str) -> str:
        return await asyncio.to_thread(typer.prompt, label, default="", show_default=False)


def _state(ctx: typer.Context) -> CliState:
    state = ctx.find_root().obj
    return state if isinstance(state, CliState) else CliState()


def _load_settings(ctx: typer.Context, **overrides: Any) -> Settings:
    state = _state(ctx)
    try:
        return load_settings(state.config_path, vault_path=state.vault, **overrides)
    except ConfigurationError as e:
        err_console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)


def _run_command(
    settings: Settings,
    action: Callable[[NoteIndexService], Awaitable[T]],
    *,
    assume_yes: bool = False,
) -> T:
    """Run one service command on a fresh event loop.

    The service has already reported any error; it only sets the exit code here.
    """

    async def _main() -> T:
        service = NoteIndexService(settings, CliNotifier(), CliPrompter(assume_yes))
        try:
            return await action(service)
        finally:
            await service.close()

    try:
        return asyncio.run(_main())
    except NoteIndexError:
        raise typer.Exit(1)


@app.callback()
def main(
    ctx: typer.Context,
    vault: Optional[Path] = typer.Option(
        None,
        "--vault",
        "-v",
        help="Vault directory (overrides vault_path).",
        file_okay=False,
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help=f"Config file (default: {DEFAULT_CONFIG_PATH}).",
        dir_okay=False,
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Index a note vault with Ollama embeddings and find similar notes."""
    state = ctx.obj if isinstance(ctx.obj, CliState) else CliState()
    state.config_path = config
    state.vault = vault
    ctx.obj = state
    if state.configure_logging is not None:
        state.configure_logging(config)


@app.command()
def similar(
    ctx: typer.Context,
    note: Optional[str] = typer.Argument(
        None, help="Note path, relative to the vault or absolute."
    ),
    limit: Optional[int] = typer.Option(
        None, "--limit", "-n", min=1, help="Number of results (default: result_limit)."
    ),
) -> None:
    """Find notes similar to NOTE."""
    settings = _load_settings(ctx, result_limit=limit)
    _run_command(settings, lambda service: service.find_similar_to_current(note))


@app.command()
def query(
    ctx: typer.Context,
    text: Optional[str] = typer.Argument(
        None, help="Free-text query. Prompted for when omitted."
    ),
    limit: Optional[int] = typer.Option(
        None, "--limit", "-n", min=1, help="Number of results (default: result_limit)."
    ),
) -> None:
    """Find notes similar to free text."""
    settings = _load_settings(ctx, result_limit=limit)
    _run_command(settings, lambda service: service.query_similar_notes(text))


@app.command()
def refresh(ctx: typer.Context) -> None:
    """Re-embed notes modified since they were last indexed."""
    settings = _load_settings(ctx)
    report = _run_command(settings, lambda service: service.refresh_modified_vectors())
    if report.errors:
        raise typer.Exit(1)


@app.command()
def recompute(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Re-embed every note in the vault."""
    settings = _load_settings(ctx)
    report = _run_command(
        settings, lambda service: service.recompute_all_vectors(), assume_yes=yes
    )
    if report is not None and report.errors:
        raise typer.Exit(1)


@app.command()
def remove(
    ctx: typer.Context,
    note: str = typer.Argument(..., help="Note path to drop from the index."),
) -> None:
    """Remove a note's vector from the index."""
    settings = _load_settings(ctx)
    _run_command(settings, lambda service: service.remove_note(note))


@app.command()
def check(ctx: typer.Context) -> None:
    """Check the embedding service and the vector store."""
    settings = _load_settings(ctx)
    statuses = _run_command(settings, lambda service: service.check_connections())
    if not all(status.success for status in statuses):
        raise typer.Exit(1)


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Print the effective settings."""
    settings = _load_settings(ctx)
    table = Table(title="notevec settings")
    table.add_column("Option", style="bold")
    table.add_column("Value")
    for name in Settings.model_fields:
        table.add_row(name, str(getattr(settings, name)))
    console.print(table)


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    name: str = typer.Argument(..., help=f"One of: {', '.join(PERSISTED_FIELDS)}"),
    value: str = typer.Argument(..., help="New value. Empty string restores the default."),
) -> None:
    """Change one option and save it to the config file."""
    state = _state(ctx)
    settings = _load_settings(ctx)
    try:
        updated = update_setting(settings, name, value, state.config_path)
    except ConfigurationError as e:
        err_console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)
    typer.echo(f"{name} = {getattr(updated, name)}")


@config_app.command("init")
def config_init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file."),
) -> None:
    """Write an example config file."""
    path = _state(ctx).config_path or DEFAULT_CONFIG_PATH
    if path.exists() and not force:
        err_console.print(f"{path} already exists (use --force to overwrite)")
        raise typer.Exit(1)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(get_example_config())
    path.chmod(0o600)
    typer.echo(f"Wrote {path}")
