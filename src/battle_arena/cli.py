"""CLI for the battle arena."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import structlog
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from battle_arena import __version__
from battle_arena.core.config import ArenaConfig, load_config
from battle_arena.core.errors import ArenaError, ConfigurationError
from battle_arena.services.battle import BattleService, OutcomeOracle
from battle_arena.services.llm import LLMClient, create_client
from battle_arena.services.storage import ArenaRepository, create_store

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

app = typer.Typer(
    name="battle-arena",
    help="Battle Arena - LLM-judged character battles with Elo rankings",
    add_completion=False,
)
console = Console()

ConfigOption = Annotated[
    Path | None, typer.Option("--config", "-c", help="Path to config YAML file")
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-V", help="Verbose output")]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"battle-arena v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
) -> None:
    """Battle Arena CLI."""


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load(config_path: Path | None) -> ArenaConfig:
    if config_path is None:
        return ArenaConfig()
    console.print(f"[bold]Loading config:[/bold] {config_path}")
    return load_config(config_path)


def _create_client(config: ArenaConfig, dry_run: bool) -> LLMClient | None:
    seed = config.seed if config.seed is not None else 42
    if dry_run:
        console.print("[yellow]DRY RUN MODE - using fake oracle responses[/yellow]")
        return create_client(dry_run=True, seed=seed)
    return create_client(api_key=config.oracle.resolve_api_key(), model=config.oracle.model)


def _fail(e: Exception, verbose: bool = False) -> typer.Exit:
    if isinstance(e, FileNotFoundError):
        console.print(f"[red]Error:[/red] {e}")
    elif isinstance(e, ConfigurationError):
        console.print(f"[red]{escape(str(e))}[/red]")
    elif isinstance(e, ArenaError):
        console.print(f"[red]Error:[/red] {e.message}")
    else:
        console.print(f"[red]Unexpected error:[/red] {e}")
        if verbose:
            console.print_exception()
    return typer.Exit(1)


@app.command()
def serve(
    config_path: ConfigOption = None,
    host: Annotated[str, typer.Option("--host", help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", help="Bind port")] = 8000,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Use fake oracle responses, no API calls")
    ] = False,
    verbose: VerboseOption = False,
) -> None:
    """Serve the HTTP API."""
    import uvicorn

    from battle_arena.api import create_app

    _setup_logging(verbose)
    try:
        config = _load(config_path)
        client = _create_client(config, dry_run)
    except Exception as e:
        raise _fail(e, verbose) from e

    console.print(f"[bold green]Serving on http://{host}:{port}[/bold green]")
    console.print(f"  Store backend: {config.store.backend}")
    console.print(f"  Oracle: {'enabled' if client is not None else 'fallback only'}")
    uvicorn.run(create_app(config, client=client), host=host, port=port)


@app.command()
def battle(
    character_id: Annotated[str, typer.Argument(help="Initiating character id")],
    owner: Annotated[str, typer.Option("--owner", help="Owner of the character")],
    config_path: ConfigOption = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Use fake oracle responses, no API calls")
    ] = False,
    verbose: VerboseOption = False,
) -> None:
    """Run one battle for a character and print the result."""
    _setup_logging(verbose)

    async def _run(config: ArenaConfig) -> None:
        store = create_store(config.store)
        client = _create_client(config, dry_run)
        repository = ArenaRepository(store, config.battle, config.leagues)
        service = BattleService(repository, OutcomeOracle(client, config.oracle))
        try:
            result = await service.start_battle(owner, character_id)
        finally:
            if client is not None:
                await client.close()
            await store.close()

        record = result.battle
        outcome = "Draw" if record.is_draw else f"Winner: {record.winner}"
        console.print(f"\n[bold]{record.id}[/bold] ({record.source})")
        console.print(f"  {record.character1} vs {record.character2}")
        console.print(f"  [bold green]{outcome}[/bold green]")
        stats = result.update.updated_stats()
        for side in ("winner", "loser"):
            console.print(f"  {stats[side]['id']}: elo {stats[side]['elo']}")
        console.print(f"\n{record.explanation}")

    try:
        asyncio.run(_run(_load(config_path)))
    except Exception as e:
        raise _fail(e, verbose) from e


@app.command()
def leaderboard(
    league: Annotated[str | None, typer.Option("--league", help="League to show")] = None,
    limit: Annotated[int, typer.Option("--limit", help="Number of rows")] = 10,
    config_path: ConfigOption = None,
) -> None:
    """Print a league leaderboard."""

    async def _run(config: ArenaConfig) -> None:
        store = create_store(config.store)
        repository = ArenaRepository(store, config.battle, config.leagues)
        name = league or config.leagues.general
        try:
            entries, total = await repository.league_leaderboard(name, limit=limit)
        finally:
            await store.close()

        console.print(f"[bold]{name}[/bold] league: {total} characters")
        table = Table()
        table.add_column("Rank", justify="right")
        table.add_column("Name")
        table.add_column("Elo", justify="right")
        table.add_column("W/L/D", justify="right")
        for entry in entries:
            c = entry.character
            table.add_row(str(entry.rank), c.name, str(c.elo), f"{c.wins}/{c.losses}/{c.draws}")
        console.print(table)

    try:
        asyncio.run(_run(_load(config_path)))
    except Exception as e:
        raise _fail(e) from e


@app.command()
def reconcile(config_path: ConfigOption = None) -> None:
    """Rebuild every ranking index from the character records."""

    async def _run(config: ArenaConfig) -> None:
        store = create_store(config.store)
        try:
            report = await ArenaRepository(store, config.battle, config.leagues).reconcile()
        finally:
            await store.close()
        console.print("[green]Reconciliation complete[/green]")
        console.print(f"  Checked: {report.checked}")
        console.print(f"  Rescored: {report.rescored}")
        console.print(f"  Removed: {report.removed}")

    try:
        asyncio.run(_run(_load(config_path)))
    except Exception as e:
        raise _fail(e) from e


@app.command()
def validate(
    config_path: Annotated[Path, typer.Argument(help="Path to config YAML file")],
    require_key: Annotated[
        bool, typer.Option("--require-key", help="Fail when no oracle API key is available")
    ] = False,
) -> None:
    """Validate a configuration file without running.

    Args:
        config_path: Path to YAML configuration file.
        require_key: Also require an oracle API key from config or environment.
    """
    try:
        config = load_config(config_path)
        if require_key:
            config.get_api_key()
    except (FileNotFoundError, ConfigurationError) as e:
        raise _fail(e) from e
    except Exception as e:
        console.print(f"[red]Validation error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print("[green]Configuration is valid![/green]")
    console.print(f"  Leagues: {', '.join(config.leagues.leagues)}")
    console.print(f"  Mirrored league: {config.leagues.mirrored_league}")
    console.print(f"  Cooldown: {config.battle.cooldown_seconds}s")
    console.print(f"  K-factor: {config.battle.k_factor}")
    console.print(f"  Store backend: {config.store.backend}")
    console.print(f"  Oracle model: {config.oracle.model}")
    console.print(f"  Oracle key: {'set' if config.oracle.resolve_api_key() else 'missing'}")


@app.command()
def info() -> None:
    """Show tool information and example commands."""
    console.print("[bold]Battle Arena[/bold]")
    console.print(f"Version: {__version__}\n")

    console.print("[bold]Example Commands:[/bold]")
    console.print("  # Serve the API with fake oracle responses")
    console.print("  battle-arena serve --dry-run\n")

    console.print("  # Serve against Redis")
    console.print("  REDIS_URL=redis://localhost:6379/0 battle-arena serve -c config.yaml\n")

    console.print("  # Run one battle")
    console.print("  battle-arena battle <character-id> --owner <owner> -c config.yaml\n")

    console.print("  # Show a league leaderboard")
    console.print("  battle-arena leaderboard --league veteran -c config.yaml\n")

    console.print("  # Repair ranking indexes")
    console.print("  battle-arena reconcile -c config.yaml\n")

    console.print("  # Validate config")
    console.print("  battle-arena validate config.yaml --require-key")


if __name__ == "__main__":
    app()
