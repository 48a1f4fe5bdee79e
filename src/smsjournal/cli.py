from __future__ import annotations

from pathlib import Path

import anyio
import typer

from . import __version__
from .config import ConfigError, resolve_config_path
from .config_store import write_raw_toml
from .logging import get_logger, setup_logging
from .settings import JournalSettings, default_config_data, load_settings
from .store import SqliteJournalStore, StoreError

logger = get_logger(__name__)


def _print_version_and_exit() -> None:
    typer.echo(__version__)
    raise typer.Exit()


def _version_callback(value: bool) -> None:
    if value:
        _print_version_and_exit()


def _config_path_display(path: Path) -> str:
    home = Path.home()
    try:
        return f"~/{path.relative_to(home)}"
    except ValueError:
        return str(path)


def _load_settings_or_exit(config: Path | None) -> JournalSettings:
    try:
        settings, config_path = load_settings(config)
    except ConfigError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    logger.debug("config.loaded", path=str(config_path))
    return settings


async def _init_schema(database: Path) -> None:
    store = SqliteJournalStore(database)
    try:
        await store.init_schema()
    finally:
        await store.close()


def _ensure_schema_or_exit(database: Path) -> None:
    try:
        anyio.run(_init_schema, database)
    except StoreError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def serve(
    config: Path | None = typer.Option(
        None, "--config", help="Path to smsjournal.toml."
    ),
    host: str | None = typer.Option(None, "--host", help="Override server.host."),
    port: int | None = typer.Option(None, "--port", help="Override server.port."),
    debug: bool = typer.Option(
        False,
        "--debug/--no-debug",
        help="Log store queries, webhook payloads, and access lines.",
    ),
) -> None:
    """Run the SMS webhook receiver."""
    from .server import run_server

    setup_logging(debug=debug)
    settings = _load_settings_or_exit(config)
    _ensure_schema_or_exit(settings.database_path)
    try:
        run_server(
            settings,
            host=host or settings.server.host,
            port=port or settings.server.port,
        )
    except KeyboardInterrupt:
        logger.info("shutdown.interrupted")
        raise typer.Exit(code=130)


def init(
    config: Path | None = typer.Option(
        None, "--config", help="Where to write smsjournal.toml."
    ),
    force: bool = typer.Option(
        False, "--force", help="Overwrite an existing config file."
    ),
) -> None:
    """Write a default config and create the journal database."""
    setup_logging()
    config_path = resolve_config_path(config)
    display = _config_path_display(config_path)
    if write_raw_toml(default_config_data(), config_path, overwrite=force):
        typer.echo(f"wrote config to {display}")
    else:
        typer.echo(f"config already exists at {display}")
    settings = _load_settings_or_exit(config_path)
    _ensure_schema_or_exit(settings.database_path)
    typer.echo(f"database ready at {_config_path_display(settings.database_path)}")


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="SMS command interpreter for the experience journal.",
)


app.command(name="serve")(serve)
app.command(name="init")(init)


@app.callback()
def app_main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """smsjournal CLI."""


def main() -> None:
    app()


if __name__ == "__main__":
    main()
