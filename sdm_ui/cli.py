from __future__ import annotations

from contextlib import contextmanager
import logging
from pathlib import Path
from typing import Iterator, NoReturn, Optional

import typer

from sdm_ui.config import Settings, load_settings
from sdm_ui.db import create_cache_engine, database_url
from sdm_ui.logging_config import configure_logging
from sdm_ui.proc import CommandError, CommandLaunchError, CommandTimeoutError
from sdm_ui.services.actions import PostConnectAction
from sdm_ui.services.credentials import CredentialProvider
from sdm_ui.services.datasources import DataSourceService
from sdm_ui.services.dependencies import missing_dependencies
from sdm_ui.services.errors import DependencyException, SdmUiException, SelectionCancelledException
from sdm_ui.services.notifier import Notifier
from sdm_ui.services.recovery import RecoveryController
from sdm_ui.services.sdm_client import SdmClient
from sdm_ui.services.selectors import FuzzySelector, MenuSelector
from sdm_ui.services.storage import CacheStorage

logger = logging.getLogger(__name__)
app = typer.Typer(
    help="SDM UI - wrapper for the StrongDM CLI with a cached, searchable resource list.",
    pretty_exceptions_show_locals=False,
    no_args_is_help=True,
)

_CLI_ERRORS = (SdmUiException, CommandError, CommandTimeoutError, CommandLaunchError)


@contextmanager
def open_service(
    settings: Settings, *, fuzzy: bool = False, require_tools: bool = True
) -> Iterator[DataSourceService]:
    account = settings.require_email()
    missing = missing_dependencies(settings, fuzzy=fuzzy) if require_tools else []
    if missing:
        raise DependencyException(missing)

    engine = create_cache_engine(database_url(settings.db_path))
    try:
        storage = CacheStorage(account, engine)
        notifier = Notifier()
        client = SdmClient(executable=settings.sdm_executable, timeout=settings.timeout)
        credentials = CredentialProvider(account, password_command=settings.password_command)
        yield DataSourceService(
            storage=storage,
            client=client,
            recovery=RecoveryController(
                account=account,
                client=client,
                credentials=credentials,
                notifier=notifier,
            ),
            notifier=notifier,
            post_connect=PostConnectAction(notifier),
            blacklist_patterns=settings.blacklist_patterns,
            menu=MenuSelector(settings.menu_command) if settings.menu_command != "noop" else None,
            fuzzy=FuzzySelector() if fuzzy else None,
        )
    finally:
        engine.dispose()


def _settings(ctx: typer.Context, **updates: object) -> Settings:
    settings: Settings = ctx.obj
    return settings.model_copy(update=updates) if updates else settings


def _exit_for_error(exc: Exception) -> NoReturn:
    logger.debug("CLI command failed", exc_info=True)
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


@app.callback()
def main_callback(
    ctx: typer.Context,
    email: Optional[str] = typer.Option(None, "--email", "-e", help="sdm account email (overrides config file)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output (overrides config file)"),
    db: Optional[Path] = typer.Option(None, "--db", "-d", help="Directory holding the cache database"),
    config: Optional[Path] = typer.Option(None, "--config", help="YAML config file"),
    blacklist: Optional[list[str]] = typer.Option(
        None, "--blacklist", "-b", help="Regular expression of resource names to hide (repeatable)"
    ),
) -> None:
    try:
        settings = load_settings(
            config,
            email=email,
            verbose=True if verbose else None,
            db_path=db,
            blacklist_patterns=list(blacklist) if blacklist else None,
        )
    except SdmUiException as exc:
        configure_logging()
        _exit_for_error(exc)
    configure_logging(verbose=settings.verbose)
    logger.debug("Using account=%s db_path=%s", settings.email, settings.db_path)
    ctx.obj = settings


@app.command("sync")
def sync(ctx: typer.Context) -> None:
    """Fetch the data sources from sdm and refresh the local cache."""
    settings = _settings(ctx, menu_command="noop", password_command="cli")
    try:
        with open_service(settings) as service:
            datasources = service.sync()
    except SelectionCancelledException:
        return
    except _CLI_ERRORS as exc:
        _exit_for_error(exc)
    typer.echo(f"Synced {len(datasources)} data sources")


def list_datasources(ctx: typer.Context) -> None:
    """Show the cached data sources, most recently used first."""
    settings = _settings(ctx, menu_command="noop", password_command="cli")
    try:
        with open_service(settings) as service:
            output = service.render_list(with_headers=True)
    except SelectionCancelledException:
        return
    except _CLI_ERRORS as exc:
        _exit_for_error(exc)
    typer.echo(output, nl=False)


app.command("list")(list_datasources)
app.command("ls", hidden=True)(list_datasources)


@app.command("connect")
def connect(ctx: typer.Context, name: str = typer.Argument(..., help="Data source name")) -> None:
    """Connect to a data source by name."""
    settings = _settings(ctx, menu_command="noop", password_command="cli")
    try:
        with open_service(settings) as service:
            datasource = service.connect(name)
    except SelectionCancelledException:
        return
    except _CLI_ERRORS as exc:
        _exit_for_error(exc)
    typer.echo(f"Connected to {datasource.name} {datasource.address}")


@app.command("dmenu")
def dmenu(
    ctx: typer.Context,
    wofi: bool = typer.Option(False, "--wofi", "-w", help="Use wofi as dmenu"),
    rofi: bool = typer.Option(False, "--rofi", "-r", help="Use rofi as dmenu"),
) -> None:
    """Pick a data source from rofi or wofi and connect to it."""
    if wofi and rofi:
        raise typer.BadParameter("--wofi and --rofi are mutually exclusive")
    settings: Settings = ctx.obj
    menu = "wofi" if wofi else "rofi" if rofi else settings.menu_command
    if menu == "noop":
        menu = "rofi"
    try:
        with open_service(_settings(ctx, menu_command=menu)) as service:
            service.dmenu()
    except SelectionCancelledException:
        return
    except _CLI_ERRORS as exc:
        _exit_for_error(exc)


@app.command("fzf")
def fzf(ctx: typer.Context) -> None:
    """Pick a data source with fzf and connect to it."""
    settings = _settings(ctx, menu_command="noop", password_command="cli")
    try:
        with open_service(settings, fuzzy=True) as service:
            datasource = service.fzf()
    except SelectionCancelledException:
        return
    except _CLI_ERRORS as exc:
        _exit_for_error(exc)
    if datasource is not None:
        typer.echo(f"Connected to {datasource.name} {datasource.address}")


@app.command("wipe")
def wipe(ctx: typer.Context) -> None:
    """Delete the cached data sources of the account."""
    settings = _settings(ctx, menu_command="noop", password_command="cli")
    try:
        with open_service(settings, require_tools=False) as service:
            removed = service.wipe()
    except _CLI_ERRORS as exc:
        _exit_for_error(exc)
    typer.echo(f"Wiped {len(removed)} cache buckets")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
