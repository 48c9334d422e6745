"""CLI for setting up and checking Dropbox storage.

Usage:
    # Print the URL to visit to get an authorization code
    dropbox-storage authorize-url

    # Exchange the code and write the storage configuration
    dropbox-storage setup --domain=example.com <authorization_code>

    # List everything stored, using a written configuration
    dropbox-storage ls --env-file=~/dropbox-storage/deploy/example.com/storage.env
"""

import asyncio
import os
from pathlib import Path
from typing import Annotated, Dict, List, NoReturn, Optional

import typer

from dropbox_storage.core.config import Settings, settings
from dropbox_storage.core.errors import StorageError, not_supported_error
from dropbox_storage.core.logging_config import setup_logging
from dropbox_storage.core.oauth import authorize_url, exchange_code
from dropbox_storage.storage import dial
from dropbox_storage.storage.protocol import Lister, RefInfo, StorageBackend


CONFIG_FILE_NAME = "storage.env"
DEFAULT_WHERE = Path.home() / "dropbox-storage" / "deploy"

app = typer.Typer(
    name="dropbox-storage",
    help="Set up and inspect Dropbox-backed blob storage.",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log every request to the console."),
    ] = False,
) -> None:
    """Configure logging before any command runs."""
    if verbose:
        setup_logging(debug=True, json_logs=False, log_level="DEBUG")
        return

    # errors only unless LOG_LEVEL is set, so command output stays parseable
    if "LOG_LEVEL" in settings.model_fields_set:
        log_level = settings.LOG_LEVEL
    else:
        log_level = "ERROR"
    setup_logging(
        debug=settings.is_debug_mode,
        json_logs=settings.use_json_logs,
        log_level=log_level,
    )


def _fail(message: str) -> NoReturn:
    typer.echo(f"dropbox-storage: {message}", err=True)
    raise typer.Exit(code=1)


def write_config(path: Path, values: Dict[str, str]) -> None:
    """Write KEY=VALUE lines to path, keeping unrelated existing lines.

    The file holds a credential, so it is created readable by the owner only.
    """
    lines: List[str] = []
    if path.exists():
        for line in path.read_text().splitlines():
            key = line.split("=", 1)[0].strip()
            if key not in values:
                lines.append(line)
    lines.extend(f"{key}={value}" for key, value in values.items())

    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write("\n".join(lines) + "\n")
    os.chmod(path, 0o600)


@app.command("authorize-url")
def authorize_url_command(
    app_key: Annotated[
        Optional[str],
        typer.Option("--app-key", help="Dropbox app key. Defaults to DROPBOX_APP_KEY."),
    ] = None,
) -> None:
    """Print the URL to visit to obtain an authorization code."""
    key = app_key or settings.DROPBOX_APP_KEY
    if not key:
        _fail("an app key must be provided with --app-key or DROPBOX_APP_KEY")
    typer.echo(authorize_url(key))


@app.command()
def setup(
    code: Annotated[str, typer.Argument(help="Authorization code from the authorize URL.")],
    domain: Annotated[
        str,
        typer.Option("--domain", "-d", help="Domain name of this installation."),
    ] = "",
    where: Annotated[
        Path,
        typer.Option("--where", "-w", help="Directory to store private configuration files."),
    ] = DEFAULT_WHERE,
    app_key: Annotated[
        Optional[str],
        typer.Option("--app-key", help="Dropbox app key. Defaults to DROPBOX_APP_KEY."),
    ] = None,
    app_secret: Annotated[
        Optional[str],
        typer.Option("--app-secret", help="Dropbox app secret. Defaults to DROPBOX_APP_SECRET."),
    ] = None,
) -> None:
    """Exchange an authorization code and write the storage configuration."""
    if not code.strip():
        _fail("a valid authorization code must be provided")
    if not domain:
        _fail("the --domain flag must be provided")

    try:
        token = asyncio.run(
            exchange_code(
                code.strip(),
                app_key or settings.DROPBOX_APP_KEY,
                app_secret or settings.DROPBOX_APP_SECRET,
            )
        )
    except StorageError as exc:
        _fail(f"error in fetching oauth2 token: {exc}")

    cfg_path = where / domain / CONFIG_FILE_NAME
    write_config(cfg_path, {"STORAGE_BACKEND": "Dropbox", "DROPBOX_TOKEN": token})

    typer.echo(f"Wrote storage configuration to {cfg_path}.", err=True)
    typer.echo("You can now start the server with this configuration.", err=True)


async def _list_all(backend: StorageBackend) -> List[RefInfo]:
    refs: List[RefInfo] = []
    token = ""
    try:
        if not isinstance(backend, Lister):
            raise not_supported_error("cli.ls", "storage backend cannot list its contents")
        while True:
            page, token = await backend.list(token)
            refs.extend(page)
            if not token:
                return refs
    finally:
        await backend.close()


@app.command()
def ls(
    env_file: Annotated[
        Optional[Path],
        typer.Option("--env-file", "-e", help="Configuration file written by setup.", exists=True, dir_okay=False),
    ] = None,
    page_size: Annotated[
        Optional[int],
        typer.Option("--page-size", min=1, help="Entries requested per list call."),
    ] = None,
) -> None:
    """List every stored reference with its size."""
    cfg = Settings(_env_file=env_file) if env_file else settings
    options = cfg.storage_options()
    if page_size is not None:
        options["page_size"] = str(page_size)

    try:
        backend = dial(cfg.STORAGE_BACKEND, **options)
        refs = asyncio.run(_list_all(backend))
    except StorageError as exc:
        _fail(str(exc))

    for info in refs:
        typer.echo(f"{info.size}\t{info.ref}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
