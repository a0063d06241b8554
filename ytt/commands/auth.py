"""OAuth bootstrap command for the ytt CLI."""

from __future__ import annotations

import shutil
from pathlib import Path

import click

from ..errors import CredentialIOError
from .context import CliContext, console, reporting_failures


def copy_client_secret_if_needed(source_path: Path, destination_path: Path) -> None:
    source = source_path.expanduser().resolve()
    if not source.exists():
        raise CredentialIOError(f"Client secret file does not exist: {source}")

    destination = destination_path.expanduser().resolve()
    destination.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if source == destination:
        return

    shutil.copy2(source, destination)


@click.command()
@click.option(
    "--client-secret",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Path to a downloaded Google OAuth client secret JSON.",
)
@click.pass_obj
def auth(obj: CliContext, client_secret: Path | None):
    """Run the browser consent flow and cache a fresh token."""
    settings = obj.settings
    with reporting_failures():
        if client_secret is not None:
            copy_client_secret_if_needed(client_secret, settings.oauth_client_path)
            console.print(f"Client secret ready at: {settings.oauth_client_path}")
        else:
            console.print(f"Expecting client secret at: {settings.oauth_client_path}")

        obj.token_refresher().authenticate()

    console.print(f"[green]OAuth success.[/green] Token path: {settings.token_path}")
