"""Main CLI entry point for ytt."""

import click
from pydantic import ValidationError

from .commands import auth, catalog, transcripts
from .commands.context import CliContext, reporting_failures
from .config import Settings
from .dependencies import get_settings
from .errors import ConfigurationError
from .logging_config import configure_logging


def _load_cli_settings() -> Settings:
    try:
        return get_settings()
    except ValidationError as exc:
        problems = "; ".join(
            f"YTT_{'_'.join(str(part) for part in error['loc']).upper()}: {error['msg']}"
            for error in exc.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from exc


@click.group()
@click.version_option(version="0.1.0")
@click.option("--debug", is_flag=True, default=False, help="Print catalog diagnostics to stderr.")
@click.pass_context
def main(ctx: click.Context, debug: bool):
    """ytt - YouTube channel catalog and transcript downloader."""
    with reporting_failures():
        settings = _load_cli_settings()
    if debug:
        settings = settings.model_copy(update={"debug": True})
    configure_logging(settings)
    ctx.obj = CliContext(settings=settings)


main.add_command(auth.auth)
main.add_command(catalog.videos)
main.add_command(catalog.video)
main.add_command(transcripts.transcript)


if __name__ == "__main__":
    main()
