"""Transcript download command for the ytt CLI."""

from __future__ import annotations

from pathlib import Path

import click

from ..dependencies import build_transcript_service
from ..errors import OutputWriteError
from ..services.transcript_service import transcript_filename
from .context import CliContext, err_console, reporting_failures


@click.command()
@click.argument("video_id")
@click.option(
    "--output",
    "-o",
    "output_dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Output directory for transcript files.",
)
@click.pass_obj
def transcript(obj: CliContext, video_id: str, output_dir: Path | None):
    """Download a video's caption track to <output>/<id>-<title>.txt."""
    target_dir = output_dir or obj.settings.output_dir
    with reporting_failures():
        service = build_transcript_service(obj.youtube_client())
        result = service.fetch_transcript(video_id)

        filename = transcript_filename(
            result.video_id,
            result.title,
            max_length=obj.settings.filename_max_length,
        )
        output_path = target_dir / filename
        err_console.print(f"Downloading transcript for video: {result.title}")
        err_console.print(f"Saving to: {output_path}")
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(result.content)
        except OSError as exc:
            raise OutputWriteError(f"Unable to write transcript {output_path}: {exc}") from exc

    err_console.print("[green]Transcript saved successfully![/green]")
