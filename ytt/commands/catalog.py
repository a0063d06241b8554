"""Channel catalog commands for the ytt CLI."""

from __future__ import annotations

from dataclasses import asdict

import click

from ..dependencies import build_catalog_service
from .context import CliContext, console, reporting_failures


@click.command()
@click.option("--channel", "channel_id", default=None, help="Channel ID (defaults to your own).")
@click.option(
    "--min-duration",
    "min_duration_seconds",
    type=click.IntRange(min=0),
    default=None,
    help="Skip videos shorter than this many seconds.",
)
@click.pass_obj
def videos(obj: CliContext, channel_id: str | None, min_duration_seconds: int | None):
    """List a channel's uploads as JSON, shorts excluded."""
    threshold = (
        obj.settings.min_duration_seconds
        if min_duration_seconds is None
        else min_duration_seconds
    )
    with reporting_failures():
        catalog = build_catalog_service(obj.settings, obj.youtube_client())
        summaries = catalog.list_videos(channel_id, min_duration_seconds=threshold)

    console.print_json(data=[asdict(summary) for summary in summaries])


@click.command()
@click.argument("video_id")
@click.pass_obj
def video(obj: CliContext, video_id: str):
    """Show a single video's metadata as JSON."""
    with reporting_failures():
        catalog = build_catalog_service(obj.settings, obj.youtube_client())
        details = catalog.get_video_details(video_id)

    payload = asdict(details)
    payload["tags"] = list(details.tags)
    console.print_json(data=payload)
