"""Shared state and helpers for the ytt CLI commands."""

from __future__ import annotations

import webbrowser
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from rich.console import Console
from rich.markup import escape

from ..config import Settings
from ..dependencies import build_token_refresher
from ..errors import YouTubeServiceError
from ..services.token_refresher import TokenRefresher

console = Console()
err_console = Console(stderr=True)


@dataclass
class CliContext:
    """Per-invocation settings plus the lazily authorized API client."""

    settings: Settings
    _client: Any = field(default=None, repr=False)

    def token_refresher(self) -> TokenRefresher:
        return build_token_refresher(self.settings, on_consent_url=self.announce_consent_url)

    def youtube_client(self) -> Any:
        if self._client is None:
            self._client = self.token_refresher().obtain_authorized_client()
        return self._client

    def announce_consent_url(self, url: str) -> None:
        err_console.print("Opening browser for authorization...")
        err_console.print(f"If it doesn't open automatically, go to: {escape(url)}", soft_wrap=True)
        if self.settings.open_browser:
            webbrowser.open(url)


@contextmanager
def reporting_failures() -> Iterator[None]:
    """Turn a service failure into one red line on stderr and exit status 1."""
    try:
        yield
    except YouTubeServiceError as exc:
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise SystemExit(1) from exc
