from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, cast

from pydantic import ValidationError

from ytt.errors import CredentialIOError, TokenFormatError
from ytt.models.oauth_contracts import OAuthClientConfig, OAuthToken

LOGGER = logging.getLogger("ytt.credentials")

TOKEN_FILE_MODE = 0o600
TOKEN_DIR_MODE = 0o700


class CredentialStore:
    """Reads and writes the cached OAuth token file.

    The file holds nothing but the serialized token. Writes are not atomic and
    there is no cross-process locking; a single running instance is assumed.
    """

    def load(self, path: Path) -> OAuthToken:
        try:
            raw_body = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CredentialIOError(f"Unable to read token file {path}: {exc}") from exc

        try:
            return OAuthToken.model_validate_json(raw_body)
        except ValidationError as exc:
            raise TokenFormatError(f"Token file {path} is not a valid token record") from exc

    def save(self, path: Path, token: OAuthToken) -> None:
        LOGGER.info("saving credential file path=%s", path)
        try:
            path.parent.mkdir(mode=TOKEN_DIR_MODE, parents=True, exist_ok=True)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, TOKEN_FILE_MODE)
            # An existing file keeps its old mode through O_CREAT.
            os.fchmod(fd, TOKEN_FILE_MODE)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(token.model_dump_json(indent=2) + "\n")
        except OSError as exc:
            raise CredentialIOError(f"Unable to cache OAuth token at {path}: {exc}") from exc

    def load_client_config(self, path: Path) -> OAuthClientConfig:
        try:
            raw_body = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CredentialIOError(
                f"Unable to read OAuth client secret file {path}: {exc}"
            ) from exc

        try:
            payload = json.loads(raw_body)
        except json.JSONDecodeError as exc:
            raise TokenFormatError(f"OAuth client secret file {path} is not valid JSON") from exc

        section = _client_section(payload)
        if section is None:
            raise TokenFormatError(
                f"OAuth client secret file {path} has no `installed` or `web` section"
            )
        try:
            return OAuthClientConfig.model_validate(section)
        except ValidationError as exc:
            raise TokenFormatError(f"OAuth client secret file {path} is incomplete") from exc


def _client_section(payload: object) -> dict[str, Any] | None:
    if not isinstance(payload, dict):
        return None
    payload_dict = cast(dict[str, Any], payload)
    for key in ("installed", "web"):
        section = payload_dict.get(key)
        if isinstance(section, dict):
            return cast(dict[str, Any], section)
    return None
