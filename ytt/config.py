from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = "secrets"
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (
    ("oauth_client_path", Path("oauth.json")),
    ("token_path", Path("token.json")),
)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    "output_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = (
    "debug",
    "open_browser",
)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _data_dir_default_note(relative_path: Path) -> str:
    return f"Defaults to `${{YTT_DATA_DIR}}/{relative_path}` when not explicitly set."


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


class Settings(BaseSettings):
    """
    Runtime configuration for the `ytt` tool.

    Every option can be set through a `YTT_*` environment variable or a `.env`
    file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_prefix="YTT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Credential paths.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Directory holding the OAuth client secret and the cached token.",
    )
    oauth_client_path: Path = Field(
        default=_default_in_data_dir(Path("oauth.json")),
        description=(
            "OAuth client secret JSON path. "
            f"{_data_dir_default_note(Path('oauth.json'))}"
        ),
    )
    token_path: Path = Field(
        default=_default_in_data_dir(Path("token.json")),
        description=f"OAuth token JSON path. {_data_dir_default_note(Path('token.json'))}",
    )

    # Catalog and transcript output.
    output_dir: Path = Field(
        default=Path("outputs"),
        description="Directory that transcript files are written to.",
    )
    min_duration_seconds: int = Field(
        default=60,
        ge=0,
        description="Videos strictly shorter than this are treated as shorts and skipped.",
    )
    filename_max_length: int = Field(
        default=100,
        ge=1,
        description="Maximum length of the sanitized title part of transcript filenames.",
    )
    debug: bool = Field(
        default=False,
        description="Emit catalog diagnostics and lower the console log level to DEBUG.",
    )

    # Interactive consent flow.
    oauth_callback_host: str = Field(
        default="localhost",
        description="Host the one-shot OAuth callback listener binds to.",
    )
    oauth_callback_port: int = Field(
        default=8080,
        ge=0,
        le=65535,
        description="Port the callback listener binds to; also used in the redirect URL.",
    )
    oauth_shutdown_grace_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Grace period for in-flight callback requests before the listener is closed.",
    )
    oauth_consent_timeout_seconds: float | None = Field(
        default=None,
        description="Give up waiting for browser consent after this long. Unset waits forever.",
    )
    open_browser: bool = Field(
        default=True,
        description="Try to open the consent URL in the default browser.",
    )

    # Logging.
    log_level: str = Field(
        default="INFO",
        description="Console log level (stderr).",
    )
    log_dir: Path | None = Field(
        default=None,
        description="Optional directory for a JSON log file. Unset disables file logging.",
    )

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator("log_dir", mode="before")
    @classmethod
    def _normalize_log_dir(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return _parse_bool_with_default(value, default=default_value)

    @field_validator("oauth_consent_timeout_seconds", mode="before")
    @classmethod
    def _normalize_consent_timeout(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


def _apply_path_defaults(settings: Settings) -> Settings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: Settings) -> Settings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name))
        for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings(**overrides: Any) -> Settings:
    settings = Settings()
    if overrides:
        settings = settings.model_copy(update=overrides)
    settings = _apply_path_defaults(settings)
    return _resolve_path_fields(settings)
