from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


class OAuthToken(BaseModel):
    """Access/refresh token pair as persisted in the token file."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    access_token: str = Field(min_length=1)
    refresh_token: str = ""
    token_type: str = "Bearer"
    expiry: datetime | None = None

    @field_validator("refresh_token", "token_type", mode="before")
    @classmethod
    def _none_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return "Bearer" if info.field_name == "token_type" else ""
        return value

    @field_validator("expiry", mode="after")
    @classmethod
    def _expiry_as_utc(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    @classmethod
    def from_credentials(cls, credentials: Any) -> OAuthToken:
        """Build a token from a `google.oauth2.credentials.Credentials`-like object."""
        return cls(
            access_token=credentials.token,
            refresh_token=getattr(credentials, "refresh_token", None),
            expiry=getattr(credentials, "expiry", None),
        )

    def credentials_kwargs(
        self,
        client_config: OAuthClientConfig,
        scopes: list[str],
    ) -> dict[str, Any]:
        # google-auth compares expiry against a naive UTC clock.
        expiry = self.expiry.astimezone(UTC).replace(tzinfo=None) if self.expiry else None
        return {
            "token": self.access_token,
            "refresh_token": self.refresh_token or None,
            "token_uri": client_config.token_uri,
            "client_id": client_config.client_id,
            "client_secret": client_config.client_secret,
            "scopes": scopes,
            "expiry": expiry,
        }

    def is_expired(self, now: datetime) -> bool:
        # A token without a known expiry is never trusted as valid.
        if self.expiry is None:
            return True
        return self.expiry <= now


class OAuthClientConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    client_id: str = Field(min_length=1)
    client_secret: str = ""
    auth_uri: str = GOOGLE_AUTH_URI
    token_uri: str = GOOGLE_TOKEN_URI

    def as_client_secrets(self) -> dict[str, Any]:
        return {
            "installed": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": self.auth_uri,
                "token_uri": self.token_uri,
            }
        }
