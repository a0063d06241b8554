from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from importlib import import_module
from pathlib import Path
from typing import Any

from ytt.errors import AuthError, CredentialIOError, TokenFormatError, YouTubeServiceError
from ytt.models.oauth_contracts import OAuthClientConfig, OAuthToken
from ytt.repositories.credential_store import CredentialStore
from ytt.services.authorization_flow import SCOPES, AuthorizationFlow

LOGGER = logging.getLogger("ytt.oauth")

AuthorizationFlowFactory = Callable[[OAuthClientConfig], AuthorizationFlow]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class TokenRefresher:
    """Keeps the cached token usable and hands out an authorized API client.

    Order of preference: the cached token as-is, a silent refresh, and finally
    the interactive consent flow. Whatever ends up in use is written back to
    the token file unless it is unchanged.
    """

    def __init__(
        self,
        *,
        oauth_client_path: Path,
        token_path: Path,
        flow_factory: AuthorizationFlowFactory,
        credential_store: CredentialStore | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._oauth_client_path = oauth_client_path
        self._token_path = token_path
        self._flow_factory = flow_factory
        self._store = credential_store or CredentialStore()
        self._clock = clock
        self._client_config: OAuthClientConfig | None = None

    @property
    def token_path(self) -> Path:
        return self._token_path

    def obtain_authorized_client(self) -> Any:
        token = self.current_token()
        return _build_youtube_client(token, self._load_client_config())

    def current_token(self) -> OAuthToken:
        try:
            token = self._store.load(self._token_path)
        except (CredentialIOError, TokenFormatError) as exc:
            LOGGER.info("no usable cached token path=%s reason=%s", self._token_path, exc)
            return self.authenticate()

        if not token.is_expired(self._clock()):
            return token

        try:
            refreshed = self._refresh(token)
        except AuthError:
            LOGGER.warning(
                "oauth token_refresh_failed token_path=%s; re-authenticating",
                self._token_path,
                exc_info=True,
            )
            return self.authenticate()

        if refreshed.access_token != token.access_token:
            self._store.save(self._token_path, refreshed)
        else:
            LOGGER.debug("oauth refresh returned the same access token; skipping write")
        return refreshed

    def authenticate(self) -> OAuthToken:
        flow = self._flow_factory(self._load_client_config())
        token = flow.run()
        self._store.save(self._token_path, token)
        return token

    def _refresh(self, token: OAuthToken) -> OAuthToken:
        if not token.refresh_token:
            raise AuthError("Cached token has no refresh token")

        requests_module, credentials_module = _load_google_auth_modules()
        credentials = credentials_module.Credentials(
            **token.credentials_kwargs(self._load_client_config(), list(SCOPES))
        )
        try:
            credentials.refresh(requests_module.Request())
        except Exception as exc:
            raise AuthError(f"Failed to refresh OAuth token: {exc}") from exc

        refreshed = OAuthToken.from_credentials(credentials)
        if not refreshed.refresh_token:
            refreshed = refreshed.model_copy(update={"refresh_token": token.refresh_token})
        LOGGER.info("oauth token refreshed expiry=%s", refreshed.expiry)
        return refreshed

    def _load_client_config(self) -> OAuthClientConfig:
        if self._client_config is None:
            self._client_config = self._store.load_client_config(self._oauth_client_path)
        return self._client_config


def _load_google_auth_modules() -> tuple[Any, Any]:
    try:
        requests_module = import_module("google.auth.transport.requests")
        credentials_module = import_module("google.oauth2.credentials")
    except ImportError as exc:  # pragma: no cover - dependency controlled at runtime
        raise YouTubeServiceError("OAuth refresh requires the google-auth dependency") from exc
    return requests_module, credentials_module


def _build_youtube_client(token: OAuthToken, client_config: OAuthClientConfig) -> Any:
    try:
        credentials_module = import_module("google.oauth2.credentials")
        discovery_module = import_module("googleapiclient.discovery")
    except ImportError as exc:  # pragma: no cover - dependency controlled at runtime
        raise YouTubeServiceError(
            "YouTube access requires the google-api-python-client dependency"
        ) from exc

    credentials = credentials_module.Credentials(
        **token.credentials_kwargs(client_config, list(SCOPES))
    )
    return discovery_module.build("youtube", "v3", credentials=credentials, cache_discovery=False)
