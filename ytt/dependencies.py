from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache
from typing import Any

from ytt.config import Settings, load_settings
from ytt.models.oauth_contracts import OAuthClientConfig
from ytt.repositories.credential_store import CredentialStore
from ytt.services.authorization_flow import AuthorizationFlow
from ytt.services.catalog_service import CatalogAggregator
from ytt.services.token_refresher import TokenRefresher
from ytt.services.transcript_service import TranscriptService


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def build_token_refresher(
    settings: Settings,
    *,
    on_consent_url: Callable[[str], None] | None = None,
) -> TokenRefresher:
    def _flow_factory(client_config: OAuthClientConfig) -> AuthorizationFlow:
        return AuthorizationFlow(
            client_config,
            host=settings.oauth_callback_host,
            port=settings.oauth_callback_port,
            shutdown_grace_seconds=settings.oauth_shutdown_grace_seconds,
            consent_timeout_seconds=settings.oauth_consent_timeout_seconds,
            on_consent_url=on_consent_url,
        )

    return TokenRefresher(
        oauth_client_path=settings.oauth_client_path,
        token_path=settings.token_path,
        flow_factory=_flow_factory,
        credential_store=CredentialStore(),
    )


def build_catalog_service(settings: Settings, client: Any) -> CatalogAggregator:
    return CatalogAggregator(client, debug=settings.debug)


def build_transcript_service(client: Any) -> TranscriptService:
    return TranscriptService(client)


def reset_cached_dependencies() -> None:
    get_settings.cache_clear()
