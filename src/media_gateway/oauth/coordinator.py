"""
OAuth Coordinator - authorize URLs and authorization-code exchange.

Provider differences come from the strategy table in
media_gateway.oauth.providers; this module contains no per-provider
branches. Token endpoints are called with httpx and only connection
failures are retried, because an authorization code is single-use and a
request that reached the provider must never be replayed.
"""

import base64
import hashlib
import logging
import secrets
import time
from typing import Any, Callable, Mapping
from urllib.parse import urlencode

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from media_gateway.core.exceptions import (
    TokenExchangeFailedError,
    UnsupportedPlatformError,
)
from media_gateway.oauth.models import PlatformAuthConfig, TokenResult
from media_gateway.oauth.providers import (
    PROVIDERS,
    ClientAuth,
    ProviderStrategy,
    TokenTransport,
    get_provider,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
PENDING_AUTHORIZATION_TTL_SECONDS = 10 * 60


def generate_pkce_pair() -> tuple[str, str]:
    """
    Create a PKCE code verifier and its S256 challenge.

    Returns:
        Tuple of (verifier, challenge), both URL-safe without padding
    """
    verifier = secrets.token_urlsafe(64)
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return verifier, challenge


class OAuthCoordinator:
    """
    Builds provider authorize URLs and exchanges codes for tokens.

    Authorizations that need request state keep a pending entry keyed by
    that state (holding the PKCE verifier when one is used) until the code
    is exchanged or the entry expires.
    """

    def __init__(
        self,
        configs: Mapping[str, PlatformAuthConfig],
        *,
        http_client: httpx.AsyncClient | None = None,
        providers: Mapping[str, ProviderStrategy] = PROVIDERS,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        pending_ttl_seconds: float = PENDING_AUTHORIZATION_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the coordinator.

        Args:
            configs: OAuth client settings keyed by platform
            http_client: Client for token requests (created if not given)
            providers: Provider strategy table
            timeout_seconds: Timeout for token requests
            pending_ttl_seconds: Lifetime of an unused authorization state
            clock: Monotonic time source (injectable for tests)
        """
        self.configs = dict(configs)
        self.providers = providers
        self.pending_ttl_seconds = pending_ttl_seconds
        self._clock = clock
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout_seconds)
        # state -> (platform, code verifier or None, created at)
        self._pending: dict[str, tuple[str, str | None, float]] = {}

    @property
    def pending_count(self) -> int:
        """Number of authorizations awaiting a code exchange."""
        return len(self._pending)

    def provider(self, platform: str) -> ProviderStrategy:
        """
        Resolve a provider strategy by name.

        Raises:
            UnsupportedPlatformError: If the provider is unknown
        """
        strategy = get_provider(platform, self.providers)
        if strategy is None:
            raise UnsupportedPlatformError(
                f"Unsupported platform: {platform}",
                platform=platform,
                supported=sorted(self.providers),
            )
        return strategy

    def build_authorize_url(
        self,
        platform: str,
        config: PlatformAuthConfig | None = None,
    ) -> str:
        """
        Construct the provider's authorize URL.

        Args:
            platform: Provider name
            config: Client settings (default: the configured ones)

        Returns:
            Absolute authorize URL

        Raises:
            UnsupportedPlatformError: If the provider is unknown or unconfigured
        """
        strategy = self.provider(platform)
        config = config or self._config_for(strategy)

        params: dict[str, str] = {
            strategy.client_id_param: config.client_id,
            "redirect_uri": config.redirect_uri,
            "scope": strategy.scope_delimiter.join(config.scope),
            "response_type": "code",
        }
        params.update(strategy.extra_authorize_params)

        if strategy.use_state or strategy.use_pkce:
            self._purge_pending()
            state = secrets.token_urlsafe(16)
            verifier = None
            if strategy.use_pkce:
                verifier, challenge = generate_pkce_pair()
                params["code_challenge"] = challenge
                params["code_challenge_method"] = "S256"
            params["state"] = state
            self._pending[state] = (strategy.name, verifier, self._clock())

        return f"{strategy.authorize_url}?{urlencode(params)}"

    async def exchange_code(
        self,
        platform: str,
        code: str,
        config: PlatformAuthConfig | None = None,
        state: str | None = None,
    ) -> TokenResult:
        """
        Exchange an authorization code for tokens.

        Args:
            platform: Provider name
            code: Authorization code from the provider redirect
            config: Client settings (default: the configured ones)
            state: State returned by the provider, required for PKCE providers

        Returns:
            Normalized TokenResult

        Raises:
            UnsupportedPlatformError: If the provider is unknown or unconfigured
            TokenExchangeFailedError: If the exchange fails for any reason
        """
        strategy = self.provider(platform)
        config = config or self._config_for(strategy)
        verifier = self._consume_state(strategy, state)

        body: dict[str, str] = {
            strategy.client_id_param: config.client_id,
            "grant_type": "authorization_code",
            "redirect_uri": config.redirect_uri,
            "code": code,
        }
        auth = None
        if strategy.client_auth is ClientAuth.BASIC:
            auth = httpx.BasicAuth(config.client_id, config.client_secret)
        else:
            body["client_secret"] = config.client_secret
        if verifier:
            body["code_verifier"] = verifier

        try:
            response = await self._post_with_retry(strategy, body, auth)
        except httpx.HTTPError as e:
            logger.warning(
                f"{strategy.display_name} token endpoint unreachable: {e}",
                extra={"platform": strategy.name},
            )
            raise TokenExchangeFailedError(
                f"Failed to reach {strategy.display_name} token endpoint",
                platform=strategy.name,
                details={"reason": e.__class__.__name__},
            ) from e

        return self._parse_token_response(strategy, response)

    async def aclose(self) -> None:
        """Close the HTTP client if this coordinator created it."""
        if self._owns_client:
            await self._client.aclose()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
        reraise=True,
    )
    async def _post_with_retry(
        self,
        strategy: ProviderStrategy,
        body: dict[str, str],
        auth: httpx.Auth | None,
    ) -> httpx.Response:
        """
        POST the token request.

        Retries only when the connection could not be established, so the
        code has not been seen by the provider yet.
        """
        kwargs: dict[str, Any] = {"headers": {"Accept": "application/json"}}
        if strategy.token_transport is TokenTransport.JSON:
            kwargs["json"] = body
        else:
            kwargs["data"] = body
        if auth is not None:
            kwargs["auth"] = auth
        return await self._client.post(strategy.token_url, **kwargs)

    def _parse_token_response(
        self, strategy: ProviderStrategy, response: httpx.Response
    ) -> TokenResult:
        """Normalize a token endpoint response into a TokenResult."""
        message = f"Failed to get {strategy.display_name} access token"

        if not response.is_success:
            logger.warning(
                message,
                extra={"platform": strategy.name, "status_code": response.status_code},
            )
            raise TokenExchangeFailedError(
                message,
                platform=strategy.name,
                status_code=response.status_code,
                details={"upstream_error": _upstream_error(response)},
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise TokenExchangeFailedError(
                f"{message}: response was not valid JSON",
                platform=strategy.name,
                status_code=response.status_code,
            ) from e

        if strategy.response_envelope and isinstance(payload, dict):
            payload = payload.get(strategy.response_envelope, payload)

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not isinstance(access_token, str) or not access_token:
            raise TokenExchangeFailedError(
                f"{message}: no access token in response",
                platform=strategy.name,
                status_code=response.status_code,
            )

        refresh_token = payload.get("refresh_token")
        expires_in = payload.get("expires_in")
        try:
            expires_in = int(expires_in) if expires_in is not None else None
        except (TypeError, ValueError):
            expires_in = None

        logger.info(
            "Token exchange succeeded",
            extra={
                "platform": strategy.name,
                "has_refresh_token": bool(refresh_token),
                "expires_in": expires_in,
            },
        )
        return TokenResult(
            access_token=access_token,
            refresh_token=refresh_token if isinstance(refresh_token, str) else None,
            expires_in=expires_in,
        )

    def _config_for(self, strategy: ProviderStrategy) -> PlatformAuthConfig:
        config = self.configs.get(strategy.name)
        if config is None:
            raise UnsupportedPlatformError(
                f"Unsupported platform: {strategy.name}",
                platform=strategy.name,
            )
        return config

    def _consume_state(self, strategy: ProviderStrategy, state: str | None) -> str | None:
        """Pop the pending authorization for a state; return its PKCE verifier."""
        self._purge_pending()
        entry = self._pending.pop(state, None) if state else None

        if entry is not None and entry[0] != strategy.name:
            entry = None
        if strategy.use_pkce and entry is None:
            raise TokenExchangeFailedError(
                f"Unknown or expired authorization state for {strategy.display_name}",
                platform=strategy.name,
            )
        return entry[1] if entry else None

    def _purge_pending(self) -> None:
        cutoff = self._clock() - self.pending_ttl_seconds
        expired = [s for s, (_, _, created) in self._pending.items() if created <= cutoff]
        for state in expired:
            del self._pending[state]


def _upstream_error(response: httpx.Response) -> str | None:
    """Best-effort extraction of the provider's error description."""
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200] or None
    if isinstance(payload, dict):
        for key in ("error_description", "error_message", "error"):
            value = payload.get(key)
            if isinstance(value, str):
                return value
    return None
