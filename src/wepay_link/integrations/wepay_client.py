"""Async WePay v2 API client for OAuth2 account linking.

Uses httpx.AsyncClient against either the staging or the production WePay
environment. The environment is fixed when the client is constructed, so a
single handshake never mixes endpoints.

Usage:
    from wepay_link.integrations.wepay_client import WePayClient

    client = WePayClient.from_settings()
    token = await client.get_token(code="abc123", redirect_uri="https://site.test/submit")
    account = await client.create_account(token.access_token, "me@example.com", "me")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from wepay_link.config import Settings, settings as default_settings


# ---------------------------------------------------------------------------
# Environments
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WePayEnvironment:
    """API and browser-facing base URLs for one WePay environment."""

    name: str
    api_endpoint: str
    ui_endpoint: str


STAGING = WePayEnvironment(
    name="stage",
    api_endpoint="https://stage.wepayapi.com/v2",
    ui_endpoint="https://stage.wepay.com/v2",
)

PRODUCTION = WePayEnvironment(
    name="production",
    api_endpoint="https://wepayapi.com/v2",
    ui_endpoint="https://www.wepay.com/v2",
)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class WePayToken:
    """Result of a successful /oauth2/token exchange."""

    access_token: str
    user_id: str | None = None
    token_type: str = "BEARER"
    expires_in: int | None = None


@dataclass
class WePayAccount:
    """The fields of /account/create that the site keeps."""

    account_id: str
    account_uri: str


# ---------------------------------------------------------------------------
# Custom exceptions
# ---------------------------------------------------------------------------

class WePayError(Exception):
    """Base class for every WePay client failure."""


class WePayTimeoutError(WePayError):
    """Raised when a call exceeds its time budget."""


class WePayConnectionError(WePayError):
    """Raised when the WePay API is unreachable."""


class WePayApiError(WePayError):
    """Raised when WePay answers with a non-2xx status."""

    def __init__(
        self,
        status_code: int,
        error: str = "",
        error_description: str = "",
    ) -> None:
        self.status_code = status_code
        self.error = error
        self.error_description = error_description
        super().__init__(
            f"WePay returned {status_code}: {error or 'unknown_error'}"
            + (f" ({error_description})" if error_description else "")
        )


class WePayMalformedResponseError(WePayError):
    """Raised when a response body is missing the fields we rely on."""


# ---------------------------------------------------------------------------
# WePayClient
# ---------------------------------------------------------------------------

class WePayClient:
    """Async client for the WePay v2 OAuth2 and account endpoints."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        environment: WePayEnvironment = STAGING,
        timeout: float = 30.0,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.environment = environment
        self.timeout = timeout

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> WePayClient:
        """Build a client bound to staging in test mode, production otherwise."""
        config = config or default_settings
        return cls(
            client_id=config.WEPAY_CLIENT_ID,
            client_secret=config.WEPAY_CLIENT_SECRET,
            environment=STAGING if config.WEPAY_TEST_MODE else PRODUCTION,
            timeout=config.WEPAY_TIMEOUT_SECONDS,
        )

    # ------------------------------------------------------------------
    # OAuth2
    # ------------------------------------------------------------------

    def get_authorization_uri(
        self,
        scopes: list[str] | tuple[str, ...],
        redirect_uri: str,
        options: dict[str, str] | None = None,
    ) -> str:
        """Build the browser URL that asks a user to grant *scopes*.

        No network call is made. Query values are percent-encoded.
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "scope": ",".join(scopes),
        }
        if options:
            params.update(options)
        url = httpx.URL(f"{self.environment.ui_endpoint}/oauth2/authorize", params=params)
        return str(url)

    async def get_token(self, code: str, redirect_uri: str) -> WePayToken:
        """Exchange an authorization *code* for an access token.

        Raises:
            WePayTimeoutError: on request timeout.
            WePayConnectionError: on connection failure.
            WePayApiError: when WePay rejects the code.
            WePayMalformedResponseError: when no access_token comes back.
        """
        data = await self.request(
            "oauth2/token",
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": redirect_uri,
                "code": code,
            },
        )
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise WePayMalformedResponseError(
                "Token response missing 'access_token'"
            )
        user_id = data.get("user_id")
        return WePayToken(
            access_token=access_token,
            user_id=str(user_id) if user_id is not None else None,
            token_type=data.get("token_type", "BEARER"),
            expires_in=data.get("expires_in"),
        )

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def create_account(
        self,
        access_token: str,
        name: str,
        description: str,
    ) -> WePayAccount:
        """Create a merchant account owned by the token's user."""
        data = await self.request(
            "account/create",
            {"name": name, "description": description},
            access_token=access_token,
        )
        account_id = data.get("account_id")
        account_uri = data.get("account_uri")
        if account_id in (None, "") or not account_uri:
            raise WePayMalformedResponseError(
                "Account response missing 'account_id' or 'account_uri'"
            )
        return WePayAccount(account_id=str(account_id), account_uri=str(account_uri))

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def request(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        access_token: str | None = None,
    ) -> dict[str, Any]:
        """POST *params* as JSON to an API *endpoint* and return the body.

        One attempt only; there is no retry.
        """
        headers = {"User-Agent": "wepay-link"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        try:
            async with httpx.AsyncClient(
                base_url=self.environment.api_endpoint,
                timeout=httpx.Timeout(self.timeout),
            ) as client:
                response = await client.post(
                    f"/{endpoint.strip('/')}", json=params or {}, headers=headers,
                )
        except httpx.TimeoutException as exc:
            raise WePayTimeoutError(
                f"WePay request to {endpoint} timed out after {self.timeout}s"
            ) from exc
        except httpx.TransportError as exc:
            raise WePayConnectionError(
                f"Cannot connect to WePay at {self.environment.api_endpoint}"
            ) from exc

        body = self._parse_body(response)
        if response.is_error:
            raise WePayApiError(
                status_code=response.status_code,
                error=str(body.get("error", "")),
                error_description=str(body.get("error_description", "")),
            )
        return body

    @staticmethod
    def _parse_body(response: httpx.Response) -> dict[str, Any]:
        """Decode a JSON object body; error responses may carry none."""
        try:
            data = response.json()
        except ValueError:
            if response.is_error:
                return {}
            raise WePayMalformedResponseError("Response body is not valid JSON")
        if not isinstance(data, dict):
            if response.is_error:
                return {}
            raise WePayMalformedResponseError("Response body is not a JSON object")
        return data
