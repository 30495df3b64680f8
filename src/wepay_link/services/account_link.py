"""WePay account linking -- the OAuth2 handshake behind campaign submission.

A user must own a WePay merchant account before they may submit a
campaign.  Until they do, the submission page shows a call-to-action that
sends them to WePay's authorization page.  WePay redirects back to the
submission page with a ``code`` query parameter; the listener exchanges the
code for an access token, creates a merchant account with it, and stores
the account id, token and URI on the user in a single write.

Handshake failures leave the user unlinked, are logged, and are returned
to the caller as a message the page can show.
"""

from __future__ import annotations

import html
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

import httpx
import structlog
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from wepay_link.integrations.wepay_client import (
    WePayAccount,
    WePayClient,
    WePayError,
)
from wepay_link.services.audit_logger import AuditLogger
from wepay_link.services.linked_accounts import CampaignRecord, LinkedAccount, SiteUser

log = structlog.get_logger()

WEPAY_SCOPES = (
    "manage_accounts",
    "collect_payments",
    "preapprove_payments",
    "send_money",
)

# Campaign meta keys the host must persist alongside a submitted campaign.
CAMPAIGN_META_FIELDS = ("wepay_account_id", "wepay_access_token")

# Campaigns the host created but the author never saved.
AUTO_DRAFT_STATUS = "auto-draft"


# ---------------------------------------------------------------------------
# Protocol for the linked-account store
# ---------------------------------------------------------------------------

class LinkedAccountStore(Protocol):
    """Structural interface for reading and writing a user's LinkedAccount."""

    async def get_linked_account(self, user_id: uuid.UUID) -> LinkedAccount | None: ...

    async def save_linked_account(
        self, user_id: uuid.UUID, account: LinkedAccount,
    ) -> None: ...


# ---------------------------------------------------------------------------
# Custom exceptions
# ---------------------------------------------------------------------------

class HandshakeError(Exception):
    """Base class for a handshake that left the user unlinked."""

    stage = "handshake"
    user_message = "We could not link your WePay account. Please try again."


class TokenExchangeError(HandshakeError):
    """WePay rejected the authorization code or could not be reached."""

    stage = "token_exchange"
    user_message = (
        "WePay did not accept the authorization. Please try connecting "
        "your account again."
    )


class AccountCreationError(HandshakeError):
    """The token was valid but WePay did not create a usable account."""

    stage = "account_creation"
    user_message = (
        "Your WePay login worked, but we could not create your WePay "
        "account. Please try again."
    )


class LinkPersistenceError(HandshakeError):
    """The account was created but could not be saved on the user."""

    stage = "persistence"


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class LinkStatusResponse(BaseModel):
    user_id: uuid.UUID
    needs_linking: bool
    account_id: str | None = None
    account_uri: str | None = None


class AuthorizationUrlResponse(BaseModel):
    authorization_url: str


class CampaignMetaFieldsRequest(BaseModel):
    fields: list[str] = []


class CampaignFundingResponse(BaseModel):
    """The account a campaign's pledges are paid out to, for its owner."""

    campaign_id: int
    owner_email: str
    account_id: str
    access_token: str
    account_uri: str
    notice: str


# ---------------------------------------------------------------------------
# Result container
# ---------------------------------------------------------------------------

@dataclass
class HandshakeOutcome:
    """What the submission page should show after a callback."""

    account: LinkedAccount | None = None
    error: str | None = None

    @property
    def linked(self) -> bool:
        return self.account is not None


# ---------------------------------------------------------------------------
# AccountLinkService
# ---------------------------------------------------------------------------

class AccountLinkService:
    """Gates campaign submission on a linked WePay account.

    The host composes one of these per request with the WePay client it
    selected for the site's environment and a store for user accounts.
    """

    def __init__(
        self,
        wepay: WePayClient,
        accounts: LinkedAccountStore,
        submit_page_url: str,
        audit: AuditLogger | None = None,
    ) -> None:
        self._wepay = wepay
        self._accounts = accounts
        self._submit_page_url = submit_page_url
        self._audit = audit or AuditLogger()

    # ------------------------------------------------------------------
    # Submission gate
    # ------------------------------------------------------------------

    async def linked_account(self, user: SiteUser) -> LinkedAccount | None:
        """The stored account for *user*, or None while they are unlinked."""
        account = await self._accounts.get_linked_account(user.user_id)
        if account is None or not account.is_linked:
            return None
        return account

    async def needs_linking(self, user: SiteUser) -> bool:
        """True when no WePay account id is stored for *user*."""
        return await self.linked_account(user) is None

    def build_authorization_url(self, return_url: str | None = None) -> str:
        """WePay authorization URL for the fixed scopes, returning to *return_url*."""
        return self._wepay.get_authorization_uri(
            WEPAY_SCOPES, return_url or self._submit_page_url,
        )

    def render_call_to_action(self, return_url: str | None = None) -> str:
        """HTML shown in place of the submission form for unlinked users."""
        url = html.escape(self.build_authorization_url(return_url), quote=True)
        return (
            "<p>Before you may begin, you must first create an account on our "
            'payment processing service, <a href="https://wepay.com">WePay</a>.</p>\n'
            f'<p><a href="{url}" class="button wepay-oauth-create-account">'
            "Create an account on WePay &rarr;</a></p>"
        )

    def render_linked_notice(self, account: LinkedAccount) -> str:
        """Payout notice plus the hidden campaign meta fields for the submission form."""
        uri = html.escape(account.account_uri, quote=True)
        values = {
            "wepay_account_id": account.account_id,
            "wepay_access_token": account.access_token,
        }
        parts = [f'<p>Funds will be sent to your <a href="{uri}">WePay</a> account.</p>']
        for name in CAMPAIGN_META_FIELDS:
            value = html.escape(values[name], quote=True)
            parts.append(
                f'<input type="hidden" name="{name}" id="{name}" value="{value}" />'
            )
        return "\n".join(parts)

    async def campaign_funding_account(
        self,
        campaign: CampaignRecord,
        owner: SiteUser,
    ) -> CampaignFundingResponse | None:
        """The WePay account *campaign*'s pledges are sent to.

        Returns None for auto-draft campaigns.  An owner who never linked
        an account gets empty account fields.
        """
        if campaign.status == AUTO_DRAFT_STATUS:
            return None

        account = await self._accounts.get_linked_account(owner.user_id)
        if account is None:
            account = LinkedAccount(account_id="", access_token="", account_uri="")

        return CampaignFundingResponse(
            campaign_id=campaign.campaign_id,
            owner_email=owner.email,
            account_id=account.account_id,
            access_token=account.access_token,
            account_uri=account.account_uri,
            notice=f"Funds will be sent to {owner.email}'s WePay account.",
        )

    # ------------------------------------------------------------------
    # Callback listener
    # ------------------------------------------------------------------

    def is_submission_page(self, page_url: str) -> bool:
        """Compare *page_url* to the submission page, ignoring query and trailing slash."""
        page = httpx.URL(page_url)
        submit = httpx.URL(self._submit_page_url)
        return (
            page.scheme == submit.scheme
            and page.host == submit.host
            and page.port == submit.port
            and page.path.rstrip("/") == submit.path.rstrip("/")
        )

    async def listen(
        self,
        page_url: str,
        query_params: Mapping[str, str],
        user: SiteUser,
    ) -> HandshakeOutcome | None:
        """Run the handshake when WePay redirects back with a code.

        Returns None, without any I/O, unless *page_url* is the submission
        page and *query_params* carries ``code``.
        """
        code = query_params.get("code")
        if not code or not self.is_submission_page(page_url):
            return None

        try:
            account = await self.complete_handshake(user, code, self._submit_page_url)
        except HandshakeError as exc:
            log.warning(
                "wepay_handshake_failed",
                user_id=str(user.user_id),
                stage=exc.stage,
                error=str(exc),
            )
            self._audit.log_handshake_failure(user.user_id, exc.stage, str(exc))
            return HandshakeOutcome(error=exc.user_message)

        return HandshakeOutcome(account=account)

    async def complete_handshake(
        self,
        user: SiteUser,
        code: str,
        return_url: str,
    ) -> LinkedAccount:
        """Exchange *code*, create the merchant account, and store it.

        Nothing is written unless both WePay calls succeed.

        Raises:
            TokenExchangeError: the code could not be exchanged.
            AccountCreationError: account/create failed or was malformed.
            LinkPersistenceError: the user record could not be updated.
        """
        try:
            token = await self._wepay.get_token(code, return_url)
        except WePayError as exc:
            raise TokenExchangeError(str(exc)) from exc

        try:
            created: WePayAccount = await self._wepay.create_account(
                token.access_token,
                name=user.email,
                description=user.nicename,
            )
        except WePayError as exc:
            raise AccountCreationError(str(exc)) from exc

        account = LinkedAccount(
            account_id=created.account_id,
            access_token=token.access_token,
            account_uri=created.account_uri,
        )

        try:
            await self._accounts.save_linked_account(user.user_id, account)
        except SQLAlchemyError as exc:
            raise LinkPersistenceError(str(exc)) from exc

        log.info(
            "wepay_account_linked",
            user_id=str(user.user_id),
            account_id=account.account_id,
        )
        self._audit.log_account_linked(
            user.user_id, account.account_id, self._wepay.environment.name,
        )
        return account


def extend_campaign_meta_fields(fields: list[str]) -> list[str]:
    """Append the WePay campaign meta keys to the host's persisted-field list."""
    extended = list(fields)
    for name in CAMPAIGN_META_FIELDS:
        if name not in extended:
            extended.append(name)
    return extended
