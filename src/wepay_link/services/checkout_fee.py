"""Checkout decoration -- the site's application fee and settlement credentials.

The payment gateway asks two questions before it charges through WePay:
how large an ``app_fee`` the site keeps, and whose WePay account the money
is sent to.  Funds always go to the owner of the campaign behind the
*first* item being paid for; carts spanning several campaign owners are
not split.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

import structlog
from pydantic import BaseModel

from wepay_link.services.account_link import LinkedAccountStore
from wepay_link.services.audit_logger import AuditLogger
from wepay_link.services.linked_accounts import CampaignRecord

log = structlog.get_logger()

PREAPPROVAL_ACTIONS = frozenset({"charge_wepay_preapproval", "cancel_wepay_preapproval"})


# ---------------------------------------------------------------------------
# Protocols for the campaign and payment stores
# ---------------------------------------------------------------------------

class CampaignStore(Protocol):
    async def get_campaign(self, campaign_id: int) -> CampaignRecord | None: ...


class PaymentStore(Protocol):
    async def get_payment_downloads(self, payment_id: int) -> list[dict[str, Any]]: ...


# ---------------------------------------------------------------------------
# Fee calculation
# ---------------------------------------------------------------------------

class MisconfiguredFeeError(ValueError):
    """The configured fee percentage is not a number."""


def parse_fee_percent(raw: Any) -> int | None:
    """Return the configured percentage as a whole number, or None when unset.

    Fractions are truncated and the sign dropped, so ``"5.9"`` and ``"-5"``
    both read as 5.
    """
    if raw is None:
        return None
    value = str(raw).strip()
    if value == "":
        return None
    try:
        return abs(int(Decimal(value)))
    except (InvalidOperation, ValueError) as exc:
        raise MisconfiguredFeeError(f"Fee percentage {raw!r} is not numeric") from exc


def compute_app_fee(subtotal: Any, fee_percent: Any) -> Decimal:
    """``subtotal * fee_percent / 100`` in Decimal, unrounded."""
    return Decimal(str(subtotal)) * Decimal(str(fee_percent)) / Decimal(100)


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CheckoutCredentials:
    """WePay credentials of the user who receives a payment's funds."""

    access_token: str
    account_id: str


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class CheckoutArgsRequest(BaseModel):
    args: dict[str, Any] = {}
    subtotal: Decimal


class CredentialsRequest(BaseModel):
    creds: dict[str, Any] = {}
    cart_items: list[dict[str, Any]] = []
    session: dict[str, Any] | None = None
    payment_id: int | None = None
    query_params: dict[str, str] = {}


# ---------------------------------------------------------------------------
# PaymentDecorator
# ---------------------------------------------------------------------------

class PaymentDecorator:
    """Adds the site fee to checkout requests and picks the settlement account."""

    def __init__(
        self,
        campaigns: CampaignStore,
        payments: PaymentStore,
        accounts: LinkedAccountStore,
        fee_percent: str = "",
        audit: AuditLogger | None = None,
    ) -> None:
        self._campaigns = campaigns
        self._payments = payments
        self._accounts = accounts
        self._fee_percent = fee_percent
        self._audit = audit or AuditLogger()

    # ------------------------------------------------------------------
    # App fee
    # ------------------------------------------------------------------

    def add_fee(self, args: dict[str, Any], subtotal: Any) -> dict[str, Any]:
        """Return *args* with ``app_fee`` set, or unchanged if no fee is configured.

        A configured fee of 0 still sets ``app_fee`` to 0.
        """
        try:
            percent = parse_fee_percent(self._fee_percent)
        except MisconfiguredFeeError as exc:
            log.warning("app_fee_misconfigured", error=str(exc))
            return args

        if percent is None:
            return args

        fee = compute_app_fee(subtotal, percent)
        log.info("app_fee_added", subtotal=str(subtotal), percent=percent, app_fee=str(fee))
        return {**args, "app_fee": fee}

    # ------------------------------------------------------------------
    # Settlement credentials
    # ------------------------------------------------------------------

    async def resolve_credentials(
        self,
        creds: dict[str, Any],
        cart_items: list[dict[str, Any]] | None = None,
        session: Mapping[str, Any] | None = None,
        payment_id: int | None = None,
        query_params: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        """Return *creds* with the settlement ``access_token``/``account_id``.

        When no target can be determined *creds* is returned unchanged and
        the gateway's own validation decides what happens to the charge.
        """
        resolved = await self.resolve_settlement_credentials(
            cart_items, session, payment_id, query_params,
        )
        if resolved is None:
            return creds
        return {
            **creds,
            "access_token": resolved.access_token,
            "account_id": resolved.account_id,
        }

    async def resolve_settlement_credentials(
        self,
        cart_items: list[dict[str, Any]] | None = None,
        session: Mapping[str, Any] | None = None,
        payment_id: int | None = None,
        query_params: Mapping[str, str] | None = None,
    ) -> CheckoutCredentials | None:
        """Credentials of the first item's campaign owner, or None if unresolved."""
        items, source = await self._resolve_items(
            cart_items, session, payment_id, query_params or {},
        )
        if not items:
            log.info("settlement_unresolved", reason="no_items")
            return None

        first = items[0]
        campaign_id = _as_id(first.get("id")) if isinstance(first, Mapping) else None
        if campaign_id is None:
            log.info("settlement_unresolved", reason="bad_campaign_id", source=source)
            return None

        campaign = await self._campaigns.get_campaign(campaign_id)
        if campaign is None:
            log.info("settlement_unresolved", reason="no_campaign", campaign_id=campaign_id)
            return None

        account = await self._accounts.get_linked_account(campaign.author_id)
        if account is None or not account.is_linked:
            log.info(
                "settlement_unresolved",
                reason="owner_not_linked",
                campaign_id=campaign_id,
                owner_user_id=str(campaign.author_id),
            )
            return None

        credentials = CheckoutCredentials(
            access_token=account.access_token.strip(),
            account_id=account.account_id.strip(),
        )
        self._audit.log_settlement_resolved(
            campaign_id, campaign.author_id, credentials.account_id, source,
        )
        return credentials

    async def _resolve_items(
        self,
        cart_items: list[dict[str, Any]] | None,
        session: Mapping[str, Any] | None,
        payment_id: int | None,
        query_params: Mapping[str, str],
    ) -> tuple[list[dict[str, Any]], str]:
        """Pick the line items to settle: cart, then session, then a stored payment."""
        if cart_items:
            return list(cart_items), "cart"

        if session:
            downloads = _line_items(session.get("downloads"))
            if downloads:
                return downloads, "session"

        if query_params.get("edd-action") in PREAPPROVAL_ACTIONS:
            query_payment_id = _as_id(query_params.get("payment_id"))
            if query_payment_id is not None:
                return await self._payments.get_payment_downloads(query_payment_id), "preapproval"

        if payment_id:
            return await self._payments.get_payment_downloads(payment_id), "payment"

        return [], "none"


def _line_items(downloads: Any) -> list[Any]:
    """Session downloads as a list; keyed downloads give their values."""
    if isinstance(downloads, Mapping):
        return list(downloads.values())
    if isinstance(downloads, (list, tuple)):
        return list(downloads)
    return []


def _as_id(value: Any) -> int | None:
    """Coerce an identifier to a positive int; None when it is not one."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = abs(int(str(value).strip()))
    except ValueError:
        return None
    return number or None
