"""Shared FastAPI dependencies -- callers, the current user and the composed services."""

from __future__ import annotations

import hmac
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from wepay_link.config import settings
from wepay_link.database import get_db
from wepay_link.integrations.wepay_client import WePayClient
from wepay_link.services.account_link import AccountLinkService
from wepay_link.services.checkout_fee import PaymentDecorator
from wepay_link.services.linked_accounts import (
    CampaignRepository,
    PaymentRepository,
    SiteUser,
    UserAccountRepository,
)


def get_wepay_client() -> WePayClient:
    """A client bound to staging or production by the site's test mode."""
    return WePayClient.from_settings(settings)


async def get_current_user(
    x_user_id: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> SiteUser:
    """Resolve the user the host site authenticated for this request.

    The host's auth layer forwards the user id in the ``X-User-Id`` header.
    Raises HTTPException(401) when it is missing or malformed, and 404 when
    the user does not exist.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Malformed user id",
        )

    user = await UserAccountRepository(db).get_user(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return user


async def verify_gateway(x_gateway_secret: str | None = Header(default=None)) -> None:
    """Admit only the payment gateway to the checkout decoration routes.

    The gateway sends ``WEPAY_GATEWAY_SECRET`` in the ``X-Gateway-Secret``
    header.  Every call is rejected with 401 while no secret is configured.
    """
    expected = settings.WEPAY_GATEWAY_SECRET
    if not expected or not x_gateway_secret or not hmac.compare_digest(
        x_gateway_secret.encode(), expected.encode()
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid gateway credentials",
        )


def get_campaign_repository(db: AsyncSession = Depends(get_db)) -> CampaignRepository:
    return CampaignRepository(db)


def get_account_link_service(
    db: AsyncSession = Depends(get_db),
    wepay: WePayClient = Depends(get_wepay_client),
) -> AccountLinkService:
    return AccountLinkService(
        wepay=wepay,
        accounts=UserAccountRepository(db),
        submit_page_url=settings.SUBMIT_PAGE_URL,
    )


def get_payment_decorator(db: AsyncSession = Depends(get_db)) -> PaymentDecorator:
    return PaymentDecorator(
        campaigns=CampaignRepository(db),
        payments=PaymentRepository(db),
        accounts=UserAccountRepository(db),
        fee_percent=settings.WEPAY_APP_FEE,
    )
