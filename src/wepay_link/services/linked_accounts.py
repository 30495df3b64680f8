"""Database access for users, their linked WePay accounts, campaigns and payments."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from wepay_link.models import Campaign, User


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SiteUser:
    """The slice of a site user the link flow needs."""

    user_id: uuid.UUID
    email: str
    nicename: str


@dataclass(frozen=True)
class LinkedAccount:
    """A user's WePay merchant account id, access token and profile URI."""

    account_id: str
    access_token: str
    account_uri: str

    @property
    def is_linked(self) -> bool:
        return bool(self.account_id.strip())


@dataclass(frozen=True)
class CampaignRecord:
    campaign_id: int
    author_id: uuid.UUID
    status: str


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------

class UserAccountRepository:
    """Reads and writes the WePay columns of the users table."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_user(self, user_id: uuid.UUID) -> SiteUser | None:
        result = await self._db.execute(select(User).where(User.user_id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            return None
        return SiteUser(user_id=user.user_id, email=user.email, nicename=user.nicename)

    async def get_linked_account(self, user_id: uuid.UUID) -> LinkedAccount | None:
        """Return the stored account, or None when the user does not exist.

        Unset columns come back as empty strings so callers can test
        ``is_linked`` without None checks.
        """
        result = await self._db.execute(
            text(
                "SELECT wepay_account_id, wepay_access_token, wepay_account_uri "
                "FROM users WHERE user_id = :user_id"
            ),
            {"user_id": user_id},
        )
        row = result.fetchone()
        if row is None:
            return None
        return LinkedAccount(
            account_id=row[0] or "",
            access_token=row[1] or "",
            account_uri=row[2] or "",
        )

    async def save_linked_account(
        self,
        user_id: uuid.UUID,
        account: LinkedAccount,
    ) -> None:
        """Overwrite all three WePay columns in one statement and commit.

        Rolls back and re-raises on failure so no column is left half-written.
        """
        try:
            await self._db.execute(
                text(
                    "UPDATE users "
                    "SET wepay_account_id = :account_id, "
                    "wepay_access_token = :access_token, "
                    "wepay_account_uri = :account_uri "
                    "WHERE user_id = :user_id"
                ),
                {
                    "user_id": user_id,
                    "account_id": account.account_id,
                    "access_token": account.access_token,
                    "account_uri": account.account_uri,
                },
            )
            await self._db.commit()
        except Exception:
            await self._db.rollback()
            raise


class CampaignRepository:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_campaign(self, campaign_id: int) -> CampaignRecord | None:
        result = await self._db.execute(
            select(Campaign).where(Campaign.campaign_id == campaign_id)
        )
        campaign = result.scalar_one_or_none()
        if campaign is None:
            return None
        return CampaignRecord(
            campaign_id=campaign.campaign_id,
            author_id=campaign.author_id,
            status=campaign.status,
        )


class PaymentRepository:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_payment_downloads(self, payment_id: int) -> list[dict[str, Any]]:
        """Return a payment's stored line items in cart order."""
        result = await self._db.execute(
            text(
                "SELECT campaign_id, quantity FROM payment_downloads "
                "WHERE payment_id = :payment_id ORDER BY position"
            ),
            {"payment_id": payment_id},
        )
        return [{"id": row[0], "quantity": row[1]} for row in result.fetchall()]
