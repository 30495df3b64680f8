"""Site users and their linked WePay account columns."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wepay_link.models.base import Base, utcnow

if TYPE_CHECKING:
    from wepay_link.models.campaign import Campaign


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    nicename: Mapped[str] = mapped_column(String(50), nullable=False)

    # Written together by the account-link handshake, never individually.
    wepay_account_id: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True
    )
    wepay_access_token: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    wepay_account_uri: Mapped[Optional[str]] = mapped_column(
        String(2048), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    campaigns: Mapped[list[Campaign]] = relationship(
        back_populates="author", lazy="selectin"
    )
