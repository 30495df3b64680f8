"""Crowdfunding campaigns and the stored line items of payments."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wepay_link.models.base import Base, utcnow

if TYPE_CHECKING:
    from wepay_link.models.user import User


class Campaign(Base):
    __tablename__ = "campaigns"

    campaign_id: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, autoincrement=True
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.user_id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('auto-draft', 'draft', 'pending', 'publish')",
            name="ck_campaign_status",
        ),
    )

    author: Mapped[User] = relationship(back_populates="campaigns")


class Payment(Base):
    __tablename__ = "payments"

    payment_id: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, autoincrement=True
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.user_id"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    downloads: Mapped[list[PaymentDownload]] = relationship(
        back_populates="payment", lazy="selectin",
        order_by="PaymentDownload.position",
    )


class PaymentDownload(Base):
    """A single line item (pledge towards one campaign) of a payment."""

    __tablename__ = "payment_downloads"

    payment_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("payments.payment_id"), primary_key=True
    )
    position: Mapped[int] = mapped_column(Integer, primary_key=True)
    campaign_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("campaigns.campaign_id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    payment: Mapped[Payment] = relationship(back_populates="downloads")
