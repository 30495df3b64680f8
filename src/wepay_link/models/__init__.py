"""ORM models package -- re-exports all models and the Base class."""

from wepay_link.models.base import Base
from wepay_link.models.user import User
from wepay_link.models.campaign import (
    Campaign,
    Payment,
    PaymentDownload,
)

__all__ = [
    "Base",
    "User",
    "Campaign",
    "Payment",
    "PaymentDownload",
]
