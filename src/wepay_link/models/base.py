from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


def utcnow() -> datetime:
    """Timezone-aware default for ``created_at`` columns."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass
