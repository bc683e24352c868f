import uuid
from datetime import datetime

from sqlalchemy import Boolean, Integer, String, Uuid, func, true
from sqlalchemy.orm import Mapped, mapped_column

from openbookcorner.core.config import settings
from openbookcorner.db.base import Base, UTCDateTime, utcnow


class Library(Base):
    """A tenant: one office book corner with its own catalog, users and loan policy."""

    __tablename__ = "libraries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    loan_period_days: Mapped[int] = mapped_column(
        Integer, nullable=False, default=lambda: settings.DEFAULT_LOAN_PERIOD_DAYS
    )
    max_active_borrows: Mapped[int] = mapped_column(
        Integer, nullable=False, default=lambda: settings.DEFAULT_MAX_ACTIVE_BORROWS
    )
    max_renewals: Mapped[int] = mapped_column(
        Integer, nullable=False, default=lambda: settings.DEFAULT_MAX_RENEWALS
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Library id={self.id} slug={self.slug!r}>"
