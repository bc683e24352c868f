import enum
import uuid
from datetime import datetime

from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from openbookcorner.db.base import Base, UTCDateTime, utcnow


class BorrowStatus(str, enum.Enum):
    BORROWED = "BORROWED"
    RETURNED = "RETURNED"


class BorrowTransaction(Base):
    __tablename__ = "borrow_transactions"

    __table_args__ = (
        # A reader holds at most one copy of a given title at a time.
        Index(
            "uq_active_borrow_per_reader_book",
            "book_id",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'BORROWED'"),
            sqlite_where=text("status = 'BORROWED'"),
        ),
        Index("ix_borrow_transactions_library_status", "library_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    library_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("libraries.id", ondelete="RESTRICT"), nullable=False
    )
    book_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("books.id", ondelete="RESTRICT"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    borrowed_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, server_default=func.now(), nullable=False
    )
    due_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    returned_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    status: Mapped[BorrowStatus] = mapped_column(
        SAEnum(BorrowStatus, name="borrowstatus"),
        nullable=False,
        default=BorrowStatus.BORROWED,
    )
    renewal_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    due_reminder_sent_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    overdue_notice_sent_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    @property
    def is_overdue(self) -> bool:
        return self.status == BorrowStatus.BORROWED and self.due_date < utcnow()

    def __repr__(self) -> str:
        return f"<BorrowTransaction id={self.id} book_id={self.book_id} status={self.status}>"
