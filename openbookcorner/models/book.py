import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from openbookcorner.db.base import Base, UTCDateTime, utcnow


class Book(Base):
    __tablename__ = "books"

    __table_args__ = (
        UniqueConstraint("library_id", "isbn", name="uq_books_library_isbn"),
        CheckConstraint("quantity >= 1", name="ck_books_quantity_positive"),
        CheckConstraint(
            "available_quantity >= 0 AND available_quantity <= quantity",
            name="ck_books_available_in_range",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    library_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("libraries.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    author: Mapped[str] = mapped_column(String(255), nullable=False)
    isbn: Mapped[str | None] = mapped_column(String(20), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    available_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    @property
    def borrowed_quantity(self) -> int:
        return self.quantity - self.available_quantity

    def __repr__(self) -> str:
        return f"<Book id={self.id} title={self.title!r} available={self.available_quantity}/{self.quantity}>"
