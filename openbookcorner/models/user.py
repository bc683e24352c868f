import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, String, Uuid, func, true
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from openbookcorner.db.base import Base, UTCDateTime, utcnow


class UserRole(str, enum.Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    LIBRARY_ADMIN = "LIBRARY_ADMIN"
    READER = "READER"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SAEnum(UserRole, name="userrole"),
        nullable=False,
        default=UserRole.READER,
    )
    # NULL only for super admins, who belong to no tenant.
    library_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("libraries.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )
    email_verified_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, server_default=func.now(), nullable=False
    )

    @property
    def is_admin(self) -> bool:
        return self.role in (UserRole.SUPER_ADMIN, UserRole.LIBRARY_ADMIN)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} role={self.role}>"
