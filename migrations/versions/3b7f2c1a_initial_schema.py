"""initial_schema

Revision ID: 3b7f2c1a
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3b7f2c1a"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_ENUMS = {
    "userrole": ("SUPER_ADMIN", "LIBRARY_ADMIN", "READER"),
    "borrowstatus": ("BORROWED", "RETURNED"),
    "requeststatus": ("PENDING", "APPROVED", "REJECTED", "FULFILLED"),
    "donationstatus": ("PENDING", "ACCEPTED", "REJECTED"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*_ENUMS[name], name=name, create_type=False)


def _timestamp(name: str, *, nullable: bool = False, default: bool = False) -> sa.Column:
    return sa.Column(
        name,
        postgresql.TIMESTAMP(timezone=True),
        server_default=sa.text("now()") if default else None,
        nullable=nullable,
    )


def upgrade() -> None:
    for name, values in _ENUMS.items():
        postgresql.ENUM(*values, name=name).create(op.get_bind(), checkfirst=True)

    # --- libraries ---
    op.create_table(
        "libraries",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("loan_period_days", sa.Integer, nullable=False),
        sa.Column("max_active_borrows", sa.Integer, nullable=False),
        sa.Column("max_renewals", sa.Integer, nullable=False),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), nullable=False),
        _timestamp("created_at", default=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_libraries_slug", "libraries", ["slug"], unique=True)

    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", _enum("userrole"), nullable=False),
        sa.Column("library_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), nullable=False),
        _timestamp("email_verified_at", nullable=True),
        _timestamp("created_at", default=True),
        sa.ForeignKeyConstraint(["library_id"], ["libraries.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_library_id", "users", ["library_id"])

    # --- sessions / verification codes ---
    op.create_table(
        "sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        _timestamp("created_at", default=True),
        _timestamp("expires_at"),
        _timestamp("revoked_at", nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"])

    op.create_table(
        "email_verification_codes",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("code_hash", sa.String(64), nullable=False),
        sa.Column("attempts", sa.Integer, nullable=False),
        _timestamp("expires_at"),
        _timestamp("created_at", default=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_email_verification_codes_email", "email_verification_codes", ["email"]
    )

    # --- books ---
    op.create_table(
        "books",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("library_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("author", sa.String(255), nullable=False),
        sa.Column("isbn", sa.String(20), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("available_quantity", sa.Integer, nullable=False),
        _timestamp("created_at", default=True),
        _timestamp("updated_at", default=True),
        sa.CheckConstraint("quantity >= 1", name="ck_books_quantity_positive"),
        sa.CheckConstraint(
            "available_quantity >= 0 AND available_quantity <= quantity",
            name="ck_books_available_in_range",
        ),
        sa.ForeignKeyConstraint(["library_id"], ["libraries.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("library_id", "isbn", name="uq_books_library_isbn"),
    )
    op.create_index("ix_books_library_id", "books", ["library_id"])

    # --- borrow_transactions ---
    op.create_table(
        "borrow_transactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("library_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("book_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        _timestamp("borrowed_at", default=True),
        _timestamp("due_date"),
        _timestamp("returned_at", nullable=True),
        sa.Column("status", _enum("borrowstatus"), nullable=False),
        sa.Column("renewal_count", sa.Integer, nullable=False),
        _timestamp("due_reminder_sent_at", nullable=True),
        _timestamp("overdue_notice_sent_at", nullable=True),
        sa.ForeignKeyConstraint(["library_id"], ["libraries.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["book_id"], ["books.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_borrow_transactions_user_id", "borrow_transactions", ["user_id"])
    op.create_index(
        "ix_borrow_transactions_library_status", "borrow_transactions", ["library_id", "status"]
    )
    # Partial unique index: one active borrow of a title per reader
    op.create_index(
        "uq_active_borrow_per_reader_book",
        "borrow_transactions",
        ["book_id", "user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'BORROWED'"),
    )

    # --- book_requests / book_donations ---
    op.create_table(
        "book_requests",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("library_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("author", sa.String(255), nullable=True),
        sa.Column("isbn", sa.String(20), nullable=True),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("status", _enum("requeststatus"), nullable=False),
        sa.Column("admin_note", sa.Text, nullable=True),
        _timestamp("created_at", default=True),
        _timestamp("decided_at", nullable=True),
        sa.ForeignKeyConstraint(["library_id"], ["libraries.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_book_requests_library_id", "book_requests", ["library_id"])

    op.create_table(
        "book_donations",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("library_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("author", sa.String(255), nullable=False),
        sa.Column("isbn", sa.String(20), nullable=True),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("status", _enum("donationstatus"), nullable=False),
        sa.Column("admin_note", sa.Text, nullable=True),
        sa.Column("book_id", postgresql.UUID(as_uuid=True), nullable=True),
        _timestamp("created_at", default=True),
        _timestamp("decided_at", nullable=True),
        sa.ForeignKeyConstraint(["library_id"], ["libraries.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["book_id"], ["books.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_book_donations_library_id", "book_donations", ["library_id"])


def downgrade() -> None:
    op.drop_table("book_donations")
    op.drop_table("book_requests")
    op.drop_index("uq_active_borrow_per_reader_book", table_name="borrow_transactions")
    op.drop_table("borrow_transactions")
    op.drop_table("books")
    op.drop_table("email_verification_codes")
    op.drop_table("sessions")
    op.drop_table("users")
    op.drop_table("libraries")

    for name in reversed(list(_ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
