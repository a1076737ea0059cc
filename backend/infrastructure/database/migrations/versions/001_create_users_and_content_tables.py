"""Create users, blogs and resources tables

Revision ID: 001
Revises:
Create Date: 2026-10-01

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=50), nullable=False, server_default="user"),
        sa.Column("banned", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("otp_code", sa.String(length=6), nullable=True),
        sa.Column("otp_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("temp_password", sa.Text(), nullable=True),
        sa.Column("temp_password_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verification_token_hash", sa.String(length=64), nullable=True),
        sa.Column("verification_token_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("login_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_role", "users", ["role"])

    for table, extra in (
        (
            "blogs",
            [
                sa.Column("excerpt", sa.Text(), nullable=True),
                sa.Column("featured_image", sa.String(length=500), nullable=True),
            ],
        ),
        (
            "resources",
            [
                sa.Column("description", sa.Text(), nullable=True),
                sa.Column("code_blocks", sa.JSON(), nullable=True),
                sa.Column("file_url", sa.String(length=500), nullable=True),
            ],
        ),
    ):
        op.create_table(
            table,
            sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
            sa.Column("author_id", postgresql.UUID(as_uuid=False), nullable=True),
            sa.Column("slug", sa.String(length=255), nullable=False),
            sa.Column("title", sa.String(length=500), nullable=False),
            sa.Column("category", sa.String(length=100), nullable=True),
            sa.Column("content", sa.Text(), nullable=False, server_default=""),
            *extra,
            sa.Column("access_type", sa.String(length=20), nullable=False, server_default="free"),
            sa.Column("price", sa.Numeric(10, 2), nullable=True),
            sa.Column("published", sa.Boolean(), nullable=False, server_default="false"),
            *_timestamps(),
            sa.ForeignKeyConstraint(["author_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("slug"),
        )
        op.create_index(f"ix_{table}_slug", table, ["slug"])
        op.create_index(f"ix_{table}_published_access", table, ["published", "access_type"])


def downgrade() -> None:
    for table in ("resources", "blogs"):
        op.drop_index(f"ix_{table}_published_access", table_name=table)
        op.drop_index(f"ix_{table}_slug", table_name=table)
        op.drop_table(table)
    op.drop_index("ix_users_role", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
