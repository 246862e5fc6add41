"""initial schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _record_columns() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _is_active_column() -> sa.Column:
    return sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true"))


def upgrade() -> None:
    op.create_table(
        "roles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "users",
        *_record_columns(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=100), nullable=False),
        sa.Column("password", sa.String(length=255), nullable=False),
        _is_active_column(),
    )
    op.create_index("ix_users_is_active", "users", ["is_active"])

    op.create_table(
        "user_roles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("role_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("roles.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "role_id", name="uq_user_roles_user_role"),
    )
    op.create_index("ix_user_roles_user_id", "user_roles", ["user_id"])

    op.create_table(
        "offices",
        *_record_columns(),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("short_name", sa.String(length=100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        _is_active_column(),
    )
    op.create_index("ix_offices_code", "offices", ["code"])

    op.create_table(
        "subunits",
        *_record_columns(),
        sa.Column("office_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("offices.id"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _is_active_column(),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.create_index("ix_subunits_office_id", "subunits", ["office_id"])
    op.create_index("ix_subunits_office_system", "subunits", ["office_id", "is_system"])

    op.create_table(
        "classifiers",
        *_record_columns(),
        sa.Column("code", sa.String(length=10), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("alternate_name", sa.String(length=255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        _is_active_column(),
    )

    op.create_table(
        "subclassifiers",
        *_record_columns(),
        sa.Column(
            "classifier_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("classifiers.id"),
            nullable=False,
        ),
        sa.Column("code", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        _is_active_column(),
    )
    op.create_index("ix_subclassifiers_classifier_id", "subclassifiers", ["classifier_id"])

    for table_name in ("financings", "products"):
        op.create_table(
            table_name,
            *_record_columns(),
            sa.Column("code", sa.String(length=10), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            _is_active_column(),
        )

    op.create_table(
        "purposes",
        *_record_columns(),
        sa.Column("name", sa.String(length=255), nullable=False),
        _is_active_column(),
    )


def downgrade() -> None:
    op.drop_table("purposes")
    op.drop_table("products")
    op.drop_table("financings")

    op.drop_index("ix_subclassifiers_classifier_id", table_name="subclassifiers")
    op.drop_table("subclassifiers")
    op.drop_table("classifiers")

    op.drop_index("ix_subunits_office_system", table_name="subunits")
    op.drop_index("ix_subunits_office_id", table_name="subunits")
    op.drop_table("subunits")

    op.drop_index("ix_offices_code", table_name="offices")
    op.drop_table("offices")

    op.drop_index("ix_user_roles_user_id", table_name="user_roles")
    op.drop_table("user_roles")

    op.drop_index("ix_users_is_active", table_name="users")
    op.drop_table("users")
    op.drop_table("roles")
