"""create admissions tables

Revision ID: b7c8d9e0f1a2
Revises:
Create Date: 2026-10-19 09:00:00.000000

This migration:
1. Creates the applicant_status, applicant_source and notification_kind enums
2. Creates applicants, courses, admin_settings and email_logs

Enum labels are the Python enum member names, matching how SQLAlchemy's Enum
type persists them.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "b7c8d9e0f1a2"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


applicant_status_enum = postgresql.ENUM(
    "PENDING",
    "ACCEPTED",
    "REJECTED",
    name="applicant_status",
    create_type=False,
)
applicant_source_enum = postgresql.ENUM(
    "MANUAL",
    "SELF_SERVICE",
    name="applicant_source",
    create_type=False,
)
notification_kind_enum = postgresql.ENUM(
    "ADMISSION_PDF",
    "APPLICATION_CONFIRMATION",
    name="notification_kind",
    create_type=False,
)


def upgrade() -> None:
    """Create admissions tables."""
    bind = op.get_bind()
    applicant_status_enum.create(bind, checkfirst=True)
    applicant_source_enum.create(bind, checkfirst=True)
    notification_kind_enum.create(bind, checkfirst=True)

    op.create_table(
        "applicants",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        # Profile
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=False),
        sa.Column("course", sa.String(length=200), nullable=False),
        sa.Column("kcse_grade", sa.String(length=5), nullable=True),
        sa.Column("county", sa.String(length=100), nullable=True),
        sa.Column("admission_number", sa.String(length=50), nullable=False),
        # Decision
        sa.Column("status", applicant_status_enum, nullable=False),
        sa.Column("source", applicant_source_enum, nullable=False),
        sa.Column(
            "submitted_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
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
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("admission_number"),
    )
    # Recovery lists pending applicants in submission order
    op.create_index(
        "ix_applicants_status_submitted_at", "applicants", ["status", "submitted_at"]
    )
    op.create_index("ix_applicants_email", "applicants", ["email"])

    op.create_table(
        "courses",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("fee_balance", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("fee_per_year", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("duration", sa.String(length=50), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
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
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "admin_settings",
        sa.Column("key", sa.String(length=100), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("key"),
    )

    op.create_table(
        "email_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("kind", notification_kind_enum, nullable=False),
        sa.Column("recipient", sa.String(length=255), nullable=False),
        sa.Column("subject", sa.String(length=500), nullable=False),
        sa.Column("applicant_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("applicant_name", sa.String(length=200), nullable=False),
        sa.Column("message_id", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_email_logs_applicant_kind", "email_logs", ["applicant_id", "kind"])
    op.create_index("ix_email_logs_sent_at", "email_logs", ["sent_at"])


def downgrade() -> None:
    """Drop admissions tables."""
    op.drop_index("ix_email_logs_sent_at", table_name="email_logs")
    op.drop_index("ix_email_logs_applicant_kind", table_name="email_logs")
    op.drop_table("email_logs")
    op.drop_table("admin_settings")
    op.drop_table("courses")
    op.drop_index("ix_applicants_email", table_name="applicants")
    op.drop_index("ix_applicants_status_submitted_at", table_name="applicants")
    op.drop_table("applicants")

    bind = op.get_bind()
    notification_kind_enum.drop(bind, checkfirst=True)
    applicant_source_enum.drop(bind, checkfirst=True)
    applicant_status_enum.drop(bind, checkfirst=True)
