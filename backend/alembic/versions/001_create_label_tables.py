"""Create labels, label_templates and users tables

Revision ID: 001
Revises: None
Create Date: 2025-01-20 00:00:00.000000+00:00

What:  Creates the three tables of the label store with their unique
       constraints and lookup indexes.
How:   PostgreSQL types: UUID primary keys, TIMESTAMP WITH TIME ZONE, JSONB
       for the template-driven documents.

Rollback: downgrade() drops all three tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "labels",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("label_type", sa.String(100), nullable=False),
        sa.Column("template_version", sa.Integer(), nullable=False),
        sa.Column("trial_identifier", sa.String(50), nullable=False),
        sa.Column("sponsor_name", sa.String(100), nullable=True),
        sa.Column("protocol_number", sa.String(50), nullable=False),
        sa.Column("product_name", sa.String(200), nullable=False),
        sa.Column(
            "identifier_code",
            sa.String(50),
            nullable=False,
            comment="Key printed on the label; globally unique",
        ),
        sa.Column("batch_number", sa.String(20), nullable=False),
        sa.Column("expiry_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("kit_number", sa.String(6), nullable=True, comment="Six-digit kit code"),
        sa.Column(
            "custom_fields",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
            comment="Template-driven values: strings, lists or per-language maps",
        ),
        sa.Column(
            "languages",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[\"en\"]'::jsonb"),
        ),
        sa.Column("created_by", sa.String(100), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("identifier_code", name="uq_labels_identifier_code"),
    )
    op.create_index(
        "idx_labels_sponsor_trial_batch",
        "labels",
        ["sponsor_name", "trial_identifier", "batch_number"],
    )
    op.create_index(
        "idx_labels_sponsor_trial_kit",
        "labels",
        ["sponsor_name", "trial_identifier", "kit_number"],
    )
    op.create_index("idx_labels_protocol_kit", "labels", ["protocol_number", "kit_number"])
    op.create_index("idx_labels_batch_number", "labels", ["batch_number"])

    op.create_table(
        "label_templates",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("template_name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column(
            "required_fields",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "custom_fields",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_label_templates_name_version",
        "label_templates",
        ["template_name", "version"],
    )

    op.create_table(
        "users",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("email", sa.String(255), nullable=False, comment="Stored lowercased"),
        sa.Column("password_hash", sa.String(255), nullable=False, comment="bcrypt hash"),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )


def downgrade() -> None:
    op.drop_table("users")
    op.drop_index("idx_label_templates_name_version", table_name="label_templates")
    op.drop_table("label_templates")
    op.drop_index("idx_labels_batch_number", table_name="labels")
    op.drop_index("idx_labels_protocol_kit", table_name="labels")
    op.drop_index("idx_labels_sponsor_trial_kit", table_name="labels")
    op.drop_index("idx_labels_sponsor_trial_batch", table_name="labels")
    op.drop_table("labels")
