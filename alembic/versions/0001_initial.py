"""Initial schema – packs, callers

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-16 00:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- packs ---
    op.create_table(
        "packs",
        sa.Column("name", sa.String(100), primary_key=True),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("allowed_roles", sa.JSON, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_packs_active", "packs", ["active"])

    # --- callers ---
    op.create_table(
        "callers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), unique=True, nullable=True),
        sa.Column("roles", sa.JSON, nullable=False),
        sa.Column("rate_limit", sa.Integer, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_callers_email", "callers", ["email"])


def downgrade() -> None:
    op.drop_table("callers")
    op.drop_table("packs")
