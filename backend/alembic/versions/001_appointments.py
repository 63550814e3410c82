"""Add appointments table

Revision ID: 001
Revises:
Create Date: (run alembic upgrade head)

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "appointments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("state", sa.String(16), nullable=False, server_default="available"),
        sa.Column("client", sa.String(50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("provider", "time", name="uq_appointments_provider_time"),
        sa.CheckConstraint(
            "(state = 'available' AND client IS NULL) OR (state <> 'available' AND client IS NOT NULL)",
            name="ck_appointments_client_matches_state",
        ),
    )
    op.create_index("ix_appointments_provider", "appointments", ["provider"], unique=False)
    op.create_index("ix_appointments_time", "appointments", ["time"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_appointments_time", table_name="appointments")
    op.drop_index("ix_appointments_provider", table_name="appointments")
    op.drop_table("appointments")
