"""passcodes and consumed QR nonces

Revision ID: 20261018_passcodes
Revises:
Create Date: 2026-10-18 00:00:00
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '20261018_passcodes'
down_revision: Union[str, Sequence[str], None] = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "passcodes",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("owner_type", sa.String(length=20), nullable=False),
        sa.Column("permissions", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("usage_limit", sa.Integer(), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("owner_type IN ('employee', 'visitor')", name=op.f("ck_passcodes_owner_type")),
        sa.CheckConstraint("usage_limit IS NULL OR usage_count <= usage_limit", name=op.f("ck_passcodes_usage_within_limit")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_passcodes")),
    )
    op.create_index(op.f("ix_passcodes_code"), "passcodes", ["code"], unique=True)
    op.create_index(op.f("ix_passcodes_owner_id"), "passcodes", ["owner_id"], unique=False)

    op.create_table(
        "consumed_nonces",
        sa.Column("nonce", sa.String(length=64), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("nonce", name=op.f("pk_consumed_nonces")),
    )
    op.create_index(op.f("ix_consumed_nonces_expires_at"), "consumed_nonces", ["expires_at"], unique=False)

def downgrade() -> None:
    op.drop_index(op.f("ix_consumed_nonces_expires_at"), table_name="consumed_nonces")
    op.drop_table("consumed_nonces")
    op.drop_index(op.f("ix_passcodes_owner_id"), table_name="passcodes")
    op.drop_index(op.f("ix_passcodes_code"), table_name="passcodes")
    op.drop_table("passcodes")
