"""Create catalog, scan ledger and stock summary tables

Revision ID: 001
Revises: None
Create Date: 2024-01-15 00:00:00.000000+00:00

What:  Creates `master_catalog`, `scan_events` and `stock_summaries`.
How:   The unique constraint on scan_events (direction, scan_date,
       sequence_number) is what rejects duplicate sequence numbers when two
       scans race; the recorder retries on that violation.

Rollback: downgrade() drops all three tables (destructive, ledger history lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _catalog_snapshot_columns() -> list:
    """Item attributes shared by the catalog and every ledger row."""
    return [
        sa.Column("brand", sa.String(100), nullable=False, server_default=sa.text("''")),
        sa.Column("color", sa.String(100), nullable=False, server_default=sa.text("''")),
        sa.Column("size", sa.String(20), nullable=False, server_default=sa.text("''")),
        sa.Column("four_digit", sa.String(10), nullable=False, server_default=sa.text("''")),
        sa.Column("unit", sa.String(20), nullable=False, server_default=sa.text("''")),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("production", sa.String(100), nullable=False, server_default=sa.text("''")),
        sa.Column("model", sa.String(100), nullable=False, server_default=sa.text("''")),
        sa.Column("model_code", sa.String(50), nullable=False, server_default=sa.text("''")),
        sa.Column("item", sa.String(100), nullable=False, server_default=sa.text("''")),
    ]


def upgrade() -> None:
    op.create_table(
        "master_catalog",
        sa.Column(
            "barcode",
            sa.String(64),
            nullable=False,
            comment="Printed barcode; immutable once assigned",
        ),
        *_catalog_snapshot_columns(),
        sa.Column(
            "stock",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
            comment="Opening stock maintained by catalog management",
        ),
        sa.PrimaryKeyConstraint("barcode"),
    )

    op.create_table(
        "scan_events",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("direction", sa.String(16), nullable=False),
        sa.Column(
            "scan_date",
            sa.Date(),
            nullable=False,
            comment="Calendar day of scanned_at in the warehouse timezone",
        ),
        sa.Column(
            "sequence_number",
            sa.Integer(),
            nullable=False,
            comment="Position in the (direction, scan_date) stream; unique, may have gaps",
        ),
        sa.Column(
            "scanned_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column(
            "description",
            sa.String(255),
            nullable=False,
            server_default=sa.text("''"),
            comment="Actor description at scan time",
        ),
        sa.Column("barcode", sa.String(64), nullable=False),
        *_catalog_snapshot_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "direction",
            "scan_date",
            "sequence_number",
            name="uq_scan_events_direction_day_seq",
        ),
        sa.CheckConstraint(
            "direction IN ('RECEIVING', 'SHIPPING')",
            name="ck_scan_events_direction",
        ),
    )

    # Per-user history lookups: WHERE direction AND username ORDER BY scanned_at DESC
    op.create_index(
        "idx_scan_events_user_history",
        "scan_events",
        ["direction", "username", sa.text("scanned_at DESC")],
    )

    op.create_table(
        "stock_summaries",
        sa.Column("barcode", sa.String(64), nullable=False),
        sa.Column("on_hand", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("barcode"),
        sa.CheckConstraint("on_hand >= 0", name="ck_stock_summaries_on_hand"),
    )


def downgrade() -> None:
    """Drop all three tables. Ledger history is lost."""
    op.drop_table("stock_summaries")
    op.drop_index("idx_scan_events_user_history", table_name="scan_events")
    op.drop_table("scan_events")
    op.drop_table("master_catalog")
