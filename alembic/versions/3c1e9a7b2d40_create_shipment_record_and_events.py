"""create shipment record and shipment event tables

Revision ID: 3c1e9a7b2d40
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3c1e9a7b2d40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "shipment_record",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("shipment_id", sa.String(length=64), nullable=True),
        sa.Column("company_id", sa.String(length=64), nullable=False),
        sa.Column(
            "status",
            sa.String(length=16),
            nullable=False,
            server_default=sa.text("'draft'"),
        ),
        sa.Column(
            "creation_method",
            sa.String(length=16),
            nullable=False,
            server_default=sa.text("'quickship'"),
        ),
        sa.Column("shipment_info", sa.JSON(), nullable=False),
        sa.Column("ship_from", sa.JSON(), nullable=True),
        sa.Column("ship_to", sa.JSON(), nullable=True),
        sa.Column("packages", sa.JSON(), nullable=False),
        sa.Column("manual_rates", sa.JSON(), nullable=False),
        sa.Column("carrier", sa.String(length=255), nullable=True),
        sa.Column("carrier_details", sa.JSON(), nullable=False),
        sa.Column(
            "unit_system",
            sa.String(length=16),
            nullable=False,
            server_default=sa.text("'imperial'"),
        ),
        sa.Column("total_weight", sa.Numeric(15, 3), nullable=False, server_default=sa.text("0")),
        sa.Column("total_pieces", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_package_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_charges", sa.Numeric(15, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default=sa.text("'CAD'")),
        sa.Column("is_draft", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("draft_version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("booked_at", sa.DateTime(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("document_status", sa.String(length=255), nullable=True),
        sa.Column("last_converted_from", sa.String(length=16), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column(
            "created_by",
            sa.String(length=128),
            nullable=False,
            server_default=sa.text("'system'"),
        ),
        sa.Column(
            "last_changed_by",
            sa.String(length=128),
            nullable=False,
            server_default=sa.text("'system'"),
        ),
    )
    op.create_index(
        "ix_shipment_record_shipment_id",
        "shipment_record",
        ["shipment_id"],
        unique=True,
    )
    op.create_index(
        "ix_shipment_record_company_id",
        "shipment_record",
        ["company_id"],
        unique=False,
    )

    op.create_table(
        "shipment_event",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("record_key", sa.Integer(), sa.ForeignKey("shipment_record.id"), nullable=False),
        sa.Column("event_type", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("source", sa.String(length=16), nullable=False, server_default=sa.text("'system'")),
        sa.Column("user_id", sa.String(length=128), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_shipment_event_record_key",
        "shipment_event",
        ["record_key"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_shipment_event_record_key", table_name="shipment_event")
    op.drop_table("shipment_event")
    op.drop_index("ix_shipment_record_company_id", table_name="shipment_record")
    op.drop_index("ix_shipment_record_shipment_id", table_name="shipment_record")
    op.drop_table("shipment_record")
