"""Initial warehouse inventory schema

Revision ID: 20261017_initial
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261017_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
    ]


def upgrade():
    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(32), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("companies", schema=None) as batch_op:
        batch_op.create_index("ix_companies_code", ["code"], unique=True)
        batch_op.create_index("ix_companies_is_active", ["is_active"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sku", sa.String(64), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("variants", sa.JSON(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("minimum_quantity", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_products_company_name", ["company_id", "name"], unique=False)
        batch_op.create_index("ix_products_company_active", ["company_id", "is_active"], unique=False)

    op.create_table(
        "inventory_lots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("variant_attribute", sa.String(128), nullable=True),
        sa.Column("variant_value", sa.String(128), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("received_date", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("note", sa.String(255), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="ck_inventory_lots_quantity_positive"),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("inventory_lots", schema=None) as batch_op:
        batch_op.create_index("ix_inventory_lots_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_inventory_lots_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_inventory_lots_received_date", ["received_date"], unique=False)
        batch_op.create_index(
            "ix_lots_product_company_variant_received",
            ["product_id", "company_id", "variant_attribute", "variant_value", "received_date"],
            unique=False,
        )

    op.create_table(
        "check_in_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("request_number", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("requested_products", sa.JSON(), nullable=False),
        sa.Column("amended_products", sa.JSON(), nullable=True),
        sa.Column("was_amended", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("amendment_notes", sa.Text(), nullable=True),
        sa.Column("approved_product_ids", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("requested_by", sa.Integer(), nullable=True),
        sa.Column("reviewed_by", sa.Integer(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "request_number", name="uq_check_ins_company_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("check_in_requests", schema=None) as batch_op:
        batch_op.create_index("ix_check_in_requests_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_check_in_requests_status", ["status"], unique=False)
        batch_op.create_index("ix_check_in_requests_reviewed_at", ["reviewed_at"], unique=False)
        batch_op.create_index("ix_check_ins_company_status_reviewed", ["company_id", "status", "reviewed_at"], unique=False)

    op.create_table(
        "check_out_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("request_number", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("requested_items", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("requested_by", sa.Integer(), nullable=True),
        sa.Column("reviewed_by", sa.Integer(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "request_number", name="uq_check_outs_company_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("check_out_requests", schema=None) as batch_op:
        batch_op.create_index("ix_check_out_requests_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_check_out_requests_status", ["status"], unique=False)
        batch_op.create_index("ix_check_out_requests_reviewed_at", ["reviewed_at"], unique=False)
        batch_op.create_index("ix_check_outs_company_status_reviewed", ["company_id", "status", "reviewed_at"], unique=False)

    op.create_table(
        "shipments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("shipment_number", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("destination_address", sa.Text(), nullable=False),
        sa.Column("destination_contact", sa.String(255), nullable=True),
        sa.Column("destination_phone", sa.String(64), nullable=True),
        sa.Column("carrier", sa.String(128), nullable=True),
        sa.Column("tracking_number", sa.String(128), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("shipment_date", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("shipped_by", sa.Integer(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "shipment_number", name="uq_shipments_company_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("shipments", schema=None) as batch_op:
        batch_op.create_index("ix_shipments_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_shipments_status", ["status"], unique=False)
        batch_op.create_index("ix_shipments_created_at", ["created_at"], unique=False)
        batch_op.create_index("ix_shipments_company_status_created", ["company_id", "status", "created_at"], unique=False)

    op.create_table(
        "shipment_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shipment_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("variant_attribute", sa.String(128), nullable=True),
        sa.Column("variant_value", sa.String(128), nullable=True),
        sa.Column("variant_path", sa.String(512), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("consumed_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("shortfall_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["shipment_id"], ["shipments.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("shipment_items", schema=None) as batch_op:
        batch_op.create_index("ix_shipment_items_shipment_id", ["shipment_id"], unique=False)
        batch_op.create_index("ix_shipment_items_product_id", ["product_id"], unique=False)

    op.create_table(
        "reconciliation_reports",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("match_mode", sa.String(16), nullable=False, server_default="name"),
        sa.Column("rows", sa.JSON(), nullable=False),
        sa.Column("totals", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("applied_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("reconciliation_reports", schema=None) as batch_op:
        batch_op.create_index("ix_reconciliation_reports_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_recon_reports_company_created", ["company_id", "created_at"], unique=False)

    op.create_table(
        "document_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("document_type", sa.String(32), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "document_type", name="uq_doc_sequences_company_type"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("document_sequences", schema=None) as batch_op:
        batch_op.create_index("ix_document_sequences_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_document_sequences_document_type", ["document_type"], unique=False)

    op.create_table(
        "activity_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("event_category", sa.String(32), nullable=False),
        sa.Column("entity_type", sa.String(64), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("actor_user_id", sa.Integer(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("note", sa.String(255), nullable=True),
        sa.Column("payload", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("activity_events", schema=None) as batch_op:
        batch_op.create_index("ix_activity_events_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_activity_events_event_type", ["event_type"], unique=False)
        batch_op.create_index("ix_activity_events_event_category", ["event_category"], unique=False)
        batch_op.create_index("ix_activity_events_entity_type", ["entity_type"], unique=False)
        batch_op.create_index("ix_activity_events_entity_id", ["entity_id"], unique=False)
        batch_op.create_index("ix_activity_events_actor_user_id", ["actor_user_id"], unique=False)
        batch_op.create_index("ix_activity_events_occurred_at", ["occurred_at"], unique=False)
        batch_op.create_index("ix_activity_company_occurred", ["company_id", "occurred_at"], unique=False)


def downgrade():
    for table in (
        "activity_events",
        "document_sequences",
        "reconciliation_reports",
        "shipment_items",
        "shipments",
        "check_out_requests",
        "check_in_requests",
        "inventory_lots",
        "products",
        "companies",
    ):
        op.drop_table(table)
