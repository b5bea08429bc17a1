"""Create goods receipt, source document and stock tables.

Revision ID: 5b1e2c7d9a40
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision = "5b1e2c7d9a40"
down_revision = None
branch_labels = None
depends_on = None


def _table_exists(table_name: str) -> bool:
    bind = op.get_bind()
    insp = inspect(bind)
    return bool(insp.has_table(table_name))


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    # Enum columns are stored as VARCHAR (native_enum=False on the models).
    if not _table_exists("materials"):
        op.create_table(
            "materials",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("kind", sa.String(length=7), nullable=False),
            sa.Column("item_code", sa.String(length=64), nullable=True),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("uom", sa.String(length=16), nullable=False),
            sa.Column("quantity", sa.Float(), nullable=False),
            sa.Column("per_unit_price", sa.Float(), nullable=False),
            *_timestamps(),
            sa.UniqueConstraint("kind", "name", name="uq_materials_kind_name"),
        )
        op.create_index("ix_materials_id", "materials", ["id"])
        op.create_index("ix_materials_kind", "materials", ["kind"])
        op.create_index("ix_materials_item_code", "materials", ["item_code"])
        op.create_index("ix_materials_name", "materials", ["name"])
        op.create_index("ix_materials_kind_name", "materials", ["kind", "name"])

    if not _table_exists("material_price_history"):
        op.create_table(
            "material_price_history",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("material_id", sa.Integer(), sa.ForeignKey("materials.id", ondelete="CASCADE"), nullable=False),
            sa.Column("sequence", sa.Integer(), nullable=False),
            sa.Column("entry_type", sa.String(length=13), nullable=False),
            sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("supplier_name", sa.String(length=255), nullable=True),
            sa.Column("reference_number", sa.String(length=64), nullable=True),
            sa.Column("receipt_number", sa.String(length=64), nullable=True),
            sa.Column("quantity", sa.Float(), nullable=False),
            sa.Column("unit_price", sa.Float(), nullable=False),
            sa.Column("total_value", sa.Float(), nullable=False),
            sa.UniqueConstraint("material_id", "sequence", name="uq_material_price_history_seq"),
        )
        op.create_index("ix_material_price_history_id", "material_price_history", ["id"])
        op.create_index("ix_material_price_history_entry_type", "material_price_history", ["entry_type"])
        op.create_index(
            "ix_material_price_history_material",
            "material_price_history",
            ["material_id", "sequence"],
        )

    if not _table_exists("product_carton_mappings"):
        op.create_table(
            "product_carton_mappings",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("product_name", sa.String(length=255), nullable=False),
            sa.Column("units_per_carton", sa.Integer(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_product_carton_mappings_id", "product_carton_mappings", ["id"])
        op.create_index(
            "ix_product_carton_mappings_product_name",
            "product_carton_mappings",
            ["product_name"],
            unique=True,
        )

    if not _table_exists("finished_good_stock"):
        op.create_table(
            "finished_good_stock",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("product_name", sa.String(length=255), nullable=False),
            sa.Column("item_code", sa.String(length=32), nullable=False),
            sa.Column("units_per_carton", sa.Integer(), nullable=False),
            sa.Column("available_cartons", sa.Float(), nullable=False),
            sa.Column("available_pieces", sa.Float(), nullable=False),
            sa.Column("broken_carton_pieces", sa.Float(), nullable=False),
            sa.Column("total_available", sa.Float(), nullable=False),
            sa.Column("own_unit_stock", sa.Float(), nullable=False),
            sa.Column("jobber_stock", sa.Float(), nullable=False),
            sa.Column("last_updated_from", sa.String(length=64), nullable=True),
            *_timestamps(),
        )
        op.create_index("ix_finished_good_stock_id", "finished_good_stock", ["id"])
        op.create_index("ix_finished_good_stock_product_name", "finished_good_stock", ["product_name"], unique=True)
        op.create_index("ix_finished_good_stock_item_code", "finished_good_stock", ["item_code"], unique=True)

    if not _table_exists("finished_good_stock_history"):
        op.create_table(
            "finished_good_stock_history",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "stock_id",
                sa.Integer(),
                sa.ForeignKey("finished_good_stock.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("action", sa.String(length=8), nullable=False),
            sa.Column("unit_type", sa.String(length=8), nullable=True),
            sa.Column("unit", sa.String(length=7), nullable=False),
            sa.Column("quantity", sa.Float(), nullable=False),
            sa.Column("reference_number", sa.String(length=64), nullable=True),
            sa.Column("updated_by", sa.String(length=128), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_finished_good_stock_history_id", "finished_good_stock_history", ["id"])
        op.create_index(
            "ix_finished_good_history_stock",
            "finished_good_stock_history",
            ["stock_id", "occurred_at"],
        )

    if not _table_exists("purchase_orders"):
        op.create_table(
            "purchase_orders",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("po_number", sa.String(length=64), nullable=False),
            sa.Column("supplier_name", sa.String(length=255), nullable=False),
            sa.Column("status", sa.String(length=9), nullable=False),
            sa.Column("order_date", sa.Date(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            *_timestamps(),
        )
        op.create_index("ix_purchase_orders_id", "purchase_orders", ["id"])
        op.create_index("ix_purchase_orders_po_number", "purchase_orders", ["po_number"], unique=True)
        op.create_index("ix_purchase_orders_status", "purchase_orders", ["status"])

    if not _table_exists("purchase_order_lines"):
        op.create_table(
            "purchase_order_lines",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "purchase_order_id",
                sa.Integer(),
                sa.ForeignKey("purchase_orders.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("material_id", sa.Integer(), sa.ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False),
            sa.Column("quantity", sa.Float(), nullable=False),
            sa.Column("extra_allowed_qty", sa.Float(), nullable=False),
            sa.Column("rate", sa.Float(), nullable=False),
            sa.Column("line_total", sa.Float(), nullable=False),
            sa.Column("received_qty", sa.Float(), nullable=False),
            sa.Column("extra_received_qty", sa.Float(), nullable=False),
            sa.Column("balance_qty", sa.Float(), nullable=False),
        )
        op.create_index("ix_purchase_order_lines_id", "purchase_order_lines", ["id"])
        op.create_index("ix_purchase_order_lines_material_id", "purchase_order_lines", ["material_id"])
        op.create_index(
            "ix_purchase_order_lines_po_material",
            "purchase_order_lines",
            ["purchase_order_id", "material_id"],
        )

    if not _table_exists("delivery_challans"):
        op.create_table(
            "delivery_challans",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("dc_no", sa.String(length=64), nullable=False),
            sa.Column("unit_type", sa.String(length=8), nullable=False),
            sa.Column("supplier_name", sa.String(length=255), nullable=True),
            sa.Column("person_name", sa.String(length=255), nullable=True),
            sa.Column("status", sa.String(length=9), nullable=False),
            sa.Column("dc_date", sa.Date(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            *_timestamps(),
        )
        op.create_index("ix_delivery_challans_id", "delivery_challans", ["id"])
        op.create_index("ix_delivery_challans_dc_no", "delivery_challans", ["dc_no"], unique=True)
        op.create_index("ix_delivery_challans_status", "delivery_challans", ["status"])

    if not _table_exists("challan_products"):
        op.create_table(
            "challan_products",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "challan_id",
                sa.Integer(),
                sa.ForeignKey("delivery_challans.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("position", sa.Integer(), nullable=False),
            sa.Column("product_name", sa.String(length=255), nullable=False),
            sa.Column("carton_qty", sa.Float(), nullable=False),
        )
        op.create_index("ix_challan_products_id", "challan_products", ["id"])
        op.create_index("ix_challan_products_challan", "challan_products", ["challan_id", "position"])

    if not _table_exists("challan_materials"):
        op.create_table(
            "challan_materials",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "product_id",
                sa.Integer(),
                sa.ForeignKey("challan_products.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("material_name", sa.String(length=255), nullable=False),
            sa.Column("qty_per_carton", sa.Float(), nullable=False),
            sa.Column("total_qty", sa.Float(), nullable=False),
            sa.Column("received_qty", sa.Float(), nullable=False),
            sa.Column("balance_qty", sa.Float(), nullable=False),
        )
        op.create_index("ix_challan_materials_id", "challan_materials", ["id"])
        op.create_index("ix_challan_materials_product", "challan_materials", ["product_id"])

    if not _table_exists("goods_receipts"):
        op.create_table(
            "goods_receipts",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("grn_number", sa.String(length=32), nullable=False),
            sa.Column("source_type", sa.String(length=14), nullable=False),
            sa.Column(
                "purchase_order_id",
                sa.Integer(),
                sa.ForeignKey("purchase_orders.id", ondelete="RESTRICT"),
                nullable=True,
            ),
            sa.Column(
                "delivery_challan_id",
                sa.Integer(),
                sa.ForeignKey("delivery_challans.id", ondelete="RESTRICT"),
                nullable=True,
            ),
            sa.Column("reference_number", sa.String(length=64), nullable=False),
            sa.Column("supplier_name", sa.String(length=255), nullable=True),
            sa.Column("status", sa.String(length=16), nullable=False),
            sa.Column("received_by", sa.String(length=128), nullable=False),
            sa.Column("date_received", sa.Date(), nullable=False),
            sa.Column("reference_type", sa.String(length=16), nullable=True),
            sa.Column("invoice_no", sa.String(length=64), nullable=True),
            sa.Column("invoice_date", sa.Date(), nullable=True),
            sa.Column("dc_no", sa.String(length=64), nullable=True),
            sa.Column("dc_date", sa.Date(), nullable=True),
            sa.Column("remarks", sa.Text(), nullable=True),
            sa.Column("is_locked", sa.Boolean(), nullable=False),
            sa.Column("lock_note", sa.String(length=255), nullable=True),
            sa.Column("product_name", sa.String(length=255), nullable=True),
            sa.Column("cartons_sent", sa.Float(), nullable=True),
            sa.Column("cartons_returned", sa.Float(), nullable=True),
            sa.Column("carton_balance", sa.Float(), nullable=True),
            *_timestamps(),
        )
        op.create_index("ix_goods_receipts_id", "goods_receipts", ["id"])
        op.create_index("ix_goods_receipts_grn_number", "goods_receipts", ["grn_number"], unique=True)
        op.create_index("ix_goods_receipts_source_type", "goods_receipts", ["source_type"])
        op.create_index("ix_goods_receipts_reference_number", "goods_receipts", ["reference_number"])
        op.create_index("ix_goods_receipts_status", "goods_receipts", ["status"])
        op.create_index("ix_goods_receipts_is_locked", "goods_receipts", ["is_locked"])
        op.create_index("ix_goods_receipts_po", "goods_receipts", ["purchase_order_id", "created_at"])
        op.create_index("ix_goods_receipts_challan", "goods_receipts", ["delivery_challan_id", "created_at"])

    if not _table_exists("goods_receipt_lines"):
        op.create_table(
            "goods_receipt_lines",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "goods_receipt_id",
                sa.Integer(),
                sa.ForeignKey("goods_receipts.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("material_id", sa.Integer(), sa.ForeignKey("materials.id", ondelete="RESTRICT"), nullable=True),
            sa.Column("material_name", sa.String(length=255), nullable=True),
            sa.Column(
                "challan_product_id",
                sa.Integer(),
                sa.ForeignKey("challan_products.id", ondelete="SET NULL"),
                nullable=True,
            ),
            sa.Column("ordered_quantity", sa.Float(), nullable=False),
            sa.Column("received_quantity", sa.Float(), nullable=False),
            sa.Column("extra_received_qty", sa.Float(), nullable=False),
            sa.Column("damaged_quantity", sa.Float(), nullable=False),
            sa.Column("unit_price", sa.Float(), nullable=False),
            sa.Column("total_price", sa.Float(), nullable=False),
            sa.Column("last_unit_price", sa.Float(), nullable=True),
            sa.Column("price_difference", sa.Float(), nullable=False),
            sa.Column("price_difference_pct", sa.Float(), nullable=False),
            sa.Column("previous_received", sa.Float(), nullable=False),
            sa.Column("previous_extra_received", sa.Float(), nullable=False),
            sa.Column("total_received", sa.Float(), nullable=False),
            sa.Column("balance_quantity", sa.Float(), nullable=False),
            sa.Column("used_qty", sa.Float(), nullable=True),
            sa.Column("remaining_qty", sa.Float(), nullable=True),
            sa.Column("remarks", sa.Text(), nullable=True),
        )
        op.create_index("ix_goods_receipt_lines_id", "goods_receipt_lines", ["id"])
        op.create_index("ix_goods_receipt_lines_receipt", "goods_receipt_lines", ["goods_receipt_id"])
        op.create_index("ix_goods_receipt_lines_material", "goods_receipt_lines", ["material_id"])

    if not _table_exists("goods_receipt_product_cartons"):
        op.create_table(
            "goods_receipt_product_cartons",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "goods_receipt_id",
                sa.Integer(),
                sa.ForeignKey("goods_receipts.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column(
                "challan_product_id",
                sa.Integer(),
                sa.ForeignKey("challan_products.id", ondelete="SET NULL"),
                nullable=True,
            ),
            sa.Column("product_name", sa.String(length=255), nullable=False),
            sa.Column("cartons_received", sa.Float(), nullable=False),
        )
        op.create_index("ix_goods_receipt_product_cartons_id", "goods_receipt_product_cartons", ["id"])
        op.create_index(
            "ix_goods_receipt_product_cartons_receipt",
            "goods_receipt_product_cartons",
            ["goods_receipt_id"],
        )

    if not _table_exists("damaged_stock"):
        op.create_table(
            "damaged_stock",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "goods_receipt_id",
                sa.Integer(),
                sa.ForeignKey("goods_receipts.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("reference_number", sa.String(length=64), nullable=False),
            sa.Column("product_name", sa.String(length=255), nullable=True),
            sa.Column("material_name", sa.String(length=255), nullable=False),
            sa.Column("received_qty", sa.Float(), nullable=False),
            sa.Column("damaged_qty", sa.Float(), nullable=False),
            sa.Column("status", sa.String(length=8), nullable=False),
            sa.Column("entered_by", sa.String(length=128), nullable=True),
            sa.Column("remarks", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_damaged_stock_id", "damaged_stock", ["id"])
        op.create_index("ix_damaged_stock_status", "damaged_stock", ["status"])
        op.create_index("ix_damaged_stock_receipt", "damaged_stock", ["goods_receipt_id"])

    if not _table_exists("receipt_effects"):
        op.create_table(
            "receipt_effects",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "goods_receipt_id",
                sa.Integer(),
                sa.ForeignKey("goods_receipts.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("effect_type", sa.String(length=14), nullable=False),
            sa.Column("payload_json", sa.JSON(), nullable=False),
            sa.Column("status", sa.String(length=11), nullable=False),
            sa.Column("attempt_count", sa.Integer(), nullable=False),
            sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("last_error", sa.Text(), nullable=True),
            sa.Column("applied_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_receipt_effects_id", "receipt_effects", ["id"])
        op.create_index("ix_receipt_effects_effect_type", "receipt_effects", ["effect_type"])
        op.create_index("ix_receipt_effects_status", "receipt_effects", ["status"])
        op.create_index("ix_receipt_effects_status_next", "receipt_effects", ["status", "next_attempt_at"])
        op.create_index("ix_receipt_effects_receipt", "receipt_effects", ["goods_receipt_id"])

    if not _table_exists("audit_events"):
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("entity_type", sa.String(length=64), nullable=False),
            sa.Column("entity_id", sa.String(length=64), nullable=False),
            sa.Column("action", sa.String(length=64), nullable=False),
            sa.Column("actor", sa.String(length=128), nullable=True),
            sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("before", sa.JSON(), nullable=True),
            sa.Column("after", sa.JSON(), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
        )
        op.create_index("ix_audit_events_id", "audit_events", ["id"])
        op.create_index("ix_audit_events_entity_type", "audit_events", ["entity_type"])
        op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"])
        op.create_index("ix_audit_events_action", "audit_events", ["action"])
        op.create_index("ix_audit_events_occurred_at", "audit_events", ["occurred_at"])
        op.create_index("ix_audit_events_entity", "audit_events", ["entity_type", "entity_id"])
        op.create_index("ix_audit_events_time_desc", "audit_events", [sa.text("occurred_at DESC")])


def downgrade() -> None:
    for table_name in (
        "audit_events",
        "receipt_effects",
        "damaged_stock",
        "goods_receipt_product_cartons",
        "goods_receipt_lines",
        "goods_receipts",
        "challan_materials",
        "challan_products",
        "delivery_challans",
        "purchase_order_lines",
        "purchase_orders",
        "finished_good_stock_history",
        "finished_good_stock",
        "product_carton_mappings",
        "material_price_history",
        "materials",
    ):
        if _table_exists(table_name):
            op.drop_table(table_name)
