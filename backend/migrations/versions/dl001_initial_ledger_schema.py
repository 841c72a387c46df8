"""Initial ledger schema: tenants, parties, stock ledger, documents, payments

Revision ID: dl001
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "dl001"
down_revision = None
branch_labels = None
depends_on = None


def _now():
    return sa.text("CURRENT_TIMESTAMP")


def _party_table(name):
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sqlite_autoincrement=True,
    )
    op.create_index(f"ix_{name}_tenant_id", name, ["tenant_id"], unique=False)
    op.create_index(f"ix_{name}_tenant_name", name, ["tenant_id", "name"], unique=False)


def _sales_line_columns():
    return [
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("stock_item_id", sa.Integer(), nullable=True),
        sa.Column("sku_snapshot", sa.String(length=64), nullable=True),
        sa.Column("name_snapshot", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("discount_cents", sa.Integer(), nullable=False),
        sa.Column("taxable", sa.Boolean(), nullable=False),
        sa.Column("is_vat_exempt", sa.Boolean(), nullable=False),
        sa.Column("line_total_cents", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["stock_item_id"], ["stock_items.id"]),
    ]


def _payment_table(name, party_column, party_table):
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column(party_column, sa.Integer(), nullable=False),
        sa.Column(f"{party_column[:-3]}_snapshot", sa.JSON(), nullable=True),
        sa.Column("payment_number", sa.String(length=64), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("unallocated_cents", sa.Integer(), nullable=False),
        sa.Column("method", sa.String(length=16), nullable=False),
        sa.Column("reference", sa.String(length=128), nullable=True),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("reversed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reversal_reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint([party_column], [f"{party_table}.id"]),
        sa.UniqueConstraint("tenant_id", "payment_number", name=f"uq_{name}_tenant_number"),
        sa.CheckConstraint("amount_cents > 0", name=f"ck_{name}_amount_positive"),
        sa.CheckConstraint("unallocated_cents >= 0", name=f"ck_{name}_unallocated_non_negative"),
        sqlite_autoincrement=True,
    )
    op.create_index(f"ix_{name}_tenant_id", name, ["tenant_id"], unique=False)
    op.create_index(f"ix_{name}_{party_column}", name, [party_column], unique=False)
    op.create_index(f"ix_{name}_status", name, ["status"], unique=False)


def _allocation_table(name, payment_table, document_column, document_table, prefix):
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("payment_id", sa.Integer(), nullable=False),
        sa.Column(document_column, sa.Integer(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("allocated_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column("reversed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["payment_id"], [f"{payment_table}.id"]),
        sa.ForeignKeyConstraint([document_column], [f"{document_table}.id"]),
        sa.CheckConstraint("amount_cents > 0", name=f"ck_{prefix}_allocations_amount_positive"),
        sqlite_autoincrement=True,
    )
    op.create_index(f"ix_{name}_payment_id", name, ["payment_id"], unique=False)
    op.create_index(f"ix_{name}_{document_column}", name, [document_column], unique=False)


def upgrade():
    # Tenancy
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.UniqueConstraint("code", name="uq_tenants_code"),
        sqlite_autoincrement=True,
    )
    _party_table("clients")
    _party_table("suppliers")

    # Stock ledger
    op.create_table(
        "stock_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("unit", sa.String(length=32), nullable=False),
        sa.Column("vat_rate_bps", sa.Integer(), nullable=False),
        sa.Column("is_vat_exempt", sa.Boolean(), nullable=False),
        sa.Column("track_inventory", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("on_hand", sa.Integer(), nullable=False),
        sa.Column("reserved", sa.Integer(), nullable=False),
        sa.Column("reorder_level", sa.Integer(), nullable=False),
        sa.Column("sale_price_cents", sa.Integer(), nullable=False),
        sa.Column("cost_price_cents", sa.Integer(), nullable=False),
        sa.Column("average_cost_cents", sa.Integer(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.UniqueConstraint("tenant_id", "sku", name="uq_stock_items_tenant_sku"),
        sa.CheckConstraint("on_hand >= 0", name="ck_stock_items_on_hand_non_negative"),
        sa.CheckConstraint("reserved >= 0", name="ck_stock_items_reserved_non_negative"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_items_tenant_id", "stock_items", ["tenant_id"], unique=False)
    op.create_index("ix_stock_items_tenant_name", "stock_items", ["tenant_id", "name"], unique=False)

    op.create_table(
        "inventory_movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("stock_item_id", sa.Integer(), nullable=False),
        sa.Column("source_type", sa.String(length=16), nullable=False),
        sa.Column("source_id", sa.Integer(), nullable=True),
        sa.Column("source_line_id", sa.Integer(), nullable=True),
        sa.Column("movement_type", sa.String(length=8), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_cost_cents", sa.Integer(), nullable=False),
        sa.Column("quantity_before", sa.Integer(), nullable=False),
        sa.Column("quantity_after", sa.Integer(), nullable=False),
        sa.Column("cost_before_cents", sa.Integer(), nullable=False),
        sa.Column("cost_after_cents", sa.Integer(), nullable=False),
        sa.Column("reverses_movement_id", sa.Integer(), nullable=True),
        sa.Column("needs_review", sa.Boolean(), nullable=False),
        sa.Column("review_reason", sa.String(length=255), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(["stock_item_id"], ["stock_items.id"]),
        sa.ForeignKeyConstraint(["reverses_movement_id"], ["inventory_movements.id"]),
        sa.UniqueConstraint("reverses_movement_id", name="uq_inventory_movements_reverses"),
        sa.CheckConstraint("quantity >= 0", name="ck_inventory_movements_quantity_non_negative"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_movements_tenant_id", "inventory_movements", ["tenant_id"], unique=False)
    op.create_index("ix_inventory_movements_stock_item_id", "inventory_movements", ["stock_item_id"], unique=False)
    op.create_index("ix_inventory_movements_item_id", "inventory_movements", ["stock_item_id", "id"], unique=False)
    op.create_index(
        "ix_inventory_movements_source",
        "inventory_movements",
        ["tenant_id", "source_type", "source_id"],
        unique=False,
    )

    # Document counters
    op.create_table(
        "document_counters",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("prefix", sa.String(length=32), nullable=False, server_default=""),
        sa.Column("padding", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.UniqueConstraint("tenant_id", "key", name="uq_document_counters_tenant_key"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_document_counters_tenant_id", "document_counters", ["tenant_id"], unique=False)

    # Purchasing: supplier bills before GRVs (GRVs point at their bill)
    op.create_table(
        "supplier_bills",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("bill_number", sa.String(length=64), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("supplier_snapshot", sa.JSON(), nullable=True),
        sa.Column("bill_date", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reference", sa.String(length=128), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False),
        sa.Column("vat_total_cents", sa.Integer(), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("paid_cents", sa.Integer(), nullable=False),
        sa.Column("posted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("posted_by_user_id", sa.Integer(), nullable=True),
        sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("voided_by_user_id", sa.Integer(), nullable=True),
        sa.Column("void_warning", sa.Text(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.UniqueConstraint("tenant_id", "bill_number", name="uq_supplier_bills_tenant_number"),
        sa.CheckConstraint("paid_cents >= 0", name="ck_supplier_bills_paid_non_negative"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_supplier_bills_tenant_id", "supplier_bills", ["tenant_id"], unique=False)
    op.create_index("ix_supplier_bills_supplier_id", "supplier_bills", ["supplier_id"], unique=False)
    op.create_index("ix_supplier_bills_status", "supplier_bills", ["status"], unique=False)
    op.create_index("ix_supplier_bills_tenant_status", "supplier_bills", ["tenant_id", "status"], unique=False)

    op.create_table(
        "grvs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("grv_number", sa.String(length=64), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=True),
        sa.Column("supplier_snapshot", sa.JSON(), nullable=True),
        sa.Column("reference_type", sa.String(length=32), nullable=True),
        sa.Column("reference_number", sa.String(length=128), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("posted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("posted_by_user_id", sa.Integer(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by_user_id", sa.Integer(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("billed_by_bill_id", sa.Integer(), nullable=True),
        sa.Column("requires_review", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False),
        sa.Column("discount_total_cents", sa.Integer(), nullable=False),
        sa.Column("vat_total_cents", sa.Integer(), nullable=False),
        sa.Column("grand_total_cents", sa.Integer(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.ForeignKeyConstraint(["billed_by_bill_id"], ["supplier_bills.id"]),
        sa.UniqueConstraint("tenant_id", "grv_number", name="uq_grvs_tenant_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_grvs_tenant_id", "grvs", ["tenant_id"], unique=False)
    op.create_index("ix_grvs_status", "grvs", ["status"], unique=False)
    op.create_index("ix_grvs_tenant_status", "grvs", ["tenant_id", "status"], unique=False)
    op.create_index("ix_grvs_supplier", "grvs", ["supplier_id"], unique=False)
    op.create_index("ix_grvs_billed_by_bill_id", "grvs", ["billed_by_bill_id"], unique=False)

    op.create_table(
        "grv_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("grv_id", sa.Integer(), nullable=False),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("stock_item_id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("unit", sa.String(length=32), nullable=False),
        sa.Column("vat_rate_bps", sa.Integer(), nullable=False),
        sa.Column("is_vat_exempt", sa.Boolean(), nullable=False),
        sa.Column("ordered_qty", sa.Integer(), nullable=False),
        sa.Column("received_qty", sa.Integer(), nullable=False),
        sa.Column("unit_cost_cents", sa.Integer(), nullable=False),
        sa.Column("discount_type", sa.String(length=16), nullable=False),
        sa.Column("discount_value", sa.Integer(), nullable=False),
        sa.Column("discount_cents", sa.Integer(), nullable=False),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False),
        sa.Column("vat_amount_cents", sa.Integer(), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("variance_reason", sa.String(length=32), nullable=False),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("inventory_movement_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["grv_id"], ["grvs.id"]),
        sa.ForeignKeyConstraint(["stock_item_id"], ["stock_items.id"]),
        sa.ForeignKeyConstraint(["inventory_movement_id"], ["inventory_movements.id"]),
        sa.UniqueConstraint("grv_id", "line_no", name="uq_grv_lines_grv_line_no"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_grv_lines_grv_id", "grv_lines", ["grv_id"], unique=False)
    op.create_index("ix_grv_lines_stock_item_id", "grv_lines", ["stock_item_id"], unique=False)

    op.create_table(
        "supplier_bill_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("bill_id", sa.Integer(), nullable=False),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("grv_id", sa.Integer(), nullable=False),
        sa.Column("grv_line_id", sa.Integer(), nullable=False),
        sa.Column("stock_item_id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_cost_cents", sa.Integer(), nullable=False),
        sa.Column("discount_cents", sa.Integer(), nullable=False),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False),
        sa.Column("vat_amount_cents", sa.Integer(), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["bill_id"], ["supplier_bills.id"]),
        sa.ForeignKeyConstraint(["grv_id"], ["grvs.id"]),
        sa.ForeignKeyConstraint(["grv_line_id"], ["grv_lines.id"]),
        sa.ForeignKeyConstraint(["stock_item_id"], ["stock_items.id"]),
        sa.UniqueConstraint("bill_id", "line_no", name="uq_supplier_bill_lines_bill_line_no"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_supplier_bill_lines_bill_id", "supplier_bill_lines", ["bill_id"], unique=False)
    op.create_index("ix_supplier_bill_lines_grv_id", "supplier_bill_lines", ["grv_id"], unique=False)

    # Sales: invoices before quotes (quotes point at their invoice)
    op.create_table(
        "sales_invoices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("invoice_number", sa.String(length=64), nullable=True),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("client_snapshot", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("vat_mode", sa.String(length=16), nullable=False),
        sa.Column("vat_rate_bps", sa.Integer(), nullable=False),
        sa.Column("sub_total_cents", sa.Integer(), nullable=False),
        sa.Column("vat_total_cents", sa.Integer(), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("amount_paid_cents", sa.Integer(), nullable=False),
        sa.Column("balance_due_cents", sa.Integer(), nullable=False),
        sa.Column("source_quote_id", sa.Integer(), nullable=True),
        sa.Column("payment_terms_days", sa.Integer(), nullable=False),
        sa.Column("issue_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("overdue_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.UniqueConstraint("tenant_id", "invoice_number", name="uq_sales_invoices_tenant_number"),
        sa.CheckConstraint("amount_paid_cents >= 0", name="ck_sales_invoices_paid_non_negative"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sales_invoices_tenant_id", "sales_invoices", ["tenant_id"], unique=False)
    op.create_index("ix_sales_invoices_client_id", "sales_invoices", ["client_id"], unique=False)
    op.create_index("ix_sales_invoices_status", "sales_invoices", ["status"], unique=False)
    op.create_index("ix_sales_invoices_source_quote_id", "sales_invoices", ["source_quote_id"], unique=False)
    op.create_index("ix_sales_invoices_tenant_status", "sales_invoices", ["tenant_id", "status"], unique=False)
    op.create_index("ix_sales_invoices_tenant_due", "sales_invoices", ["tenant_id", "due_date"], unique=False)

    op.create_table(
        "sales_invoice_lines",
        sa.Column("invoice_id", sa.Integer(), nullable=False),
        *_sales_line_columns(),
        sa.ForeignKeyConstraint(["invoice_id"], ["sales_invoices.id"]),
        sa.UniqueConstraint("invoice_id", "line_no", name="uq_sales_invoice_lines_invoice_line_no"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sales_invoice_lines_invoice_id", "sales_invoice_lines", ["invoice_id"], unique=False)

    op.create_table(
        "sales_quotes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("quote_number", sa.String(length=64), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("client_snapshot", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("vat_mode", sa.String(length=16), nullable=False),
        sa.Column("vat_rate_bps", sa.Integer(), nullable=False),
        sa.Column("sub_total_cents", sa.Integer(), nullable=False),
        sa.Column("vat_total_cents", sa.Integer(), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expired_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("related_invoice_id", sa.Integer(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.ForeignKeyConstraint(["related_invoice_id"], ["sales_invoices.id"]),
        sa.UniqueConstraint("tenant_id", "quote_number", name="uq_sales_quotes_tenant_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sales_quotes_tenant_id", "sales_quotes", ["tenant_id"], unique=False)
    op.create_index("ix_sales_quotes_client_id", "sales_quotes", ["client_id"], unique=False)
    op.create_index("ix_sales_quotes_status", "sales_quotes", ["status"], unique=False)
    op.create_index("ix_sales_quotes_tenant_status", "sales_quotes", ["tenant_id", "status"], unique=False)

    op.create_table(
        "sales_quote_lines",
        sa.Column("quote_id", sa.Integer(), nullable=False),
        *_sales_line_columns(),
        sa.ForeignKeyConstraint(["quote_id"], ["sales_quotes.id"]),
        sa.UniqueConstraint("quote_id", "line_no", name="uq_sales_quote_lines_quote_line_no"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sales_quote_lines_quote_id", "sales_quote_lines", ["quote_id"], unique=False)

    # Payments
    _payment_table("customer_payments", "client_id", "clients")
    _allocation_table("customer_payment_allocations", "customer_payments", "invoice_id", "sales_invoices", "customer")
    _payment_table("supplier_payments", "supplier_id", "suppliers")
    _allocation_table("supplier_payment_allocations", "supplier_payments", "bill_id", "supplier_bills", "supplier")


def downgrade():
    for table in (
        "supplier_payment_allocations",
        "supplier_payments",
        "customer_payment_allocations",
        "customer_payments",
        "sales_quote_lines",
        "sales_quotes",
        "sales_invoice_lines",
        "sales_invoices",
        "supplier_bill_lines",
        "grv_lines",
        "grvs",
        "supplier_bills",
        "document_counters",
        "inventory_movements",
        "stock_items",
        "suppliers",
        "clients",
        "tenants",
    ):
        op.drop_table(table)
