"""POS initial schema: catalog, payment methods, sales, stock movements

Revision ID: 20261019_pos_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_pos_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price_cents", sa.Integer(), nullable=True),
        sa.Column("quantity_on_hand", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity_on_hand >= 0", name="ck_products_quantity_non_negative"),
        sa.UniqueConstraint("sku"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_products_name", "products", ["name"])
    op.create_index("ix_products_active_quantity", "products", ["is_active", "quantity_on_hand"])

    op.create_table(
        "payment_methods",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False, server_default="cash"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("requires_reference", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("code"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_payment_methods_is_active", "payment_methods", ["is_active"])

    op.create_table(
        "number_sequences",
        sa.Column("prefix", sa.String(length=16), primary_key=True),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default="1"),
    )

    op.create_table(
        "pos_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("transaction_number", sa.String(length=64), nullable=False),
        sa.Column("idempotency_key", sa.String(length=128), nullable=True),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("customer_phone", sa.String(length=64), nullable=True),
        sa.Column("customer_email", sa.String(length=255), nullable=True),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tax_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("discount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("paid_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("change_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(length=16), nullable=False, server_default="unpaid"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("cashier_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("voided_by_id", sa.Integer(), nullable=True),
        sa.Column("void_reason", sa.String(length=255), nullable=True),
        sa.CheckConstraint("total_cents >= 0", name="ck_pos_transactions_total_non_negative"),
        sa.UniqueConstraint("transaction_number"),
        sa.UniqueConstraint("idempotency_key"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_pos_transactions_customer_id", "pos_transactions", ["customer_id"])
    op.create_index("ix_pos_transactions_cashier_id", "pos_transactions", ["cashier_id"])
    op.create_index("ix_pos_transactions_status", "pos_transactions", ["status"])
    op.create_index("ix_pos_transactions_created_at", "pos_transactions", ["created_at"])
    op.create_index("ix_pos_transactions_status_created", "pos_transactions", ["status", "created_at"])
    op.create_index("ix_pos_transactions_payment_status", "pos_transactions", ["payment_status"])

    op.create_table(
        "pos_transaction_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("pos_transactions.id"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("product_sku", sa.String(length=64), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("discount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("line_total_cents", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity > 0", name="ck_pos_items_quantity_positive"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_pos_transaction_items_transaction_id", "pos_transaction_items", ["transaction_id"])
    op.create_index("ix_pos_transaction_items_product_id", "pos_transaction_items", ["product_id"])

    op.create_table(
        "pos_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("pos_transactions.id"), nullable=False),
        sa.Column("payment_method_id", sa.Integer(), sa.ForeignKey("payment_methods.id"), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("reference_number", sa.String(length=128), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="completed"),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("amount_cents > 0", name="ck_pos_payments_amount_positive"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_pos_payments_transaction_id", "pos_payments", ["transaction_id"])
    op.create_index("ix_pos_payments_payment_method_id", "pos_payments", ["payment_method_id"])
    op.create_index("ix_pos_payments_status", "pos_payments", ["status"])

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("movement_type", sa.String(length=16), nullable=False),
        sa.Column("quantity_delta", sa.Integer(), nullable=False),
        sa.Column("quantity_before", sa.Integer(), nullable=False),
        sa.Column("quantity_after", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("pos_transactions.id"), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_movements_product_id", "stock_movements", ["product_id"])
    op.create_index("ix_stock_movements_movement_type", "stock_movements", ["movement_type"])
    op.create_index("ix_stock_movements_actor_id", "stock_movements", ["actor_id"])
    op.create_index("ix_stock_movements_transaction_id", "stock_movements", ["transaction_id"])
    op.create_index("ix_stock_movements_occurred_at", "stock_movements", ["occurred_at"])
    op.create_index("ix_stock_movements_product_occurred", "stock_movements", ["product_id", "occurred_at"])


def downgrade():
    op.drop_table("stock_movements")
    op.drop_table("pos_payments")
    op.drop_table("pos_transaction_items")
    op.drop_table("pos_transactions")
    op.drop_table("number_sequences")
    op.drop_table("payment_methods")
    op.drop_table("products")
