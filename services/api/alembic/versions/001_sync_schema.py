"""Sync schema: sessions, ledger, entity collections, KV sections

Revision ID: 001_sync_schema
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_sync_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _item_columns():
    """Columns shared by every synced collection table."""
    return [
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("item_id", sa.String(128), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("extra_data", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
    ]


def _item_indexes(table: str, prefix: str) -> None:
    op.create_unique_constraint(f"uq_{prefix}_user_item", table, ["user_id", "item_id"])
    op.create_index(f"ix_{prefix}_user_cursor", table, ["user_id", "updated_at", "id"])


def upgrade() -> None:
    # Sessions (written by the auth service)
    op.create_table(
        "user_sessions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("token_hash", sa.String(64), unique=True, nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_user_sessions_user_id", "user_sessions", ["user_id"])

    # Section timestamp ledger
    op.create_table(
        "user_sync_state",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), unique=True, nullable=False),
        sa.Column("section_updated_at", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "user_inventory_items",
        *_item_columns(),
        sa.Column("name", sa.String(300), nullable=False, server_default=""),
        sa.Column("barcode", sa.String(64), nullable=True),
        sa.Column("quantity", sa.Float, nullable=False, server_default="1"),
        sa.Column("unit", sa.String(40), nullable=False, server_default="unit"),
        sa.Column("storage_location", sa.String(80), nullable=False, server_default="pantry"),
        sa.Column("purchase_date", sa.String(40), nullable=True),
        sa.Column("expiration_date", sa.String(40), nullable=True),
        sa.Column("category", sa.String(80), nullable=False, server_default="other"),
        sa.Column("usda_category", sa.String(120), nullable=True),
        sa.Column("nutrition", postgresql.JSONB, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("image_uri", sa.Text, nullable=True),
        sa.Column("fdc_id", sa.Integer, nullable=True),
        sa.Column("serving_size", sa.String(80), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    _item_indexes("user_inventory_items", "inventory")

    op.create_table(
        "user_saved_recipes",
        *_item_columns(),
        sa.Column("title", sa.String(300), nullable=False, server_default=""),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("ingredients", postgresql.JSONB, nullable=True),
        sa.Column("instructions", postgresql.JSONB, nullable=True),
        sa.Column("prep_time", sa.Integer, nullable=True),
        sa.Column("cook_time", sa.Integer, nullable=True),
        sa.Column("servings", sa.Integer, nullable=True),
        sa.Column("image_uri", sa.Text, nullable=True),
        sa.Column("cloud_image_uri", sa.Text, nullable=True),
        sa.Column("nutrition", postgresql.JSONB, nullable=True),
        sa.Column("is_favorite", sa.Boolean, nullable=False, server_default=sa.false()),
    )
    _item_indexes("user_saved_recipes", "recipes")

    op.create_table(
        "user_meal_plans",
        *_item_columns(),
        sa.Column("date", sa.String(40), nullable=False, server_default=""),
        sa.Column("meals", postgresql.JSONB, nullable=True),
    )
    _item_indexes("user_meal_plans", "meal_plans")

    op.create_table(
        "user_shopping_items",
        *_item_columns(),
        sa.Column("name", sa.String(300), nullable=False, server_default=""),
        sa.Column("quantity", sa.Float, nullable=False, server_default="1"),
        sa.Column("unit", sa.String(40), nullable=False, server_default="unit"),
        sa.Column("is_checked", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("category", sa.String(80), nullable=True),
        sa.Column("recipe_id", sa.String(128), nullable=True),
    )
    _item_indexes("user_shopping_items", "shopping")

    op.create_table(
        "user_cookware_items",
        *_item_columns(),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("category", sa.String(80), nullable=True),
        sa.Column("alternatives", postgresql.JSONB, nullable=True),
    )
    _item_indexes("user_cookware_items", "cookware")

    op.create_table(
        "user_storage_locations",
        *_item_columns(),
        sa.Column("name", sa.String(200), nullable=False, server_default=""),
        sa.Column("type", sa.String(80), nullable=True),
    )
    _item_indexes("user_storage_locations", "locations")

    # Opaque KV sections
    op.create_table(
        "user_sync_kv",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("section", sa.String(40), nullable=False),
        sa.Column("data", postgresql.JSONB, nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "section", name="uq_sync_kv_user_section"),
    )


def downgrade() -> None:
    op.drop_table("user_sync_kv")
    op.drop_table("user_storage_locations")
    op.drop_table("user_cookware_items")
    op.drop_table("user_shopping_items")
    op.drop_table("user_meal_plans")
    op.drop_table("user_saved_recipes")
    op.drop_table("user_inventory_items")
    op.drop_table("user_sync_state")
    op.drop_table("user_sessions")
