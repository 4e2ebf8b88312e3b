"""SQLAlchemy ORM models for ChefSync.

Tables:
- user_sessions: bearer-token sessions (default session backend, issued elsewhere)
- user_sync_state: per-user section timestamp ledger
- user_inventory_items, user_saved_recipes, user_meal_plans, user_shopping_items,
  user_cookware_items, user_storage_locations: synced entity collections
- user_sync_kv: opaque JSON sections (preferences, logs, ...)
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    String,
    Text,
    Integer,
    Float,
    Boolean,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base
from .core.time import utc_now
from .orm_types import JSONType, UTCDateTime


class UserSession(Base):
    """Session row written by the auth service; only read here."""
    __tablename__ = "user_sessions"
    __table_args__ = (
        Index("ix_user_sessions_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)


class SyncState(Base):
    """Section timestamp ledger, one row per user."""
    __tablename__ = "user_sync_state"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    # {section: ISO-8601}
    section_updated_at: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    last_synced_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)


class SyncedItemMixin:
    """Columns every synced collection shares.

    `id` is the surrogate key used as the cursor tiebreak; `item_id` is the
    client's identifier.
    """
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    item_id: Mapped[str] = mapped_column(String(128), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    # Extension bag: client fields outside the canonical set
    extra_data: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)


class InventoryItem(SyncedItemMixin, Base):
    __tablename__ = "user_inventory_items"
    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_inventory_user_item"),
        Index("ix_inventory_user_cursor", "user_id", "updated_at", "id"),
    )

    name: Mapped[str] = mapped_column(String(300), nullable=False, default="")
    barcode: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=1)
    unit: Mapped[str] = mapped_column(String(40), nullable=False, default="unit")
    storage_location: Mapped[str] = mapped_column(String(80), nullable=False, default="pantry")
    purchase_date: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    expiration_date: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    category: Mapped[str] = mapped_column(String(80), nullable=False, default="other")
    usda_category: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    nutrition: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_uri: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    fdc_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    serving_size: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)

    # Soft delete (inventory only)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)


class SavedRecipe(SyncedItemMixin, Base):
    __tablename__ = "user_saved_recipes"
    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_recipes_user_item"),
        Index("ix_recipes_user_cursor", "user_id", "updated_at", "id"),
    )

    title: Mapped[str] = mapped_column(String(300), nullable=False, default="")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ingredients: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
    instructions: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
    prep_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    cook_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    servings: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    image_uri: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cloud_image_uri: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    nutrition: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    is_favorite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class MealPlan(SyncedItemMixin, Base):
    __tablename__ = "user_meal_plans"
    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_meal_plans_user_item"),
        Index("ix_meal_plans_user_cursor", "user_id", "updated_at", "id"),
    )

    date: Mapped[str] = mapped_column(String(40), nullable=False, default="")
    meals: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)


class ShoppingItem(SyncedItemMixin, Base):
    __tablename__ = "user_shopping_items"
    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_shopping_user_item"),
        Index("ix_shopping_user_cursor", "user_id", "updated_at", "id"),
    )

    name: Mapped[str] = mapped_column(String(300), nullable=False, default="")
    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=1)
    unit: Mapped[str] = mapped_column(String(40), nullable=False, default="unit")
    is_checked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    category: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    recipe_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)


class CookwareItem(SyncedItemMixin, Base):
    __tablename__ = "user_cookware_items"
    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_cookware_user_item"),
        Index("ix_cookware_user_cursor", "user_id", "updated_at", "id"),
    )

    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    alternatives: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)


class StorageLocation(SyncedItemMixin, Base):
    """User-defined storage location (the customLocations section)."""
    __tablename__ = "user_storage_locations"
    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_locations_user_item"),
        Index("ix_locations_user_cursor", "user_id", "updated_at", "id"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    type: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)


class SyncKV(Base):
    """Opaque JSON section value keyed by (user, section)."""
    __tablename__ = "user_sync_kv"
    __table_args__ = (
        UniqueConstraint("user_id", "section", name="uq_sync_kv_user_section"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    section: Mapped[str] = mapped_column(String(40), nullable=False)
    data: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
