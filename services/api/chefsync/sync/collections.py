"""Generic synced collection.

Each of the six entity collections is described by a `SyncedCollection`:
the ORM model holding its rows, the Pydantic schema whose declared fields are
the canonical set, and the collection's quota/soft-delete policy. All read
and write helpers below are written once against that descriptor.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError
from pydantic.alias_generators import to_camel
from sqlalchemy import select, delete, func, or_, and_
from sqlalchemy.orm import Session

from ..core.time import to_iso
from ..errors import NotFound
from ..models import (
    InventoryItem,
    SavedRecipe,
    MealPlan,
    ShoppingItem,
    CookwareItem,
    StorageLocation,
)
from ..schemas import (
    SyncItemBase,
    InventoryItemIn,
    RecipeIn,
    MealPlanIn,
    ShoppingItemIn,
    CookwareItemIn,
    CustomLocationIn,
)
from .cursor import Cursor, encode_cursor

# Envelope fields handled by the engine rather than stored as columns
ENVELOPE_FIELDS = ("id", "updated_at")


@dataclass(frozen=True)
class SyncedCollection:
    section: str
    model: type
    schema: type[SyncItemBase]
    # error code raised when the plan limit is hit; None means ungated
    quota_code: Optional[str] = None
    soft_delete: bool = False

    @property
    def canonical_fields(self) -> list[str]:
        return [name for name in self.schema.model_fields if name not in ENVELOPE_FIELDS]


COLLECTIONS: dict[str, SyncedCollection] = {
    c.section: c
    for c in (
        SyncedCollection("inventory", InventoryItem, InventoryItemIn, quota_code="PANTRY_LIMIT_REACHED", soft_delete=True),
        SyncedCollection("recipes", SavedRecipe, RecipeIn),
        SyncedCollection("mealPlans", MealPlan, MealPlanIn),
        SyncedCollection("shoppingList", ShoppingItem, ShoppingItemIn),
        SyncedCollection("cookware", CookwareItem, CookwareItemIn, quota_code="COOKWARE_LIMIT_REACHED"),
        SyncedCollection("customLocations", StorageLocation, CustomLocationIn),
    )
}


def get_collection(section: str) -> SyncedCollection:
    coll = COLLECTIONS.get(section)
    if coll is None:
        raise NotFound(f"Unknown sync section: {section}", code="UNKNOWN_SECTION", details={"section": section})
    return coll


# --- Validation / wire format ---

def validate_item(coll: SyncedCollection, raw: Any) -> SyncItemBase:
    """Validate one wire item. Raises pydantic.ValidationError."""
    item = coll.schema.model_validate(raw)
    if item.id is None:
        # only customLocations allow a missing id
        item.id = secrets.token_hex(12)
    return item


def _wire_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_iso(value)
    return value


def to_wire(coll: SyncedCollection, row) -> dict[str, Any]:
    """Flatten a stored row back into the client's item shape.

    Extension bag first, canonical fields on top, then the envelope.
    """
    out: dict[str, Any] = dict(row.extra_data or {})
    for name in coll.canonical_fields:
        out[to_camel(name)] = _wire_value(getattr(row, name))
    out["id"] = row.item_id
    out["updatedAt"] = to_iso(row.updated_at)
    return out


def _column_value(coll: SyncedCollection, name: str, value: Any) -> Any:
    # explicit null on a NOT NULL column falls back to the column default
    if value is None:
        column = coll.model.__table__.c[name]
        if not column.nullable and column.default is not None and column.default.is_scalar:
            return column.default.arg
    return value


def canonical_values(coll: SyncedCollection, item: SyncItemBase) -> dict[str, Any]:
    """Canonical fields the client actually sent.

    For soft-delete collections `deleted_at` is always written, so a write
    without `deletedAt` restores a deleted item.
    """
    sent = item.model_fields_set
    values = {
        name: _column_value(coll, name, getattr(item, name))
        for name in coll.canonical_fields
        if name in sent
    }
    if coll.soft_delete:
        values["deleted_at"] = item.deleted_at
    return values


# --- Reads ---

def _active(coll: SyncedCollection, stmt, include_deleted: bool):
    if coll.soft_delete and not include_deleted:
        stmt = stmt.where(coll.model.deleted_at.is_(None))
    return stmt


def get_item(db: Session, coll: SyncedCollection, user_id: str, item_id: str):
    model = coll.model
    return db.execute(
        select(model).where(model.user_id == user_id, model.item_id == item_id)
    ).scalar_one_or_none()


def count_items(db: Session, coll: SyncedCollection, user_id: str, *, include_deleted: bool = False) -> int:
    model = coll.model
    stmt = select(func.count(model.id)).where(model.user_id == user_id)
    stmt = _active(coll, stmt, include_deleted)
    return db.execute(stmt).scalar_one()


def list_all(db: Session, coll: SyncedCollection, user_id: str, *, include_deleted: bool = False) -> list:
    model = coll.model
    stmt = select(model).where(model.user_id == user_id).order_by(model.updated_at, model.id)
    stmt = _active(coll, stmt, include_deleted)
    return list(db.execute(stmt).scalars().all())


def list_page(
    db: Session,
    coll: SyncedCollection,
    user_id: str,
    *,
    cursor: Optional[Cursor],
    limit: int,
) -> tuple[list, Optional[str]]:
    """One page ordered by (updated_at, id), plus the cursor for the next one.

    Fetches limit+1 rows to know whether another page exists.
    """
    model = coll.model
    stmt = select(model).where(model.user_id == user_id)
    stmt = _active(coll, stmt, include_deleted=False)
    if cursor is not None:
        stmt = stmt.where(
            or_(
                model.updated_at > cursor.updated_at,
                and_(model.updated_at == cursor.updated_at, model.id > cursor.id),
            )
        )
    stmt = stmt.order_by(model.updated_at, model.id).limit(limit + 1)
    rows = list(db.execute(stmt).scalars().all())

    next_cursor = None
    if len(rows) > limit:
        rows = rows[:limit]
        last = rows[-1]
        next_cursor = encode_cursor(last.updated_at, last.id)
    return rows, next_cursor


# --- Writes (caller owns the transaction) ---

def insert_item(db: Session, coll: SyncedCollection, user_id: str, item: SyncItemBase, stamp: datetime):
    row = coll.model(
        user_id=user_id,
        item_id=item.item_id,
        updated_at=stamp,
        extra_data=dict(item.model_extra or {}),
        **canonical_values(coll, item),
    )
    db.add(row)
    return row


def apply_item(coll: SyncedCollection, row, item: SyncItemBase, stamp: datetime, *, merge_extras: bool = False):
    """Overwrite the fields present in `item` and restamp the row.

    The extension bag is replaced by the item's extras, or merged key by key
    when `merge_extras` is set.
    """
    for name, value in canonical_values(coll, item).items():
        setattr(row, name, value)

    extras = dict(item.model_extra or {})
    if merge_extras:
        bag = dict(row.extra_data or {})
        bag.update(extras)
        row.extra_data = bag
    else:
        row.extra_data = extras
    row.updated_at = stamp
    return row


def delete_item(db: Session, coll: SyncedCollection, user_id: str, item_id: str) -> bool:
    model = coll.model
    result = db.execute(delete(model).where(model.user_id == user_id, model.item_id == item_id))
    return (result.rowcount or 0) > 0


def delete_all(db: Session, coll: SyncedCollection, user_id: str) -> int:
    model = coll.model
    result = db.execute(delete(model).where(model.user_id == user_id))
    return result.rowcount or 0


def validate_many(coll: SyncedCollection, raw_items: list) -> tuple[list[SyncItemBase], list[dict]]:
    """Validate every item; returns (items, pydantic error dicts with index-prefixed loc)."""
    items, errors = [], []
    for index, raw in enumerate(raw_items):
        try:
            items.append(validate_item(coll, raw))
        except ValidationError as e:
            for err in e.errors():
                errors.append({"loc": (index, *err.get("loc", ())), "msg": err.get("msg", "invalid")})
    return items, errors


def dedupe_last_wins(items: list[SyncItemBase]) -> list[SyncItemBase]:
    """Collapse duplicate ids to their last occurrence, keeping first-seen order."""
    by_id: dict[str, SyncItemBase] = {}
    for item in items:
        by_id[item.item_id] = item
    return list(by_id.values())


def replace_all(db: Session, coll: SyncedCollection, user_id: str, items: list[SyncItemBase], stamp: datetime) -> int:
    delete_all(db, coll, user_id)
    for item in items:
        insert_item(db, coll, user_id, item, stamp)
    db.flush()
    return len(items)
