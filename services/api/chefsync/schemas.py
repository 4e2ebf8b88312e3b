"""Pydantic schemas for the ChefSync API.

Request/response models for:
- Synced entity items (canonical fields + extension bag via extra="allow")
- Entity write requests and results
- Account-wide sync, status, backup/restore
"""

from datetime import datetime
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# item_id column width
ITEM_ID_MAX_LENGTH = 128


# --- Synced items ---

class SyncItemBase(BaseModel):
    """Common envelope for an item in any synced collection.

    Declared fields are the canonical set; anything else the client sends is
    kept in `model_extra` and stored as the item's extension bag.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True, alias_generator=to_camel)

    id: Union[str, int]
    updated_at: Optional[datetime] = None

    @field_validator("id")
    @classmethod
    def _check_id(cls, v):
        if isinstance(v, str) and not v.strip():
            raise ValueError("id must not be empty")
        if v is not None and len(str(v)) > ITEM_ID_MAX_LENGTH:
            raise ValueError(f"id must be at most {ITEM_ID_MAX_LENGTH} characters")
        return v

    @property
    def item_id(self) -> str:
        return str(self.id)


class InventoryItemIn(SyncItemBase):
    name: str = Field(..., max_length=300)
    barcode: Optional[str] = Field(None, max_length=64)
    quantity: Optional[float] = None
    unit: Optional[str] = Field(None, max_length=40)
    storage_location: Optional[str] = Field(None, max_length=80)
    purchase_date: Optional[str] = Field(None, max_length=40)
    expiration_date: Optional[str] = Field(None, max_length=40)
    category: Optional[str] = Field(None, max_length=80)
    usda_category: Optional[str] = Field(None, max_length=120)
    nutrition: Optional[dict[str, Any]] = None
    notes: Optional[str] = None
    image_uri: Optional[str] = None
    fdc_id: Optional[int] = None
    serving_size: Optional[str] = Field(None, max_length=80)
    deleted_at: Optional[datetime] = None


class RecipeIn(SyncItemBase):
    title: str = Field(..., max_length=300)
    description: Optional[str] = None
    ingredients: Optional[Any] = None
    instructions: Optional[Any] = None
    prep_time: Optional[int] = None
    cook_time: Optional[int] = None
    servings: Optional[int] = None
    image_uri: Optional[str] = None
    cloud_image_uri: Optional[str] = None
    nutrition: Optional[dict[str, Any]] = None
    is_favorite: Optional[bool] = None


class MealPlanIn(SyncItemBase):
    date: str = Field(..., max_length=40)
    meals: Optional[Any] = None


class ShoppingItemIn(SyncItemBase):
    name: str = Field(..., max_length=300)
    quantity: Optional[float] = None
    unit: Optional[str] = Field(None, max_length=40)
    is_checked: Optional[bool] = None
    category: Optional[str] = Field(None, max_length=80)
    recipe_id: Optional[str] = Field(None, max_length=128)


class CookwareItemIn(SyncItemBase):
    name: Optional[str] = Field(None, max_length=200)
    category: Optional[str] = Field(None, max_length=80)
    alternatives: Optional[list[str]] = None


class CustomLocationIn(SyncItemBase):
    # Locations created offline may arrive without an id
    id: Optional[Union[str, int]] = None
    name: str = Field(..., max_length=200)
    type: Optional[str] = Field(None, max_length=80)


# --- KV sections ---

class PreferencesIn(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, alias_generator=to_camel)

    serving_size: Optional[int] = Field(None, ge=1, le=20)
    daily_meals: Optional[int] = Field(None, ge=1, le=10)
    dietary_restrictions: Optional[list[str]] = None
    cuisine_preferences: Optional[list[str]] = None
    storage_areas: Optional[list[str]] = None
    cooking_level: Optional[Literal["basic", "intermediate", "professional"]] = None
    expiration_alert_days: Optional[int] = Field(None, ge=1, le=30)


# --- Entity writes ---

class EntitySyncRequest(BaseModel):
    operation: Literal["create", "update", "delete"]
    data: dict[str, Any]
    clientTimestamp: Optional[datetime] = None


class EntityUpdateRequest(BaseModel):
    data: dict[str, Any]
    clientTimestamp: Optional[datetime] = None


class EntityDeleteData(BaseModel):
    id: Union[str, int]


class EntityDeleteRequest(BaseModel):
    data: EntityDeleteData


class EntityPage(BaseModel):
    items: list[dict[str, Any]]
    nextCursor: Optional[str] = None


# --- Account sync ---

class AccountSyncRequest(BaseModel):
    data: dict[str, Any]


class AccountSyncResult(BaseModel):
    syncedAt: str
    prefsSynced: bool
    prefsError: Optional[str] = None


class FailureOut(BaseModel):
    dataType: str
    operation: str
    errorMessage: str
    timestamp: str


class SyncStatusOut(BaseModel):
    lastSyncedAt: Optional[str]
    failedOperations24h: int
    recentFailures: list[FailureOut]
    isConsistent: bool
    dataTypes: dict[str, int]


# --- Backup / restore ---

class ImportRequest(BaseModel):
    # validated by the import engine, version first
    backup: dict[str, Any]
    mode: Literal["merge", "replace"]


class ImportResult(BaseModel):
    mode: str
    importedAt: str
    summary: dict[str, Any]
    warnings: Optional[list[str]] = None
