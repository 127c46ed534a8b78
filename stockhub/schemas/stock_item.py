from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from stockhub.schemas.common import PaginationMeta


class StockItemFieldsIn(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    category: str | None = Field(default=None, max_length=120)
    sub_category: str | None = Field(
        default=None,
        max_length=120,
        validation_alias=AliasChoices("sub_category", "subCategory"),
    )
    unit_of_measure: str | None = Field(
        default=None,
        max_length=30,
        validation_alias=AliasChoices("unit_of_measure", "unitOfMeasure"),
    )
    unit_price: float | None = Field(default=None, ge=0, validation_alias=AliasChoices("unit_price", "unitPrice"))
    minimum_stock: float | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("minimum_stock", "minimumStock"),
    )
    maximum_stock: float | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("maximum_stock", "maximumStock"),
    )
    reorder_point: float | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("reorder_point", "reorderPoint"),
    )
    notes: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class StockItemCreateIn(StockItemFieldsIn):
    code: str = Field(min_length=1, max_length=60)
    name: str = Field(min_length=1, max_length=200)
    current_stock: float = Field(default=0, ge=0, validation_alias=AliasChoices("current_stock", "currentStock"))
    actor: str | None = Field(default=None, max_length=120)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("code cannot be empty")
        return cleaned


class StockItemUpdateIn(StockItemFieldsIn):
    is_active: bool | None = Field(default=None, validation_alias=AliasChoices("is_active", "isActive"))
    actor: str | None = Field(default=None, max_length=120)

    @field_validator("name", "unit_of_measure", "unit_price", "minimum_stock", "reorder_point", "is_active")
    @classmethod
    def reject_null_for_required_columns(cls, value):
        if value is None:
            raise ValueError("cannot be null; omit the field to keep the current value")
        return value

    @model_validator(mode="after")
    def validate_any_field_present(self) -> "StockItemUpdateIn":
        if not self.model_fields_set - {"actor"}:
            raise ValueError("At least one field must be provided")
        return self


class StockAdjustIn(BaseModel):
    qty_delta: float = Field(validation_alias=AliasChoices("qty_delta", "quantity"))
    reason: str = Field(default="manual_adjustment", min_length=3, max_length=50)
    actor: str | None = Field(default=None, max_length=120)

    @field_validator("qty_delta")
    @classmethod
    def validate_non_zero_qty_delta(cls, value: float) -> float:
        if value == 0:
            raise ValueError("qty_delta cannot be zero")
        return value

    model_config = ConfigDict(populate_by_name=True)


class StockImportIn(BaseModel):
    items: list[StockItemCreateIn] = Field(min_length=1, max_length=2000)
    mode: str = Field(default="upsert", pattern="^(create|upsert)$")
    actor: str | None = Field(default=None, max_length=120)


class StockItemOut(BaseModel):
    id: str
    outlet: str
    item_type: str
    code: str
    name: str
    category: str | None = None
    sub_category: str | None = None
    unit_of_measure: str
    unit_price: float
    current_stock: float
    minimum_stock: float
    maximum_stock: float | None = None
    reorder_point: float
    status: str
    is_active: bool
    notes: str | None = None
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class StockItemListOut(BaseModel):
    items: list[StockItemOut]
    pagination: PaginationMeta


class StockCategoriesOut(BaseModel):
    items: list[str]


class StockLowStockOut(BaseModel):
    items: list[StockItemOut]
