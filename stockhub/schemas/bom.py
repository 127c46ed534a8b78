from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from stockhub.schemas.common import PaginationMeta

_ITEM_TYPE_ALIASES = {
    "raw_material": "raw_material",
    "rawmaterial": "raw_material",
    "raw-material": "raw_material",
    "bom": "bom",
}


class BomItemIn(BaseModel):
    item_type: str = Field(default="raw_material", validation_alias=AliasChoices("item_type", "itemType"))
    material_code: str = Field(min_length=1, max_length=60, validation_alias=AliasChoices("material_code", "materialCode"))
    material_name: str = Field(min_length=1, max_length=200, validation_alias=AliasChoices("material_name", "materialName"))
    bom_code: str | None = Field(default=None, max_length=60, validation_alias=AliasChoices("bom_code", "bomCode"))
    quantity: float = Field(gt=0)
    unit_of_measure: str | None = Field(
        default=None,
        max_length=30,
        validation_alias=AliasChoices("unit_of_measure", "unitOfMeasure"),
    )
    unit_cost: float = Field(default=0, ge=0, validation_alias=AliasChoices("unit_cost", "unitCost"))

    @field_validator("item_type")
    @classmethod
    def normalize_item_type(cls, value: str) -> str:
        normalized = _ITEM_TYPE_ALIASES.get(value.strip().lower())
        if normalized is None:
            raise ValueError("item_type must be raw_material or bom")
        return normalized

    @model_validator(mode="after")
    def validate_sub_recipe_code(self) -> "BomItemIn":
        if self.item_type == "bom":
            if not self.bom_code:
                self.bom_code = self.material_code
            self.bom_code = self.bom_code.strip().upper()
        else:
            self.bom_code = None
        return self

    model_config = ConfigDict(populate_by_name=True)


class BomCreateIn(BaseModel):
    bom_code: str = Field(min_length=1, max_length=60, validation_alias=AliasChoices("bom_code", "bomCode"))
    product_name: str = Field(min_length=1, max_length=200, validation_alias=AliasChoices("product_name", "productName"))
    product_description: str | None = Field(
        default=None,
        validation_alias=AliasChoices("product_description", "productDescription"),
    )
    version: str = Field(default="1.0", max_length=20)
    effective_date: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("effective_date", "effectiveDate"),
    )
    status: str = Field(default="Active", pattern="^(Draft|Active|Inactive|Obsolete)$")
    items: list[BomItemIn] = Field(min_length=1)
    actor: str | None = Field(default=None, max_length=120)

    @field_validator("bom_code")
    @classmethod
    def normalize_bom_code(cls, value: str) -> str:
        cleaned = value.strip().upper()
        if not cleaned:
            raise ValueError("bom_code cannot be empty")
        return cleaned

    model_config = ConfigDict(populate_by_name=True)


class BomUpdateIn(BaseModel):
    product_name: str = Field(min_length=1, max_length=200, validation_alias=AliasChoices("product_name", "productName"))
    product_description: str | None = Field(
        default=None,
        validation_alias=AliasChoices("product_description", "productDescription"),
    )
    version: str = Field(default="1.0", max_length=20)
    effective_date: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("effective_date", "effectiveDate"),
    )
    status: str = Field(default="Active", pattern="^(Draft|Active|Inactive|Obsolete)$")
    items: list[BomItemIn] = Field(min_length=1)
    actor: str | None = Field(default=None, max_length=120)

    model_config = ConfigDict(populate_by_name=True)


class BomItemOut(BaseModel):
    line_no: int
    item_type: str
    material_code: str
    material_name: str
    bom_code: str | None = None
    quantity: float
    unit_of_measure: str | None = None
    unit_cost: float
    total_cost: float


class BomOut(BaseModel):
    id: str
    bom_code: str
    product_name: str
    product_description: str | None = None
    version: str
    effective_date: datetime | None = None
    status: str
    total_cost: float
    items: list[BomItemOut]
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BomListOut(BaseModel):
    items: list[BomOut]
    pagination: PaginationMeta


class DemandLineOut(BaseModel):
    code: str
    quantity: float


class BomExplosionOut(BaseModel):
    bom_code: str
    quantity: float
    outlet: str | None = None
    raw_materials: list[DemandLineOut]
    finished_goods: list[DemandLineOut]
