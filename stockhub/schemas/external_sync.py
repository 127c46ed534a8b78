from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from stockhub.schemas.common import PaginationMeta


class ExternalLocationIn(BaseModel):
    zoho_location_id: str = Field(
        min_length=1,
        max_length=60,
        validation_alias=AliasChoices("zoho_location_id", "zohoLocationId"),
    )
    location_name: str = Field(min_length=1, max_length=200, validation_alias=AliasChoices("location_name", "locationName"))
    status: str = Field(default="Active", max_length=20)

    model_config = ConfigDict(populate_by_name=True)


class ExternalItemIn(BaseModel):
    sku: str = Field(min_length=1, max_length=60)
    name: str = Field(min_length=1, max_length=200)
    category: str | None = Field(default=None, max_length=120)
    unit: str | None = Field(default=None, max_length=30)
    rate: float = Field(default=0, ge=0)
    zoho_item_id: str = Field(min_length=1, max_length=60, validation_alias=AliasChoices("zoho_item_id", "zohoItemId"))
    status: str = Field(default="active", max_length=20)

    model_config = ConfigDict(populate_by_name=True)


class ExternalLocationOut(BaseModel):
    id: str
    zoho_location_id: str
    location_name: str
    status: str
    updated_at: datetime | None = None


class ExternalLocationListOut(BaseModel):
    items: list[ExternalLocationOut]
    pagination: PaginationMeta


class ExternalItemOut(BaseModel):
    id: str
    sku: str
    name: str
    category: str | None = None
    unit: str | None = None
    rate: float
    zoho_item_id: str
    status: str
    updated_at: datetime | None = None


class ExternalItemListOut(BaseModel):
    items: list[ExternalItemOut]
    pagination: PaginationMeta


class SyncSummaryOut(BaseModel):
    total: int
    created: int
    updated: int


class InvoicePushOut(BaseModel):
    sales_order_id: str
    status: str
    invoice_id: str | None = None
    invoice_number: str | None = None
    error: str | None = None
