import re
from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from stockhub.schemas.common import PaginationMeta

_ITEM_TYPE_ALIASES = {
    "raw_material": "raw_material",
    "rawmaterial": "raw_material",
    "raw_materials": "raw_material",
    "finished_good": "finished_good",
    "finishedgood": "finished_good",
    "finished_goods": "finished_good",
    "finished_product": "finished_good",
}


def normalize_item_type(value: str) -> str:
    normalized = _ITEM_TYPE_ALIASES.get(re.sub(r"[\s\-]+", "_", value.strip().lower()))
    if normalized is None:
        raise ValueError("item_type must be raw_material or finished_good")
    return normalized


class TransferOrderItemIn(BaseModel):
    item_type: str = Field(default="raw_material", validation_alias=AliasChoices("item_type", "itemType"))
    item_code: str = Field(min_length=1, max_length=60, validation_alias=AliasChoices("item_code", "itemCode"))
    item_name: str | None = Field(default=None, max_length=200, validation_alias=AliasChoices("item_name", "itemName"))
    quantity: float = Field(gt=0)
    unit_price: float | None = Field(default=None, ge=0, validation_alias=AliasChoices("unit_price", "unitPrice"))
    notes: str | None = None

    @field_validator("item_type")
    @classmethod
    def validate_item_type(cls, value: str) -> str:
        return normalize_item_type(value)

    model_config = ConfigDict(populate_by_name=True)


class TransferOrderCreateIn(BaseModel):
    from_outlet: str = Field(min_length=1, validation_alias=AliasChoices("from_outlet", "fromOutlet"))
    to_outlet: str = Field(min_length=1, validation_alias=AliasChoices("to_outlet", "toOutlet"))
    transfer_date: datetime | None = Field(default=None, validation_alias=AliasChoices("transfer_date", "transferDate"))
    priority: str = Field(default="Normal", pattern="^(Low|Normal|High|Urgent)$")
    requested_by: str | None = Field(default=None, max_length=120, validation_alias=AliasChoices("requested_by", "requestedBy"))
    notes: str | None = None
    items: list[TransferOrderItemIn] = Field(min_length=1, max_length=500)

    model_config = ConfigDict(populate_by_name=True)


class TransferEditedItemIn(BaseModel):
    item_code: str = Field(min_length=1, max_length=60, validation_alias=AliasChoices("item_code", "itemCode"))
    item_type: str | None = Field(default=None, validation_alias=AliasChoices("item_type", "itemType"))
    quantity: float = Field(ge=0)

    @field_validator("item_type")
    @classmethod
    def normalize_optional_item_type(cls, value: str | None) -> str | None:
        return normalize_item_type(value) if value else None

    model_config = ConfigDict(populate_by_name=True)


class TransferApproveIn(BaseModel):
    approved_by: str | None = Field(default=None, max_length=120, validation_alias=AliasChoices("approved_by", "approvedBy"))
    notes: str | None = None
    edited_items: list[TransferEditedItemIn] | None = Field(
        default=None,
        validation_alias=AliasChoices("edited_items", "editedItems"),
    )

    model_config = ConfigDict(populate_by_name=True)


class TransferRejectIn(BaseModel):
    rejected_by: str | None = Field(default=None, max_length=120, validation_alias=AliasChoices("rejected_by", "rejectedBy"))
    notes: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class TransferStatusUpdateIn(BaseModel):
    status: str = Field(pattern="^(In Transit|Completed|Cancelled)$")
    actor: str | None = Field(default=None, max_length=120)
    notes: str | None = None


class TransferOrderItemOut(BaseModel):
    item_type: str
    item_code: str
    item_name: str
    category: str | None = None
    sub_category: str | None = None
    unit_of_measure: str | None = None
    quantity: float
    unit_price: float
    total_value: float
    notes: str | None = None


class TransferResultOut(BaseModel):
    item_code: str
    item_type: str
    quantity: float
    status: str
    error: str | None = None


class ExternalSyncOut(BaseModel):
    status: str
    transfer_order_id: str | None = None
    transfer_order_number: str | None = None
    error: str | None = None
    synced_at: datetime | None = None


class TransferOrderOut(BaseModel):
    id: str
    transfer_number: str
    from_outlet: str
    to_outlet: str
    from_outlet_name: str
    to_outlet_name: str
    transfer_date: datetime
    priority: str
    total_amount: float
    status: str
    requested_by: str
    approved_by: str | None = None
    notes: str | None = None
    approved_at: datetime | None = None
    transfer_started_at: datetime | None = None
    transfer_completed_at: datetime | None = None
    is_active: bool
    items: list[TransferOrderItemOut]
    transfer_results: list[TransferResultOut]
    external_sync: ExternalSyncOut
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TransferOrderListOut(BaseModel):
    items: list[TransferOrderOut]
    pagination: PaginationMeta


class TransferStatusCountOut(BaseModel):
    status: str
    count: int
    total_amount: float


class TransferStatsOut(BaseModel):
    total_orders: int
    total_amount: float
    by_status: list[TransferStatusCountOut]


class TransferPushOutcomeOut(BaseModel):
    transfer_order_id: str
    transfer_number: str
    status: str
    external_id: str | None = None
    external_number: str | None = None
    skipped_items: list[str] = Field(default_factory=list)
    error: str | None = None


class TransferPushPendingOut(BaseModel):
    succeeded: list[TransferPushOutcomeOut]
    failed: list[TransferPushOutcomeOut]
