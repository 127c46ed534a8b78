from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from stockhub.schemas.common import PaginationMeta


class SalesOrderLineIn(BaseModel):
    product_code: str = Field(
        min_length=1,
        max_length=60,
        validation_alias=AliasChoices("product_code", "productCode", "code"),
    )
    product_name: str | None = Field(
        default=None,
        max_length=200,
        validation_alias=AliasChoices("product_name", "productName"),
    )
    quantity: float = Field(gt=0)
    unit_price: float | None = Field(default=None, ge=0, validation_alias=AliasChoices("unit_price", "unitPrice"))

    model_config = ConfigDict(populate_by_name=True)


class SalesRecipeLineIn(BaseModel):
    bom_code: str = Field(min_length=1, max_length=60, validation_alias=AliasChoices("bom_code", "bomCode"))
    product_name: str | None = Field(
        default=None,
        max_length=200,
        validation_alias=AliasChoices("product_name", "productName"),
    )
    quantity: float = Field(gt=0)
    unit_price: float = Field(default=0, ge=0, validation_alias=AliasChoices("unit_price", "unitPrice"))

    model_config = ConfigDict(populate_by_name=True)


class SalesOrderCreateIn(BaseModel):
    outlet: str = Field(min_length=1)
    customer_name: str | None = Field(default=None, max_length=200, validation_alias=AliasChoices("customer_name", "customerName"))
    customer_phone: str | None = Field(default=None, max_length=40, validation_alias=AliasChoices("customer_phone", "customerPhone"))
    order_type: str = Field(
        default="Dine-in",
        pattern="^(Dine-in|Takeaway|Delivery)$",
        validation_alias=AliasChoices("order_type", "orderType"),
    )
    table_number: str | None = Field(default=None, max_length=20, validation_alias=AliasChoices("table_number", "tableNumber"))
    order_items: list[SalesOrderLineIn] = Field(
        default_factory=list,
        validation_alias=AliasChoices("order_items", "orderItems"),
    )
    recipe_items: list[SalesRecipeLineIn] = Field(
        default_factory=list,
        validation_alias=AliasChoices("recipe_items", "recipeItems"),
    )
    discount_amount: float = Field(default=0, ge=0, validation_alias=AliasChoices("discount_amount", "discountAmount"))
    tax_amount: float = Field(default=0, ge=0, validation_alias=AliasChoices("tax_amount", "taxAmount"))
    payment_method: str | None = Field(default=None, max_length=30, validation_alias=AliasChoices("payment_method", "paymentMethod"))
    payment_status: str = Field(
        default="Pending",
        pattern="^(Pending|Paid|Refunded)$",
        validation_alias=AliasChoices("payment_status", "paymentStatus"),
    )
    notes: str | None = None
    created_by: str | None = Field(default=None, max_length=120, validation_alias=AliasChoices("created_by", "createdBy"))

    @model_validator(mode="after")
    def validate_has_lines(self) -> "SalesOrderCreateIn":
        if not self.order_items and not self.recipe_items:
            raise ValueError("At least one order item or recipe item is required")
        return self

    model_config = ConfigDict(populate_by_name=True)


class SalesOrderStatusUpdateIn(BaseModel):
    order_status: str = Field(
        pattern="^(Pending|Preparing|Ready|Served|Completed|Cancelled)$",
        validation_alias=AliasChoices("order_status", "orderStatus", "status"),
    )
    actor: str | None = Field(default=None, max_length=120)

    model_config = ConfigDict(populate_by_name=True)


class SalesOrderItemOut(BaseModel):
    line_type: str
    product_code: str
    product_name: str
    bom_code: str | None = None
    quantity: float
    unit_price: float
    line_total: float


class SalesOrderSummaryOut(BaseModel):
    subtotal: float
    discount_amount: float
    tax_amount: float
    total_amount: float
    payment_method: str | None = None
    payment_status: str


class SalesOrderZohoOut(BaseModel):
    status: str
    invoice_id: str | None = None
    invoice_number: str | None = None
    error: str | None = None
    pushed_at: datetime | None = None


class SalesOrderOut(BaseModel):
    id: str
    order_number: str
    outlet: str
    outlet_code: str
    outlet_name: str
    customer_name: str | None = None
    customer_phone: str | None = None
    order_type: str
    table_number: str | None = None
    order_items: list[SalesOrderItemOut]
    order_summary: SalesOrderSummaryOut
    order_status: str
    order_date: datetime
    served_at: datetime | None = None
    completed_at: datetime | None = None
    consumption: dict[str, Any] | None = None
    zoho_integration: SalesOrderZohoOut
    notes: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SalesOrderListOut(BaseModel):
    items: list[SalesOrderOut]
    pagination: PaginationMeta
