# app/schemas/cart.py
import uuid
from enum import Enum
from typing import Any

from pydantic import ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel, Field

# variant_id -> True iff live available stock covers the requested quantity
LineValidity = dict[str, bool]


class CartState(str, Enum):
    EMPTY = "empty"
    POPULATED = "populated"
    VALIDATING = "validating"
    VALID = "valid"
    INVALID = "invalid"


class CartLine(SQLModel):
    """
    One entry in the client-held cart.

    - variant_id is the unique key; products without variants use
      their product_id in its place.
    - unit_price is captured when the item is added and never re-fetched.
    """

    model_config = ConfigDict(extra="ignore")

    variant_id: str
    product_id: str
    quantity: int = Field(gt=0)
    unit_price: float = Field(ge=0)
    title: str
    image_url: str | None = None
    variant_label: str | None = None

    @model_validator(mode="before")
    @classmethod
    def default_variant_to_product(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("variant_id") and data.get("product_id"):
            data = {**data, "variant_id": data["product_id"]}
        return data

    @field_validator("variant_id", "product_id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        if isinstance(v, uuid.UUID):
            return str(v)
        return v

    @field_validator("variant_id", "product_id", "title")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


class OrderSummary(SQLModel):
    """
    Priced cart totals. Tax applies to the subtotal only.
    """

    subtotal: float
    shipping: float
    tax: float
    total: float


class CartValidateRequest(SQLModel):
    """
    Payload for validating a client-held cart before checkout.
    """

    model_config = ConfigDict(extra="forbid")

    items: list[CartLine]


class CartValidationRead(SQLModel):
    """
    Validated cart: merged lines, per-line validity, totals and
    whether checkout may proceed.
    """

    items: list[CartLine]
    validity: LineValidity
    summary: OrderSummary
    item_count: int
    checkout_eligible: bool
