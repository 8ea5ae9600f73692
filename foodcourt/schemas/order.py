"""Pydantic schemas validating order input"""
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from foodcourt.core.config import MAX_ITEMS_PER_ORDER, MAX_NOTES_LENGTH
from foodcourt.core.constants import PaymentMethod


class OrderItemSchema(BaseModel):
    """One line item"""

    id: str = Field(..., min_length=1, max_length=100, description="Menu item id")
    name: str = Field(..., min_length=1, max_length=200, description="Menu item name")
    unit_price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    quantity: int = Field(1, ge=1, le=99)
    category: str | None = Field(None, max_length=100)
    customizations: list[str] = Field(default_factory=list)

    @property
    def total_price(self) -> Decimal:
        return self.unit_price * self.quantity

    model_config = ConfigDict(str_strip_whitespace=True)


class PricingSchema(BaseModel):
    """Pricing summary; total_amount must match its components"""

    subtotal: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    taxes: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    delivery_fee: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    discount: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    total_amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)

    @model_validator(mode="after")
    def validate_total(self):
        """total_amount = subtotal + taxes + delivery_fee - discount"""
        if self.discount > self.subtotal + self.taxes + self.delivery_fee:
            raise ValueError("Discount cannot exceed the order value")

        expected = self.subtotal + self.taxes + self.delivery_fee - self.discount
        if self.total_amount != expected:
            raise ValueError(
                f"total_amount {self.total_amount} does not match "
                f"subtotal + taxes + delivery_fee - discount = {expected}"
            )
        return self


class DineInSchema(BaseModel):
    """Table information"""

    table_number: str | None = Field(None, max_length=20)
    seating_area: str | None = Field(None, max_length=100)
    guest_count: int = Field(1, ge=1, le=50)

    model_config = ConfigDict(str_strip_whitespace=True)


def _check_items_against_pricing(items: list[OrderItemSchema], pricing: PricingSchema) -> None:
    subtotal = sum((item.total_price for item in items), Decimal("0"))
    if subtotal != pricing.subtotal:
        raise ValueError(f"subtotal {pricing.subtotal} does not match the items total {subtotal}")


class OrderCreateSchema(BaseModel):
    """New order placed by a customer"""

    restaurant_id: str = Field(..., min_length=1, max_length=100)
    restaurant_name: str = Field("", max_length=200)
    items: list[OrderItemSchema] = Field(..., min_length=1, max_length=MAX_ITEMS_PER_ORDER)
    pricing: PricingSchema
    payment_method: str = Field(PaymentMethod.CASH, description="Cash, Card, UPI or Wallet")
    dine_in: DineInSchema | None = None
    notes: str | None = Field(None, max_length=MAX_NOTES_LENGTH)
    source: str = Field("mobile_app", max_length=50)

    @field_validator("payment_method")
    @classmethod
    def validate_payment_method(cls, v: str) -> str:
        """Payment method must be one of the known methods"""
        valid_methods = PaymentMethod.all_methods()
        if v not in valid_methods:
            raise ValueError(f"Unknown payment method. Allowed: {', '.join(valid_methods)}")
        return v

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v: str | None) -> str | None:
        if v is None:
            return None

        v = v.strip()
        if not v:
            return None
        return v

    @model_validator(mode="after")
    def validate_items_total(self):
        """Line items must add up to the subtotal"""
        _check_items_against_pricing(self.items, self.pricing)
        return self

    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)


class OrderItemsUpdateSchema(BaseModel):
    """Replacement item list for an order that is still Placed"""

    items: list[OrderItemSchema] = Field(..., min_length=1, max_length=MAX_ITEMS_PER_ORDER)
    pricing: PricingSchema

    @model_validator(mode="after")
    def validate_items_total(self):
        _check_items_against_pricing(self.items, self.pricing)
        return self
