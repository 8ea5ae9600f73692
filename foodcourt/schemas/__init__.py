"""Pydantic schemas package"""
from foodcourt.schemas.order import (
    DineInSchema,
    OrderCreateSchema,
    OrderItemSchema,
    OrderItemsUpdateSchema,
    PricingSchema,
)


__all__ = [
    "DineInSchema",
    "OrderCreateSchema",
    "OrderItemSchema",
    "OrderItemsUpdateSchema",
    "PricingSchema",
]
