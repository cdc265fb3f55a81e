"""
Order history and engagement events.

These records feed the co-occurrence (frequently bought together) and
trending strategies. They are read-only snapshots supplied by the Catalog
Repository collaborator.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

EngagementKind = Literal["view", "bookmark", "cart_add", "purchase"]


class OrderRecord(BaseModel):
    """A completed order and the product ids it contained."""

    model_config = ConfigDict(frozen=True)

    order_id: str
    buyer_id: Optional[str] = None
    product_ids: tuple[str, ...]
    created_at: datetime

    @field_validator("product_ids")
    @classmethod
    def validate_product_ids(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            raise ValueError("An order must contain at least one product id.")
        return v


class EngagementEvent(BaseModel):
    """A single buyer interaction with a product."""

    model_config = ConfigDict(frozen=True)

    product_id: str
    kind: EngagementKind
    occurred_at: datetime
    buyer_id: Optional[str] = None
