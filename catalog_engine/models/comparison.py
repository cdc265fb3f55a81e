"""
Read-only comparison selection snapshot handed to the rendering layer.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from catalog_engine.taxonomy.catalog_taxonomy import ProductCategory


class ComparisonSnapshot(BaseModel):
    """Point-in-time copy of one session's comparison state.

    Attributes:
        session_id: Owning session / buyer.
        selections: Category → ordered product ids (only non-empty categories).
        active_category: Category currently shown, or ``None``.
        max_products: Per-category cap in force.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str
    selections: dict[ProductCategory, tuple[str, ...]]
    active_category: Optional[ProductCategory] = None
    max_products: int = 3

    def is_full(self, category: ProductCategory) -> bool:
        return len(self.selections.get(category, ())) >= self.max_products

    @property
    def total_selected(self) -> int:
        return sum(len(ids) for ids in self.selections.values())
