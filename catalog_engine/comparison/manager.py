"""
Comparison manager: bounded per-category selections for one session.

Invariants (hold after any interleaving of calls from any number of
managers sharing the same store):
  - every category list has length in [0, max_products];
  - a product id appears at most once per category list.

``add`` is idempotent (re-adding is a no-op reported as ``"exists"``),
``remove`` is idempotent, and ``toggle`` twice restores the prior state.
Adding a new product to a full category raises ``ComparisonFull`` and
leaves the selection unchanged.
"""

from __future__ import annotations

import logging
from contextlib import ExitStack
from typing import Literal, Optional

from catalog_engine.comparison.store import ComparisonStore, SessionComparison
from catalog_engine.comparison.transitions import (
    ActiveCategory,
    Trigger,
    resolve_active_category,
)
from catalog_engine.errors import ComparisonFull, InvalidCategory
from catalog_engine.models.comparison import ComparisonSnapshot
from catalog_engine.taxonomy.catalog_taxonomy import CATEGORY_ORDER, ProductCategory, parse_category

logger = logging.getLogger(__name__)

AddOutcome = Literal["added", "exists"]
ToggleOutcome = Literal["added", "removed"]


class ComparisonManager:
    """Comparison operations for one session.

    Args:
        store:      Shared keyed store (one per process / worker). Its
                    ``max_products`` is the cap every manager enforces.
        session_id: Session or buyer id owning the selection.
    """

    def __init__(self, store: ComparisonStore, session_id: str) -> None:
        self.store = store
        self.session_id = session_id

    @property
    def max_products(self) -> int:
        return self.store.max_products

    # ── Mutations ─────────────────────────────────────────────────────────────

    def add(self, category: str | ProductCategory, product_id: str) -> AddOutcome:
        """Append ``product_id`` to ``category``'s selection.

        Returns:
            ``"added"`` or ``"exists"`` (already selected; nothing changes).

        Raises:
            InvalidCategory: Unknown category.
            ComparisonFull: Category already holds ``max_products`` products.
        """
        cat = _validate_category(category)
        state = self._state()
        with state.category_locks[cat]:
            return self._add_locked(state, cat, product_id)

    def remove(self, category: str | ProductCategory, product_id: str) -> bool:
        """Remove ``product_id`` from ``category``. Returns True if it was present."""
        cat = _validate_category(category)
        state = self._state()
        with state.category_locks[cat]:
            return self._remove_locked(state, cat, product_id)

    def toggle(self, category: str | ProductCategory, product_id: str) -> ToggleOutcome:
        """Remove if selected, add otherwise.

        Raises:
            InvalidCategory: Unknown category.
            ComparisonFull: Adding would exceed the cap.
        """
        cat = _validate_category(category)
        state = self._state()
        with state.category_locks[cat]:
            if product_id in state.selections[cat]:
                self._remove_locked(state, cat, product_id)
                return "removed"
            self._add_locked(state, cat, product_id)
            return "added"

    def clear(self, category: str | ProductCategory | None = None) -> None:
        """Clear one category, or every category when ``category`` is None."""
        state = self._state()
        if category is not None:
            cat = _validate_category(category)
            with state.category_locks[cat]:
                had_items = bool(state.selections[cat])
                state.selections[cat].clear()
                if had_items:
                    self._transition(state, Trigger.EMPTIED, cat)
            return

        with ExitStack() as stack:
            for cat in CATEGORY_ORDER:
                stack.enter_context(state.category_locks[cat])
            for cat in CATEGORY_ORDER:
                state.selections[cat].clear()
            with state.session_lock:
                state.active = ActiveCategory()
        logger.debug("Comparison cleared | session=%s", self.session_id)

    def set_active_category(self, category: str | ProductCategory) -> ProductCategory:
        """Switch the comparison view to ``category``.

        Returns:
            The category actually made active. Differs from the request only
            when the request targets an empty category while the current one
            was emptied by removals (see ``comparison.transitions``).
        """
        cat = _validate_category(category)
        state = self._state()
        with state.session_lock:
            before = state.active
            state.active = resolve_active_category(
                state.selections, before, Trigger.REQUESTED, cat
            )
            resolved = state.active.category or cat
        if resolved != cat:
            logger.info(
                "Active category reassigned | session=%s | requested=%s | active=%s",
                self.session_id, cat, resolved,
            )
        return resolved

    # ── Reads ─────────────────────────────────────────────────────────────────

    @property
    def active_category(self) -> Optional[ProductCategory]:
        state = self._state()
        with state.session_lock:
            return state.active.category

    def has(self, category: str | ProductCategory, product_id: str) -> bool:
        cat = _validate_category(category)
        state = self._state()
        with state.category_locks[cat]:
            return product_id in state.selections[cat]

    def count(self, category: str | ProductCategory) -> int:
        cat = _validate_category(category)
        state = self._state()
        with state.category_locks[cat]:
            return len(state.selections[cat])

    def selection(self, category: str | ProductCategory) -> tuple[str, ...]:
        """Ordered product ids selected in ``category``."""
        cat = _validate_category(category)
        state = self._state()
        with state.category_locks[cat]:
            return tuple(state.selections[cat])

    def snapshot(self) -> ComparisonSnapshot:
        """Consistent copy of the whole session state."""
        state = self._state()
        with ExitStack() as stack:
            for cat in CATEGORY_ORDER:
                stack.enter_context(state.category_locks[cat])
            stack.enter_context(state.session_lock)
            selections = {
                cat: tuple(ids) for cat, ids in state.selections.items() if ids
            }
            active = state.active.category
        return ComparisonSnapshot(
            session_id=self.session_id,
            selections=selections,
            active_category=active,
            max_products=self.max_products,
        )

    # ── Internals (caller holds the category lock) ────────────────────────────

    def _state(self) -> SessionComparison:
        return self.store.session(self.session_id)

    def _add_locked(
        self,
        state: SessionComparison,
        cat: ProductCategory,
        product_id: str,
    ) -> AddOutcome:
        items = state.selections[cat]
        if product_id in items:
            return "exists"
        if len(items) >= self.max_products:
            logger.warning(
                "Comparison full | session=%s | category=%s | rejected=%s",
                self.session_id, cat, product_id,
            )
            raise ComparisonFull(cat.value, product_id, self.max_products)
        items.append(product_id)
        logger.debug(
            "Comparison add | session=%s | category=%s | product=%s | size=%d",
            self.session_id, cat, product_id, len(items),
        )
        self._transition(state, Trigger.ADDED, cat)
        return "added"

    def _remove_locked(
        self,
        state: SessionComparison,
        cat: ProductCategory,
        product_id: str,
    ) -> bool:
        items = state.selections[cat]
        if product_id not in items:
            return False
        items.remove(product_id)
        logger.debug(
            "Comparison remove | session=%s | category=%s | product=%s | size=%d",
            self.session_id, cat, product_id, len(items),
        )
        if not items:
            self._transition(state, Trigger.EMPTIED, cat)
        return True

    def _transition(
        self,
        state: SessionComparison,
        trigger: Trigger,
        cat: ProductCategory,
    ) -> None:
        with state.session_lock:
            before = state.active
            state.active = resolve_active_category(state.selections, before, trigger, cat)
            after = state.active
        if after != before:
            logger.debug(
                "Active category %s -> %s (stale=%s) | session=%s | trigger=%s",
                before.category, after.category, after.stale, self.session_id, trigger,
            )


def _validate_category(category: str | ProductCategory) -> ProductCategory:
    try:
        return parse_category(category)
    except ValueError:
        raise InvalidCategory(category) from None
