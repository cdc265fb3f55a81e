"""
Active-category state machine.

The comparison view shows one category at a time. Which one is decided by
``resolve_active_category()``, a pure function of the current selections,
the current pointer, and the event that just happened. It runs exactly once
per mutation and never calls itself, so reassignment cannot cascade or
oscillate.

States
------
    (category, stale=False) : the buyer is looking at ``category``.
    (category, stale=True)  : ``category`` was emptied by removals while it
                              was active and no other category had products.
    (None, False)           : nothing selected yet.

Triggers
--------
    ADDED(c)     : a product was appended to ``c``.
    EMPTIED(c)   : the last product of ``c`` was removed.
    REQUESTED(c) : the caller asked to view ``c``.

Rules
-----
    ADDED(c)     : no active category, or the active one is stale → c.
                   Otherwise unchanged.
    EMPTIED(c)   : c is active → first non-empty category in enumeration
                   order; if there is none, stay on c and mark it stale.
                   Otherwise unchanged.
    REQUESTED(t) : t is empty and the active category is stale → first
                   non-empty category, if any.  Otherwise honour t (an
                   explicit "browse this empty category" intent).

Reassignment is eager: it happens on EMPTIED, not on the next request. A
stale pointer therefore means every category is empty, and the REQUESTED
fallback only changes the outcome for callers that build ``current``
themselves.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Optional

from catalog_engine.taxonomy.catalog_taxonomy import CATEGORY_ORDER, ProductCategory


class Trigger(StrEnum):
    ADDED = "added"
    EMPTIED = "emptied"
    REQUESTED = "requested"


@dataclass(frozen=True)
class ActiveCategory:
    """Resolved active-category pointer."""

    category: Optional[ProductCategory] = None
    stale: bool = False


def first_non_empty(
    selections: Mapping[ProductCategory, Sequence[str]],
) -> Optional[ProductCategory]:
    """First category in enumeration order holding at least one product."""
    for category in CATEGORY_ORDER:
        if selections.get(category):
            return category
    return None


def resolve_active_category(
    selections: Mapping[ProductCategory, Sequence[str]],
    current:    ActiveCategory,
    trigger:    Trigger,
    category:   ProductCategory,
) -> ActiveCategory:
    """Compute the next active-category pointer.

    Args:
        selections: Category → product ids *after* the mutation.
        current:    Pointer before the mutation.
        trigger:    What just happened.
        category:   Category the trigger refers to.

    Returns:
        The new ``ActiveCategory``; equal to ``current`` when nothing changes.
    """
    if trigger is Trigger.ADDED:
        if current.category is None:
            return ActiveCategory(category)
        if current.stale:
            return ActiveCategory(category)
        return current

    if trigger is Trigger.EMPTIED:
        if current.category != category:
            return current
        replacement = first_non_empty(selections)
        if replacement is None:
            return ActiveCategory(category, stale=True)
        return ActiveCategory(replacement)

    # REQUESTED
    if not selections.get(category) and current.stale:
        replacement = first_non_empty(selections)
        if replacement is not None:
            return ActiveCategory(replacement)
    return ActiveCategory(category)
