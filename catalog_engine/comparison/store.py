"""
Keyed comparison store: session id → per-category selections.

Replaces the old process-global comparison list. The store is passed by
reference to every ``ComparisonManager`` that serves the same session
(e.g. two open browser tabs), and owns the locks that serialise their
read-modify-write cycles:

  - one lock per (session, category) for list mutation;
  - one lock per session for the active-category pointer.

Lock order is always category lock → session lock.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from catalog_engine.comparison.transitions import ActiveCategory
from catalog_engine.config import ComparisonConfig
from catalog_engine.taxonomy.catalog_taxonomy import CATEGORY_ORDER, ProductCategory

logger = logging.getLogger(__name__)


def _empty_selections() -> dict[ProductCategory, list[str]]:
    return {category: [] for category in CATEGORY_ORDER}


def _category_locks() -> dict[ProductCategory, threading.Lock]:
    return {category: threading.Lock() for category in CATEGORY_ORDER}


@dataclass
class SessionComparison:
    """Mutable comparison state for one session.

    Only touch ``selections[c]`` while holding ``category_locks[c]`` and
    ``active`` while holding ``session_lock``.
    """

    session_id:     str
    selections:     dict[ProductCategory, list[str]] = field(default_factory=_empty_selections)
    active:         ActiveCategory = field(default_factory=ActiveCategory)
    category_locks: dict[ProductCategory, threading.Lock] = field(default_factory=_category_locks)
    session_lock:   threading.Lock = field(default_factory=threading.Lock)


class ComparisonStore:
    """Thread-safe map of session id → ``SessionComparison``.

    The per-category cap belongs to the store, so every manager sharing it
    enforces the same limit.
    """

    def __init__(self, config: ComparisonConfig | None = None) -> None:
        self.config = config or ComparisonConfig()
        self._sessions: dict[str, SessionComparison] = {}
        self._lock = threading.Lock()

    @property
    def max_products(self) -> int:
        return self.config.max_products

    def session(self, session_id: str) -> SessionComparison:
        """Return the state for ``session_id``, creating it on first use."""
        with self._lock:
            state = self._sessions.get(session_id)
            if state is None:
                state = SessionComparison(session_id=session_id)
                self._sessions[session_id] = state
                logger.debug("Comparison session created | session=%s", session_id)
            return state

    def end_session(self, session_id: str) -> bool:
        """Drop all comparison state for a session. Returns True if it existed."""
        with self._lock:
            existed = self._sessions.pop(session_id, None) is not None
        if existed:
            logger.debug("Comparison session ended | session=%s", session_id)
        return existed

    def session_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
