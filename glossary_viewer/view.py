"""Live glossary state fed by a term store subscription."""

from __future__ import annotations

import logging
from typing import Optional

from .filters import available_letters, filter_terms, tag_universe
from .models import FilterState, Term
from .store import TermStore, Unsubscribe

logger = logging.getLogger(__name__)


class GlossaryView:
    """Holds the current term collection for one viewer.

    ``open()`` subscribes to the store and ``close()`` releases the
    subscription. Each push replaces the collection wholesale; nothing is
    patched in place, so readers always see one complete snapshot.
    """

    def __init__(self, store: TermStore):
        self.store = store
        self._terms: tuple[Term, ...] = ()
        self._unsubscribe: Optional[Unsubscribe] = None

    def __enter__(self) -> "GlossaryView":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._unsubscribe is not None

    def open(self) -> None:
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self.store.subscribe(self._on_change)
        logger.info("Subscribed to term store (%d terms)", len(self._terms))

    def close(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()
            logger.info("Unsubscribed from term store")

    def _on_change(self, terms: list[Term]) -> None:
        self._terms = tuple(terms)

    @property
    def terms(self) -> list[Term]:
        return list(self._terms)

    @property
    def tags(self) -> list[str]:
        return tag_universe(self._terms)

    @property
    def letters(self) -> set[str]:
        return available_letters(self._terms)

    def filtered(self, state: Optional[FilterState] = None) -> list[Term]:
        return filter_terms(self._terms, state or FilterState())

    def summary(self, state: Optional[FilterState] = None) -> tuple[int, int]:
        """``(shown, total)`` for the "Showing N of M terms" counter."""
        terms = self._terms
        return len(filter_terms(terms, state or FilterState())), len(terms)
