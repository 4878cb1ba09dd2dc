"""In-process term store with the same contract as ``OpenSearchTermStore``.

Used for local runs (``GLOSSARY_STORE=memory``) and as the fake in tests.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import ContextManager, Iterable, Optional, Sequence

from .models import Term
from .store import (
    SubscriberRegistry,
    TermStoreError,
    TermsCallback,
    Unsubscribe,
    build_document,
    build_update,
)

logger = logging.getLogger(__name__)


class InMemoryTermStore:
    def __init__(self, terms: Optional[Iterable[Term]] = None):
        self._lock = threading.Lock()
        self._terms: dict[str, Term] = {t.id: t for t in terms or ()}
        self._subscribers = SubscriberRegistry()

    def fetch_all(self) -> list[Term]:
        with self._lock:
            terms = list(self._terms.values())
        return sorted(terms, key=lambda t: (t.created_at, t.id))

    def insert(self, term: str, definition: str, tags: Sequence[str]) -> str:
        doc = build_document(term, definition, tags)
        term_id = uuid.uuid4().hex[:20]
        with self._lock:
            self._terms[term_id] = Term(id=term_id, **doc)
        logger.debug("Stored term %s (%s)", term_id, doc["term"])
        self._notify()
        return term_id

    def delete(self, term_id: str) -> None:
        with self._lock:
            removed = self._terms.pop(term_id, None)
        if removed is None:
            logger.debug("Term %s already absent", term_id)
        self._notify()

    def update(
        self,
        term_id: str,
        term: Optional[str] = None,
        definition: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> None:
        changes = build_update(term, definition, tags)
        with self._lock:
            current = self._terms.get(term_id)
            if current is None:
                raise TermStoreError(f"Term {term_id!r} not found")
            self._terms[term_id] = current.model_copy(update=changes)
        self._notify()

    def subscribe(self, callback: TermsCallback) -> Unsubscribe:
        self._subscribers.add(callback)
        callback(self.fetch_all())

        def unsubscribe() -> None:
            self._subscribers.remove(callback)

        return unsubscribe

    def batched_changes(self) -> ContextManager[None]:
        return self._subscribers.deferred(self._notify)

    def close(self) -> None:
        pass

    def _notify(self) -> None:
        if not len(self._subscribers) or self._subscribers.hold():
            return
        self._subscribers.push(self.fetch_all())
