"""Term store clients: the OpenSearch-backed store and its shared contract.

The rest of the package only talks to a ``TermStore``; any object with the
same methods (see ``memory_store.InMemoryTermStore``) can stand in for it.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import (
    Any,
    Callable,
    ContextManager,
    Iterable,
    Iterator,
    Optional,
    Protocol,
    Sequence,
)

from apscheduler.schedulers.background import BackgroundScheduler
from opensearchpy import OpenSearch, helpers
from opensearchpy.exceptions import NotFoundError, OpenSearchException

from .models import Term, now_millis

logger = logging.getLogger(__name__)

TermsCallback = Callable[[list[Term]], None]
Unsubscribe = Callable[[], None]


class TermStoreError(RuntimeError):
    """A one-shot read or write against the term store failed."""


class TermStore(Protocol):
    def subscribe(self, callback: TermsCallback) -> Unsubscribe: ...

    def fetch_all(self) -> list[Term]: ...

    def insert(self, term: str, definition: str, tags: Sequence[str]) -> str: ...

    def delete(self, term_id: str) -> None: ...

    def update(
        self,
        term_id: str,
        term: Optional[str] = None,
        definition: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> None: ...

    def batched_changes(self) -> ContextManager[None]: ...


def normalise_tags(tags: Iterable[str]) -> list[str]:
    """Trim every tag and drop the empty ones, keeping order."""
    return [tag.strip() for tag in tags if tag.strip()]


def build_document(term: str, definition: str, tags: Sequence[str]) -> dict[str, Any]:
    """Trim and validate an insert payload."""
    name = term.strip()
    if not name:
        raise ValueError("Term name must not be empty")
    return {
        "term": name,
        "definition": definition.strip(),
        "tags": normalise_tags(tags),
        "created_at": now_millis(),
    }


def build_update(
    term: Optional[str] = None,
    definition: Optional[str] = None,
    tags: Optional[Sequence[str]] = None,
) -> dict[str, Any]:
    """Trim a partial update; only the given fields are included."""
    changes: dict[str, Any] = {}
    if term is not None:
        name = term.strip()
        if not name:
            raise ValueError("Term name must not be empty")
        changes["term"] = name
    if definition is not None:
        changes["definition"] = definition.strip()
    if tags is not None:
        changes["tags"] = normalise_tags(tags)
    return changes


class SubscriberRegistry:
    """Callbacks waiting for full-collection pushes.

    A failing callback is logged and does not stop delivery to the others.
    Inside a ``deferred`` block pushes are held back and replayed once by the
    outermost block.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._callbacks: list[TermsCallback] = []
        self._defer_depth = 0
        self._pending = False

    def __len__(self) -> int:
        with self._lock:
            return len(self._callbacks)

    def add(self, callback: TermsCallback) -> None:
        with self._lock:
            self._callbacks.append(callback)

    def remove(self, callback: TermsCallback) -> bool:
        """Remove *callback*; returns ``False`` if it was already gone."""
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                return False
            return True

    def push(self, terms: list[Term]) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(list(terms))
            except Exception:
                logger.exception("Term subscriber raised while handling a push")

    def hold(self) -> bool:
        """Return ``True`` and mark a push as pending while deferred."""
        with self._lock:
            if self._defer_depth:
                self._pending = True
                return True
            return False

    @contextmanager
    def deferred(self, flush: Callable[[], None]) -> Iterator[None]:
        with self._lock:
            self._defer_depth += 1
        try:
            yield
        finally:
            with self._lock:
                self._defer_depth -= 1
                run = not self._defer_depth and self._pending
                if run:
                    self._pending = False
            if run:
                flush()


# ──────────────────────────────────────────────
# OpenSearch
# ──────────────────────────────────────────────

TERMS_MAPPING = {
    "settings": {"number_of_shards": 1, "number_of_replicas": 0},
    "mappings": {
        "properties": {
            "term": {"type": "text", "fields": {"raw": {"type": "keyword"}}},
            "definition": {"type": "text", "analyzer": "standard"},
            "tags": {"type": "keyword"},
            "created_at": {"type": "date", "format": "epoch_millis"},
        }
    },
}


class OpenSearchTermStore:
    """Glossary terms kept in a single OpenSearch index.

    OpenSearch has no push channel, so live subscriptions are served two ways:
    writes made through this store notify subscribers right away, and a
    background job re-reads the index every ``poll_interval`` seconds and
    pushes whenever the collection differs from the last push.
    """

    def __init__(
        self,
        client: OpenSearch,
        index: str = "glossary-terms",
        poll_interval: float = 5.0,
        ensure: bool = True,
    ):
        self.client = client
        self.index = index
        self.poll_interval = poll_interval
        self._subscribers = SubscriberRegistry()
        self._scheduler: Optional[BackgroundScheduler] = None
        self._scheduler_lock = threading.Lock()
        self._last_pushed: Optional[list[Term]] = None
        if ensure:
            self.ensure_index()

    def ensure_index(self) -> None:
        try:
            if self.client.indices.exists(index=self.index):
                logger.info("Index already exists: %s", self.index)
                return
            self.client.indices.create(index=self.index, body=TERMS_MAPPING)
        except OpenSearchException as exc:
            logger.error("Could not prepare index %s: %s", self.index, exc)
            raise TermStoreError(f"Could not prepare index {self.index!r}") from exc
        logger.info("Created index: %s", self.index)

    # ── One-shot operations ──────────────────────

    def fetch_all(self) -> list[Term]:
        """Read the whole collection once, ordered by creation time."""
        try:
            hits = helpers.scan(
                self.client,
                index=self.index,
                query={"query": {"match_all": {}}},
            )
            terms = [Term.from_source(hit["_id"], hit.get("_source", {})) for hit in hits]
        except OpenSearchException as exc:
            logger.error("Error reading terms from %s: %s", self.index, exc)
            raise TermStoreError("Could not read terms") from exc
        terms.sort(key=lambda t: (t.created_at, t.id))
        return terms

    def insert(self, term: str, definition: str, tags: Sequence[str]) -> str:
        doc = build_document(term, definition, tags)
        try:
            resp = self.client.index(index=self.index, body=doc, refresh="wait_for")
        except OpenSearchException as exc:
            logger.error("Error adding term %r: %s", doc["term"], exc)
            raise TermStoreError(f"Could not add term {doc['term']!r}") from exc
        term_id = resp["_id"]
        logger.info("Stored term %s (%s)", term_id, doc["term"])
        self._notify()
        return term_id

    def delete(self, term_id: str) -> None:
        try:
            self.client.delete(index=self.index, id=term_id, refresh="wait_for")
        except NotFoundError:
            logger.info("Term %s already absent", term_id)
        except OpenSearchException as exc:
            logger.error("Error deleting term %s: %s", term_id, exc)
            raise TermStoreError(f"Could not delete term {term_id!r}") from exc
        else:
            logger.info("Deleted term %s", term_id)
        self._notify()

    def update(
        self,
        term_id: str,
        term: Optional[str] = None,
        definition: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> None:
        changes = build_update(term, definition, tags)
        if not changes:
            return
        try:
            self.client.update(
                index=self.index,
                id=term_id,
                body={"doc": changes},
                refresh="wait_for",
            )
        except OpenSearchException as exc:
            logger.error("Error updating term %s: %s", term_id, exc)
            raise TermStoreError(f"Could not update term {term_id!r}") from exc
        self._notify()

    # ── Live subscription ────────────────────────

    def subscribe(self, callback: TermsCallback) -> Unsubscribe:
        """Push the full collection now and after every change.

        Returns a function that releases the subscription; the background
        poller stops once the last subscriber is gone.
        """
        self._subscribers.add(callback)
        self._start_polling()

        try:
            callback(self._snapshot())
        except Exception:
            logger.exception("Term subscriber raised on initial push")

        def unsubscribe() -> None:
            if self._subscribers.remove(callback) and not len(self._subscribers):
                self._stop_polling()

        return unsubscribe

    def batched_changes(self) -> ContextManager[None]:
        """Coalesce the pushes from several writes into one index scan."""
        return self._subscribers.deferred(self._notify)

    def close(self) -> None:
        self._stop_polling()

    def poll(self) -> None:
        """Re-read the index and push if the collection changed."""
        terms = self._snapshot()
        if terms == self._last_pushed:
            return
        self._last_pushed = terms
        self._subscribers.push(terms)

    def _snapshot(self) -> list[Term]:
        try:
            return self.fetch_all()
        except TermStoreError:
            logger.exception("Error subscribing to terms")
            return []

    def _notify(self) -> None:
        if not len(self._subscribers) or self._subscribers.hold():
            return
        terms = self._snapshot()
        self._last_pushed = terms
        self._subscribers.push(terms)

    def _start_polling(self) -> None:
        if self.poll_interval <= 0:
            return
        with self._scheduler_lock:
            if self._scheduler is not None:
                return
            scheduler = BackgroundScheduler(daemon=True)
            scheduler.add_job(
                self.poll,
                "interval",
                seconds=self.poll_interval,
                id=f"_poll_{self.index}",
                replace_existing=True,
                coalesce=True,
                max_instances=1,
            )
            scheduler.start()
            self._scheduler = scheduler
            logger.info("Polling %s every %.1fs", self.index, self.poll_interval)

    def _stop_polling(self) -> None:
        with self._scheduler_lock:
            scheduler, self._scheduler = self._scheduler, None
        if scheduler is not None:
            scheduler.shutdown(wait=False)
            logger.info("Stopped polling %s", self.index)
