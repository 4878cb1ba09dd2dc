"""CSV bulk import with case-insensitive duplicate suppression.

Expected CSV format (no header, 3 columns):
  1. term
  2. definition
  3. tags, comma-separated (e.g. "ai, ml, agents")
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable, Sequence, Union

from .models import ImportResult, TermDraft
from .store import TermStore, TermStoreError

logger = logging.getLogger(__name__)

NO_VALID_TERMS = "No valid terms found in CSV. Expected format: term,definition,tags"


def read_csv_rows(text: str) -> list[list[str]]:
    """Parse CSV text held in memory; blank lines are skipped."""
    reader = csv.reader(io.StringIO(text))
    return [row for row in reader if row]


def split_tags(tags_text: str) -> list[str]:
    return [tag.strip() for tag in tags_text.split(",") if tag.strip()]


def parse_rows(rows: Iterable[Sequence[str]]) -> tuple[list[TermDraft], int]:
    """Turn raw rows into drafts.

    Returns:
        ``(drafts, invalid)`` where *invalid* counts rows with fewer than
        three fields or an empty term.
    """
    drafts: list[TermDraft] = []
    invalid = 0
    for row in rows:
        if not row or len(row) < 3:
            invalid += 1
            continue
        term = (row[0] or "").strip()
        if not term:
            invalid += 1
            continue
        drafts.append(
            TermDraft(
                term=term,
                definition=(row[1] or "").strip(),
                tags=split_tags(row[2] or ""),
            )
        )
    return drafts, invalid


@dataclass(frozen=True)
class _Batch:
    """Import accumulator threaded through the insert loop."""

    names: frozenset[str]
    added: int = 0
    skipped: int = 0


def _import_one(store: TermStore, draft: TermDraft, batch: _Batch) -> _Batch:
    key = draft.term.lower()
    if key in batch.names:
        logger.debug("Skipping duplicate term %r", draft.term)
        return replace(batch, skipped=batch.skipped + 1)

    try:
        store.insert(draft.term, draft.definition, draft.tags)
    except TermStoreError as exc:
        logger.error("Error adding term %r from CSV: %s", draft.term, exc)
        return replace(batch, skipped=batch.skipped + 1)

    return replace(batch, names=batch.names | {key}, added=batch.added + 1)


def import_rows(store: TermStore, rows: Iterable[Sequence[str]]) -> ImportResult:
    """Insert every new term from *rows*, one at a time.

    Existing terms are read once; names are compared case-insensitively,
    including against names added earlier in the same batch. Duplicates and
    failed inserts are counted as skipped, never overwritten or retried.

    Raises:
        TermStoreError: if the initial read of existing terms fails.
    """
    drafts, invalid = parse_rows(rows)
    if not drafts:
        return ImportResult(added=0, skipped=invalid)

    existing = store.fetch_all()
    batch = _Batch(
        names=frozenset(t.term.strip().lower() for t in existing),
        skipped=invalid,
    )
    with store.batched_changes():
        for draft in drafts:
            batch = _import_one(store, draft, batch)

    logger.info(
        "Imported %d terms, skipped %d (of %d rows)",
        batch.added,
        batch.skipped,
        len(drafts) + invalid,
    )
    return ImportResult(added=batch.added, skipped=batch.skipped)


def import_csv_text(store: TermStore, text: str) -> ImportResult:
    return import_rows(store, read_csv_rows(text))


def import_csv_file(store: TermStore, path: Union[str, Path]) -> ImportResult:
    """Read a whole CSV file into memory and import it."""
    text = Path(path).read_text(encoding="utf-8-sig")
    return import_csv_text(store, text)
