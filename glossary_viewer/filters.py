"""Filter pipeline over an in-memory term collection.

Stages run in a fixed order and each one is an independent predicate:

  1. search  - case-insensitive substring match on the term name only
  2. tags    - AND / OR match against the selected tags (case-insensitive)
  3. letter  - first character of the name, upper-cased
  4. sort    - stable, case- and accent-insensitive by name

Every function here is pure: the input sequence is never mutated and the same
inputs always produce the same ordered output.
"""

from __future__ import annotations

import unicodedata
from typing import Iterable, Sequence

from .models import LETTERS, FilterState, TagLogic, Term


def _char_rank(ch: str) -> int:
    # punctuation and symbols, then digits, then letters
    if ch.isalpha():
        return 2
    if ch.isdigit():
        return 1
    return 0


def sort_key(name: str) -> tuple[tuple[int, str], ...]:
    """Base-letter collation key: accents and case do not affect order.

    Characters are grouped the way the Unicode root collation groups them,
    so ``~tilde`` and ``{brace}`` sort before ``9lives`` and ``alpha``.
    Within a group the order is by code point, which differs from a full
    collation only between punctuation marks.
    """
    decomposed = unicodedata.normalize("NFKD", name)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return tuple((_char_rank(ch), ch) for ch in stripped.casefold())


def sort_terms(terms: Iterable[Term]) -> list[Term]:
    return sorted(terms, key=lambda t: sort_key(t.term))


def _first_letter(name: str) -> str:
    return name[:1].upper()


def _matches_search(term: Term, needle: str) -> bool:
    return needle in term.term.lower()


def _matches_tags(term: Term, selected: frozenset[str], logic: TagLogic) -> bool:
    term_tags = {t.lower() for t in term.tags}
    wanted = (tag.lower() for tag in selected)
    if logic is TagLogic.AND:
        return all(tag in term_tags for tag in wanted)
    return any(tag in term_tags for tag in wanted)


def filter_terms(terms: Sequence[Term], state: FilterState) -> list[Term]:
    """Apply search, tag and letter filters, then sort by name."""
    filtered = list(terms)

    if state.search.strip():
        needle = state.search.lower()
        filtered = [t for t in filtered if _matches_search(t, needle)]

    if state.tags:
        filtered = [t for t in filtered if _matches_tags(t, state.tags, state.logic)]

    if state.letter:
        filtered = [t for t in filtered if _first_letter(t.term) == state.letter]

    return sort_terms(filtered)


def tag_universe(terms: Iterable[Term]) -> list[str]:
    """All distinct tags as stored (no case folding), sorted for display."""
    tags: set[str] = set()
    for term in terms:
        tags.update(tag for tag in term.tags if tag.strip())
    return sorted(tags)


def available_letters(terms: Iterable[Term]) -> set[str]:
    """Upper-cased first characters restricted to A-Z."""
    letters: set[str] = set()
    for term in terms:
        first = _first_letter(term.term)
        if len(first) == 1 and first in LETTERS:
            letters.add(first)
    return letters
