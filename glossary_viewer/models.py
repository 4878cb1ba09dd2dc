"""Glossary term, filter state and import result models."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

LETTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def now_millis() -> int:
    return int(time.time() * 1000)


class Term(BaseModel):
    """A stored glossary record."""

    id: str
    term: str
    definition: str = ""
    tags: list[str] = Field(default_factory=list)
    created_at: int = Field(default_factory=now_millis)  # epoch millis

    @classmethod
    def from_source(cls, doc_id: str, source: dict[str, Any]) -> "Term":
        """Map a stored document, defaulting any missing field."""
        created_at = source.get("created_at")
        return cls(
            id=doc_id,
            term=source.get("term") or "",
            definition=source.get("definition") or "",
            tags=list(source.get("tags") or []),
            created_at=int(created_at) if created_at is not None else now_millis(),
        )


class TagLogic(str, Enum):
    """AND: term must have all selected tags. OR: at least one."""

    AND = "AND"
    OR = "OR"


class FilterState(BaseModel):
    """Ephemeral filter inputs, passed whole into the filter pipeline."""

    model_config = ConfigDict(frozen=True)

    search: str = ""
    tags: frozenset[str] = frozenset()
    logic: TagLogic = TagLogic.OR
    letter: Optional[str] = None

    @field_validator("logic", mode="before")
    @classmethod
    def _normalise_logic(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("letter", mode="before")
    @classmethod
    def _normalise_letter(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        letter = str(value).strip().upper()
        if not letter:
            return None
        if len(letter) != 1 or letter not in LETTERS:
            raise ValueError(f"letter must be a single character A-Z, got {value!r}")
        return letter

    def with_tag_toggled(self, tag: str) -> "FilterState":
        tags = set(self.tags)
        if tag in tags:
            tags.remove(tag)
        else:
            tags.add(tag)
        return self.model_copy(update={"tags": frozenset(tags)})

    def with_letter_toggled(self, letter: str) -> "FilterState":
        """Select *letter*, or clear it when it is already selected."""
        letter = letter.strip().upper()
        if self.letter == letter:
            return self.model_copy(update={"letter": None})
        # Validate through the constructor rather than model_copy.
        return FilterState(
            search=self.search, tags=self.tags, logic=self.logic, letter=letter
        )

    @property
    def is_empty(self) -> bool:
        return not self.search.strip() and not self.tags and self.letter is None


class TermDraft(NamedTuple):
    """A parsed CSV row waiting to be imported."""

    term: str
    definition: str
    tags: list[str]


class ImportResult(BaseModel):
    added: int = 0
    skipped: int = 0
