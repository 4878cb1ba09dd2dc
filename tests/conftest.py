from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Make package importable when running tests from the repo root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from glossary_viewer.memory_store import InMemoryTermStore  # noqa: E402
from glossary_viewer.models import Term  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "integration: tests that require a running OpenSearch cluster",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if os.getenv("GLOSSARY_RUN_INTEGRATION") == "1":
        return

    skip_integration = pytest.mark.skip(
        reason="Set GLOSSARY_RUN_INTEGRATION=1 to run integration tests"
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


def make_term(name: str, tags=(), definition: str = "", term_id: str | None = None) -> Term:
    return Term(
        id=term_id or f"id-{name}",
        term=name,
        definition=definition,
        tags=list(tags),
        created_at=1_700_000_000_000,
    )


@pytest.fixture
def sample_terms() -> list[Term]:
    return [
        make_term("Transformer", ["AI", "NLP"], "Attention-based architecture"),
        make_term("agent", ["ai", "Agents"], "Autonomous LLM loop"),
        make_term("Backpropagation", ["ML"], "Gradient computation"),
        make_term("attention", ["NLP"], "Weighted mixing of tokens"),
        make_term("Embedding", [], "Dense vector representation"),
        make_term("2FA", ["security"], "Two-factor authentication"),
    ]


@pytest.fixture
def memory_store(sample_terms) -> InMemoryTermStore:
    return InMemoryTermStore(sample_terms)
