from __future__ import annotations

import uuid

import pytest

from glossary_viewer.client import create_client
from glossary_viewer.importer import import_rows
from glossary_viewer.models import FilterState
from glossary_viewer.store import OpenSearchTermStore
from glossary_viewer.view import GlossaryView


@pytest.mark.integration
def test_live_cluster_smoke() -> None:
    client = create_client()
    assert client.ping() is True

    index_name = f"test-glossary-{uuid.uuid4().hex[:8]}"
    store = OpenSearchTermStore(client, index=index_name, poll_interval=0)

    try:
        with GlossaryView(store) as view:
            assert view.terms == []

            term_id = store.insert(" Transformer ", "Attention-based model", ["AI", " NLP "])
            assert [t.term for t in view.terms] == ["Transformer"]

            result = import_rows(
                store,
                [
                    ("transformer", "dup", "x"),
                    ("Agent", "LLM loop", "ai, agents"),
                    ("", "no name", ""),
                ],
            )
            assert (result.added, result.skipped) == (1, 2)

            shown = view.filtered(FilterState(tags={"ai"}, logic="OR"))
            assert [t.term for t in shown] == ["Agent", "Transformer"]

            store.delete(term_id)
            store.delete(term_id)
            assert [t.term for t in view.terms] == ["Agent"]
    finally:
        store.close()
        if client.indices.exists(index=index_name):
            client.indices.delete(index=index_name)
