from __future__ import annotations

from glossary_viewer.models import FilterState
from glossary_viewer.view import GlossaryView


def test_open_loads_collection_and_close_unsubscribes(memory_store):
    view = GlossaryView(memory_store)
    assert view.terms == []

    view.open()
    assert view.is_open
    assert len(view.terms) == 6

    view.close()
    assert not view.is_open
    memory_store.insert("After close", "", [])
    assert len(view.terms) == 6


def test_open_twice_keeps_one_subscription(memory_store):
    view = GlossaryView(memory_store)
    view.open()
    view.open()

    assert len(memory_store._subscribers) == 1
    view.close()
    assert len(memory_store._subscribers) == 0


def test_deleted_term_disappears_from_matching_views(memory_store):
    state = FilterState(tags={"nlp"}, letter="T")
    with GlossaryView(memory_store) as first, GlossaryView(memory_store) as second:
        assert [t.term for t in first.filtered(state)] == ["Transformer"]

        memory_store.delete("id-Transformer")

        assert first.filtered(state) == []
        assert second.filtered(state) == []
        assert "id-Transformer" not in {t.id for t in second.terms}


def test_push_replaces_collection_wholesale(memory_store):
    with GlossaryView(memory_store) as view:
        held = view.terms
        memory_store.insert("Zeta", "", ["greek"])

        assert len(held) == 6
        assert len(view.terms) == 7
        assert "greek" in view.tags
        assert "Z" in view.letters


def test_summary_counts_shown_and_total(memory_store):
    with GlossaryView(memory_store) as view:
        assert view.summary() == (6, 6)
        assert view.summary(FilterState(search="att")) == (1, 6)
