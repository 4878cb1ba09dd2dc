from __future__ import annotations

import io

import pytest

import glossary_viewer.app as app_module
from glossary_viewer.app import create_app
from glossary_viewer.config import GlossaryConfig
from glossary_viewer.importer import NO_VALID_TERMS
from glossary_viewer.memory_store import InMemoryTermStore
from glossary_viewer.store import TermStoreError


class FlakyDeleteStore(InMemoryTermStore):
    def delete(self, term_id):
        raise TermStoreError(f"Could not delete term {term_id!r}")


def _make_client(store):
    app = create_app(GlossaryConfig(store_backend="memory"), store=store)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def http(memory_store):
    return _make_client(memory_store)


def _names(response):
    return [t["term"] for t in response.get_json()["terms"]]


def test_list_terms_without_filters(http):
    response = http.get("/api/terms")

    assert response.status_code == 200
    body = response.get_json()
    assert body["shown"] == body["total"] == 6
    assert _names(response)[:2] == ["2FA", "agent"]


def test_list_terms_with_filters(http):
    response = http.get("/api/terms?q=a&tag=AI&tag=nlp&logic=AND")
    assert _names(response) == ["Transformer"]

    response = http.get("/api/terms?tag=AI&tag=nlp&logic=or&letter=a")
    assert _names(response) == ["agent", "attention"]
    assert response.get_json()["total"] == 6


@pytest.mark.parametrize("query", ["letter=12", "logic=XOR"])
def test_invalid_filters_are_rejected(http, query):
    assert http.get(f"/api/terms?{query}").status_code == 400


def test_tags_and_letters(http):
    assert http.get("/api/tags").get_json()["tags"] == [
        "AI",
        "Agents",
        "ML",
        "NLP",
        "ai",
        "security",
    ]
    assert http.get("/api/letters").get_json()["letters"] == ["A", "B", "E", "T"]


def test_add_term_appears_in_listing(http):
    response = http.post(
        "/api/terms", json={"term": " Zebra ", "definition": "x", "tags": "animal, "}
    )
    assert response.status_code == 201

    listed = http.get("/api/terms?letter=Z").get_json()["terms"]
    assert listed[0]["term"] == "Zebra"
    assert listed[0]["tags"] == ["animal"]


def test_add_blank_term_is_rejected(http):
    assert http.post("/api/terms", json={"term": "  "}).status_code == 400


def test_update_term(http):
    response = http.patch("/api/terms/id-agent", json={"definition": "updated"})
    assert response.status_code == 200

    listed = http.get("/api/terms?q=agent").get_json()["terms"]
    assert listed[0]["definition"] == "updated"


def test_update_unknown_term_reports_failure(http):
    assert http.patch("/api/terms/missing", json={"term": "x"}).status_code == 502


def test_delete_requires_confirmation(http):
    response = http.delete("/api/terms/id-agent")

    assert response.status_code == 400
    assert "agent" in _names(http.get("/api/terms"))


def test_confirmed_delete_removes_term(http):
    response = http.delete("/api/terms/id-agent?confirm=true")

    assert response.status_code == 200
    assert "agent" not in _names(http.get("/api/terms?tag=ai"))


def test_failed_delete_keeps_term(sample_terms):
    http = _make_client(FlakyDeleteStore(sample_terms))

    response = http.delete("/api/terms/id-agent?confirm=true")

    assert response.status_code == 502
    assert "Failed to delete term" in response.get_json()["error"]
    assert "agent" in _names(http.get("/api/terms"))


def test_import_csv_upload(http):
    data = b"Agent,duplicate,x\nZeta,greek letter,\"greek, math\"\nshort,row\n"
    response = http.post(
        "/api/import",
        data={"file": (io.BytesIO(data), "terms.csv")},
        content_type="multipart/form-data",
    )

    assert response.status_code == 200
    assert response.get_json() == {"added": 1, "skipped": 2}
    assert "Zeta" in _names(http.get("/api/terms?tag=math"))


def test_import_without_valid_rows(http):
    response = http.post(
        "/api/import",
        data={"file": (io.BytesIO(b",,\nonly,two\n"), "bad.csv")},
        content_type="multipart/form-data",
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == NO_VALID_TERMS


def test_import_without_file(http):
    assert http.post("/api/import").status_code == 400


def test_index_page_renders(http):
    response = http.get("/?letter=t")

    assert response.status_code == 200
    page = response.get_data(as_text=True)
    assert "Showing 1 of 6 terms" in page
    assert "Transformer" in page


def test_form_import_redirects_with_message(http):
    response = http.post(
        "/import",
        data={"file": (io.BytesIO(b"Omega,last,greek\n"), "terms.csv")},
        content_type="multipart/form-data",
    )

    assert response.status_code == 302
    assert "1+new+terms+added" in response.headers["Location"] or (
        "1%20new%20terms%20added" in response.headers["Location"]
    )


@pytest.mark.parametrize(
    "payload",
    [
        ["Zebra"],
        "Zebra",
        {"term": "Zebra", "tags": 5},
        {"term": "Zebra", "tags": ["ok", 3]},
        {"term": 5},
        {"term": "Zebra", "definition": {"text": "x"}},
    ],
)
def test_add_term_rejects_malformed_json(http, payload):
    response = http.post("/api/terms", json=payload)

    assert response.status_code == 400
    assert "error" in response.get_json()
    assert http.get("/api/terms").get_json()["total"] == 6


@pytest.mark.parametrize(
    "payload",
    [["x"], {"term": 5}, {"tags": 5}, {"definition": 1.5}],
)
def test_update_term_rejects_malformed_json(http, payload):
    response = http.patch("/api/terms/id-agent", json=payload)

    assert response.status_code == 400
    (agent,) = [t for t in http.get("/api/terms").get_json()["terms"] if t["id"] == "id-agent"]
    assert agent["term"] == "agent"


def test_apply_is_the_default_button_and_letter_is_carried(http):
    page = http.get("/?letter=A").get_data(as_text=True)

    assert page.index(">Apply</button>") < page.index('name="letter"')
    assert '<input type="hidden" name="letter" value="A">' in page


def test_clicked_letter_wins_over_carried_letter(http):
    chosen = http.get("/api/terms?letter=T&letter=A")
    assert _names(chosen) == ["Transformer"]

    cleared = http.get("/api/terms?letter=&letter=A")
    assert cleared.get_json()["shown"] == 6


def test_main_exits_cleanly_when_store_is_unreachable(monkeypatch):
    def unreachable(config=None, store=None):
        raise TermStoreError("Could not prepare index 'glossary-terms'")

    monkeypatch.setattr(app_module, "load_config", lambda: GlossaryConfig(store_backend="memory"))
    monkeypatch.setattr(app_module, "create_app", unreachable)

    with pytest.raises(SystemExit) as excinfo:
        app_module.main()
    assert excinfo.value.code == 1
