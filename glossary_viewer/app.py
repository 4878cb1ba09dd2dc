import atexit
import csv
import logging
import sys
from pathlib import Path
from typing import Optional

from flask import Flask, jsonify, redirect, render_template, request, url_for
from pydantic import ValidationError
from werkzeug.datastructures import MultiDict

from .client import build_store
from .config import GlossaryConfig, load_config
from .importer import NO_VALID_TERMS, import_rows, parse_rows, read_csv_rows
from .models import LETTERS, FilterState, Term
from .store import TermStore, TermStoreError
from .view import GlossaryView

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def create_app(
    config: Optional[GlossaryConfig] = None,
    store: Optional[TermStore] = None,
) -> Flask:
    if config is None:
        config = load_config()
    if store is None:
        store = build_store(config)

    view = GlossaryView(store)
    view.open()
    atexit.register(view.close)

    app = Flask(
        __name__,
        template_folder=str(Path(__file__).resolve().parent / "templates"),
    )
    app.config["glossary"] = config
    app.config["store"] = store
    app.config["view"] = view

    register_routes(app)
    return app


def filter_state_from_args(args: MultiDict) -> FilterState:
    """Build a FilterState from ``q``, ``tag`` (repeatable), ``logic``, ``letter``."""
    return FilterState(
        search=args.get("q", ""),
        tags=frozenset(t for t in args.getlist("tag") if t),
        logic=args.get("logic") or "OR",
        letter=args.get("letter") or None,
    )


def _term_json(term: Term) -> dict:
    return term.model_dump()


def _error(message: str, status: int):
    return jsonify({"error": message}), status


def _json_object() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValueError("Request body must be a JSON object")
    return payload


def _text_field(payload: dict, name: str) -> Optional[str]:
    value = payload.get(name)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"'{name}' must be a string")
    return value


def _tags_field(payload: dict) -> Optional[list]:
    """Accept ``tags`` as a list of strings or one comma-separated string."""
    tags = payload.get("tags")
    if tags is None:
        return None
    if isinstance(tags, str):
        return tags.split(",")
    if isinstance(tags, list) and all(isinstance(t, str) for t in tags):
        return tags
    raise ValueError("'tags' must be a list of strings or a comma-separated string")


def register_routes(app: Flask):
    def get_view() -> GlossaryView:
        return app.config["view"]

    def get_store() -> TermStore:
        return app.config["store"]

    @app.route("/")
    def index():
        view = get_view()
        try:
            state = filter_state_from_args(request.args)
        except ValidationError:
            state = FilterState()
        shown = view.filtered(state)
        return render_template(
            "index.html",
            terms=shown,
            total=len(view.terms),
            tags=view.tags,
            letters=LETTERS,
            available_letters=view.letters,
            state=state,
            message=request.args.get("message", ""),
        )

    @app.route("/api/terms", methods=["GET"])
    def list_terms():
        view = get_view()
        try:
            state = filter_state_from_args(request.args)
        except ValidationError as exc:
            return _error(str(exc), 400)
        terms = view.filtered(state)
        return jsonify(
            {
                "terms": [_term_json(t) for t in terms],
                "shown": len(terms),
                "total": len(view.terms),
            }
        )

    @app.route("/api/tags")
    def list_tags():
        return jsonify({"tags": get_view().tags})

    @app.route("/api/letters")
    def list_letters():
        return jsonify({"letters": sorted(get_view().letters)})

    @app.route("/api/terms", methods=["POST"])
    def add_term():
        try:
            payload = _json_object()
            term_id = get_store().insert(
                _text_field(payload, "term") or "",
                _text_field(payload, "definition") or "",
                _tags_field(payload) or [],
            )
        except ValueError as exc:
            return _error(str(exc), 400)
        except TermStoreError as exc:
            return _error(str(exc), 502)
        return jsonify({"id": term_id}), 201

    @app.route("/api/terms/<term_id>", methods=["PATCH"])
    def update_term(term_id):
        try:
            payload = _json_object()
            get_store().update(
                term_id,
                term=_text_field(payload, "term"),
                definition=_text_field(payload, "definition"),
                tags=_tags_field(payload),
            )
        except ValueError as exc:
            return _error(str(exc), 400)
        except TermStoreError as exc:
            return _error(str(exc), 502)
        return jsonify({"id": term_id})

    @app.route("/api/terms/<term_id>", methods=["DELETE"])
    def delete_term(term_id):
        if request.args.get("confirm", "").lower() not in {"1", "true", "yes"}:
            return _error("Deletion must be confirmed with confirm=true", 400)
        try:
            get_store().delete(term_id)
        except TermStoreError as exc:
            return _error(f"Failed to delete term: {exc}", 502)
        return jsonify({"deleted": term_id})

    @app.route("/terms/<term_id>/delete", methods=["POST"])
    def delete_term_form(term_id):
        if request.form.get("confirm") != "yes":
            return redirect(url_for("index", message="Deletion was not confirmed"))
        try:
            get_store().delete(term_id)
        except TermStoreError as exc:
            return redirect(url_for("index", message=f"Failed to delete term: {exc}"))
        return redirect(url_for("index"))

    @app.route("/api/import", methods=["POST"])
    def import_terms():
        body, status = _run_import()
        return jsonify(body), status

    @app.route("/import", methods=["POST"])
    def import_terms_form():
        body, _ = _run_import()
        if "error" in body:
            message = body["error"]
        else:
            message = f"{body['added']} new terms added"
            if body["skipped"]:
                message += f", {body['skipped']} terms skipped (duplicates or invalid)"
        return redirect(url_for("index", message=message))

    def _run_import() -> tuple[dict, int]:
        upload = request.files.get("file")
        if upload is None or not upload.filename:
            return {"error": "No file selected"}, 400
        try:
            rows = read_csv_rows(upload.read().decode("utf-8-sig"))
        except (UnicodeDecodeError, csv.Error):
            logger.exception("Error reading uploaded file %s", upload.filename)
            return {"error": "Failed to parse CSV file. Please check the format."}, 400

        drafts, invalid = parse_rows(rows)
        if not drafts:
            return {"error": NO_VALID_TERMS, "added": 0, "skipped": invalid}, 400

        try:
            result = import_rows(get_store(), rows)
        except TermStoreError as exc:
            logger.error("Import of %s failed: %s", upload.filename, exc)
            return {"error": f"Import failed: {exc}"}, 502
        return result.model_dump(), 200


def main() -> None:
    config = load_config()
    logging.basicConfig(level=config.log_level.upper(), format=LOG_FORMAT)
    try:
        app = create_app(config)
    except TermStoreError as exc:
        logger.error("Could not start glossary viewer: %s", exc)
        sys.exit(1)
    app.run(host=config.server_host, port=config.server_port, debug=config.debug)


if __name__ == "__main__":
    main()
