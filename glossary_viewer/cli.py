"""CLI: serve the glossary, import CSV files, list, add and delete terms."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional, Sequence

from pydantic import ValidationError

from .client import build_store
from .config import load_config
from .filters import filter_terms
from .importer import NO_VALID_TERMS, import_rows, parse_rows, read_csv_rows
from .models import FilterState
from .store import TermStoreError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _cmd_serve(args, config) -> int:
    from .app import create_app

    if args.host:
        config.server_host = args.host
    if args.port:
        config.server_port = args.port
    app = create_app(config)
    app.run(host=config.server_host, port=config.server_port, debug=config.debug)
    return 0


def _cmd_import(args, config) -> int:
    try:
        with open(args.input, encoding="utf-8-sig") as f:
            rows = read_csv_rows(f.read())
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Failed to read file: {exc}", file=sys.stderr)
        return 1

    drafts, _ = parse_rows(rows)
    if not drafts:
        print(NO_VALID_TERMS, file=sys.stderr)
        return 1

    print(f"Uploading {len(drafts)} terms...")
    store = build_store(config)
    try:
        result = import_rows(store, rows)
    except TermStoreError as exc:
        print(f"Import failed: {exc}", file=sys.stderr)
        return 1
    print(f"{result.added} new terms added")
    if result.skipped:
        print(f"{result.skipped} terms skipped (duplicates or invalid)")
    return 0


def _cmd_list(args, config) -> int:
    try:
        state = FilterState(
            search=args.search,
            tags=frozenset(args.tag),
            logic=args.logic,
            letter=args.letter,
        )
    except ValidationError as exc:
        print(f"Invalid filter: {exc}", file=sys.stderr)
        return 1

    store = build_store(config)
    try:
        terms = store.fetch_all()
    except TermStoreError as exc:
        print(f"Could not read terms: {exc}", file=sys.stderr)
        return 1

    shown = filter_terms(terms, state)
    if args.json:
        print(json.dumps([t.model_dump() for t in shown], ensure_ascii=False, indent=2))
        return 0

    print(f"Showing {len(shown)} of {len(terms)} terms")
    for t in shown:
        tag_str = f" [{', '.join(t.tags)}]" if t.tags else ""
        print(f"- {t.term}{tag_str}: {t.definition}  ({t.id})")
    return 0


def _cmd_add(args, config) -> int:
    store = build_store(config)
    try:
        term_id = store.insert(args.term, args.definition, args.tags.split(","))
    except (ValueError, TermStoreError) as exc:
        print(f"Could not add term: {exc}", file=sys.stderr)
        return 1
    print(term_id)
    return 0


def _cmd_delete(args, config) -> int:
    if not args.yes:
        answer = input(f"Delete term {args.id}? [y/N] ").strip().lower()
        if answer not in {"y", "yes"}:
            print("Aborted.")
            return 1

    store = build_store(config)
    try:
        store.delete(args.id)
    except TermStoreError as exc:
        print(f"Failed to delete term: {exc}", file=sys.stderr)
        return 1
    print(f"Deleted {args.id}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="glossary-viewer", description="Searchable, filterable glossary"
    )
    parser.add_argument("--config", default=None, help="Path to a YAML config file")
    parser.add_argument("--store", choices=["opensearch", "memory"], default=None,
                        help="Term store backend (overrides config)")
    parser.add_argument("--index", default=None, help="OpenSearch index name")
    sub = parser.add_subparsers(dest="command", required=True)

    p_serve = sub.add_parser("serve", help="Run the web viewer")
    p_serve.add_argument("--host", default=None)
    p_serve.add_argument("--port", type=int, default=None)
    p_serve.set_defaults(func=_cmd_serve)

    p_import = sub.add_parser("import", help="Import terms from a CSV file")
    p_import.add_argument("input", help="CSV file: term,definition,tags (no header)")
    p_import.set_defaults(func=_cmd_import)

    p_list = sub.add_parser("list", help="List terms matching the filters")
    p_list.add_argument("--search", default="", help="Substring of the term name")
    p_list.add_argument("--tag", action="append", default=[], help="Selected tag (repeatable)")
    p_list.add_argument("--logic", choices=["AND", "OR"], default="OR")
    p_list.add_argument("--letter", default=None, help="First letter A-Z")
    p_list.add_argument("--json", action="store_true", help="Print JSON")
    p_list.set_defaults(func=_cmd_list)

    p_add = sub.add_parser("add", help="Add a single term")
    p_add.add_argument("term")
    p_add.add_argument("--definition", default="")
    p_add.add_argument("--tags", default="", help="Comma-separated tags")
    p_add.set_defaults(func=_cmd_add)

    p_delete = sub.add_parser("delete", help="Delete a term by id")
    p_delete.add_argument("id")
    p_delete.add_argument("--yes", action="store_true", help="Skip confirmation")
    p_delete.set_defaults(func=_cmd_delete)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    overrides = {}
    if args.store:
        overrides["store_backend"] = args.store
    if args.index:
        overrides["index_name"] = args.index
    config = load_config(args.config, **overrides)

    logging.basicConfig(level=config.log_level.upper(), format=LOG_FORMAT)
    try:
        return args.func(args, config)
    except TermStoreError as exc:
        print(f"Term store unavailable: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
