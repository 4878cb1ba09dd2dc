"""Searchable, filterable glossary backed by OpenSearch."""

from .client import build_store, create_client
from .config import GlossaryConfig, load_config
from .filters import available_letters, filter_terms, sort_terms, tag_universe
from .importer import (
    import_csv_file,
    import_csv_text,
    import_rows,
    parse_rows,
    read_csv_rows,
)
from .memory_store import InMemoryTermStore
from .models import FilterState, ImportResult, TagLogic, Term, TermDraft
from .store import OpenSearchTermStore, TermStore, TermStoreError
from .view import GlossaryView

__all__ = [
    # config / client
    "GlossaryConfig",
    "load_config",
    "create_client",
    "build_store",
    # models
    "Term",
    "TermDraft",
    "TagLogic",
    "FilterState",
    "ImportResult",
    # filters
    "filter_terms",
    "sort_terms",
    "tag_universe",
    "available_letters",
    # stores
    "TermStore",
    "TermStoreError",
    "OpenSearchTermStore",
    "InMemoryTermStore",
    # import
    "read_csv_rows",
    "parse_rows",
    "import_rows",
    "import_csv_text",
    "import_csv_file",
    # view
    "GlossaryView",
]
