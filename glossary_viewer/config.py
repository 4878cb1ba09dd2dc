"""Connection, index and server settings for the glossary viewer.

Settings are resolved in layers, each one overriding the previous:
defaults, the YAML file (``path`` or ``GLOSSARY_CONFIG``), a ``.env`` file,
``OPENSEARCH_*`` / ``GLOSSARY_*`` environment variables, and finally keyword
arguments to ``load_config``. The cluster is addressed by separate host and
port values rather than a URL.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from dotenv import load_dotenv

STORE_BACKENDS = ("opensearch", "memory")


def _parse_bool(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "f", "no", "n", "off"}:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


@dataclass
class GlossaryConfig:
    """Store connection, index and web server configuration."""

    # OpenSearch connection
    host: str = "localhost"
    port: int = 9200
    user: str = "admin"
    password: str = "admin"
    use_ssl: bool = True
    verify_certs: bool = False
    ssl_show_warn: bool = False
    ca_certs: Optional[str] = None
    timeout: int = 30
    max_retries: int = 3
    retry_on_timeout: bool = True
    http_compress: bool = True

    # Term store
    index_name: str = "glossary-terms"
    store_backend: str = "opensearch"
    poll_interval: float = 5.0

    # Web server
    server_host: str = "0.0.0.0"
    server_port: int = 5000
    debug: bool = False
    log_level: str = "INFO"

    @property
    def http_auth(self) -> Optional[tuple[str, str]]:
        if self.user and self.password:
            return (self.user, self.password)
        return None

    @property
    def hosts(self) -> list[dict]:
        """Return hosts list in the format expected by opensearch-py."""
        scheme = "https" if self.use_ssl else "http"
        return [{"host": self.host, "port": self.port, "scheme": scheme}]


# env var -> (field, parser)
_ENV_FIELDS: dict[str, tuple[str, Any]] = {
    "OPENSEARCH_HOST": ("host", str),
    "OPENSEARCH_PORT": ("port", int),
    "OPENSEARCH_USER": ("user", str),
    "OPENSEARCH_PASSWORD": ("password", str),
    "OPENSEARCH_USE_SSL": ("use_ssl", _parse_bool),
    "OPENSEARCH_VERIFY_CERTS": ("verify_certs", _parse_bool),
    "OPENSEARCH_CA_CERTS": ("ca_certs", str),
    "OPENSEARCH_TIMEOUT": ("timeout", int),
    "OPENSEARCH_MAX_RETRIES": ("max_retries", int),
    "OPENSEARCH_RETRY_ON_TIMEOUT": ("retry_on_timeout", _parse_bool),
    "OPENSEARCH_HTTP_COMPRESS": ("http_compress", _parse_bool),
    "GLOSSARY_INDEX": ("index_name", str),
    "GLOSSARY_STORE": ("store_backend", str),
    "GLOSSARY_POLL_INTERVAL": ("poll_interval", float),
    "GLOSSARY_HOST": ("server_host", str),
    "GLOSSARY_PORT": ("server_port", int),
    "GLOSSARY_DEBUG": ("debug", _parse_bool),
    "GLOSSARY_LOG_LEVEL": ("log_level", str),
}


def _apply_yaml(cfg: GlossaryConfig, path: Path) -> None:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    known = {f.name for f in fields(cfg)}
    for key, value in data.items():
        if key not in known:
            raise TypeError(f"Unknown config key in {path}: {key!r}")
        setattr(cfg, key, value)


def load_config(
    path: Optional[Union[str, Path]] = None,
    env_file: Optional[Union[str, Path]] = None,
    **overrides,
) -> GlossaryConfig:
    """Build a GlossaryConfig with file, env-var and keyword overrides.

    Resolution order (later wins):
      1. Dataclass defaults
      2. YAML file at *path* (or ``GLOSSARY_CONFIG``), when given
      3. Environment variables (``OPENSEARCH_HOST``, ``GLOSSARY_INDEX``, etc.),
         after loading a ``.env`` file if present
      4. Explicit keyword arguments

    Boolean env vars accept ``1/true/yes/on`` and ``0/false/no/off``.
    """
    cfg = GlossaryConfig()

    load_dotenv(env_file)

    # File layer
    config_path = path or os.getenv("GLOSSARY_CONFIG")
    if config_path:
        _apply_yaml(cfg, Path(config_path))

    # Env-var layer
    for env_name, (field_name, parser) in _ENV_FIELDS.items():
        raw = os.getenv(env_name)
        if raw is None or raw == "":
            continue
        setattr(cfg, field_name, parser(raw))

    # Explicit overrides layer
    for key, value in overrides.items():
        if hasattr(cfg, key):
            setattr(cfg, key, value)
        else:
            raise TypeError(f"Unknown config key: {key!r}")

    if cfg.store_backend not in STORE_BACKENDS:
        raise ValueError(
            f"Unknown store backend {cfg.store_backend!r}; "
            f"expected one of {', '.join(STORE_BACKENDS)}"
        )

    return cfg
