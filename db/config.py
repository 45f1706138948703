"""
Where the catalog database lives.

The process environment wins; ``.env`` and ``.env.local`` at the project
root only fill in variables that are not already set.
"""

from __future__ import annotations

import os
from pathlib import Path

ENV_FILES = (".env", ".env.local")

_HOSTED_ENVIRONMENTS = frozenset({"prod", "production", "staging", "cloud"})
_BARE_POSTGRES_SCHEMES = ("postgres://", "postgresql://")
_PSYCOPG_SCHEME = "postgresql+psycopg://"


def _project_root() -> Path:
    return Path(__file__).resolve().parents[1]


def _parse_env_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if line.startswith("export "):
        line = line[len("export ") :].lstrip()
    if not line or line.startswith("#"):
        return None

    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key:
        return None
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1]
    return key, value


def load_env_files(root: Path | None = None) -> None:
    """
    Copy KEY=VALUE pairs from the project's env files into ``os.environ``.
    """

    base = root if root is not None else _project_root()
    for filename in ENV_FILES:
        env_path = base / filename
        if not env_path.is_file():
            continue
        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            parsed = _parse_env_line(raw_line)
            if parsed is not None:
                os.environ.setdefault(*parsed)


def normalize_postgres_url(url: str) -> str:
    """Pin bare postgres URLs to the psycopg driver; other URLs pass through."""

    for scheme in _BARE_POSTGRES_SCHEMES:
        if url.startswith(scheme):
            return _PSYCOPG_SCHEME + url[len(scheme) :]
    return url


def database_url_sources() -> tuple[str, ...]:
    """
    Environment variables consulted for the catalog database, in order.

    ``CLOUD_DATABASE_URL`` only counts when ``ENVIRONMENT`` names a hosted
    deployment.
    """

    environment = os.getenv("ENVIRONMENT", "local").strip().lower()
    if environment in _HOSTED_ENVIRONMENTS:
        return ("DATABASE_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL")
    return ("DATABASE_URL", "LOCAL_DATABASE_URL")


def resolve_database_url() -> str:
    load_env_files()

    sources = database_url_sources()
    for name in sources:
        url = os.getenv(name, "").strip()
        if url:
            return normalize_postgres_url(url)

    raise RuntimeError(f"No catalog database URL configured; set one of {', '.join(sources)}.")
