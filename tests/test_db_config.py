"""
tests/test_db_config.py

Catalog database URL resolution and env file loading.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from db import config

URL_VARS = ("DATABASE_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL", "ENVIRONMENT")


@pytest.fixture()
def bare_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in URL_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "load_env_files", lambda root=None: None)
    return monkeypatch


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("postgres://u:p@db:5432/catalog", "postgresql+psycopg://u:p@db:5432/catalog"),
        ("postgresql://u:p@db/catalog", "postgresql+psycopg://u:p@db/catalog"),
        ("postgresql+psycopg://u:p@db/catalog", "postgresql+psycopg://u:p@db/catalog"),
        ("sqlite+pysqlite:///catalog.db", "sqlite+pysqlite:///catalog.db"),
    ],
)
def test_normalize_postgres_url(url: str, expected: str) -> None:
    assert config.normalize_postgres_url(url) == expected


def test_direct_url_wins(bare_env: pytest.MonkeyPatch) -> None:
    bare_env.setenv("DATABASE_URL", " postgres://direct/catalog ")
    bare_env.setenv("LOCAL_DATABASE_URL", "postgresql://local/catalog")

    assert config.resolve_database_url() == "postgresql+psycopg://direct/catalog"


def test_cloud_url_only_for_hosted_environments(bare_env: pytest.MonkeyPatch) -> None:
    bare_env.setenv("CLOUD_DATABASE_URL", "postgresql://cloud/catalog")
    bare_env.setenv("LOCAL_DATABASE_URL", "postgresql://local/catalog")

    assert config.resolve_database_url() == "postgresql+psycopg://local/catalog"

    bare_env.setenv("ENVIRONMENT", " Staging ")
    assert config.resolve_database_url() == "postgresql+psycopg://cloud/catalog"


def test_missing_url_names_the_variables(bare_env: pytest.MonkeyPatch) -> None:
    bare_env.setenv("DATABASE_URL", "   ")

    with pytest.raises(RuntimeError, match="DATABASE_URL, LOCAL_DATABASE_URL"):
        config.resolve_database_url()


def test_env_files_fill_gaps_only(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / ".env").write_text(
        "\n".join(
            [
                "# catalog settings",
                "export CATALOG_TEST_URL='postgres://from-file/catalog'",
                'CATALOG_TEST_MARKUP="1.4"',
                "CATALOG_TEST_KEPT=from-file",
                "not a pair",
            ]
        ),
        encoding="utf-8",
    )
    (tmp_path / ".env.local").write_text("CATALOG_TEST_MARKUP=2.0\n", encoding="utf-8")
    environ = {"CATALOG_TEST_KEPT": "from-process"}
    monkeypatch.setattr(config.os, "environ", environ)

    config.load_env_files(tmp_path)

    assert environ == {
        "CATALOG_TEST_URL": "postgres://from-file/catalog",
        "CATALOG_TEST_MARKUP": "1.4",
        "CATALOG_TEST_KEPT": "from-process",
    }
