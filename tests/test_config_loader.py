"""
tests/test_config_loader.py

Portal JSON loading and environment-driven ingestion settings.
"""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest

from app.ingestion.config import (
    MarkupConfig,
    SubTargetConfig,
    get_ingestion_settings,
    load_portal_configs,
)


def _write(tmp_path: Path, portals: Any) -> str:
    path = tmp_path / "portals.json"
    path.write_text(json.dumps({"portals": portals}), encoding="utf-8")
    return str(path)


@pytest.fixture()
def clean_settings(monkeypatch: pytest.MonkeyPatch):
    for name in (
        "INGESTION_POOL_MAX_SESSIONS",
        "INGESTION_ACQUIRE_TIMEOUT_SECONDS",
        "INGESTION_RETAIL_MARKUP",
        "INGESTION_RESELLER_MARKUP",
        "INGESTION_HEADLESS",
        "INGESTION_BROWSER_EXTRA_ARGS",
        "INGESTION_SCHEDULER_ENABLED",
        "CHROME_BINARY",
        "PUPPETEER_EXECUTABLE_PATH",
        "CHROMIUM_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    get_ingestion_settings.cache_clear()
    yield monkeypatch
    get_ingestion_settings.cache_clear()


def test_bundled_config_loads() -> None:
    portals = {portal.name: portal for portal in load_portal_configs(config_path="app/ingestion/config/portals.json")}

    assert set(portals) == {"vtpass_data", "nbais_schools"}
    data = portals["vtpass_data"]
    assert data.catalog == "data_plans"
    assert data.task_type == "data_bundles"
    assert [target.name for target in data.sub_targets] == ["mtn", "airtel", "glo", "9mobile"]
    assert data.sub_targets[3].aliases == ("etisalat",)
    assert data.markup == MarkupConfig(retail=Decimal("1.4"), reseller=Decimal("1.2"))
    assert data.selectors.containers

    schools = portals["nbais_schools"]
    assert schools.requires_amount is False
    assert len(schools.sub_targets) == 37
    assert schools.schedule_cron == "30 3 * * 1"


def test_entries_are_normalized(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        [
            {
                "name": "  VTPass_Data ",
                "catalog": "Data_Plans",
                "entry_url": "https://vtpass.test/data-bundles",
                "sub_targets": [
                    "mtn",
                    "MTN",
                    {"name": "9mobile", "aliases": ["etisalat", " ", 7]},
                    {"aliases": ["nameless"]},
                    42,
                ],
                "selectors": {"entry": "img", "containers": ["option", ""], "bogus": ["x"]},
                "placeholder_tokens": ["Pick"],
                "enabled": "no",
                "ready_selector": "  ",
            }
        ],
    )

    [portal] = load_portal_configs(config_path=path)

    assert portal.name == "vtpass_data"
    assert portal.catalog == "data_plans"
    assert portal.task_type == "data_bundles"
    assert portal.sub_targets == (
        SubTargetConfig("mtn"),
        SubTargetConfig("9mobile", ("etisalat",)),
    )
    assert portal.selectors.entry == ("img",)
    assert portal.selectors.containers == ("option",)
    assert portal.selectors.text == ()
    assert portal.placeholder_tokens == ("pick",)
    assert portal.enabled is False
    assert portal.ready_selector is None
    assert portal.markup is None
    assert portal.requires_amount is True


def test_incomplete_entries_are_skipped(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        [
            {"name": "no_url", "catalog": "data_plans"},
            {"catalog": "data_plans", "entry_url": "https://a.test/"},
            "not-a-dict",
            {"name": "ok", "catalog": "data_plans", "entry_url": "https://a.test/"},
        ],
    )

    assert [portal.name for portal in load_portal_configs(config_path=path)] == ["ok"]


@pytest.mark.parametrize(
    "markup",
    [{"retail": "0", "reseller": "1.2"}, {"retail": "1.4"}, {"retail": "abc", "reseller": "1.2"}],
)
def test_invalid_markup_is_rejected(tmp_path: Path, markup: dict[str, str]) -> None:
    path = _write(
        tmp_path,
        [{"name": "p", "catalog": "c", "entry_url": "https://a.test/", "markup": markup}],
    )

    with pytest.raises(ValueError):
        load_portal_configs(config_path=path)


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_portal_configs(config_path=str(tmp_path / "absent.json"))


def test_portals_must_be_a_list(tmp_path: Path) -> None:
    path = tmp_path / "portals.json"
    path.write_text(json.dumps({"portals": {"name": "p"}}), encoding="utf-8")

    with pytest.raises(ValueError):
        load_portal_configs(config_path=str(path))


def test_settings_defaults(clean_settings: pytest.MonkeyPatch) -> None:
    settings = get_ingestion_settings()

    assert settings.max_sessions == 4
    assert settings.acquire_timeout_seconds == 30.0
    assert settings.headless is True
    assert settings.browser_binary is None
    assert settings.default_markup == MarkupConfig(retail=Decimal("1.4"), reseller=Decimal("1.2"))
    assert settings.config_path.endswith("portals.json")
    assert Path(settings.config_path).is_absolute()


def test_settings_from_environment(clean_settings: pytest.MonkeyPatch) -> None:
    clean_settings.setenv("INGESTION_POOL_MAX_SESSIONS", "0")
    clean_settings.setenv("INGESTION_ACQUIRE_TIMEOUT_SECONDS", "not-a-number")
    clean_settings.setenv("INGESTION_RETAIL_MARKUP", "1.5")
    clean_settings.setenv("INGESTION_HEADLESS", "false")
    clean_settings.setenv("INGESTION_BROWSER_EXTRA_ARGS", "--lang=en  --disable-gpu")
    clean_settings.setenv("CHROMIUM_PATH", "/usr/bin/chromium")

    settings = get_ingestion_settings()

    assert settings.max_sessions == 1
    assert settings.acquire_timeout_seconds == 30.0
    assert settings.default_markup.retail == Decimal("1.5")
    assert settings.headless is False
    assert settings.extra_browser_args == ("--lang=en", "--disable-gpu")
    assert settings.browser_binary == "/usr/bin/chromium"


def test_portal_markup_overrides_default(clean_settings: pytest.MonkeyPatch, tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        [
            {"name": "a", "catalog": "c", "entry_url": "https://a.test/", "markup": {"retail": 2, "reseller": 1.5}},
            {"name": "b", "catalog": "c", "entry_url": "https://b.test/"},
        ],
    )
    settings = get_ingestion_settings()
    first, second = load_portal_configs(config_path=path)

    assert settings.markup_for(first) == MarkupConfig(retail=Decimal("2"), reseller=Decimal("1.5"))
    assert settings.markup_for(second) == settings.default_markup
