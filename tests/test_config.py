# File: tests/test_config.py
import json
from pathlib import Path

import pytest
from pydantic import ValidationError
from wiki_harvest.config import HarvestConfig, load_config, select_categories, select_languages
from wiki_harvest.crawler.models import CategoryKind


def write_file(tmp_path: Path, content: str, suffix: str) -> Path:
    path = tmp_path / f"config{suffix}"
    path.write_text(content, encoding="utf-8")
    return path


@pytest.mark.parametrize(
    "content,suffix,expect_exc",
    [
        ("entry_points:\n  detail: [http://example.com/entry/1]", ".yaml", None),
        (json.dumps({"entry_points": {"detail": ["http://example.com/entry/1"]}}), ".json", None),
        ("{}", ".json", ValidationError),
        ("entry_points: {detail: []}", ".yaml", ValidationError),
        ("entry_points: {recipes: [http://example.com/]}", ".yaml", ValidationError),
        ("not: a: mapping", ".yaml", ValueError),
        ("- just\n- a list", ".yaml", TypeError),
        ("{broken json", ".json", ValueError),
    ],
)
def test_load_config_variants(tmp_path, content, suffix, expect_exc):
    cfg_path = write_file(tmp_path, content, suffix)
    if expect_exc:
        with pytest.raises(expect_exc):
            load_config(cfg_path)
    else:
        cfg = load_config(cfg_path)
        assert isinstance(cfg, HarvestConfig)
        assert cfg.entry_urls(CategoryKind.DETAIL) == ["http://example.com/entry/1"]
        assert cfg.entry_urls(CategoryKind.LIST) == []


def test_defaults(tmp_path):
    cfg = load_config(write_file(tmp_path, "entry_points: {navigation: [http://example.com/nav/]}", ".yml"))
    assert cfg.max_depth == 3
    assert cfg.retry_times == 3
    assert cfg.timeout == 35.0
    assert 1 <= cfg.concurrency <= 32
    assert cfg.out_dir == Path("generated_wiki_data")
    assert cfg.respect_robots is True


def test_unknown_key_rejected(tmp_path):
    cfg_path = write_file(tmp_path, "entry_points: {detail: [http://example.com/]}\nrate_limit: 5", ".yaml")
    with pytest.raises(ValidationError):
        load_config(cfg_path)


def test_config_is_frozen_but_copyable(tmp_path):
    cfg = load_config(write_file(tmp_path, "entry_points: {detail: [http://example.com/]}", ".yaml"))
    with pytest.raises(ValidationError):
        cfg.concurrency = 2
    assert cfg.model_copy(update={"concurrency": 2}).concurrency == 2


def test_keep_query_params_from_string(tmp_path):
    cfg = load_config(
        write_file(tmp_path, "entry_points: {detail: [http://example.com/]}\nkeep_query_params: 'id, lang'", ".yaml")
    )
    assert cfg.keep_query_params == ["id", "lang"]


def test_load_config_default_missing(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(FileNotFoundError):
        load_config(None)


def test_load_config_unsupported_suffix(tmp_path):
    with pytest.raises(ValueError):
        load_config(write_file(tmp_path, "entry_points = 1", ".toml"))


# --------------------------------------------------------------------------- #
#                             Category selector                               #
# --------------------------------------------------------------------------- #


def test_select_all():
    assert select_categories("all") == list(CategoryKind)


def test_select_names():
    assert select_categories("Detail, list,detail") == [CategoryKind.DETAIL, CategoryKind.LIST]


@pytest.mark.parametrize("value", ["recipes", "", " , "])
def test_select_invalid(value):
    with pytest.raises(ValueError):
        select_categories(value)


# --------------------------------------------------------------------------- #
#                                 Languages                                   #
# --------------------------------------------------------------------------- #

LANGUAGES_YAML = """
languages:
  FR-fr:
    navigation: [http://example.com/fr-fr/nav/]
  en-us:
    navigation: [http://example.com/en-us/nav/]
    calendar: [http://example.com/en-us/calendar/]
"""


def test_languages_loaded(tmp_path):
    cfg = load_config(write_file(tmp_path, LANGUAGES_YAML, ".yaml"))
    assert cfg.language_codes == ["en-us", "fr-fr"]
    assert cfg.entry_urls(CategoryKind.NAVIGATION, "fr-fr") == ["http://example.com/fr-fr/nav/"]
    assert cfg.entry_urls(CategoryKind.CALENDAR, "fr-fr") == []
    assert cfg.entry_urls(CategoryKind.NAVIGATION) == []
    assert cfg.entry_urls(CategoryKind.NAVIGATION, "de-de") == []


@pytest.mark.parametrize(
    "content",
    [
        "entry_points: {detail: [http://example.com/]}\nlanguages: {en: {detail: [http://example.com/en/]}}",
        "languages: {'en us': {detail: [http://example.com/]}}",
        "languages: {en: {detail: []}}",
        "languages: {en: {detail: [http://example.com/]}, EN: {list: [http://example.com/]}}",
    ],
)
def test_languages_invalid(tmp_path, content):
    with pytest.raises(ValidationError):
        load_config(write_file(tmp_path, content, ".yaml"))


def test_select_languages():
    known = ["en-us", "fr-fr"]
    assert select_languages("all", known) == known
    assert select_languages("FR-FR, en-us,fr-fr", known) == ["fr-fr", "en-us"]


@pytest.mark.parametrize("value,known", [("de", ["en-us"]), (" , ", ["en-us"]), ("all", [])])
def test_select_languages_invalid(value, known):
    with pytest.raises(ValueError):
        select_languages(value, known)
