"""Tests for configuration loading, validation and name lists."""

import json
import logging
import shutil

import pytest

from famsim.config_loader import ConfigLoader
from famsim.models import Gender, LifePhase
from famsim.name_loader import FALLBACK_NAMES, NameLoader
from famsim.paths import CONFIG_DIR, NAME_LISTS_DIR
from famsim.rng import RandomSource


@pytest.fixture
def config_copy(tmp_path):
    """A writable copy of the shipped configuration."""
    target = tmp_path / "config"
    shutil.copytree(CONFIG_DIR, target)
    return target


def _break_a_trigger(config_folder):
    path = config_folder / "events" / "life.json"
    events = json.loads(path.read_text(encoding="utf-8"))
    events[0]["choices"][1]["effect"]["triggers"][0]["eventId"] = "life_does_not_exist"
    path.write_text(json.dumps(events), encoding="utf-8")


class TestShippedConfig:
    def test_loads_cleanly_in_strict_mode(self):
        loader = ConfigLoader()
        settings = loader.get_settings()
        catalog = loader.get_catalog()

        assert settings.strict is True
        assert settings.daysInYear == 360
        assert catalog.integrity_problems() == []
        assert catalog.event("life_flu") is not None
        assert catalog.unconditioned_tracks()

    def test_every_phase_has_a_cost_of_living(self):
        costs = ConfigLoader().get_settings().economy.costOfLiving
        assert set(costs) == set(LifePhase)


class TestBrokenConfig:
    def test_missing_folder(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigLoader(tmp_path / "nowhere")

    def test_missing_events_folder(self, config_copy):
        shutil.rmtree(config_copy / "events")
        with pytest.raises(FileNotFoundError):
            ConfigLoader(config_copy)

    def test_malformed_json(self, config_copy):
        (config_copy / "pets.json").write_text("[{", encoding="utf-8")
        with pytest.raises(ValueError, match="pets.json"):
            ConfigLoader(config_copy)

    def test_month_must_divide_year(self, config_copy):
        path = config_copy / "settings.json"
        settings = json.loads(path.read_text(encoding="utf-8"))
        settings["daysInMonth"] = 7
        path.write_text(json.dumps(settings), encoding="utf-8")
        with pytest.raises(ValueError):
            ConfigLoader(config_copy)

    def test_duplicate_ids(self, config_copy):
        path = config_copy / "clubs.json"
        clubs = json.loads(path.read_text(encoding="utf-8"))
        path.write_text(json.dumps(clubs + clubs[:1]), encoding="utf-8")
        with pytest.raises(ValueError, match="Duplicate"):
            ConfigLoader(config_copy)

    def test_dangling_trigger_is_fatal_when_strict(self, config_copy):
        _break_a_trigger(config_copy)
        with pytest.raises(ValueError, match="life_does_not_exist"):
            ConfigLoader(config_copy)

    def test_dangling_trigger_only_warns_when_lenient(self, config_copy, caplog):
        _break_a_trigger(config_copy)
        with caplog.at_level(logging.WARNING, logger="famsim.config_loader"):
            loader = ConfigLoader(config_copy, strict=False)
        assert loader.get_settings().strict is False
        assert "life_does_not_exist" in caplog.text


class TestNameLoader:
    def test_names_come_from_the_language_file(self):
        loader = NameLoader()
        names = loader.get_all_names("vi", Gender.FEMALE)
        assert names
        assert loader.random_name("vi", Gender.FEMALE, RandomSource(3)) in names

    def test_unknown_language_falls_back_to_english(self):
        loader = NameLoader()
        assert loader.get_all_names("xx", Gender.MALE) == loader.get_all_names("en", Gender.MALE)

    def test_missing_folder_uses_placeholders(self, tmp_path):
        loader = NameLoader(tmp_path)
        assert loader.get_all_names("en", Gender.MALE) == FALLBACK_NAMES["male"]
        assert NAME_LISTS_DIR.is_dir()
