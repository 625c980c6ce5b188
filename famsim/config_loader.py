"""
famsim/config_loader.py
~~~~~~~~~~~~~~~~~~~~~~~
Loads engine settings and the content catalog from the JSON files in the
config folder and validates them with pydantic before anything runs.

Missing files raise ``FileNotFoundError``; malformed JSON or content that
fails validation raises ``ValueError`` naming the offending file.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, Field, ValidationError, model_validator

from famsim.catalog import (
    AvatarManifest,
    BusinessDefinition,
    CareerTrack,
    Club,
    ContentCatalog,
    GameEvent,
    PetDefinition,
    SchoolOption,
    TrainingProgram,
    UniversityMajor,
    AssetDefinition,
)
from famsim.errors import CatalogIntegrityError
from famsim.models import LifePhase
from famsim.paths import CONFIG_DIR

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


# ---------------------------------------------------------------------------
#  Settings models
# ---------------------------------------------------------------------------


class EconomySettings(BaseModel):
    workerBaseSalary: float = Field(default=500, ge=0)
    workerSkillMultiplier: float = Field(default=15, ge=0)
    robotHireCost: float = Field(default=700, ge=0)
    robotSkill: float = Field(default=30, ge=0, le=100)
    pensionAnnual: int = Field(default=4200, ge=0)
    traineeSalaryAnnual: int = Field(default=4800, ge=0)
    costOfLiving: dict[LifePhase, int] = Field(default_factory=dict)
    upgradeCostRatio: float = Field(default=0.75, gt=0)
    maxBusinessLevel: int = Field(default=3, ge=1)
    loanAmounts: list[int] = Field(default_factory=lambda: [50000, 100000, 200000])
    loanTerms: list[int] = Field(default_factory=lambda: [5, 10])
    loanInterestRate: float = Field(default=0.0, ge=0)


class EngineSettings(BaseModel):
    """Tunable engine behaviour; see ``config/settings.json``."""

    strict: bool = False
    clampEventStats: bool = False
    language: str = "en"
    initialFunds: int = 100000
    daysInYear: int = Field(default=360, ge=30)
    daysInMonth: int = Field(default=30, ge=1)
    firstEventDelayDays: int = Field(default=30, ge=0)
    maxEventsPerYear: int = Field(default=2, ge=1)
    smallFamilyMax: int = Field(default=3, ge=1)
    smallFamilyCooldownDays: int = Field(default=120, ge=0)
    largeFamilyCooldownDays: int = Field(default=180, ge=0)
    mourningYears: int = Field(default=2, ge=0)
    mourningPenalty: float = Field(default=20, ge=0)
    victoryGeneration: int = Field(default=6, ge=1)
    lowStatThreshold: float = Field(default=10, ge=0)
    lowStatYearsToDeath: int = Field(default=2, ge=1)
    schoolAges: dict[int, LifePhase] = Field(
        default_factory=lambda: {
            6: LifePhase.ELEMENTARY,
            12: LifePhase.MIDDLE_SCHOOL,
            16: LifePhase.HIGH_SCHOOL,
        }
    )
    universityAge: int = 19
    retirementAge: int = 60
    unemploymentGraceMonths: int = 12
    unemploymentCareerChance: float = Field(default=0.2, ge=0, le=1)
    stagnationMonths: int = 13
    economy: EconomySettings = Field(default_factory=EconomySettings)

    @model_validator(mode="after")
    def month_fits_year(self) -> EngineSettings:
        if self.daysInYear % self.daysInMonth:
            raise ValueError(
                f"daysInYear ({self.daysInYear}) must be a multiple of daysInMonth ({self.daysInMonth})."
            )
        return self


# ---------------------------------------------------------------------------
#  Loader
# ---------------------------------------------------------------------------


class ConfigLoader:
    CATALOG_FILES = {
        "settings": "settings.json",
        "careers": "careers.json",
        "majors": "majors.json",
        "assets": "assets.json",
        "businesses": "businesses.json",
        "schools": "schools.json",
        "clubs": "clubs.json",
        "pets": "pets.json",
        "training": "training.json",
        "avatar": "avatar.json",
    }

    def __init__(self, config_folder: str | Path = CONFIG_DIR, strict: bool | None = None) -> None:
        self.config_folder = Path(config_folder)
        self.config: dict[str, Any] = {}
        self.load_configs()
        self.settings = self._parse(EngineSettings, self.config["settings"], "settings.json")
        if strict is not None:
            self.settings = self.settings.model_copy(update={"strict": strict})
        self.catalog = self.build_catalog()
        self.validate_catalog()

    # ------------------------------------------------------------------
    #  Private helpers
    # ------------------------------------------------------------------

    def _read_json(self, file_path: Path) -> Any:
        if not file_path.exists():
            raise FileNotFoundError(f"Configuration file {file_path.name} not found in {file_path.parent}.")
        with open(file_path, "r", encoding="utf-8") as file:
            try:
                data = json.load(file)
            except json.JSONDecodeError as e:
                raise ValueError(f"Error parsing {file_path.name}: {e}")
        logger.debug("Loaded configuration from %s.", file_path)
        return data

    @staticmethod
    def _parse(model: type[M], data: Any, filename: str) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Invalid content in {filename}: {e}")

    def _parse_list(self, model: type[M], category: str) -> list[M]:
        filename = self.CATALOG_FILES.get(category, category)
        data = self.config[category]
        if not isinstance(data, list):
            raise ValueError(f"{filename} must contain a JSON list.")
        return [self._parse(model, item, filename) for item in data]

    # ------------------------------------------------------------------
    #  Public API
    # ------------------------------------------------------------------

    def load_configs(self) -> None:
        for category, filename in self.CATALOG_FILES.items():
            self.config[category] = self._read_json(self.config_folder / filename)

        events_dir = self.config_folder / "events"
        if not events_dir.is_dir():
            raise FileNotFoundError(f"Events folder not found in {self.config_folder}.")
        events: list[Any] = []
        for file_path in sorted(events_dir.glob("*.json")):
            data = self._read_json(file_path)
            if not isinstance(data, list):
                raise ValueError(f"{file_path.name} must contain a JSON list of events.")
            events.extend((file_path.name, item) for item in data)
        self.config["events"] = events

    def build_catalog(self) -> ContentCatalog:
        events = [self._parse(GameEvent, item, filename) for filename, item in self.config["events"]]
        training = self.config["training"]
        try:
            return ContentCatalog(
                events=events,
                career_tracks=self._parse_list(CareerTrack, "careers"),
                majors=self._parse_list(UniversityMajor, "majors"),
                assets=self._parse_list(AssetDefinition, "assets"),
                businesses=self._parse_list(BusinessDefinition, "businesses"),
                schools=self._parse_list(SchoolOption, "schools"),
                clubs=self._parse_list(Club, "clubs"),
                pets=self._parse_list(PetDefinition, "pets"),
                vocational_training=self._parse(TrainingProgram, training.get("vocational"), "training.json"),
                internship=self._parse(TrainingProgram, training.get("internship"), "training.json"),
                avatar=self._parse(AvatarManifest, self.config["avatar"], "avatar.json"),
            )
        except CatalogIntegrityError as e:
            raise ValueError(str(e))

    def validate_catalog(self) -> None:
        """Cross-file checks. Fatal in strict mode, warnings otherwise."""
        # A catalog with no fallback career would make NPC careers impossible.
        if not self.catalog.unconditioned_tracks():
            raise ValueError("careers.json must define at least one track without a required major.")

        problems = self.catalog.integrity_problems()
        if problems and self.settings.strict:
            raise ValueError("Content catalog failed validation:\n  " + "\n  ".join(problems))
        for problem in problems:
            logger.warning("Catalog: %s", problem)

        missing_phases = set(LifePhase) - set(self.settings.economy.costOfLiving)
        if missing_phases:
            logger.warning(
                "No cost of living configured for %s; treating as 0.",
                ", ".join(sorted(p.value for p in missing_phases)),
            )

    def get_settings(self) -> EngineSettings:
        return self.settings

    def get_catalog(self) -> ContentCatalog:
        return self.catalog
