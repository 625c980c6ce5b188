"""
famsim/catalog.py
~~~~~~~~~~~~~~~~~
Read-only content tables: events, careers, majors, assets, businesses,
schools, clubs and pets.

Catalog entries never carry executable code. Where an event needs behaviour
beyond stat and fund deltas it names a *kind* (``ConditionKind``,
``ActionKind``, ``DynamicEffectKind``) which the engine resolves against a
registry of plain functions (see ``famsim.conditions`` and ``famsim.effects``).

Field names are camelCase to match the JSON files under ``config/``.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from famsim.errors import CatalogIntegrityError
from famsim.models import STAT_NAMES, UNSKILLED, LifePhase, PetType, RelationshipStatus

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
#  Tag vocabularies
# ---------------------------------------------------------------------------


class ConditionKind(str, Enum):
    AGE_AT_LEAST = "age_at_least"
    AGE_AT_MOST = "age_at_most"
    AGE_EQUALS = "age_equals"
    NOT_COMPLETED = "not_completed"
    COMPLETED = "completed"
    HAS_PET = "has_pet"
    NO_PET = "no_pet"
    STATUS_IS = "status_is"
    CAREER_LEVEL_IS = "career_level_is"
    RELATIONSHIP_IS = "relationship_is"
    GENDER_IS = "gender_is"
    HAS_LIVING_PARTNER = "has_living_partner"
    CHILDREN_BELOW = "children_below"
    HAS_CHILDREN = "has_children"
    STAT_AT_LEAST = "stat_at_least"
    STAT_BELOW = "stat_below"
    FUND_AT_LEAST = "fund_at_least"
    COOLDOWN_CLEAR = "cooldown_clear"
    HAS_MAJOR = "has_major"
    CHANCE = "chance"
    AGE_HAZARD = "age_hazard"


class ActionKind(str, Enum):
    MARRY = "marry"
    CONCEIVE_CHILD = "conceive_child"
    DIE_OF_OLD_AGE = "die_of_old_age"
    ADOPT_PET = "adopt_pet"
    REMOVE_PET = "remove_pet"
    LOSE_JOB = "lose_job"
    PARTNER_STATS = "partner_stats"
    HOUSEHOLD_STATS = "household_stats"
    CHANCE_BONUS = "chance_bonus"


class DynamicEffectKind(str, Enum):
    GAMBLE = "gamble"
    STAT_CHECK = "stat_check"


# ---------------------------------------------------------------------------
#  Events
# ---------------------------------------------------------------------------


def _check_stat_keys(value: dict[str, float]) -> dict[str, float]:
    unknown = set(value) - set(STAT_NAMES)
    if unknown:
        raise ValueError(f"Unknown stat(s): {sorted(unknown)}")
    return value


class TriggeredEvent(BaseModel):
    eventId: str = Field(min_length=1)
    chance: float = Field(ge=0.0, le=1.0)
    reTarget: Optional[Literal["parents", "partner", "family"]] = None


class Condition(BaseModel):
    kind: ConditionKind
    value: Any = None
    stat: Optional[str] = None
    eventId: Optional[str] = None


class ActionSpec(BaseModel):
    kind: ActionKind
    params: dict[str, Any] = Field(default_factory=dict)


class DynamicEffectSpec(BaseModel):
    kind: DynamicEffectKind
    params: dict[str, Any] = Field(default_factory=dict)


class EventEffect(BaseModel):
    statChanges: dict[str, float] = Field(default_factory=dict)
    fundChange: int = 0
    logKey: Optional[str] = None
    triggers: list[TriggeredEvent] = Field(default_factory=list)
    action: Optional[ActionSpec] = None
    dynamic: Optional[DynamicEffectSpec] = None
    applyToAll: bool = False

    @field_validator("statChanges")
    @classmethod
    def known_stats(cls, value: dict[str, float]) -> dict[str, float]:
        return _check_stat_keys(value)


class EventChoice(BaseModel):
    textKey: str = Field(min_length=1)
    effect: EventEffect


class GameEvent(BaseModel):
    id: str = Field(min_length=1)
    titleKey: str
    descriptionKey: str
    phases: list[LifePhase] = Field(min_length=1)
    choices: list[EventChoice] = Field(min_length=1)
    conditions: list[Condition] = Field(default_factory=list)
    allowedRelationshipStatuses: Optional[list[RelationshipStatus]] = None
    isTriggerOnly: bool = False
    isMilestone: bool = False
    oneTime: bool = False
    cooldownYears: Optional[int] = Field(default=None, ge=1)
    # No log line of its own; its action writes the log.
    quiet: bool = False

    @property
    def happens_once(self) -> bool:
        # Milestones with a cooldown recur; the rest fire once per character.
        return self.oneTime or (self.isMilestone and self.cooldownYears is None)


# ---------------------------------------------------------------------------
#  Careers, education, clubs
# ---------------------------------------------------------------------------


class CareerLevel(BaseModel):
    titleKey: str
    salary: int = Field(ge=0)
    skillRequired: float = Field(ge=0)


class CareerTrack(BaseModel):
    id: str
    nameKey: str
    requiredMajor: Optional[str] = None
    iqRequired: int = Field(default=0, ge=0)
    eqRequired: int = Field(default=0, ge=0)
    levels: list[CareerLevel] = Field(min_length=1)


class UniversityMajor(BaseModel):
    id: str
    nameKey: str
    cost: int = Field(ge=0)
    effects: dict[str, float] = Field(default_factory=dict)

    @field_validator("effects")
    @classmethod
    def known_stats(cls, value: dict[str, float]) -> dict[str, float]:
        return _check_stat_keys(value)


class SchoolOption(BaseModel):
    id: str
    phase: LifePhase
    nameKey: str
    cost: int = Field(ge=0)
    effects: dict[str, float] = Field(default_factory=dict)
    logKey: str

    @field_validator("effects")
    @classmethod
    def known_stats(cls, value: dict[str, float]) -> dict[str, float]:
        return _check_stat_keys(value)


class ClubPrerequisites(BaseModel):
    age: Optional[int] = None
    stats: dict[str, float] = Field(default_factory=dict)


class Club(BaseModel):
    id: str
    nameKey: str
    prerequisites: ClubPrerequisites = Field(default_factory=ClubPrerequisites)
    effects: dict[str, float] = Field(default_factory=dict)

    @field_validator("effects")
    @classmethod
    def known_stats(cls, value: dict[str, float]) -> dict[str, float]:
        return _check_stat_keys(value)


class TrainingProgram(BaseModel):
    duration: int = Field(ge=1)
    cost: int = Field(default=0, ge=0)
    stipend: int = Field(default=0, ge=0)
    effects: dict[str, float] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
#  Assets, businesses, pets
# ---------------------------------------------------------------------------


class AssetDefinition(BaseModel):
    id: str
    type: str
    tier: int = Field(ge=1, le=3)
    nameKey: str
    cost: int = Field(ge=0)
    # Fractional multipliers, e.g. {"happiness": 0.01} is +1 %.
    effects: dict[str, float] = Field(default_factory=dict)

    @field_validator("effects")
    @classmethod
    def known_stats(cls, value: dict[str, float]) -> dict[str, float]:
        return _check_stat_keys(value)


class SlotDefinition(BaseModel):
    roleKey: str
    requiredMajor: str = UNSKILLED


class BusinessDefinition(BaseModel):
    id: str
    type: str
    tier: int = Field(ge=1, le=3)
    nameKey: str
    cost: int = Field(ge=0)
    baseRevenue: float = Field(ge=0)
    costOfGoodsSold: float = Field(ge=0.0, le=1.0)
    fixedMonthlyCost: float = Field(ge=0)
    slots: list[SlotDefinition] = Field(min_length=1)
    upgradeSlots: list[SlotDefinition] = Field(default_factory=list)


class PetDefinition(BaseModel):
    type: PetType
    monthlyCost: int = Field(ge=0)
    effects: dict[str, float] = Field(default_factory=dict)
    names: list[str] = Field(min_length=1)

    @field_validator("effects")
    @classmethod
    def known_stats(cls, value: dict[str, float]) -> dict[str, float]:
        return _check_stat_keys(value)


# ---------------------------------------------------------------------------
#  Avatar manifest
# ---------------------------------------------------------------------------


class AvatarOption(BaseModel):
    id: str
    # Empty means "any"; otherwise a subset of baby / normal / old.
    ageCategories: list[Literal["baby", "normal", "old"]] = Field(default_factory=list)


class AvatarLayer(BaseModel):
    name: str
    required: bool = False
    allowNone: bool = False
    options: list[AvatarOption] = Field(default_factory=list)
    colorable: bool = False


class AvatarManifest(BaseModel):
    layers: list[AvatarLayer] = Field(default_factory=list)
    palette: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def required_layers_have_options(self) -> AvatarManifest:
        for layer in self.layers:
            if layer.required and not layer.options:
                raise ValueError(f"Required avatar layer '{layer.name}' has no options.")
        return self


# ---------------------------------------------------------------------------
#  The catalog itself
# ---------------------------------------------------------------------------


class ContentCatalog:
    """Indexed, read-only view over all content tables."""

    def __init__(
        self,
        events: list[GameEvent],
        career_tracks: list[CareerTrack],
        majors: list[UniversityMajor],
        assets: list[AssetDefinition],
        businesses: list[BusinessDefinition],
        schools: list[SchoolOption],
        clubs: list[Club],
        pets: list[PetDefinition],
        vocational_training: TrainingProgram,
        internship: TrainingProgram,
        avatar: Optional[AvatarManifest] = None,
    ) -> None:
        self.events = tuple(events)
        self.career_tracks = tuple(career_tracks)
        self.majors = tuple(majors)
        self.assets = tuple(assets)
        self.businesses = tuple(businesses)
        self.schools = tuple(schools)
        self.clubs = tuple(clubs)
        self.pets = tuple(pets)
        self.vocational_training = vocational_training
        self.internship = internship
        self.avatar = avatar or AvatarManifest()

        self._events = self._index(events, "event")
        self._tracks = self._index(career_tracks, "career track")
        self._majors = self._index(majors, "major")
        self._assets = self._index(assets, "asset")
        self._businesses = self._index(businesses, "business")
        self._clubs = self._index(clubs, "club")
        self._pets = {p.type: p for p in pets}

    @staticmethod
    def _index(items: list[Any], label: str) -> dict[str, Any]:
        index: dict[str, Any] = {}
        for item in items:
            if item.id in index:
                raise CatalogIntegrityError(f"Duplicate {label} id '{item.id}'.")
            index[item.id] = item
        return index

    # ------------------------------------------------------------------
    #  Lookups (None when the id is unknown)
    # ------------------------------------------------------------------

    def event(self, event_id: str) -> Optional[GameEvent]:
        return self._events.get(event_id)

    def career_track(self, track_id: Optional[str]) -> Optional[CareerTrack]:
        if track_id is None:
            return None
        return self._tracks.get(track_id)

    def major(self, major_id: Optional[str]) -> Optional[UniversityMajor]:
        if major_id is None:
            return None
        return self._majors.get(major_id)

    def asset(self, asset_id: str) -> Optional[AssetDefinition]:
        return self._assets.get(asset_id)

    def business(self, definition_id: str) -> Optional[BusinessDefinition]:
        return self._businesses.get(definition_id)

    def club(self, club_id: str) -> Optional[Club]:
        return self._clubs.get(club_id)

    def pet(self, pet_type: PetType) -> Optional[PetDefinition]:
        return self._pets.get(pet_type)

    def milestones(self) -> list[GameEvent]:
        return [e for e in self.events if e.isMilestone]

    def schools_for(self, phase: LifePhase) -> list[SchoolOption]:
        return [s for s in self.schools if s.phase == phase]

    def unconditioned_tracks(self) -> list[CareerTrack]:
        return [t for t in self.career_tracks if t.requiredMajor is None]

    # ------------------------------------------------------------------
    #  Integrity
    # ------------------------------------------------------------------

    def integrity_problems(self) -> list[str]:
        """Cross-reference checks that a single pydantic model cannot express."""
        problems: list[str] = []

        if not self.unconditioned_tracks():
            problems.append("No career track without a required major.")

        for track in self.career_tracks:
            if track.requiredMajor is not None and track.requiredMajor not in self._majors:
                problems.append(f"Career track '{track.id}' requires unknown major '{track.requiredMajor}'.")

        for definition in self.businesses:
            for slot in definition.slots + definition.upgradeSlots:
                if slot.requiredMajor != UNSKILLED and slot.requiredMajor not in self._majors:
                    problems.append(
                        f"Business '{definition.id}' slot '{slot.roleKey}' requires unknown major '{slot.requiredMajor}'."
                    )

        for event in self.events:
            for index, choice in enumerate(event.choices):
                effect = choice.effect
                if not effect.logKey:
                    problems.append(f"Event '{event.id}' choice {index} has no logKey.")
                for trigger in effect.triggers:
                    if trigger.eventId not in self._events:
                        problems.append(f"Event '{event.id}' triggers unknown event '{trigger.eventId}'.")
            for condition in event.conditions:
                target = condition.eventId
                if target is not None and target not in self._events:
                    problems.append(f"Event '{event.id}' condition references unknown event '{target}'.")
        return problems
