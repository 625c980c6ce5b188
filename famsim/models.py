"""
famsim/models.py
~~~~~~~~~~~~~~~~
Pydantic models for the evolving game state.

Everything here is plain data: characters reference each other by id, never
by object, so a whole ``GameState`` can be dumped with ``model_dump()`` and
rebuilt with ``model_validate()`` without cycles.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class LifePhase(str, Enum):
    NEWBORN = "Newborn"
    ELEMENTARY = "Elementary"
    MIDDLE_SCHOOL = "MiddleSchool"
    HIGH_SCHOOL = "HighSchool"
    UNIVERSITY = "University"
    POST_GRADUATION = "PostGraduation"
    RETIRED = "Retired"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"


class CharacterStatus(str, Enum):
    IDLE = "Idle"
    IN_EDUCATION = "InEducation"
    WORKING = "Working"
    UNEMPLOYED = "Unemployed"
    INTERNSHIP = "Internship"
    VOCATIONAL_TRAINING = "VocationalTraining"
    RETIRED = "Retired"
    TRAINEE = "Trainee"


class RelationshipStatus(str, Enum):
    SINGLE = "Single"
    MARRIED = "Married"


class PetType(str, Enum):
    DOG = "Dog"
    CAT = "Cat"
    PARROT = "Parrot"
    HORSE = "Horse"
    FISH = "Fish"


class PendingKind(str, Enum):
    SCHOOL = "school"
    CLUB = "club"
    UNIVERSITY = "university"
    MAJOR = "major"
    CAREER = "career"
    UNDERQUALIFIED = "underqualified"
    LOAN = "loan"
    PROMOTION = "promotion"


# Sentinel stored in a business slot staffed by a robot.
ROBOT = "robot"

# Slot requirement meaning "anyone may work here".
UNSKILLED = "Unskilled"

STAT_NAMES = ("iq", "happiness", "eq", "health", "skill")
STAT_CEILINGS = {"iq": 200, "happiness": 100, "eq": 100, "health": 100, "skill": 100}

# Phases in which skill cannot grow yet.
NON_WORKING_PHASES = frozenset(
    {LifePhase.NEWBORN, LifePhase.ELEMENTARY, LifePhase.MIDDLE_SCHOOL, LifePhase.HIGH_SCHOOL}
)


def clamp_stat(stat: str, value: float) -> float:
    return max(0, min(STAT_CEILINGS[stat], value))


class Stats(BaseModel):
    iq: float = 0
    happiness: float = 0
    eq: float = 0
    health: float = 0
    skill: float = 0

    def get(self, stat: str) -> float:
        return getattr(self, stat)

    def set(self, stat: str, value: float) -> None:
        setattr(self, stat, value)


class GameDate(BaseModel):
    day: int = Field(default=1, ge=1)
    year: int


class AvatarState(BaseModel):
    """Cosmetic layer selection; the engine never reads it back."""

    layers: dict[str, Optional[str]] = Field(default_factory=dict)
    colors: dict[str, str] = Field(default_factory=dict)


class Character(BaseModel):
    id: str
    name: str
    gender: Gender
    generation: int = 0
    is_player_character: bool = False

    birth_date: GameDate
    age: int = 0
    is_alive: bool = True
    death_date: Optional[GameDate] = None

    stats: Stats
    phase: LifePhase = LifePhase.NEWBORN
    adjective: str = "normal"

    status: CharacterStatus = CharacterStatus.IDLE
    education: Optional[str] = None
    school_id: Optional[str] = None
    club_id: Optional[str] = None
    major: Optional[str] = None
    status_end_year: Optional[int] = None

    career_track: Optional[str] = None
    trainee_for_track: Optional[str] = None
    career_level: int = 0
    career_penalty: float = 0.0
    months_in_job_level: int = 0
    months_unemployed: int = 0

    relationship_status: RelationshipStatus = RelationshipStatus.SINGLE
    partner_id: Optional[str] = None
    parents_ids: list[str] = Field(default_factory=list)
    children_ids: list[str] = Field(default_factory=list)

    pet_id: Optional[str] = None
    mourning_until_year: Optional[int] = None
    low_stat_years: int = 0
    events_this_year: int = 0
    event_cooldowns: dict[str, int] = Field(default_factory=dict)
    completed_one_time_events: list[str] = Field(default_factory=list)

    avatar: AvatarState = Field(default_factory=AvatarState)


class BusinessSlot(BaseModel):
    role: str
    required_major: str = UNSKILLED
    assigned_worker_id: Optional[str] = None


class Business(BaseModel):
    id: str
    definition_id: str
    level: int = 1
    slots: list[BusinessSlot] = Field(default_factory=list)


class PurchasedAsset(BaseModel):
    id: str
    purchase_year: int


class Pet(BaseModel):
    id: str
    name: str
    type: PetType
    owner_id: str
    adopted_year: int


class Loan(BaseModel):
    amount: int
    due_year: int


class LogEntry(BaseModel):
    year: int
    day: int = 1
    message_key: str
    replacements: dict[str, Any] = Field(default_factory=dict)
    character_id: Optional[str] = None
    fund_change: int = 0
    stat_changes: dict[str, float] = Field(default_factory=dict)


class PendingChoice(BaseModel):
    """A question the engine is waiting on before it can advance."""

    kind: PendingKind
    character_id: str
    options: list[str] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)


class QueuedEvent(BaseModel):
    event_id: str
    character_id: str


class GameState(BaseModel):
    family_members: dict[str, Character] = Field(default_factory=dict)
    family_fund: int = 0
    purchased_assets: list[PurchasedAsset] = Field(default_factory=list)
    businesses: dict[str, Business] = Field(default_factory=dict)
    family_pets: dict[str, Pet] = Field(default_factory=dict)
    current_date: GameDate
    game_log: list[LogEntry] = Field(default_factory=list)

    pending: dict[PendingKind, PendingChoice] = Field(default_factory=dict)
    active_event: Optional[QueuedEvent] = None
    event_queue: list[QueuedEvent] = Field(default_factory=list)
    event_cooldown_until: int = 0

    loans: list[Loan] = Field(default_factory=list)
    total_children_born: int = 0
    game_over_reason: Optional[str] = None
    language: str = "en"
    scenario: str = "classic"

    # ------------------------------------------------------------------
    #  Lookups
    # ------------------------------------------------------------------

    def living_members(self) -> list[Character]:
        return [c for c in self.family_members.values() if c.is_alive]

    def player_character(self) -> Optional[Character]:
        """The oldest living player-line character, falling back to any living member."""
        living = self.living_members()
        players = [c for c in living if c.is_player_character]
        pool = players or living
        if not pool:
            return None
        return max(pool, key=lambda c: c.age)

    def business_of(self, character_id: str) -> Optional[tuple[Business, int]]:
        for business in self.businesses.values():
            for index, slot in enumerate(business.slots):
                if slot.assigned_worker_id == character_id:
                    return business, index
        return None

    def has_pending_for(self, character_id: str) -> bool:
        return any(p.character_id == character_id for p in self.pending.values())

    def log(self, message_key: str, character: Optional[Character] = None, **replacements: Any) -> LogEntry:
        if character is not None:
            replacements.setdefault("name", character.name)
        entry = LogEntry(
            year=self.current_date.year,
            day=self.current_date.day,
            message_key=message_key,
            replacements=replacements,
            character_id=character.id if character is not None else None,
        )
        self.game_log.append(entry)
        return entry
