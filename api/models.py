"""
Pydantic models for the family simulator API.

Request bodies are validated here before they reach the engine, so a
payload that passes will only fail later for game-rule reasons (a choice
that is not pending, a worker who is too young), never for its shape.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from famsim.models import GameState, PendingKind
from famsim.scenarios import SCENARIOS


# ---------------------------------------------------------------------------
#  Game session requests
# ---------------------------------------------------------------------------


class NewGameRequest(BaseModel):
    """Body of ``POST /games``."""

    scenario: str = "classic"
    seed: Optional[int | str] = None
    language: Optional[str] = None
    startYear: int = Field(default=2024, ge=1)

    @field_validator("scenario")
    @classmethod
    def known_scenario(cls, value: str) -> str:
        if value not in SCENARIOS:
            raise ValueError(f"Unknown scenario '{value}'. Choose from: {', '.join(SCENARIOS)}.")
        return value


class AdvanceRequest(BaseModel):
    days: int = Field(default=1, ge=1, le=3600)


class ChoiceRequest(BaseModel):
    choiceIndex: int = Field(ge=0)


class PendingRequest(BaseModel):
    kind: PendingKind
    characterId: str = Field(min_length=1)
    value: Optional[str] = None


class BusinessPurchaseRequest(BaseModel):
    definitionId: str = Field(min_length=1)


class SlotAssignmentRequest(BaseModel):
    # None empties the slot; "robot" hires a robot.
    workerId: Optional[str] = None


# ---------------------------------------------------------------------------
#  Responses
# ---------------------------------------------------------------------------


class GameResponse(BaseModel):
    gameId: str
    blocked: bool
    state: GameState


class EventSummary(BaseModel):
    id: str
    titleKey: str
    descriptionKey: str
    choiceCount: int
