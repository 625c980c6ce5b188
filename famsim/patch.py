"""
famsim/patch.py
~~~~~~~~~~~~~~~
State patches and the single step that merges them into a game state.

Effect actions never touch the state they are given. They describe what
should change as a :class:`StatePatch`; :func:`merge_patch` checks the
structural invariants against the would-be result and only then commits it,
so a rejected patch leaves the state exactly as it was.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import BaseModel, Field

from famsim.errors import InvariantViolation
from famsim.models import (
    Character,
    CharacterStatus,
    GameDate,
    GameState,
    LogEntry,
    Pet,
    RelationshipStatus,
    Stats,
)

logger = logging.getLogger(__name__)

# Fields that may still change after death (genealogy bookkeeping only).
POSTHUMOUS_FIELDS = frozenset({"avatar", "children_ids", "mourning_until_year"})


class StatePatch(BaseModel):
    # character id -> field updates; a "stats" entry is merged stat by stat.
    characters: dict[str, dict[str, Any]] = Field(default_factory=dict)
    new_characters: list[Character] = Field(default_factory=list)
    fund_delta: int = 0
    # pet id -> pet, or None to remove it.
    pets: dict[str, Optional[Pet]] = Field(default_factory=dict)
    log: list[LogEntry] = Field(default_factory=list)
    children_born: int = 0

    def update(self, character_id: str, **fields: Any) -> StatePatch:
        entry = self.characters.setdefault(character_id, {})
        stats = fields.pop("stats", None)
        if stats:
            entry.setdefault("stats", {}).update(stats)
        entry.update(fields)
        return self

    def add_log(
        self,
        state: GameState,
        message_key: str,
        character: Optional[Character] = None,
        on: Optional[GameDate] = None,
        **replacements: Any,
    ) -> StatePatch:
        """Queue a log line stamped with ``on``, or today when not given."""
        if character is not None:
            replacements.setdefault("name", character.name)
        date = on or state.current_date
        self.log.append(
            LogEntry(
                year=date.year,
                day=date.day,
                message_key=message_key,
                replacements=replacements,
                character_id=character.id if character is not None else None,
            )
        )
        return self

    def is_empty(self) -> bool:
        return not (
            self.characters or self.new_characters or self.fund_delta or self.pets or self.log or self.children_born
        )


# ------------------------------------------------------------------
#  Invariant checks
# ------------------------------------------------------------------


def check_partner_symmetry(members: dict[str, Character], character_ids: set[str]) -> None:
    for character_id in character_ids:
        character = members[character_id]
        if character.partner_id is None:
            if character.relationship_status == RelationshipStatus.MARRIED:
                raise InvariantViolation(f"{character_id} is married without a partner.")
            continue
        partner = members.get(character.partner_id)
        if partner is None:
            raise InvariantViolation(f"{character_id} has unknown partner {character.partner_id}.")
        if partner.partner_id != character_id:
            raise InvariantViolation(
                f"Partner link is not symmetric: {character_id} -> {partner.id} -> {partner.partner_id}."
            )
        if character.relationship_status != RelationshipStatus.MARRIED or partner.relationship_status != RelationshipStatus.MARRIED:
            raise InvariantViolation(f"{character_id} and {partner.id} are linked but not both married.")


def check_business_assignments(state: GameState) -> None:
    seen: dict[str, str] = {}
    for business in state.businesses.values():
        for slot in business.slots:
            worker = slot.assigned_worker_id
            if worker is None or worker == "robot":
                continue
            if worker in seen:
                raise InvariantViolation(f"{worker} is assigned to both {seen[worker]} and {business.id}.")
            seen[worker] = business.id


def vacate_business_slots(state: GameState, character_id: str) -> bool:
    vacated = False
    for business in state.businesses.values():
        for slot in business.slots:
            if slot.assigned_worker_id == character_id:
                slot.assigned_worker_id = None
                vacated = True
    return vacated


# ------------------------------------------------------------------
#  The merge step
# ------------------------------------------------------------------


def _apply_updates(character: Character, updates: dict[str, Any]) -> Character:
    fields = dict(updates)
    stats = fields.pop("stats", None)
    if stats:
        fields["stats"] = Stats(**{**character.stats.model_dump(), **stats})
    unknown = set(fields) - set(Character.model_fields)
    if unknown:
        raise InvariantViolation(f"Unknown character field(s) {sorted(unknown)}.")
    return character.model_copy(update=fields, deep=True)


def merge_patch(state: GameState, patch: StatePatch) -> None:
    """Commit ``patch`` into ``state`` in place, or raise and change nothing."""
    if patch.is_empty():
        return

    staged: dict[str, Character] = {}
    for character in patch.new_characters:
        if character.id in state.family_members:
            raise InvariantViolation(f"Character id {character.id} already exists.")
        staged[character.id] = character

    for character_id, updates in patch.characters.items():
        current = staged.get(character_id) or state.family_members.get(character_id)
        if current is None:
            raise InvariantViolation(f"Patch targets unknown character {character_id}.")
        if not current.is_alive and set(updates) - POSTHUMOUS_FIELDS:
            raise InvariantViolation(
                f"Cannot change {sorted(set(updates) - POSTHUMOUS_FIELDS)} of deceased {character_id}."
            )
        staged[character_id] = _apply_updates(current, updates)

    members = {**state.family_members, **staged}
    touched = set(staged)
    # Partners of touched characters must agree too.
    touched |= {c.partner_id for c in staged.values() if c.partner_id and c.partner_id in members}
    for character_id in list(touched):
        previous = state.family_members.get(character_id)
        if previous is not None and previous.partner_id and previous.partner_id in members:
            touched.add(previous.partner_id)
    check_partner_symmetry(members, touched)

    # Everything checked: commit.
    state.family_members.update(staged)
    for character in staged.values():
        if not character.is_alive or character.status != CharacterStatus.WORKING:
            vacate_business_slots(state, character.id)

    state.family_fund += patch.fund_delta
    for pet_id, pet in patch.pets.items():
        if pet is None:
            state.family_pets.pop(pet_id, None)
        else:
            state.family_pets[pet_id] = pet
    state.game_log.extend(patch.log)
    state.total_children_born += patch.children_born
