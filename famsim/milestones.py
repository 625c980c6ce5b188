"""
famsim/milestones.py
~~~~~~~~~~~~~~~~~~~~
Structural consequences of milestone events: synthesising a spouse,
childbirth (with twins and triplets once unlocked) and death of old age.

Each function reads the state and returns a ``StatePatch``; none of them
mutate. A missing relation (no partner, unknown character) yields an empty
patch rather than an error.
"""

from __future__ import annotations

import logging
from typing import Any

from famsim.avatar import generate_avatar
from famsim.context import EngineContext
from famsim.lifecycle import assign_npc_career, death_patch, get_life_phase, handle_birth, opposite_gender
from famsim.models import Character, GameState, RelationshipStatus, Stats, clamp_stat
from famsim.patch import StatePatch

logger = logging.getLogger(__name__)

# Births needed before multiple births become possible, and their odds.
TWINS_UNLOCK_BIRTHS = 2
TRIPLETS_UNLOCK_BIRTHS = 3
TWINS_CHANCE = 0.40
TRIPLETS_CHANCE = 0.10

PARTNER_NOISE = {"iq": 20, "happiness": 15, "eq": 15, "health": 10}
PARTNER_MIN_IQ = 20


def _partner_stats(proposer: Character, ctx: EngineContext) -> Stats:
    rng = ctx.rng
    values = {}
    for stat, spread in PARTNER_NOISE.items():
        values[stat] = clamp_stat(stat, proposer.stats.get(stat) + rng.randint(-spread, spread))
    values["iq"] = max(PARTNER_MIN_IQ, values["iq"])
    values["skill"] = 0
    return Stats(**values)


def marry(state: GameState, character_id: str, params: dict[str, Any], ctx: EngineContext) -> StatePatch:
    patch = StatePatch()
    proposer = state.family_members.get(character_id)
    if proposer is None or proposer.partner_id is not None or proposer.relationship_status == RelationshipStatus.MARRIED:
        return patch

    gender = opposite_gender(proposer.gender)
    partner = Character(
        id=ctx.rng.uuid(),
        name=ctx.names.random_name(state.language, gender, ctx.rng),
        gender=gender,
        generation=proposer.generation,
        is_player_character=False,
        birth_date=proposer.birth_date.model_copy(),
        age=proposer.age,
        stats=_partner_stats(proposer, ctx),
        phase=get_life_phase(proposer.age),
        relationship_status=RelationshipStatus.MARRIED,
        partner_id=proposer.id,
        avatar=generate_avatar(ctx.catalog.avatar, proposer.age, gender, ctx.rng),
    )
    partner = partner.model_copy(update=assign_npc_career(ctx, partner))

    patch.new_characters.append(partner)
    patch.update(proposer.id, relationship_status=RelationshipStatus.MARRIED, partner_id=partner.id)
    patch.add_log(state, "log_married", proposer, partner=partner.name)
    logger.info("%s married %s.", proposer.name, partner.name)
    return patch


def conceive_child(state: GameState, character_id: str, params: dict[str, Any], ctx: EngineContext) -> StatePatch:
    patch = StatePatch()
    parent = state.family_members.get(character_id)
    if parent is None or not parent.is_alive or parent.partner_id is None:
        return patch
    partner = state.family_members.get(parent.partner_id)
    if partner is None or not partner.is_alive:
        return patch

    roll = ctx.rng.random()
    born_so_far = state.total_children_born
    if born_so_far >= TRIPLETS_UNLOCK_BIRTHS and roll < TRIPLETS_CHANCE:
        count, log_key = 3, "log_had_triplets"
    elif born_so_far >= TWINS_UNLOCK_BIRTHS and roll < TWINS_CHANCE:
        count, log_key = 2, "log_had_twins"
    else:
        count, log_key = 1, "log_had_child"

    children = [handle_birth(ctx, parent, partner, state.current_date, state.language) for _ in range(count)]
    child_ids = [child.id for child in children]
    patch.new_characters.extend(children)
    patch.update(parent.id, children_ids=parent.children_ids + child_ids)
    patch.update(partner.id, children_ids=partner.children_ids + child_ids)
    patch.children_born = count
    patch.add_log(state, log_key, parent, partner=partner.name, child=", ".join(c.name for c in children))
    logger.info("%s and %s had %d child(ren).", parent.name, partner.name, count)
    return patch


def die_of_old_age(state: GameState, character_id: str, params: dict[str, Any], ctx: EngineContext) -> StatePatch:
    return death_patch(ctx, state, character_id, log_key=params.get("logKey", "log_died_old_age"))
