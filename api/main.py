"""
Family simulator FastAPI backend.

Dev:        uvicorn api.main:app --host 127.0.0.1 --port 8000 --reload

Games live in memory for the lifetime of the process. Every mutating
endpoint runs one reducer action against the stored state and replaces it
with the result, so a request that fails leaves the game untouched.
"""

from __future__ import annotations

import logging
import sys
import threading
import uuid
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

# ---------------------------------------------------------------------------
#  Path setup: ensures project root is importable in dev and when frozen
# ---------------------------------------------------------------------------

if getattr(sys, "frozen", False):
    _project_root = Path(sys._MEIPASS)  # type: ignore[attr-defined]
else:
    _project_root = Path(__file__).parent.parent

if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from api.models import (  # noqa: E402
    AdvanceRequest,
    BusinessPurchaseRequest,
    ChoiceRequest,
    EventSummary,
    GameResponse,
    NewGameRequest,
    PendingRequest,
    SlotAssignmentRequest,
)
from famsim.config_loader import ConfigLoader, EngineSettings  # noqa: E402
from famsim.context import EngineContext  # noqa: E402
from famsim.errors import PendingChoiceError, SimulationError  # noqa: E402
from famsim.evaluator import evaluate_eligible_events  # noqa: E402
from famsim.family_tree import FamilyTreeExporter  # noqa: E402
from famsim.models import GameState  # noqa: E402
from famsim.name_loader import NameLoader  # noqa: E402
from famsim.rng import RandomSource  # noqa: E402
from famsim.scenarios import new_game  # noqa: E402
from famsim.simulation import ActionType, GameAction, is_blocked, reduce  # noqa: E402

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
#  App setup
# ---------------------------------------------------------------------------

app = FastAPI(title="Family Life Simulator API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@dataclass
class _Session:
    ctx: EngineContext
    state: GameState


_games: dict[str, _Session] = {}
_games_lock = threading.Lock()


@lru_cache(maxsize=1)
def _loader() -> ConfigLoader:
    """Configuration is read once; each game gets its own random source."""
    return ConfigLoader()


@lru_cache(maxsize=1)
def _names() -> NameLoader:
    return NameLoader()


def _context(seed: int | str | None) -> EngineContext:
    loader = _loader()
    return EngineContext(
        catalog=loader.get_catalog(),
        settings=loader.get_settings(),
        rng=RandomSource(seed),
        names=_names(),
    )


# ---------------------------------------------------------------------------
#  Session helpers
# ---------------------------------------------------------------------------


def _session(game_id: str) -> _Session:
    session = _games.get(game_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Game {game_id} not found")
    return session


def _response(game_id: str, session: _Session) -> GameResponse:
    return GameResponse(gameId=game_id, blocked=is_blocked(session.state), state=session.state)


def _apply(game_id: str, action: GameAction) -> GameResponse:
    session = _session(game_id)
    with _games_lock:
        try:
            session.state = reduce(session.state, action, session.ctx)
        except PendingChoiceError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except SimulationError as e:
            logger.error("Game %s failed on %s: %s", game_id, action.type.value, e)
            raise HTTPException(status_code=409, detail=str(e))
    return _response(game_id, session)


# ---------------------------------------------------------------------------
#  Game endpoints
# ---------------------------------------------------------------------------


@app.post("/games")
def create_game(body: NewGameRequest) -> GameResponse:
    ctx = _context(body.seed)
    state = new_game(ctx, body.scenario, body.startYear, body.language)
    game_id = uuid.uuid4().hex
    session = _Session(ctx=ctx, state=state)
    with _games_lock:
        _games[game_id] = session
    logger.info("Created game %s (%s).", game_id, body.scenario)
    return _response(game_id, session)


@app.get("/games/{game_id}")
def get_game(game_id: str) -> GameResponse:
    return _response(game_id, _session(game_id))


@app.post("/games/{game_id}/advance")
def advance_game(game_id: str, body: AdvanceRequest) -> GameResponse:
    return _apply(game_id, GameAction(type=ActionType.ADVANCE, days=body.days))


@app.get("/games/{game_id}/events/eligible/{character_id}")
def eligible_events(game_id: str, character_id: str) -> list[EventSummary]:
    session = _session(game_id)
    character = session.state.family_members.get(character_id)
    if character is None:
        raise HTTPException(status_code=404, detail=f"Character {character_id} not found")
    # Scratch rolls; the session's random source is left untouched.
    events = evaluate_eligible_events(session.state, character, session.ctx.catalog, RandomSource())
    return [
        EventSummary(id=e.id, titleKey=e.titleKey, descriptionKey=e.descriptionKey, choiceCount=len(e.choices))
        for e in events
    ]


@app.post("/games/{game_id}/choice")
def make_choice(game_id: str, body: ChoiceRequest) -> GameResponse:
    return _apply(game_id, GameAction(type=ActionType.CHOOSE, choice_index=body.choiceIndex))


@app.post("/games/{game_id}/pending")
def resolve_pending(game_id: str, body: PendingRequest) -> GameResponse:
    action = GameAction(type=ActionType.PENDING, kind=body.kind, character_id=body.characterId, value=body.value)
    return _apply(game_id, action)


@app.post("/games/{game_id}/assets/{asset_id}")
def purchase_asset(game_id: str, asset_id: str) -> GameResponse:
    return _apply(game_id, GameAction(type=ActionType.PURCHASE_ASSET, asset_id=asset_id))


@app.post("/games/{game_id}/businesses")
def buy_business(game_id: str, body: BusinessPurchaseRequest) -> GameResponse:
    return _apply(game_id, GameAction(type=ActionType.BUY_BUSINESS, definition_id=body.definitionId))


@app.post("/games/{game_id}/businesses/{business_id}/upgrade")
def upgrade_business(game_id: str, business_id: str) -> GameResponse:
    return _apply(game_id, GameAction(type=ActionType.UPGRADE_BUSINESS, business_id=business_id))


@app.put("/games/{game_id}/businesses/{business_id}/slots/{index}")
def assign_slot(game_id: str, business_id: str, index: int, body: SlotAssignmentRequest) -> GameResponse:
    action = GameAction(
        type=ActionType.ASSIGN_SLOT,
        business_id=business_id,
        slot_index=index,
        worker_id=body.workerId,
    )
    return _apply(game_id, action)


@app.get("/games/{game_id}/tree", response_class=PlainTextResponse)
def family_tree(game_id: str) -> str:
    return FamilyTreeExporter().to_dot(_session(game_id).state)


@app.delete("/games/{game_id}")
def delete_game(game_id: str) -> dict[str, str]:
    with _games_lock:
        if _games.pop(game_id, None) is None:
            raise HTTPException(status_code=404, detail=f"Game {game_id} not found")
    return {"status": "deleted"}


# ---------------------------------------------------------------------------
#  Configuration
# ---------------------------------------------------------------------------


@app.get("/config/settings")
def get_settings() -> EngineSettings:
    return _loader().get_settings()


# ---------------------------------------------------------------------------
#  Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000, log_level="info")
