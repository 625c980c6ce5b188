"""
famsim/errors.py
~~~~~~~~~~~~~~~~
Exceptions raised by the simulation engine.

Running out of money is not an error: an unpaid loan ends the game through
``GameState.game_over_reason``.
"""

from __future__ import annotations


class SimulationError(Exception):
    """Base class for all engine errors."""


class CatalogIntegrityError(SimulationError, ValueError):
    """Content catalog references something that does not exist or is malformed."""


class InvariantViolation(SimulationError, ValueError):
    """A mutation would break a structural invariant of the game state."""


class PendingChoiceError(SimulationError):
    """A pending-choice slot was resolved or opened in an invalid way."""
