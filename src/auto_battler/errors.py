"""Engine error taxonomy."""
from __future__ import annotations


class GameError(Exception):
    """Base class for all engine errors."""


class ValidationError(GameError):
    """An action's preconditions do not hold; nothing was changed."""


class NotFoundError(GameError):
    """A character, spawned monster or tile lookup failed."""


class PersistenceError(GameError):
    """The persistence gateway failed to read or write."""


class CombatError(GameError):
    """Combat resolution hit an unexpected state."""
