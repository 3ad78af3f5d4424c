"""
Errors raised by the rotation engine.
"""


class RotationError(Exception):
    """Base class for expected engine failures."""


class NotFoundError(RotationError):
    """Unknown player or court id."""


class CapacityError(RotationError):
    """Court already holds four players."""


class InsufficientPlayersError(RotationError):
    """Fewer than four eligible players for a matchmaking operation."""


class InvalidStateError(RotationError):
    """Operation attempted against a court or player in the wrong status."""


class PersistenceError(RotationError):
    """Loading or saving the engine state failed."""


class ValidationError(RotationError):
    """Rejected input, such as an import with no usable names."""
