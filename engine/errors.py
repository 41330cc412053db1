"""Error taxonomy for the puzzle engine."""

from __future__ import annotations


class EngineError(Exception):
    """Base class for every error raised by the engine."""


class InvalidStateError(EngineError):
    """A command was issued that the current game status does not allow."""


class InvalidSnapshotError(EngineError):
    """A snapshot could not be restored; the engine keeps its previous state."""


class InternalInvariantError(EngineError):
    """A logic fault inside the engine (spawn on a full board, double merge, ...)."""


class InvalidGridError(ValueError):
    """Board contents violate the tile invariants."""


class ConfigError(ValueError):
    """Game configuration is out of range."""
