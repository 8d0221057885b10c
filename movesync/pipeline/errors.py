"""Exception taxonomy for the fusion core."""
from __future__ import annotations

__all__ = ["MoveSyncError", "InputDataError", "DependencyUnavailableError"]


class MoveSyncError(Exception):
    """Base class for errors surfaced to the user."""


class InputDataError(MoveSyncError, ValueError):
    """Recording or selection cannot be processed (missing axes, empty CSV, bad joint choice)."""


class DependencyUnavailableError(MoveSyncError, RuntimeError):
    """A required numeric/filter library could not be imported."""
