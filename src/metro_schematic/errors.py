"""Exception hierarchy for the layout engine."""

from __future__ import annotations


class LayoutError(Exception):
    """Base class for all layout engine failures."""


class InvalidNetworkError(LayoutError, ValueError):
    """A stage received missing, empty or structurally invalid input."""


class InvariantViolationError(LayoutError):
    """Geometry reached a state the engine refuses to continue from.

    Raised for non-finite coordinates surviving into a stage and for
    merges that end up with no valid member.
    """


class DegenerateLayoutError(InvariantViolationError):
    """The coordinate range is too small to normalize."""
