"""Exception hierarchy for the lineup optimizer.

Fatal conditions are raised as exceptions; numerical degeneracies are
recovered where they occur and only logged.
"""

from typing import Dict, Optional


class LineupOptimizerError(Exception):
    """Base class for all optimizer errors."""

    pass


class InvalidInputError(LineupOptimizerError, ValueError):
    """Raised when caller-supplied input is malformed.

    Examples: roster requirements that exceed the roster size, an empty
    player pool, ``sigma <= 0`` or ``a >= b`` handed to the fitter.
    """

    pass


class InfeasibleRosterError(LineupOptimizerError):
    """Raised when no complete lineup can be built from the eligible pool.

    Attributes:
        shortfalls: Mapping of slot name to the number of players missing,
            e.g. ``{"TE": 1, "FLEX": 1}``. Empty when the pool has enough
            bodies but other constraints (locked players) make it infeasible.
    """

    def __init__(self, message: str, shortfalls: Optional[Dict[str, int]] = None):
        super().__init__(message)
        self.shortfalls = dict(shortfalls or {})
