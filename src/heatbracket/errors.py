"""
Exceptions raised by the heat bracket engine.

Unmet round-generation preconditions are not errors: generators return an
empty list and callers poll again after the next result.
"""


class BracketError(Exception):
    """Base class for all engine errors."""
    status_code = 400


class PilotValidationError(BracketError, ValueError):
    """Roster input was rejected (name, duplicate, capacity, unknown id)."""
    status_code = 400


class InvalidRankingsError(BracketError, ValueError):
    """Submitted rankings do not describe a strict result for the heat."""
    status_code = 400


class HeatNotFoundError(BracketError, KeyError):
    """No heat exists with the requested id."""
    status_code = 404

    def __str__(self):
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ''


class TournamentStateError(BracketError):
    """The command is not allowed in the current phase or heat status."""
    status_code = 409


class BracketIntegrityError(BracketError):
    """
    A structural invariant would be violated, e.g. a pilot sitting in both
    the Winner Bracket and Loser Bracket finalist sets.
    """
    status_code = 409


class StateImportError(BracketError, ValueError):
    """Persisted state is malformed or from an incompatible version."""
    status_code = 400
