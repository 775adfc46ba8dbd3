"""
Double elimination heat bracket engine for multi-pilot races.
"""
from .engine import TournamentEngine
from .errors import (
    BracketError,
    BracketIntegrityError,
    HeatNotFoundError,
    InvalidRankingsError,
    PilotValidationError,
    StateImportError,
    TournamentStateError,
)

__all__ = [
    'TournamentEngine',
    'BracketError',
    'BracketIntegrityError',
    'HeatNotFoundError',
    'InvalidRankingsError',
    'PilotValidationError',
    'StateImportError',
    'TournamentStateError',
]
