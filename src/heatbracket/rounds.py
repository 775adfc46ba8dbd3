"""
Round bookkeeping over the heats list.

heats[] is the single source of truth: round completion, finisher pools and
round names are all derived from it.
"""
from typing import Iterable, List, Optional

from .constants import (
    ADVANCING_RANKS,
    BRACKET_GRAND_FINALE,
    BRACKET_LOSER,
    BRACKET_QUALIFICATION,
    BRACKET_REMATCH,
    BRACKET_WINNER,
    WB_FINALE_MAX_PILOTS,
)
from .distribution import calculate_heat_sizes
from .models import Heat


def heats_in_round(heats: Iterable[Heat], bracket_type: str, round_number: Optional[int] = None) -> List[Heat]:
    """All heats of a bracket, optionally restricted to one round (finales included)."""
    return [
        h for h in heats
        if h.bracket_type == bracket_type
        and (round_number is None or h.round_number == round_number)
    ]


def is_round_complete(heats: Iterable[Heat], bracket_type: str, round_number: Optional[int] = None) -> bool:
    """
    Check whether every heat tagged with (bracket_type, round_number) is completed.

    A round with no heats is never complete. For qualification the round
    number is ignored.
    """
    if bracket_type == BRACKET_QUALIFICATION:
        round_number = None
    round_heats = heats_in_round(heats, bracket_type, round_number)
    if not round_heats:
        return False
    return all(h.is_completed for h in round_heats)


def advancing_pilots(heats: Iterable[Heat]) -> List[str]:
    """Rank 1-2 finishers of the given completed heats, in heat order."""
    pilots = []
    for heat in heats:
        if heat.results:
            pilots.extend(heat.results.top(ADVANCING_RANKS))
    return pilots


def dropping_pilots(heats: Iterable[Heat]) -> List[str]:
    """Rank 3+ finishers of the given completed heats, in heat order."""
    pilots = []
    for heat in heats:
        if heat.results:
            pilots.extend(heat.results.below(ADVANCING_RANKS))
    return pilots


def calculate_wb_rounds(quali_winner_count: int) -> int:
    """
    Number of regular Winner Bracket rounds played before the WB Finale.

    Each heat sends its top two onward, so the pool shrinks round by round
    until it fits into the finale. Returns 0 when the qualification winners
    go straight into the WB Finale.
    """
    rounds = 0
    pool = quali_winner_count
    while pool > WB_FINALE_MAX_PILOTS:
        heats = len(calculate_heat_sizes(pool))
        pool = heats * ADVANCING_RANKS
        rounds += 1
    return rounds


def get_heat_code(heat: Heat) -> str:
    """Short heat code used in reports, e.g. 'Q-H3', 'WB-R2', 'LB-F', 'GF'."""
    if heat.bracket_type == BRACKET_GRAND_FINALE:
        return 'GF'
    if heat.bracket_type == BRACKET_REMATCH:
        return f"RM-P{heat.rematch_for_place}"
    if heat.bracket_type == BRACKET_WINNER:
        return 'WB-F' if heat.is_finale else f"WB-R{heat.round_number}"
    if heat.bracket_type == BRACKET_LOSER:
        return 'LB-F' if heat.is_finale else f"LB-R{heat.round_number}"
    return f"Q-H{heat.heat_number}"


def get_heat_name(heat: Heat) -> str:
    """Display name of a heat including its number where ambiguous."""
    if heat.bracket_type in (BRACKET_WINNER, BRACKET_LOSER) and not heat.is_finale:
        prefix = 'WB' if heat.bracket_type == BRACKET_WINNER else 'LB'
        return f"{prefix}-R{heat.round_number}-H{heat.heat_number}"
    if heat.bracket_type == BRACKET_QUALIFICATION:
        return f"Quali-H{heat.heat_number}"
    return heat.round_name
