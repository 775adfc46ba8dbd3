"""
Grand Finale composition and the rematch rule.

The Grand Finale brings the top two of the WB Finale together with the top
two of the LB Finale. Afterwards a Loser Bracket pilot who finished ahead of
a Winner Bracket pilot in a contested place pair has made both of them lose
exactly once, so a 1v1 rematch decides that place:

- Place 1 vs place 3: rematch for place 1 if 1st is LB-origin and 3rd is WB-origin
- Place 2 vs place 4: rematch for place 2 if 2nd is LB-origin and 4th is WB-origin
"""
import logging
from typing import Callable, Dict, List, Optional, Tuple

from .constants import ADVANCING_RANKS, ORIGIN_LB, ORIGIN_WB, REMATCH_PLACE_PAIRS
from .errors import BracketIntegrityError
from .models import Heat

logger = logging.getLogger(__name__)


def finalists(finale: Optional[Heat]) -> List[str]:
    """Top two of a completed bracket finale, best first."""
    if finale is None or not finale.is_completed or not finale.results:
        return []
    return finale.results.top(ADVANCING_RANKS)


def compose_grand_finale(wb_finale: Heat, lb_finale: Heat) -> List[str]:
    """
    Build the Grand Finale line-up [WB 1st, WB 2nd, LB 1st, LB 2nd].

    Raises:
        BracketIntegrityError: if the line-up is not four distinct pilots.
            Overlapping finalist sets mean the brackets are inconsistent;
            this is never corrected automatically.
    """
    wb_top = finalists(wb_finale)
    lb_top = finalists(lb_finale)
    pilot_ids = wb_top + lb_top

    if len(wb_top) != ADVANCING_RANKS or len(lb_top) != ADVANCING_RANKS:
        raise BracketIntegrityError(
            f"Grand Finale needs two finalists from each bracket, got WB={wb_top} LB={lb_top}"
        )

    duplicates = sorted({p for p in pilot_ids if pilot_ids.count(p) > 1})
    if duplicates:
        logger.error('Grand Finale refused: pilots %s appear in both finalist sets (WB=%s, LB=%s)',
                     duplicates, wb_top, lb_top)
        raise BracketIntegrityError(
            f"Grand Finale refused: duplicate pilots {duplicates} in WB={wb_top} and LB={lb_top}"
        )
    return pilot_ids


def rematch_pairings(grand_finale: Heat, origin_of: Callable[[str], str]) -> List[Tuple[int, List[str]]]:
    """
    Apply the rematch rule to a completed Grand Finale.

    Args:
        grand_finale: The completed Grand Finale heat
        origin_of: Callable returning 'wb' or 'lb' for a pilot id

    Returns:
        List of (place, [lb_pilot, wb_pilot]) for every place that needs a rematch
    """
    if not grand_finale.is_completed or not grand_finale.results:
        return []

    results = grand_finale.results
    pairings = []
    for higher, lower in REMATCH_PLACE_PAIRS:
        higher_pilot = results.pilot_at(higher)
        lower_pilot = results.pilot_at(lower)
        if higher_pilot is None or lower_pilot is None:
            continue
        if origin_of(higher_pilot) == ORIGIN_LB and origin_of(lower_pilot) == ORIGIN_WB:
            pairings.append((higher, [higher_pilot, lower_pilot]))
    return pairings


def final_places(grand_finale: Heat, rematches: List[Heat]) -> Dict[int, str]:
    """
    Places 1-4 after applying completed rematches.

    The rematch winner takes the contested higher place, the loser the place
    two below it. Rematches that are not completed leave the Grand Finale
    order in place.
    """
    if not grand_finale.is_completed or not grand_finale.results:
        return {}

    places = {r.rank: r.pilot_id for r in grand_finale.results.rankings}
    for rematch in rematches:
        if not rematch.is_completed or not rematch.results:
            continue
        place = rematch.rematch_for_place
        places[place] = rematch.results.pilot_at(1)
        places[place + 2] = rematch.results.pilot_at(2)
    return places
