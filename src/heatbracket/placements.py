"""
Final standings and the CSV report.

Places 1-4 come from the Grand Finale after rematch adjustment. Everybody
else is placed by the phase they were eliminated in: LB Finale first, then
WB Finale, then LB rounds from the highest round down. Pilots eliminated in
the same phase share one placement range, handed out from place 5 onward.
"""
import csv
import io
from typing import Any, Dict, List, Optional, Tuple

from .constants import (
    ADVANCING_RANKS,
    BRACKET_LOSER,
    BRACKET_QUALIFICATION,
    BRACKET_WINNER,
    FIRST_ELIMINATION_PLACE,
    PHASE_COMPLETED,
    PILOT_WITHDRAWN,
    STATUS_COMPLETED,
)
from .finale import final_places
from .models import Heat
from .rounds import get_heat_code, get_heat_name

CSV_HEADER = ['Pilot', 'Status', 'Placement', 'Bracket', 'Heats Flown', 'Results', 'Next Heat']


def get_top4(engine) -> Optional[Dict[int, str]]:
    """
    Places 1-4 of a decided tournament.

    Returns:
        {place: pilot_id}, or None while the Grand Finale or a rematch is open
    """
    grand_finale = engine.grand_finale
    if grand_finale is None or not grand_finale.is_completed or engine.grand_finale_rematch_pending:
        return None
    return final_places(grand_finale, engine.rematch_heats)


def _elimination_phases(engine) -> List[Tuple[str, List[str]]]:
    """(phase label, eliminated pilot ids) from most to least advanced."""
    phases = []
    lb_finale = engine.lb_finale
    wb_finale = engine.wb_finale
    for finale in (lb_finale, wb_finale):
        if finale is not None and finale.is_completed:
            phases.append((finale.round_name, finale.results.below(ADVANCING_RANKS)))

    lb_rounds = sorted(
        {h.round_number for h in engine.heats_for(BRACKET_LOSER) if not h.is_finale},
        reverse=True,
    )
    for round_number in lb_rounds:
        eliminated = []
        for heat in engine.heats_for(BRACKET_LOSER, round_number):
            if heat.is_finale or not heat.is_completed:
                continue
            eliminated.extend(heat.results.below(ADVANCING_RANKS))
        if eliminated:
            phases.append((f"LB Round {round_number}", eliminated))
    return [(label, pilots) for label, pilots in phases if pilots]


def _format_place(place_from: Optional[int], place_to: Optional[int]) -> Optional[str]:
    if place_from is None:
        return None
    if place_from == place_to:
        return str(place_from)
    return f"{place_from}-{place_to}"


def calculate_final_standings(engine) -> List[Dict[str, Any]]:
    """
    Compute one standings row per pilot.

    Each row holds pilot_id, name, status, place_from, place_to, place and
    phase. Pilots still in the race have no place. Rows are ordered by
    placement and then by roster order.
    """
    placed = {}
    top4 = get_top4(engine) or {}
    for place, pilot_id in top4.items():
        placed[pilot_id] = (place, place, 'Grand Finale')

    next_place = FIRST_ELIMINATION_PLACE
    for label, pilot_ids in _elimination_phases(engine):
        place_to = next_place + len(pilot_ids) - 1
        for pilot_id in pilot_ids:
            placed.setdefault(pilot_id, (next_place, place_to, label))
        next_place = place_to + 1

    rows = []
    for order, pilot in enumerate(engine.pilots):
        place_from, place_to, phase = placed.get(pilot.id, (None, None, None))
        rows.append({
            'pilot_id': pilot.id,
            'name': pilot.name,
            'status': pilot.status,
            'place_from': place_from,
            'place_to': place_to,
            'place': _format_place(place_from, place_to),
            'phase': phase,
            '_order': order,
        })

    rows.sort(key=lambda r: (r['place_from'] is None, r['place_from'] or 0, r['_order']))
    for row in rows:
        del row['_order']
    return rows


def _pilot_heats(engine, pilot_id: str) -> List[Heat]:
    return [h for h in engine.heats if pilot_id in h.pilot_ids]


def _report_status(engine, pilot, top4: Dict[int, str]) -> str:
    if pilot.status == PILOT_WITHDRAWN:
        return 'Withdrawn'
    if engine.tournament_phase == PHASE_COMPLETED and top4.get(1) == pilot.id:
        return 'Champion'
    if not engine.get_pilot_journey(pilot.id):
        return 'Not started'
    if pilot.id in engine.eliminated_pilots:
        return 'Eliminated'
    return 'Active'


def _report_bracket(engine, pilot_id: str) -> str:
    heats = _pilot_heats(engine, pilot_id)
    for heat in reversed(heats):
        if heat.bracket_type == BRACKET_QUALIFICATION:
            continue
        if heat.bracket_type == BRACKET_WINNER:
            return 'Winner'
        if heat.bracket_type == BRACKET_LOSER:
            return 'Loser'
        return 'Grand Finale'
    return '-'


def _report_results(engine, pilot_id: str) -> str:
    parts = []
    for heat in engine.get_pilot_journey(pilot_id):
        rank = heat.results.rank_of(pilot_id)
        parts.append(f"{get_heat_code(heat)}: {rank}.")
    return ' | '.join(parts) or '-'


def _report_next_heat(engine, pilot_id: str) -> str:
    for heat in _pilot_heats(engine, pilot_id):
        if heat.status != STATUS_COMPLETED:
            return get_heat_name(heat)
    return '-'


def generate_csv_export(engine) -> str:
    """
    Render the tournament as CSV, one row per pilot in roster order.

    Columns: Pilot, Status, Placement, Bracket, Heats Flown, Results, Next Heat
    """
    top4 = get_top4(engine) or {}
    places = {row['pilot_id']: row['place'] for row in calculate_final_standings(engine)}

    output = io.StringIO()
    writer = csv.writer(output, lineterminator='\n')
    writer.writerow(CSV_HEADER)
    for pilot in engine.pilots:
        writer.writerow([
            pilot.name,
            _report_status(engine, pilot, top4),
            places.get(pilot.id) or '-',
            _report_bracket(engine, pilot.id),
            len(engine.get_pilot_journey(pilot.id)),
            _report_results(engine, pilot.id),
            _report_next_heat(engine, pilot.id),
        ])

    csv_content = output.getvalue()
    output.close()
    return csv_content
