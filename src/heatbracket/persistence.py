"""
Versioned YAML export and import of a tournament.

An import is parsed and validated in full before the engine is touched; a
rejected document leaves the live state exactly as it was.
"""
import logging
from typing import Any, Dict, List

import yaml

from .constants import (
    HEAT_STATUSES,
    MAX_HEAT_SIZE,
    MIN_HEAT_SIZE,
    PILOT_STATUSES,
    STATE_VERSION,
    STATUS_COMPLETED,
    TOURNAMENT_PHASES,
)
from .engine import validate_rankings
from .errors import InvalidRankingsError, StateImportError
from .models import Heat, HeatResults, Pilot, kind_from_fields

logger = logging.getLogger(__name__)

POOL_KEYS = ('winner_pilots', 'loser_pool', 'eliminated_pilots', 'grand_finale_pool')


def export_state(engine) -> Dict[str, Any]:
    """Snapshot of everything needed to resume the tournament."""
    data = {
        'version': STATE_VERSION,
        'pilots': [p.to_dict() for p in engine.pilots],
        'tournament_phase': engine.tournament_phase,
        'heats': [h.to_dict() for h in engine.heats],
    }
    for key in POOL_KEYS:
        data[key] = list(getattr(engine, key))
    data['current_wb_round'] = engine.current_wb_round
    data['current_lb_round'] = engine.current_lb_round
    data['lb_round_waiting_for_wb'] = engine.lb_round_waiting_for_wb
    return data


def dump_state(engine) -> str:
    return yaml.safe_dump(export_state(engine), default_flow_style=False, sort_keys=False, allow_unicode=True)


def _require(condition: bool, message: str):
    if not condition:
        raise StateImportError(message)


def _validate_pilots(raw) -> List[Pilot]:
    _require(isinstance(raw, list), "'pilots' must be a list")
    pilots = []
    seen = set()
    for entry in raw:
        _require(isinstance(entry, dict), f"Invalid pilot entry: {entry!r}")
        pilot_id, name = entry.get('id'), entry.get('name')
        status = entry.get('status', PILOT_STATUSES[0])
        _require(isinstance(pilot_id, str) and pilot_id, f"Pilot without id: {entry!r}")
        _require(isinstance(name, str) and name.strip(), f"Pilot {pilot_id} has no name")
        _require(status in PILOT_STATUSES, f"Pilot {pilot_id} has invalid status '{status}'")
        _require(pilot_id not in seen, f"Duplicate pilot id '{pilot_id}'")
        seen.add(pilot_id)
        pilots.append(Pilot(pilot_id, name, status))
    return pilots


def _validate_heat(entry, pilot_ids) -> Heat:
    _require(isinstance(entry, dict), f"Invalid heat entry: {entry!r}")
    heat_id = entry.get('id')
    _require(isinstance(heat_id, str) and heat_id, f"Heat without id: {entry!r}")

    heat_number = entry.get('heat_number')
    _require(isinstance(heat_number, int) and not isinstance(heat_number, bool) and heat_number > 0,
             f"Heat {heat_id} has an invalid heat_number")

    members = entry.get('pilot_ids')
    _require(isinstance(members, list), f"Heat {heat_id} has no pilot list")
    _require(all(isinstance(p, str) for p in members), f"Heat {heat_id} has a malformed pilot id")
    _require(MIN_HEAT_SIZE <= len(members) <= MAX_HEAT_SIZE,
             f"Heat {heat_id} has {len(members)} pilots, expected {MIN_HEAT_SIZE}-{MAX_HEAT_SIZE}")
    _require(len(set(members)) == len(members), f"Heat {heat_id} lists a pilot twice")
    unknown = [p for p in members if p not in pilot_ids]
    _require(not unknown, f"Heat {heat_id} references unknown pilots {unknown}")

    status = entry.get('status')
    _require(status in HEAT_STATUSES, f"Heat {heat_id} has invalid status '{status}'")

    try:
        kind = kind_from_fields(
            entry.get('bracket_type'),
            is_finale=bool(entry.get('is_finale', False)),
            round_number=entry.get('round_number'),
            rematch_for_place=entry.get('rematch_for_place'),
        )
    except ValueError as e:
        raise StateImportError(f"Heat {heat_id}: {e}") from e

    results = None
    raw_results = entry.get('results')
    if raw_results is not None:
        _require(isinstance(raw_results, dict), f"Heat {heat_id} has malformed results")
        try:
            rankings = validate_rankings(members, raw_results.get('rankings') or [])
        except InvalidRankingsError as e:
            raise StateImportError(f"Heat {heat_id}: {e}") from e
        results = HeatResults(rankings, completed_at=raw_results.get('completed_at'))
    _require(status != STATUS_COMPLETED or results is not None, f"Completed heat {heat_id} has no results")

    return Heat(heat_id, heat_number, members, kind, status=status, results=results)


def _validate_round_counter(data, key) -> int:
    value = data.get(key, 0)
    _require(isinstance(value, int) and not isinstance(value, bool) and value >= 0,
             f"'{key}' must be a non-negative integer")
    return value


def parse_state(text) -> Dict[str, Any]:
    """
    Parse and validate an exported YAML document.

    Returns:
        Validated state with model objects under 'pilots' and 'heats'

    Raises:
        StateImportError: the document is unreadable or inconsistent
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise StateImportError(f"Error parsing YAML: {e}") from e

    _require(isinstance(data, dict), 'Expected a mapping at the top level')
    version = data.get('version')
    _require(version == STATE_VERSION, f"Unsupported state version {version!r}, expected {STATE_VERSION}")

    phase = data.get('tournament_phase')
    _require(phase in TOURNAMENT_PHASES, f"Invalid tournament phase '{phase}'")

    pilots = _validate_pilots(data.get('pilots', []))
    pilot_ids = {p.id for p in pilots}

    raw_heats = data.get('heats', [])
    _require(isinstance(raw_heats, list), "'heats' must be a list")
    heats = [_validate_heat(entry, pilot_ids) for entry in raw_heats]
    heat_ids = [h.id for h in heats]
    _require(len(set(heat_ids)) == len(heat_ids), 'Duplicate heat ids')

    state = {
        'pilots': pilots,
        'tournament_phase': phase,
        'heats': heats,
    }
    for key in POOL_KEYS:
        pool = data.get(key) or []
        _require(isinstance(pool, list), f"'{key}' must be a list")
        _require(all(isinstance(p, str) for p in pool), f"'{key}' has a malformed pilot id")
        unknown = [p for p in pool if p not in pilot_ids]
        _require(not unknown, f"'{key}' references unknown pilots {unknown}")
        state[key] = list(pool)

    state['current_wb_round'] = _validate_round_counter(data, 'current_wb_round')
    state['current_lb_round'] = _validate_round_counter(data, 'current_lb_round')
    waiting = data.get('lb_round_waiting_for_wb', False)
    _require(isinstance(waiting, bool), "'lb_round_waiting_for_wb' must be true or false")
    state['lb_round_waiting_for_wb'] = waiting
    return state


def restore_state(engine, state: Dict[str, Any]):
    """Swap a validated state into the engine."""
    engine.pilots = state['pilots']
    engine.tournament_phase = state['tournament_phase']
    engine.heats = state['heats']
    for key in POOL_KEYS:
        setattr(engine, key, state[key])
    engine.current_wb_round = state['current_wb_round']
    engine.current_lb_round = state['current_lb_round']
    engine.lb_round_waiting_for_wb = state['lb_round_waiting_for_wb']


def import_state(engine, text) -> Dict[str, Any]:
    """Parse, validate and restore in one step. Returns the summary of the imported state."""
    state = parse_state(text)
    restore_state(engine, state)
    summary = summarize_state(state)
    logger.info('Imported tournament: %(pilots)d pilots, %(heats)d heats, phase %(phase)s', summary)
    return summary


def summarize_state(state: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'pilots': len(state['pilots']),
        'heats': len(state['heats']),
        'phase': state['tournament_phase'],
    }
