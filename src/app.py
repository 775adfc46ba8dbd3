"""
Flask web application for the heat bracket tournament.

Every request loads the tournament from the data directory, applies one
command and saves the result while holding the data lock.
"""
import os
import logging
from contextlib import contextmanager

from filelock import FileLock
from flask import Flask, request, jsonify, Response

from heatbracket import BracketError, BracketIntegrityError, StateImportError, TournamentEngine
from heatbracket.persistence import dump_state, export_state, import_state, parse_state, restore_state
from heatbracket.placements import calculate_final_standings, generate_csv_export, get_top4

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(BASE_DIR, 'data'))
STATE_FILENAME = 'tournament.yaml'
MAX_UPLOAD_SIZE = 10 * 1024 * 1024  # 10 MB

app.secret_key = os.environ.get('SECRET_KEY') or os.urandom(24)
app.config['MAX_CONTENT_LENGTH'] = MAX_UPLOAD_SIZE


def _state_file() -> str:
    return os.path.join(DATA_DIR, STATE_FILENAME)


def _state_lock() -> FileLock:
    os.makedirs(DATA_DIR, exist_ok=True)
    return FileLock(os.path.join(DATA_DIR, '.lock'), timeout=10)


def _engine_seed():
    """Optional integer seed for the shuffle source, from TOURNAMENT_SEED."""
    seed = os.environ.get('TOURNAMENT_SEED')
    if seed is None or seed == '':
        return None
    try:
        return int(seed)
    except ValueError:
        app.logger.warning(f'Ignoring non-integer TOURNAMENT_SEED: {seed!r}')
        return None


def load_engine() -> TournamentEngine:
    """Load the tournament from YAML, or a fresh engine if nothing is saved yet."""
    engine = TournamentEngine(seed=_engine_seed())
    path = _state_file()
    if not os.path.exists(path):
        return engine
    with open(path, 'r', encoding='utf-8') as f:
        restore_state(engine, parse_state(f.read()))
    return engine


def save_engine(engine: TournamentEngine):
    """Save the tournament to YAML."""
    os.makedirs(DATA_DIR, exist_ok=True)
    with open(_state_file(), 'w', encoding='utf-8') as f:
        f.write(dump_state(engine))


@contextmanager
def engine_session(save=True):
    """Hold the data lock for one load/modify/save cycle."""
    with _state_lock():
        engine = load_engine()
        try:
            yield engine
        except BracketIntegrityError:
            # The submitted result is kept even though the Grand Finale was refused
            save_engine(engine)
            raise
        if save:
            save_engine(engine)


def state_payload(engine: TournamentEngine) -> dict:
    """Serialized state plus the flags the bracket view needs."""
    payload = export_state(engine)
    active, upcoming = engine.active_heat, engine.next_heat
    payload.update({
        'active_heat_id': active.id if active else None,
        'next_heat_id': upcoming.id if upcoming else None,
        'is_qualification_complete': engine.is_qualification_complete,
        'grand_finale_rematch_pending': engine.grand_finale_rematch_pending,
        'pilot_bracket_states': {
            pilot_id: state.to_dict() for pilot_id, state in engine.pilot_bracket_states.items()
        },
        'top4': get_top4(engine),
    })
    return payload


@app.errorhandler(BracketError)
def handle_bracket_error(e):
    if isinstance(e, BracketIntegrityError):
        app.logger.error(f'Bracket integrity failure: {e}')
    return jsonify({'success': False, 'error': str(e)}), e.status_code


@app.route('/api/state')
def api_state():
    """Current tournament snapshot."""
    with _state_lock():
        engine = load_engine()
    return jsonify(state_payload(engine))


@app.route('/api/pilots', methods=['POST'])
def api_add_pilot():
    data = request.get_json(silent=True) or {}
    with engine_session() as engine:
        pilot = engine.add_pilot(data.get('name', ''))
    return jsonify({'success': True, 'pilot': pilot.to_dict()}), 201


@app.route('/api/pilots/<pilot_id>', methods=['DELETE'])
def api_delete_pilot(pilot_id):
    with engine_session() as engine:
        engine.delete_pilot(pilot_id)
    return jsonify({'success': True})


@app.route('/api/pilots/<pilot_id>/withdraw', methods=['POST'])
def api_withdraw_pilot(pilot_id):
    with engine_session() as engine:
        pilot = engine.withdraw_pilot(pilot_id)
    return jsonify({'success': True, 'pilot': pilot.to_dict() if pilot else None})


@app.route('/api/tournament/start', methods=['POST'])
def api_start_tournament():
    """Deal the roster into qualification heats."""
    with engine_session() as engine:
        heats = engine.confirm_tournament_start()
        payload = state_payload(engine)
    app.logger.info(f'Tournament started with {len(heats)} qualification heats')
    return jsonify({'success': True, 'state': payload})


@app.route('/api/tournament/shuffle', methods=['POST'])
def api_shuffle_heats():
    with engine_session() as engine:
        engine.shuffle_heats()
        payload = state_payload(engine)
    return jsonify({'success': True, 'state': payload})


@app.route('/api/tournament/swap', methods=['POST'])
def api_swap_pilots():
    """Swap two pilots between qualification heats."""
    data = request.get_json(silent=True) or {}
    pilot_1 = data.get('pilot_id_1')
    pilot_2 = data.get('pilot_id_2')
    if not pilot_1 or not pilot_2:
        return jsonify({'success': False, 'error': 'Two pilot ids are required'}), 400
    with engine_session() as engine:
        engine.swap_pilots(pilot_1, pilot_2)
        payload = state_payload(engine)
    return jsonify({'success': True, 'state': payload})


@app.route('/api/tournament/confirm', methods=['POST'])
def api_confirm_heats():
    with engine_session() as engine:
        engine.confirm_heat_assignment()
        payload = state_payload(engine)
    return jsonify({'success': True, 'state': payload})


@app.route('/api/tournament/cancel', methods=['POST'])
def api_cancel_heats():
    with engine_session() as engine:
        engine.cancel_heat_assignment()
        payload = state_payload(engine)
    return jsonify({'success': True, 'state': payload})


@app.route('/api/heats/<heat_id>/results', methods=['POST'])
def api_submit_results(heat_id):
    """
    Submit the rankings of a heat.

    Expects JSON {"rankings": [{"pilot_id": ..., "rank": 1}, ...]}.
    """
    data = request.get_json(silent=True) or {}
    rankings = data.get('rankings')
    if not isinstance(rankings, list):
        return jsonify({'success': False, 'error': 'Missing rankings'}), 400
    try:
        with engine_session() as engine:
            heat = engine.submit_heat_results(heat_id, rankings)
            payload = state_payload(engine)
    except BracketIntegrityError as e:
        # The result stays committed, so the client gets the stored heat along with the refusal
        app.logger.error(f'Bracket integrity failure: {e}')
        return jsonify({
            'success': False,
            'error': str(e),
            'heat': engine.get_heat(heat_id).to_dict(),
            'state': state_payload(engine),
        }), e.status_code
    return jsonify({'success': True, 'heat': heat.to_dict(), 'state': payload})


@app.route('/api/heats/<heat_id>/reopen', methods=['POST'])
def api_reopen_heat(heat_id):
    with engine_session() as engine:
        heat = engine.reopen_heat(heat_id)
        payload = state_payload(engine)
    return jsonify({'success': True, 'heat': heat.to_dict(), 'state': payload})


@app.route('/api/reset', methods=['POST'])
def api_reset_tournament():
    """Clear heats and progress, keep the pilots."""
    with engine_session() as engine:
        engine.reset_tournament()
        payload = state_payload(engine)
    app.logger.info('Tournament reset')
    return jsonify({'success': True, 'state': payload})


@app.route('/api/reset-all', methods=['POST'])
def api_reset_all():
    with engine_session() as engine:
        engine.reset_all()
        payload = state_payload(engine)
    app.logger.info('Tournament and roster reset')
    return jsonify({'success': True, 'state': payload})


@app.route('/api/export')
def api_export():
    """Download the tournament state as YAML."""
    with _state_lock():
        engine = load_engine()
    return Response(
        dump_state(engine),
        mimetype='application/x-yaml',
        headers={'Content-Disposition': 'attachment; filename=tournament_export.yaml'}
    )


@app.route('/api/import', methods=['POST'])
def api_import():
    """
    Replace the tournament with an uploaded YAML export.

    Accepts a multipart upload in 'state_file' or the YAML as the raw body.
    The document is validated in full before anything is replaced.
    """
    file = request.files.get('state_file')
    if file and file.filename:
        raw = file.read()
    else:
        raw = request.get_data()
    if not raw:
        return jsonify({'success': False, 'error': 'No file provided'}), 400

    try:
        content = raw.decode('utf-8')
    except UnicodeDecodeError:
        return jsonify({'success': False, 'error': 'File is not valid UTF-8'}), 400

    try:
        with engine_session() as engine:
            summary = import_state(engine, content)
    except StateImportError as e:
        app.logger.warning(f'Rejected tournament import: {e}')
        raise
    app.logger.info(f"Imported tournament with {summary['pilots']} pilots and {summary['heats']} heats")
    return jsonify({'success': True, 'summary': summary})


@app.route('/api/standings')
def api_standings():
    with _state_lock():
        engine = load_engine()
    return jsonify({'standings': calculate_final_standings(engine), 'top4': get_top4(engine)})


@app.route('/api/export-csv')
def api_export_csv():
    """Export the pilot report as a downloadable CSV file."""
    with _state_lock():
        engine = load_engine()
    return Response(
        generate_csv_export(engine),
        mimetype='text/csv',
        headers={'Content-Disposition': 'attachment; filename=tournament.csv'},
    )


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    app.run(debug=True)
