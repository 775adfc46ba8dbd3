"""
Shared pytest fixtures and helpers for heat bracket tests.

Running tests:
    pytest tests/                  - full suite
    pytest tests/ -m "not slow"   - fast subset (skips the 60-pilot sweeps)
"""
import pytest
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from heatbracket import TournamentEngine


def pilot_ids(count):
    """Deterministic pilot ids p01, p02, ..."""
    return [f"p{i:02d}" for i in range(1, count + 1)]


def make_engine(count, seed=42, start=True):
    """
    Engine with `count` pilots (ids p01..), optionally started and confirmed
    so the first qualification heat is active.
    """
    engine = TournamentEngine(seed=seed)
    for pilot_id in pilot_ids(count):
        engine.add_pilot(f"Pilot {pilot_id[1:]}", pilot_id=pilot_id)
    if start:
        engine.confirm_tournament_start()
        engine.confirm_heat_assignment()
    return engine


def rankings_for(order):
    """Rankings payload placing pilots in the given order."""
    return [{'pilot_id': pilot_id, 'rank': rank} for rank, pilot_id in enumerate(order, start=1)]


def complete_heat(engine, heat, order=None):
    """Submit a result for heat; defaults to the heat's listed order."""
    order = list(order) if order is not None else list(heat.pilot_ids)
    return engine.submit_heat_results(heat.id, rankings_for(order))


def open_heats(engine, bracket_type=None):
    return [
        h for h in engine.heats
        if not h.is_completed and (bracket_type is None or h.bracket_type == bracket_type)
    ]


def play_open_heats(engine, bracket_type=None):
    """Complete every currently open heat (optionally of one bracket) in list order."""
    for heat in open_heats(engine, bracket_type):
        complete_heat(engine, heat)


def run_tournament(engine, order_fn=None, max_heats=500):
    """
    Complete heats one after another until nothing is left to race.

    order_fn(engine, heat) may return a custom finishing order.
    """
    for _ in range(max_heats):
        heat = engine.active_heat or engine.next_heat
        if heat is None:
            return engine
        order = order_fn(engine, heat) if order_fn else None
        complete_heat(engine, heat, order)
    raise AssertionError('Tournament did not finish')


def play_to_grand_finale(engine):
    """Race every heat until the Grand Finale is the only open heat."""
    while engine.grand_finale is None:
        heat = engine.active_heat or engine.next_heat
        assert heat is not None, 'Bracket stalled before the Grand Finale'
        complete_heat(engine, heat)
    return engine.grand_finale


@pytest.fixture
def engine8():
    """Started 8-pilot tournament."""
    return make_engine(8)


@pytest.fixture
def engine16():
    """Started 16-pilot tournament."""
    return make_engine(16)


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the web app at an empty temporary data directory."""
    import app as app_module

    data_dir = tmp_path / "data"
    monkeypatch.setattr(app_module, 'DATA_DIR', str(data_dir))
    monkeypatch.delenv('TOURNAMENT_SEED', raising=False)
    return str(data_dir)


@pytest.fixture
def client(temp_data_dir):
    """Create a test client bound to the temporary data directory."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client
