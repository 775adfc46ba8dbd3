"""
End-to-end tournament runs over different field sizes.
"""
import random

import pytest
from heatbracket.constants import BRACKET_LOSER, BRACKET_QUALIFICATION, BRACKET_WINNER

from conftest import make_engine, run_tournament


def random_order(seed):
    rng = random.Random(seed)

    def order(engine, heat):
        pilots = list(heat.pilot_ids)
        rng.shuffle(pilots)
        return pilots
    return order


def assert_finished(engine, count):
    assert engine.tournament_phase == 'completed'
    assert all(h.is_completed for h in engine.heats)
    assert engine.active_heat is None
    assert not engine.lb_round_waiting_for_wb
    assert len(engine.eliminated_pilots) == count - 4
    assert len(set(engine.eliminated_pilots)) == count - 4
    assert not set(engine.eliminated_pilots) & set(engine.grand_finale.pilot_ids)
    assert engine.winner_pilots == []
    assert engine.loser_pool == []
    assert engine.grand_finale_pool == []
    for heat in engine.heats:
        assert 2 <= len(heat.pilot_ids) <= 4
        assert len(set(heat.pilot_ids)) == len(heat.pilot_ids)
    assert len({h.id for h in engine.heats}) == len(engine.heats)


class TestFieldSizes:
    """Complete tournaments finish with a consistent bracket."""

    @pytest.mark.parametrize("count", [7, 8, 9, 10, 11, 12, 13, 16, 20, 24, 31])
    def test_listed_order(self, count):
        engine = make_engine(count, seed=count)
        run_tournament(engine)
        assert_finished(engine, count)

    @pytest.mark.parametrize("count,seed", [(7, 1), (9, 2), (12, 3), (16, 4), (17, 5), (27, 6)])
    def test_random_results(self, count, seed):
        engine = make_engine(count, seed=seed)
        run_tournament(engine, random_order(seed))
        if engine.rematch_heats:
            assert all(h.is_completed for h in engine.rematch_heats)
        assert_finished(engine, count)

    def test_seven_pilots(self):
        engine = make_engine(7)
        run_tournament(engine)
        assert [len(h.pilot_ids) for h in engine.heats_for(BRACKET_QUALIFICATION)] == [4, 3]
        assert engine.wb_finale.round_number == 1
        assert engine.lb_finale.round_number == 1
        assert len(engine.lb_finale.pilot_ids) == 3

    def test_nine_pilots(self):
        engine = make_engine(9)
        run_tournament(engine)
        assert [len(h.pilot_ids) for h in engine.heats_for(BRACKET_WINNER, 1)] == [3, 3]
        assert [len(h.pilot_ids) for h in engine.heats_for(BRACKET_LOSER, 1)] == [3, 2]
        assert engine.lb_finale.round_number == 2

    def test_twelve_pilots(self):
        engine = make_engine(12)
        run_tournament(engine)
        assert engine.wb_finale.round_number == 2
        assert [len(h.pilot_ids) for h in engine.heats_for(BRACKET_LOSER, 1)] == [4, 4]
        assert engine.lb_finale.round_number == 2


class TestDeterminism:
    """Same seed, same bracket."""

    def test_same_seed_same_composition(self):
        first = make_engine(20, seed=1234)
        second = make_engine(20, seed=1234)
        run_tournament(first)
        run_tournament(second)
        assert [(h.id, h.pilot_ids) for h in first.heats] == [(h.id, h.pilot_ids) for h in second.heats]

    def test_injected_rng(self):
        from heatbracket import TournamentEngine
        engine = TournamentEngine(rng=random.Random(8), seed=999)
        reference = TournamentEngine(seed=8)
        assert engine.rng.random() == reference.rng.random()


@pytest.mark.slow
class TestLargeField:
    """Sweeps over the maximum roster."""

    def test_sixty_pilots(self):
        engine = make_engine(60)
        run_tournament(engine)
        assert_finished(engine, 60)
        assert engine.wb_finale.round_number == 4
        assert engine.lb_finale.round_number == 6

    @pytest.mark.parametrize("seed", range(5))
    def test_sixty_pilots_random_results(self, seed):
        engine = make_engine(60, seed=seed)
        run_tournament(engine, random_order(seed))
        assert_finished(engine, 60)
