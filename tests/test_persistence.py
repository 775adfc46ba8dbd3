"""
Tests for YAML export and import of tournament state.
"""
import pytest
import yaml
from heatbracket import StateImportError, TournamentEngine
from heatbracket.persistence import (
    dump_state,
    export_state,
    import_state,
    parse_state,
    summarize_state,
)

from conftest import complete_heat, make_engine, run_tournament


def played(engine, heat_count):
    for _ in range(heat_count):
        complete_heat(engine, engine.active_heat or engine.next_heat)
    return engine


class TestRoundTrip:
    """Export followed by import reproduces the tournament."""

    def test_mid_tournament(self, engine16):
        played(engine16, 9)
        text = dump_state(engine16)

        restored = TournamentEngine(seed=5)
        import_state(restored, text)
        assert export_state(restored) == export_state(engine16)
        assert restored.active_heat.id == engine16.active_heat.id
        assert restored.lb_round_waiting_for_wb == engine16.lb_round_waiting_for_wb

    def test_restored_engine_can_finish(self, engine16):
        played(engine16, 6)
        restored = TournamentEngine(seed=11)
        import_state(restored, dump_state(engine16))
        run_tournament(restored)
        assert restored.tournament_phase == 'completed'
        assert len(restored.eliminated_pilots) == 12

    def test_finished_tournament_with_rematch(self, engine8):
        def lb_first(engine, heat):
            if heat.bracket_type == 'grand_finale':
                return heat.pilot_ids[2:] + heat.pilot_ids[:2]
            return None
        run_tournament(engine8, lb_first)
        restored = TournamentEngine()
        import_state(restored, dump_state(engine8))
        assert [h.rematch_for_place for h in restored.rematch_heats] == [1, 2]
        assert export_state(restored) == export_state(engine8)

    def test_yaml_layout(self, engine8):
        data = yaml.safe_load(dump_state(engine8))
        assert data['version'] == 1
        assert list(data)[:4] == ['version', 'pilots', 'tournament_phase', 'heats']
        assert data['heats'][0]['bracket_type'] == 'qualification'


class TestImportValidation:
    """Rejected imports leave the live engine untouched."""

    def assert_rejected(self, engine, text):
        before = export_state(engine)
        with pytest.raises(StateImportError):
            import_state(engine, text)
        assert export_state(engine) == before

    def mutated(self, engine, change):
        data = export_state(engine)
        change(data)
        return yaml.safe_dump(data, sort_keys=False)

    def test_version_mismatch(self, engine8):
        text = self.mutated(engine8, lambda d: d.update(version=2))
        self.assert_rejected(engine8, text)

    def test_malformed_yaml(self, engine8):
        self.assert_rejected(engine8, "heats: [unclosed")

    def test_not_a_mapping(self, engine8):
        self.assert_rejected(engine8, "- just\n- a list\n")

    def test_bad_phase(self, engine8):
        self.assert_rejected(engine8, self.mutated(engine8, lambda d: d.update(tournament_phase='paused')))

    def test_unknown_pilot_in_heat(self, engine8):
        def change(data):
            data['heats'][0]['pilot_ids'][0] = 'ghost'
        self.assert_rejected(engine8, self.mutated(engine8, change))

    def test_contradictory_heat_kind(self, engine8):
        def change(data):
            data['heats'][0]['is_finale'] = True
        self.assert_rejected(engine8, self.mutated(engine8, change))

    def test_duplicate_heat_ids(self, engine8):
        def change(data):
            data['heats'][1]['id'] = data['heats'][0]['id']
        self.assert_rejected(engine8, self.mutated(engine8, change))

    def test_invalid_results(self):
        engine = played(make_engine(8), 1)

        def change(data):
            data['heats'][0]['results']['rankings'][0]['rank'] = 2
        self.assert_rejected(engine, self.mutated(engine, change))

    def test_unknown_pilot_in_pool(self):
        engine = played(make_engine(8), 1)

        def change(data):
            data['loser_pool'].append('ghost')
        self.assert_rejected(engine, self.mutated(engine, change))

    def test_unhashable_pilot_in_heat(self, engine8):
        def change(data):
            data['heats'][0]['pilot_ids'][0] = [data['heats'][0]['pilot_ids'][0]]
        self.assert_rejected(engine8, self.mutated(engine8, change))

    def test_unhashable_pilot_in_pool(self):
        engine = played(make_engine(8), 1)

        def change(data):
            data['loser_pool'].append(['p01'])
        self.assert_rejected(engine, self.mutated(engine, change))

    def test_waiting_flag_must_be_boolean(self, engine8):
        self.assert_rejected(engine8, self.mutated(engine8, lambda d: d.update(lb_round_waiting_for_wb='false')))


class TestSummary:
    """Tests for summarize_state."""

    def test_summary(self, engine8):
        summary = summarize_state(parse_state(dump_state(engine8)))
        assert summary == {'pilots': 8, 'heats': 2, 'phase': 'running'}
