"""
Tests for final standings and the CSV report.
"""
import csv
import io

from heatbracket.constants import BRACKET_QUALIFICATION
from heatbracket.placements import calculate_final_standings, generate_csv_export, get_top4

from conftest import complete_heat, make_engine, play_open_heats, run_tournament


def standings_by_pilot(engine):
    return {row['pilot_id']: row for row in calculate_final_standings(engine)}


class TestFinalStandings:
    """Tests for calculate_final_standings."""

    def test_sixteen_pilot_ranges(self, engine16):
        run_tournament(engine16)
        rows = calculate_final_standings(engine16)
        assert [r['place'] for r in rows[:4]] == ['1', '2', '3', '4']

        by_phase = {}
        for row in rows[4:]:
            by_phase.setdefault(row['phase'], set()).add(row['place'])
        assert by_phase == {
            'LB Finale': {'5-6'},
            'WB Finale': {'7-8'},
            'LB Round 2': {'9-10'},
            'LB Round 1': {'11-16'},
        }

    def test_top4_matches_grand_finale(self, engine8):
        run_tournament(engine8)
        grand_finale = engine8.grand_finale
        assert get_top4(engine8) == {i: p for i, p in enumerate(grand_finale.results.top(4), start=1)}

    def test_every_pilot_placed_once_finished(self):
        for count in (7, 9, 12, 16):
            engine = make_engine(count, seed=count)
            run_tournament(engine)
            rows = calculate_final_standings(engine)
            assert len(rows) == count
            assert all(r['place_from'] is not None for r in rows)

            # Ranges tile 1..count, each shared by exactly as many pilots as it spans
            groups = {}
            for row in rows:
                groups.setdefault((row['place_from'], row['place_to']), []).append(row['pilot_id'])
            covered = []
            for (place_from, place_to), members in groups.items():
                assert len(members) == place_to - place_from + 1
                covered.extend(range(place_from, place_to + 1))
            assert sorted(covered) == list(range(1, count + 1))

    def test_running_tournament_has_open_places(self, engine8):
        play_open_heats(engine8, BRACKET_QUALIFICATION)
        complete_heat(engine8, engine8.wb_finale)
        standings = standings_by_pilot(engine8)
        eliminated = engine8.wb_finale.pilot_ids[2:]
        assert {standings[p]['place'] for p in eliminated} == {'5-6'}
        still_racing = [p for p in standings if p not in eliminated]
        assert all(standings[p]['place'] is None for p in still_racing)
        assert get_top4(engine8) is None

    def test_withdrawn_status_reported(self, engine8):
        run_tournament(engine8)
        engine8.withdraw_pilot('p05')
        assert standings_by_pilot(engine8)['p05']['status'] == 'withdrawn'
        assert standings_by_pilot(engine8)['p05']['place'] is not None


class TestCsvExport:
    """Tests for generate_csv_export."""

    def read_rows(self, engine):
        return list(csv.DictReader(io.StringIO(generate_csv_export(engine))))

    def test_header(self, engine8):
        first_line = generate_csv_export(engine8).splitlines()[0]
        assert first_line == 'Pilot,Status,Placement,Bracket,Heats Flown,Results,Next Heat'

    def test_before_any_heat(self, engine8):
        rows = self.read_rows(engine8)
        assert len(rows) == 8
        assert all(r['Status'] == 'Not started' for r in rows)
        assert all(r['Results'] == '-' for r in rows)
        assert all(r['Next Heat'].startswith('Quali-H') for r in rows)

    def test_completed_tournament(self, engine8):
        run_tournament(engine8)
        rows = {r['Pilot']: r for r in self.read_rows(engine8)}
        champion_id = get_top4(engine8)[1]
        champion = engine8.get_pilot(champion_id)
        row = rows[champion.name]
        assert row['Status'] == 'Champion'
        assert row['Placement'] == '1'
        assert row['Bracket'] == 'Grand Finale'
        assert row['Next Heat'] == '-'
        assert row['Results'].startswith('Q-H')
        assert row['Results'].endswith('GF: 1.')
        assert int(row['Heats Flown']) == len(engine8.get_pilot_journey(champion_id))

    def test_results_format(self, engine8):
        heat = engine8.heats[0]
        complete_heat(engine8, heat)
        winner = engine8.get_pilot(heat.pilot_ids[0])
        rows = {r['Pilot']: r for r in self.read_rows(engine8)}
        assert rows[winner.name]['Results'] == 'Q-H1: 1.'
        assert rows[winner.name]['Status'] == 'Active'
