from .constants import (
    BRACKET_GRAND_FINALE,
    BRACKET_LOSER,
    BRACKET_QUALIFICATION,
    BRACKET_REMATCH,
    BRACKET_WINNER,
    PILOT_ACTIVE,
    STATUS_COMPLETED,
    STATUS_PENDING,
)


class Pilot:
    def __init__(self, id, name, status=PILOT_ACTIVE):
        self.id = id
        self.name = name
        self.status = status

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'status': self.status}

    def __repr__(self):
        return f"Pilot(id={self.id}, name={self.name}, status={self.status})"


class Ranking:
    def __init__(self, pilot_id, rank):
        self.pilot_id = pilot_id
        self.rank = rank

    def to_dict(self):
        return {'pilot_id': self.pilot_id, 'rank': self.rank}

    def __eq__(self, other):
        return isinstance(other, Ranking) and (self.pilot_id, self.rank) == (other.pilot_id, other.rank)

    def __repr__(self):
        return f"Ranking(pilot_id={self.pilot_id}, rank={self.rank})"


class HeatResults:
    def __init__(self, rankings, completed_at=None):
        # Always kept sorted by rank
        self.rankings = sorted(rankings, key=lambda r: r.rank)
        self.completed_at = completed_at

    def rank_of(self, pilot_id):
        for ranking in self.rankings:
            if ranking.pilot_id == pilot_id:
                return ranking.rank
        return None

    def pilot_at(self, rank):
        for ranking in self.rankings:
            if ranking.rank == rank:
                return ranking.pilot_id
        return None

    def top(self, count):
        """Pilot ids ranked 1..count, best first."""
        return [r.pilot_id for r in self.rankings if r.rank <= count]

    def below(self, count):
        """Pilot ids ranked worse than count, best first."""
        return [r.pilot_id for r in self.rankings if r.rank > count]

    def to_dict(self):
        return {
            'rankings': [r.to_dict() for r in self.rankings],
            'completed_at': self.completed_at,
        }

    def __repr__(self):
        return f"HeatResults(rankings={self.rankings}, completed_at={self.completed_at})"


# Heat kinds. Every heat carries exactly one of these; each variant only
# holds the fields that make sense for it.

class HeatKind:
    bracket_type = None
    is_finale = False
    round_number = None
    rematch_for_place = None
    label = ''

    def __eq__(self, other):
        return type(self) is type(other) and self.__dict__ == other.__dict__

    def __hash__(self):
        return hash((type(self).__name__, tuple(sorted(self.__dict__.items()))))

    def __repr__(self):
        fields = ', '.join(f"{k}={v}" for k, v in self.__dict__.items())
        return f"{type(self).__name__}({fields})"


class Qualification(HeatKind):
    bracket_type = BRACKET_QUALIFICATION
    label = 'Qualification'


class WinnerRound(HeatKind):
    bracket_type = BRACKET_WINNER

    def __init__(self, round_number):
        self.round_number = round_number

    @property
    def label(self):
        return f"WB Round {self.round_number}"


class WinnerFinale(HeatKind):
    bracket_type = BRACKET_WINNER
    is_finale = True
    label = 'WB Finale'

    def __init__(self, round_number):
        self.round_number = round_number


class LoserRound(HeatKind):
    bracket_type = BRACKET_LOSER

    def __init__(self, round_number):
        self.round_number = round_number

    @property
    def label(self):
        return f"LB Round {self.round_number}"


class LoserFinale(HeatKind):
    bracket_type = BRACKET_LOSER
    is_finale = True
    label = 'LB Finale'

    def __init__(self, round_number):
        self.round_number = round_number


class GrandFinale(HeatKind):
    bracket_type = BRACKET_GRAND_FINALE
    is_finale = True
    label = 'Grand Finale'


class Rematch(HeatKind):
    bracket_type = BRACKET_REMATCH

    def __init__(self, for_place):
        self.rematch_for_place = for_place

    @property
    def label(self):
        return f"Rematch for Place {self.rematch_for_place}"


def kind_from_fields(bracket_type, is_finale=False, round_number=None, rematch_for_place=None):
    """
    Rebuild a heat kind from its flat serialized fields.

    Raises ValueError for combinations no variant can represent.
    """
    if bracket_type == BRACKET_QUALIFICATION and not is_finale and round_number is None:
        return Qualification()
    if bracket_type == BRACKET_WINNER and isinstance(round_number, int):
        return WinnerFinale(round_number) if is_finale else WinnerRound(round_number)
    if bracket_type == BRACKET_LOSER and isinstance(round_number, int):
        return LoserFinale(round_number) if is_finale else LoserRound(round_number)
    if bracket_type == BRACKET_GRAND_FINALE and is_finale and round_number is None:
        return GrandFinale()
    if bracket_type == BRACKET_REMATCH and rematch_for_place in (1, 2) and not is_finale:
        return Rematch(rematch_for_place)
    raise ValueError(
        f"Invalid heat kind: bracket_type={bracket_type}, is_finale={is_finale}, "
        f"round_number={round_number}, rematch_for_place={rematch_for_place}"
    )


class Heat:
    def __init__(self, id, heat_number, pilot_ids, kind, status=STATUS_PENDING, results=None):
        self.id = id
        self.heat_number = heat_number
        self.pilot_ids = list(pilot_ids)
        self.kind = kind
        self.status = status
        self.results = results

    @property
    def bracket_type(self):
        return self.kind.bracket_type

    @property
    def round_number(self):
        return self.kind.round_number

    @property
    def is_finale(self):
        return self.kind.is_finale

    @property
    def rematch_for_place(self):
        return self.kind.rematch_for_place

    @property
    def is_completed(self):
        return self.status == STATUS_COMPLETED

    @property
    def round_name(self):
        return self.kind.label

    def to_dict(self):
        return {
            'id': self.id,
            'heat_number': self.heat_number,
            'pilot_ids': list(self.pilot_ids),
            'status': self.status,
            'bracket_type': self.bracket_type,
            'round_number': self.round_number,
            'is_finale': self.is_finale,
            'rematch_for_place': self.rematch_for_place,
            'results': self.results.to_dict() if self.results else None,
        }

    def __repr__(self):
        return f"Heat(id={self.id}, kind={self.kind}, pilot_ids={self.pilot_ids}, status={self.status})"


class PilotBracketState:
    def __init__(self, bracket, round_reached, bracket_origin):
        self.bracket = bracket
        self.round_reached = round_reached
        self.bracket_origin = bracket_origin

    def to_dict(self):
        return {
            'bracket': self.bracket,
            'round_reached': self.round_reached,
            'bracket_origin': self.bracket_origin,
        }

    def __repr__(self):
        return (f"PilotBracketState(bracket={self.bracket}, round_reached={self.round_reached}, "
                f"bracket_origin={self.bracket_origin})")
