"""
Double elimination heat bracket engine.

Flow:
- Qualification: every active pilot races once; ranks 1-2 go to the
  Winner Bracket (WB), ranks 3-4 to the Loser Bracket (LB)
- WB rounds: ranks 1-2 stay in the WB, ranks 3-4 drop into the LB
- LB rounds: ranks 1-2 survive, ranks 3-4 are eliminated; the LB pool is
  reshuffled every round
- WB Finale / LB Finale: ranks 1-2 of each reach the Grand Finale
- Grand Finale: four pilots; an LB pilot beating a WB pilot in the 1/3 or
  2/4 place pair triggers a 1v1 rematch for that place

All mutable state lives on TournamentEngine. Every command runs to
completion before returning; after a result is submitted the engine keeps
generating whatever rounds have become possible until nothing changes.
"""
import logging
import random
import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .constants import (
    ADVANCING_RANKS,
    BRACKET_GRAND_FINALE,
    BRACKET_LOSER,
    BRACKET_QUALIFICATION,
    BRACKET_REMATCH,
    BRACKET_WINNER,
    HEAT_ID_PREFIXES,
    LB_FINALE_MAX_PILOTS,
    MAX_PILOTS,
    MIN_PILOT_NAME_LENGTH,
    MIN_PILOTS,
    ORIGIN_LB,
    ORIGIN_WB,
    PHASE_COMPLETED,
    PHASE_FINALE,
    PHASE_HEAT_ASSIGNMENT,
    PHASE_RUNNING,
    PHASE_SETUP,
    PILOT_WITHDRAWN,
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    STATUS_PENDING,
    WB_FINALE_MAX_PILOTS,
)
from .distribution import distribute_pilots, shuffle_pilots
from .errors import (
    HeatNotFoundError,
    InvalidRankingsError,
    PilotValidationError,
    TournamentStateError,
)
from .finale import compose_grand_finale, rematch_pairings
from .models import (
    GrandFinale,
    Heat,
    HeatResults,
    LoserFinale,
    LoserRound,
    Pilot,
    PilotBracketState,
    Qualification,
    Ranking,
    Rematch,
    WinnerFinale,
    WinnerRound,
)
from .rounds import advancing_pilots, dropping_pilots, heats_in_round, is_round_complete

logger = logging.getLogger(__name__)


def validate_rankings(pilot_ids: List[str], rankings: Iterable) -> List[Ranking]:
    """
    Normalize and validate rankings for a heat.

    Accepts Ranking objects, {'pilot_id': ..., 'rank': ...} mappings or
    (pilot_id, rank) pairs. The rankings must name every pilot of the heat
    exactly once and the ranks must be a permutation of 1..len(pilot_ids).

    Raises:
        InvalidRankingsError: on any violation
    """
    if rankings is None:
        raise InvalidRankingsError('Rankings are required')

    parsed = []
    for entry in rankings:
        if isinstance(entry, Ranking):
            pilot_id, rank = entry.pilot_id, entry.rank
        elif isinstance(entry, dict):
            pilot_id, rank = entry.get('pilot_id'), entry.get('rank')
        elif isinstance(entry, (list, tuple)) and len(entry) == 2:
            pilot_id, rank = entry
        else:
            raise InvalidRankingsError(f"Unreadable ranking entry: {entry!r}")
        if not isinstance(pilot_id, str):
            raise InvalidRankingsError(f"Pilot id must be a string, got {pilot_id!r}")
        if isinstance(rank, bool) or not isinstance(rank, int):
            raise InvalidRankingsError(f"Rank for pilot {pilot_id} must be an integer, got {rank!r}")
        parsed.append(Ranking(pilot_id, rank))

    ranked_ids = [r.pilot_id for r in parsed]
    if len(ranked_ids) != len(set(ranked_ids)):
        raise InvalidRankingsError('A pilot is ranked more than once')
    if set(ranked_ids) != set(pilot_ids) or len(ranked_ids) != len(pilot_ids):
        missing = sorted(set(pilot_ids) - set(ranked_ids))
        extra = sorted(set(ranked_ids) - set(pilot_ids))
        raise InvalidRankingsError(f"Rankings must cover the heat's pilots exactly (missing={missing}, unknown={extra})")

    ranks = sorted(r.rank for r in parsed)
    if ranks != list(range(1, len(pilot_ids) + 1)):
        raise InvalidRankingsError(f"Ranks must be 1..{len(pilot_ids)} without gaps or ties, got {ranks}")
    return parsed


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class TournamentEngine:
    """
    Owns the roster, heats, pools and round counters of one tournament.

    Args:
        rng: Random source used for every shuffle; takes precedence over seed
        seed: Seed for a private random.Random when rng is not given
    """

    def __init__(self, rng: Optional[random.Random] = None, seed: Optional[int] = None):
        self.rng = rng if rng is not None else random.Random(seed)
        self.pilots: List[Pilot] = []
        self._clear_tournament()

    def _clear_tournament(self):
        self.tournament_phase = PHASE_SETUP
        self.heats: List[Heat] = []
        self.winner_pilots: List[str] = []
        self.loser_pool: List[str] = []
        self.eliminated_pilots: List[str] = []
        self.grand_finale_pool: List[str] = []
        self.current_wb_round = 0
        self.current_lb_round = 0
        self.lb_round_waiting_for_wb = False

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------

    @property
    def tournament_started(self) -> bool:
        return self.tournament_phase != PHASE_SETUP

    @property
    def active_pilots(self) -> List[Pilot]:
        return [p for p in self.pilots if p.status != PILOT_WITHDRAWN]

    def get_pilot(self, pilot_id: str) -> Pilot:
        for pilot in self.pilots:
            if pilot.id == pilot_id:
                return pilot
        raise PilotValidationError(f"Unknown pilot: {pilot_id}")

    def add_pilot(self, name: str, pilot_id: Optional[str] = None) -> Pilot:
        """Add a pilot to the roster before the tournament starts."""
        if self.tournament_started:
            raise TournamentStateError('Pilots cannot be added after the tournament has started')
        name = (name or '').strip()
        if len(name) < MIN_PILOT_NAME_LENGTH:
            raise PilotValidationError(f"Pilot name must have at least {MIN_PILOT_NAME_LENGTH} characters")
        if len(self.pilots) >= MAX_PILOTS:
            raise PilotValidationError(f"The roster is limited to {MAX_PILOTS} pilots")
        if any(p.name.lower() == name.lower() for p in self.pilots):
            raise PilotValidationError(f"A pilot named '{name}' already exists")
        pilot_id = pilot_id or uuid.uuid4().hex
        if any(p.id == pilot_id for p in self.pilots):
            raise PilotValidationError(f"Pilot id '{pilot_id}' is already taken")

        pilot = Pilot(pilot_id, name)
        self.pilots.append(pilot)
        return pilot

    def delete_pilot(self, pilot_id: str):
        if self.tournament_started:
            raise TournamentStateError('Pilots cannot be deleted after the start; withdraw them instead')
        pilot = self.get_pilot(pilot_id)
        self.pilots.remove(pilot)

    def withdraw_pilot(self, pilot_id: str) -> Optional[Pilot]:
        """
        Withdraw a pilot. Before the start this simply removes the pilot;
        afterwards the pilot is kept with status 'withdrawn'.
        """
        pilot = self.get_pilot(pilot_id)
        if not self.tournament_started:
            self.pilots.remove(pilot)
            return None
        pilot.status = PILOT_WITHDRAWN
        logger.info('Pilot %s (%s) withdrawn', pilot.name, pilot.id)
        return pilot

    # ------------------------------------------------------------------
    # Setup and heat assignment
    # ------------------------------------------------------------------

    def confirm_tournament_start(self) -> List[Heat]:
        """Deal the active pilots into qualification heats and enter heat assignment."""
        if self.tournament_phase != PHASE_SETUP:
            raise TournamentStateError(f"Tournament cannot start from phase '{self.tournament_phase}'")
        pilot_ids = [p.id for p in self.active_pilots]
        if not MIN_PILOTS <= len(pilot_ids) <= MAX_PILOTS:
            raise TournamentStateError(
                f"A tournament needs {MIN_PILOTS}-{MAX_PILOTS} active pilots, got {len(pilot_ids)}"
            )

        for group in distribute_pilots(shuffle_pilots(pilot_ids, self.rng)):
            self._create_heat(group, Qualification(), HEAT_ID_PREFIXES['qualification'])
        self.tournament_phase = PHASE_HEAT_ASSIGNMENT
        logger.info('Tournament started with %d pilots in %d qualification heats', len(pilot_ids), len(self.heats))
        return list(self.heats)

    def _require_heat_assignment(self):
        if self.tournament_phase != PHASE_HEAT_ASSIGNMENT:
            raise TournamentStateError('Heats can only be rearranged during heat assignment')

    def shuffle_heats(self):
        """Re-deal all qualification pilots while keeping the heat sizes."""
        self._require_heat_assignment()
        shuffled = shuffle_pilots([p for h in self.heats for p in h.pilot_ids], self.rng)
        cursor = 0
        for heat in self.heats:
            size = len(heat.pilot_ids)
            heat.pilot_ids = shuffled[cursor:cursor + size]
            cursor += size

    def swap_pilots(self, pilot_id_1: str, pilot_id_2: str):
        """Swap two pilots sitting in different qualification heats."""
        self._require_heat_assignment()
        heat_1 = self._qualification_heat_of(pilot_id_1)
        heat_2 = self._qualification_heat_of(pilot_id_2)
        if heat_1 is heat_2:
            raise TournamentStateError('Both pilots are already in the same heat')
        heat_1.pilot_ids[heat_1.pilot_ids.index(pilot_id_1)] = pilot_id_2
        heat_2.pilot_ids[heat_2.pilot_ids.index(pilot_id_2)] = pilot_id_1

    def _qualification_heat_of(self, pilot_id: str) -> Heat:
        for heat in self.heats:
            if pilot_id in heat.pilot_ids:
                return heat
        raise PilotValidationError(f"Pilot {pilot_id} is not assigned to a heat")

    def cancel_heat_assignment(self):
        self._require_heat_assignment()
        self._clear_tournament()

    def confirm_heat_assignment(self):
        """Lock the qualification heats and start racing."""
        self._require_heat_assignment()
        self.tournament_phase = PHASE_RUNNING
        for index, heat in enumerate(self.heats):
            heat.status = STATUS_ACTIVE if index == 0 else STATUS_PENDING

    def reset_tournament(self):
        """Drop all heats and progress. The roster and pilot statuses stay as they are."""
        self._clear_tournament()

    def reset_all(self):
        self.pilots = []
        self._clear_tournament()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_heat(self, heat_id: str) -> Heat:
        for heat in self.heats:
            if heat.id == heat_id:
                return heat
        raise HeatNotFoundError(f"Heat not found: {heat_id}")

    def heats_for(self, bracket_type: str, round_number: Optional[int] = None) -> List[Heat]:
        return heats_in_round(self.heats, bracket_type, round_number)

    def is_round_complete(self, bracket_type: str, round_number: Optional[int] = None) -> bool:
        return is_round_complete(self.heats, bracket_type, round_number)

    @property
    def is_qualification_complete(self) -> bool:
        return is_round_complete(self.heats, BRACKET_QUALIFICATION)

    @property
    def active_heat(self) -> Optional[Heat]:
        return next((h for h in self.heats if h.status == STATUS_ACTIVE), None)

    @property
    def next_heat(self) -> Optional[Heat]:
        return next((h for h in self.heats if h.status == STATUS_PENDING), None)

    def _find_finale(self, kind_type) -> Optional[Heat]:
        return next((h for h in self.heats if isinstance(h.kind, kind_type)), None)

    @property
    def wb_finale(self) -> Optional[Heat]:
        return self._find_finale(WinnerFinale)

    @property
    def lb_finale(self) -> Optional[Heat]:
        return self._find_finale(LoserFinale)

    @property
    def grand_finale(self) -> Optional[Heat]:
        return self._find_finale(GrandFinale)

    @property
    def rematch_heats(self) -> List[Heat]:
        return [h for h in self.heats if h.bracket_type == BRACKET_REMATCH]

    @property
    def grand_finale_rematch_pending(self) -> bool:
        return any(not h.is_completed for h in self.rematch_heats)

    def get_pilot_journey(self, pilot_id: str) -> List[Heat]:
        """Completed heats the pilot raced in, in heat order."""
        return [h for h in self.heats if h.is_completed and pilot_id in h.pilot_ids]

    def get_pilot_bracket_origin(self, pilot_id: str) -> str:
        """'lb' once a pilot has raced a Loser Bracket heat, otherwise 'wb'."""
        in_loser_heat = any(
            h.bracket_type == BRACKET_LOSER and pilot_id in h.pilot_ids for h in self.heats
        )
        return ORIGIN_LB if in_loser_heat else ORIGIN_WB

    @property
    def pilot_bracket_states(self) -> Dict[str, PilotBracketState]:
        """
        Per-pilot bracket state, derived from heats[] and the pools on every
        call so it can never drift from the heat history.
        """
        states = {}
        grand_finale = self.grand_finale
        for pilot in self.pilots:
            if not self.get_pilot_journey(pilot.id):
                continue
            origin = self.get_pilot_bracket_origin(pilot.id)
            if grand_finale is not None and pilot.id in grand_finale.pilot_ids:
                bracket = BRACKET_GRAND_FINALE
            elif pilot.id in self.eliminated_pilots:
                bracket = 'eliminated'
            elif origin == ORIGIN_LB or pilot.id in self.loser_pool:
                bracket = BRACKET_LOSER
            else:
                bracket = BRACKET_WINNER

            round_reached = 0
            if bracket != BRACKET_GRAND_FINALE:
                rounds = [
                    h.round_number for h in self.heats
                    if pilot.id in h.pilot_ids and h.round_number is not None
                    and h.bracket_type == (BRACKET_LOSER if origin == ORIGIN_LB else BRACKET_WINNER)
                ]
                round_reached = max(rounds, default=0)
            states[pilot.id] = PilotBracketState(bracket, round_reached, origin)
        return states

    # ------------------------------------------------------------------
    # Pools
    # ------------------------------------------------------------------

    def _pools(self):
        return (self.winner_pilots, self.loser_pool, self.eliminated_pilots, self.grand_finale_pool)

    def _remove_from_pools(self, pilot_id: str):
        for pool in self._pools():
            while pilot_id in pool:
                pool.remove(pilot_id)

    def _move_to_pool(self, pilot_id: str, pool: List[str]):
        # A pilot sits in at most one pool at a time
        self._remove_from_pools(pilot_id)
        pool.append(pilot_id)

    # ------------------------------------------------------------------
    # Heat creation
    # ------------------------------------------------------------------

    def _create_heat(self, pilot_ids: List[str], kind, prefix: str) -> Heat:
        heat_number = len(self.heats) + 1
        heat = Heat(f"{prefix}{heat_number}", heat_number, pilot_ids, kind)
        self.heats.append(heat)
        return heat

    def _activate_next_pending_heat(self):
        if self.active_heat is None and self.next_heat is not None:
            self.next_heat.status = STATUS_ACTIVE

    # ------------------------------------------------------------------
    # Round generation
    # ------------------------------------------------------------------

    def generate_wb_round(self, round_number: int) -> List[Heat]:
        """
        Generate every heat of Winner Bracket round `round_number`.

        Round 1 draws the top two of every qualification heat, later rounds
        the top two of every heat of the previous WB round. A pool of at most
        WB_FINALE_MAX_PILOTS becomes the WB Finale.

        Returns:
            The new heats, or [] when the previous stage is not complete yet,
            the round already exists, or the WB has already reached its finale.
        """
        if round_number < 1 or self.heats_for(BRACKET_WINNER, round_number) or self.wb_finale is not None:
            return []

        if round_number == 1:
            source_heats = self.heats_for(BRACKET_QUALIFICATION)
            ready = self.is_qualification_complete
        else:
            source_heats = self.heats_for(BRACKET_WINNER, round_number - 1)
            ready = self.is_round_complete(BRACKET_WINNER, round_number - 1)
        if not ready:
            logger.debug('WB round %d waits for its source round', round_number)
            return []

        pool = advancing_pilots(source_heats)
        if len(pool) <= WB_FINALE_MAX_PILOTS:
            new_heats = [self._create_heat(pool, WinnerFinale(round_number), HEAT_ID_PREFIXES['wb_finale'])]
        else:
            new_heats = [
                self._create_heat(group, WinnerRound(round_number), HEAT_ID_PREFIXES['wb_heat'])
                for group in distribute_pilots(pool)
            ]

        for pilot_id in pool:
            if pilot_id in self.winner_pilots:
                self.winner_pilots.remove(pilot_id)
        self.current_wb_round = round_number
        logger.info('Generated WB round %d: %d heat(s)%s', round_number, len(new_heats),
                    ' (WB Finale)' if new_heats[0].is_finale else '')
        return new_heats

    def _wb_feeds_lb_round(self, round_number: int) -> bool:
        """True while WB round `round_number` can still send losers to the LB."""
        wb_finale = self.wb_finale
        return wb_finale is None or wb_finale.round_number >= round_number

    def generate_lb_round(self, round_number: int) -> List[Heat]:
        """
        Generate every heat of Loser Bracket round `round_number`.

        Round 1 takes the qualification losers plus the WB round 1 losers;
        round r takes the survivors of LB round r-1 plus the WB round r
        losers. The pool is shuffled before grouping, so LB heats carry no
        lineage. A final pool of at most LB_FINALE_MAX_PILOTS, with no WB
        losers left to come, becomes the LB Finale.

        Returns:
            The new heats, or [] when preconditions are unmet. If only the WB
            side is missing, lb_round_waiting_for_wb is set.
        """
        if round_number < 1 or self.heats_for(BRACKET_LOSER, round_number) or self.lb_finale is not None:
            return []

        if round_number == 1:
            own_ready = self.is_qualification_complete
        else:
            own_ready = self.is_round_complete(BRACKET_LOSER, round_number - 1)
        if not own_ready:
            return []

        wb_feeds = self._wb_feeds_lb_round(round_number)
        if wb_feeds and not self.is_round_complete(BRACKET_WINNER, round_number):
            self.lb_round_waiting_for_wb = True
            logger.debug('LB round %d waits for WB round %d', round_number, round_number)
            return []

        # The WB finale eliminates its losers, only regular WB rounds feed the LB
        wb_round_heats = [h for h in self.heats_for(BRACKET_WINNER, round_number) if not h.is_finale]
        if round_number == 1:
            pool = dropping_pilots(self.heats_for(BRACKET_QUALIFICATION))
        else:
            pool = advancing_pilots(self.heats_for(BRACKET_LOSER, round_number - 1))
        pool += dropping_pilots(wb_round_heats)
        pool = shuffle_pilots(pool, self.rng)

        # No further WB losers can arrive once the WB finale is in this round or earlier
        wb_done = self.wb_finale is not None and self.wb_finale.round_number <= round_number
        if wb_done and len(pool) <= LB_FINALE_MAX_PILOTS:
            new_heats = [self._create_heat(pool, LoserFinale(round_number), HEAT_ID_PREFIXES['lb_finale'])]
        else:
            new_heats = [
                self._create_heat(group, LoserRound(round_number), HEAT_ID_PREFIXES['lb_heat'])
                for group in distribute_pilots(pool)
            ]

        for pilot_id in pool:
            if pilot_id in self.loser_pool:
                self.loser_pool.remove(pilot_id)
        self.current_lb_round = round_number
        self.lb_round_waiting_for_wb = False
        logger.info('Generated LB round %d: %d heat(s)%s', round_number, len(new_heats),
                    ' (LB Finale)' if new_heats[0].is_finale else '')
        return new_heats

    def advance_brackets(self) -> List[Heat]:
        """
        Repeatedly attempt the next WB and LB round until neither produces
        heats, then try the Grand Finale.

        Returns:
            All heats generated by this call
        """
        generated = []
        while True:
            new_heats = self.generate_wb_round(self.current_wb_round + 1)
            new_heats += self.generate_lb_round(self.current_lb_round + 1)
            if not new_heats:
                break
            generated.extend(new_heats)

        grand_finale = self.generate_grand_finale()
        if grand_finale is not None:
            generated.append(grand_finale)
        return generated

    # ------------------------------------------------------------------
    # Grand Finale and rematches
    # ------------------------------------------------------------------

    def generate_grand_finale(self) -> Optional[Heat]:
        """
        Create the Grand Finale once both bracket finales are completed.

        Returns:
            The new heat, or None if it already exists or a finale is open

        Raises:
            BracketIntegrityError: finalist sets overlap; nothing is changed
        """
        if self.grand_finale is not None:
            return None
        wb_finale, lb_finale = self.wb_finale, self.lb_finale
        if wb_finale is None or lb_finale is None or not (wb_finale.is_completed and lb_finale.is_completed):
            return None

        pilot_ids = compose_grand_finale(wb_finale, lb_finale)

        heat = self._create_heat(pilot_ids, GrandFinale(), HEAT_ID_PREFIXES['grand_finale'])
        for pilot_id in pilot_ids:
            self._remove_from_pools(pilot_id)
        self.tournament_phase = PHASE_FINALE
        logger.info('Grand Finale generated: %s', pilot_ids)
        return heat

    def check_and_generate_rematches(self) -> List[Heat]:
        """Schedule the rematches a completed Grand Finale calls for (once)."""
        grand_finale = self.grand_finale
        if grand_finale is None or not grand_finale.is_completed or self.rematch_heats:
            return []

        rematches = []
        for place, pilot_ids in rematch_pairings(grand_finale, self.get_pilot_bracket_origin):
            rematches.append(self._create_heat(pilot_ids, Rematch(place), HEAT_ID_PREFIXES['rematch']))
            logger.info('Rematch for place %d scheduled: %s', place, pilot_ids)
        return rematches

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def submit_heat_results(self, heat_id: str, rankings) -> Heat:
        """
        Record the result of a heat and advance the tournament.

        Rankings are validated before anything changes. Then the heat is
        completed, its pilots are moved to their pools, and every round that
        became possible is generated. Completing the Grand Finale evaluates
        the rematch rule, and the tournament is completed when no rematch
        remains open.

        Raises:
            HeatNotFoundError: unknown heat id
            TournamentStateError: heat already completed or tournament not running
            InvalidRankingsError: rankings rejected; nothing was changed
            BracketIntegrityError: the Grand Finale could not be composed. The
                submitted result itself is kept
        """
        heat = self.get_heat(heat_id)
        if self.tournament_phase not in (PHASE_RUNNING, PHASE_FINALE):
            raise TournamentStateError(f"Results cannot be submitted in phase '{self.tournament_phase}'")
        if heat.is_completed:
            raise TournamentStateError(f"Heat {heat_id} is already completed; reopen it to edit")

        parsed = validate_rankings(heat.pilot_ids, rankings)

        heat.results = HeatResults(parsed, completed_at=_now())
        heat.status = STATUS_COMPLETED
        self._apply_rankings(heat)
        logger.info('Results recorded for %s: %s', heat.id, heat.results.top(len(parsed)))

        if isinstance(heat.kind, GrandFinale):
            if not self.check_and_generate_rematches():
                self.tournament_phase = PHASE_COMPLETED
        elif isinstance(heat.kind, Rematch):
            if not self.grand_finale_rematch_pending:
                self.tournament_phase = PHASE_COMPLETED
        else:
            self.advance_brackets()

        self._activate_next_pending_heat()
        return heat

    def _apply_rankings(self, heat: Heat):
        advancing = heat.results.top(ADVANCING_RANKS)
        dropping = heat.results.below(ADVANCING_RANKS)
        kind = heat.kind

        if isinstance(kind, (Qualification, WinnerRound)):
            advance_to, drop_to = self.winner_pilots, self.loser_pool
        elif isinstance(kind, LoserRound):
            advance_to, drop_to = self.loser_pool, self.eliminated_pilots
        elif isinstance(kind, (WinnerFinale, LoserFinale)):
            advance_to, drop_to = self.grand_finale_pool, self.eliminated_pilots
        else:
            # Grand Finale and rematches only decide places
            return

        for pilot_id in advancing:
            self._move_to_pool(pilot_id, advance_to)
        for pilot_id in dropping:
            self._move_to_pool(pilot_id, drop_to)

    def reopen_heat(self, heat_id: str) -> Heat:
        """
        Re-open a completed heat for correction.

        Only allowed while no later heat contains any of its pilots, i.e.
        before its result has been consumed. The previous results stay
        attached for pre-filling until new results are submitted.
        """
        heat = self.get_heat(heat_id)
        if not heat.is_completed:
            raise TournamentStateError(f"Heat {heat_id} is not completed")
        consumers = [
            h.id for h in self.heats
            if h.heat_number > heat.heat_number and set(h.pilot_ids) & set(heat.pilot_ids)
        ]
        if consumers:
            raise TournamentStateError(
                f"Heat {heat_id} cannot be reopened: its result already fed {', '.join(consumers)}"
            )

        for pilot_id in heat.pilot_ids:
            self._remove_from_pools(pilot_id)
        active = self.active_heat
        if active is not None:
            active.status = STATUS_PENDING
        heat.status = STATUS_ACTIVE

        if heat.bracket_type in (BRACKET_GRAND_FINALE, BRACKET_REMATCH):
            self.tournament_phase = PHASE_FINALE
        logger.info('Heat %s reopened', heat.id)
        return heat
