"""
Shared constants for the heat bracket engine.
"""

# Tournament phases
PHASE_SETUP = 'setup'
PHASE_HEAT_ASSIGNMENT = 'heat-assignment'
PHASE_RUNNING = 'running'
PHASE_FINALE = 'finale'
PHASE_COMPLETED = 'completed'
TOURNAMENT_PHASES = (PHASE_SETUP, PHASE_HEAT_ASSIGNMENT, PHASE_RUNNING, PHASE_FINALE, PHASE_COMPLETED)

# Heat status
STATUS_PENDING = 'pending'
STATUS_ACTIVE = 'active'
STATUS_COMPLETED = 'completed'
HEAT_STATUSES = (STATUS_PENDING, STATUS_ACTIVE, STATUS_COMPLETED)

# Pilot status
PILOT_ACTIVE = 'active'
PILOT_WITHDRAWN = 'withdrawn'
PILOT_STATUSES = (PILOT_ACTIVE, PILOT_WITHDRAWN)

# Bracket types
BRACKET_QUALIFICATION = 'qualification'
BRACKET_WINNER = 'winner'
BRACKET_LOSER = 'loser'
BRACKET_GRAND_FINALE = 'grand_finale'
BRACKET_REMATCH = 'rematch'
BRACKET_TYPES = (BRACKET_QUALIFICATION, BRACKET_WINNER, BRACKET_LOSER, BRACKET_GRAND_FINALE, BRACKET_REMATCH)

# Bracket origin of a Grand Finale pilot
ORIGIN_WB = 'wb'
ORIGIN_LB = 'lb'

# Roster limits
MIN_PILOTS = 7
MAX_PILOTS = 60
MIN_PILOT_NAME_LENGTH = 3

# Heat sizes
MIN_HEAT_SIZE = 2
MAX_HEAT_SIZE = 4

# A pool this small is raced as the bracket's finale instead of a regular round
WB_FINALE_MAX_PILOTS = 4
LB_FINALE_MAX_PILOTS = 4

# Ranks 1..ADVANCING_RANKS move on, everything below drops or is eliminated
ADVANCING_RANKS = 2

# Grand Finale place pairs checked by the rematch rule (higher place, lower place)
REMATCH_PLACE_PAIRS = ((1, 3), (2, 4))

HEAT_ID_PREFIXES = {
    'qualification': 'quali-',
    'wb_heat': 'wb-heat-',
    'wb_finale': 'wb-finale-',
    'lb_heat': 'lb-heat-',
    'lb_finale': 'lb-finale-',
    'grand_finale': 'grand-finale-',
    'rematch': 'rematch-',
}

# First placement handed out below the Grand Finale
FIRST_ELIMINATION_PLACE = 5

STATE_VERSION = 1
