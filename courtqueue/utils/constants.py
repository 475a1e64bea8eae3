"""
Constants used across the court rotation system.
"""

# Doubles: two teams of two
PLAYERS_PER_MATCH = 4
PLAYERS_PER_TEAM = 2

DEFAULT_COURT_COUNT = 1
MAX_COURT_COUNT = 50

# Player and saved-pool name limits
MAX_PLAYER_NAME_LENGTH = 60

# Agent credentials
MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6
