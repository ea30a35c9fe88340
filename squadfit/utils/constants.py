"""
Constants used across the progression engine.
"""

import os

# Points calculation constants
BASE_POINTS = int(os.getenv("BASE_POINTS", "10"))  # Points per activity before multipliers
DEFAULT_DIFFICULTY_MULTIPLIER = 1  # Exercises without a difficulty score as Beginner
MIN_CHALLENGE_MULTIPLIER = 1

# Level ladder
STARTING_LEVEL = 1
DEFAULT_LADDER_SIZE = 40  # level 44+ would overflow a 32-bit points column
LADDER_BASE_POINTS = 100  # points required for level 2
LADDER_GROWTH_RATE = 1.5  # exponential growth between consecutive levels

# Leaderboards
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
LEADERBOARD_CACHE_TTL_SECONDS = int(os.getenv("LEADERBOARD_CACHE_TTL_SECONDS", "30"))
