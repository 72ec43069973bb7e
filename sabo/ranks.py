"""
sabo/ranks.py - Rank and reward constant tables

Static lookups for the arena's 12 rank codes and 7 tournament placements.
Everything here is loaded once at import and never mutated; the public
tables are read-only mapping proxies.

Ranks run K, K+, I, I+, H, H+, G, G+, F, F+, E, E+ (weakest to strongest).
K-factor is fixed at 32 for every player.
"""

import math
from types import MappingProxyType

# ============================================================================
# Ranks
# ============================================================================

RANK_ORDER: tuple[str, ...] = (
    "K", "K+", "I", "I+", "H", "H+", "G", "G+", "F", "F+", "E", "E+",
)

# Minimum ELO for each rank
RANK_ELO = MappingProxyType({
    "K": 1000,
    "K+": 1100,
    "I": 1200,
    "I+": 1300,
    "H": 1400,
    "H+": 1500,
    "G": 1600,
    "G+": 1700,
    "F": 1800,
    "F+": 1900,
    "E": 2000,
    "E+": 2100,
})

FIXED_K_FACTOR = 32

# ============================================================================
# Tournament placements
# ============================================================================

TOURNAMENT_POSITIONS: tuple[str, ...] = (
    "CHAMPION",
    "RUNNER_UP",
    "THIRD_PLACE",
    "FOURTH_PLACE",
    "TOP_8",
    "TOP_16",
    "PARTICIPATION",
)

TOURNAMENT_ELO_REWARDS = MappingProxyType({
    "CHAMPION": 100,
    "RUNNER_UP": 50,
    "THIRD_PLACE": 25,
    "FOURTH_PLACE": 12,
    "TOP_8": 6,
    "TOP_16": 3,
    "PARTICIPATION": 1,
})

# SPA rows exist for the plain ranks only; every "+" rank reads the K row.
# No TOP_16 column: a top-16 finish earns the participation value.
SPA_TOURNAMENT_REWARDS = MappingProxyType({
    "E": MappingProxyType({
        "CHAMPION": 1500, "RUNNER_UP": 1100, "THIRD_PLACE": 900,
        "FOURTH_PLACE": 650, "TOP_8": 320, "PARTICIPATION": 120,
    }),
    "F": MappingProxyType({
        "CHAMPION": 1350, "RUNNER_UP": 1000, "THIRD_PLACE": 800,
        "FOURTH_PLACE": 550, "TOP_8": 280, "PARTICIPATION": 110,
    }),
    "G": MappingProxyType({
        "CHAMPION": 1200, "RUNNER_UP": 900, "THIRD_PLACE": 700,
        "FOURTH_PLACE": 500, "TOP_8": 250, "PARTICIPATION": 100,
    }),
    "H": MappingProxyType({
        "CHAMPION": 1100, "RUNNER_UP": 850, "THIRD_PLACE": 650,
        "FOURTH_PLACE": 450, "TOP_8": 200, "PARTICIPATION": 100,
    }),
    "I": MappingProxyType({
        "CHAMPION": 1000, "RUNNER_UP": 800, "THIRD_PLACE": 600,
        "FOURTH_PLACE": 400, "TOP_8": 150, "PARTICIPATION": 100,
    }),
    "K": MappingProxyType({
        "CHAMPION": 900, "RUNNER_UP": 700, "THIRD_PLACE": 500,
        "FOURTH_PLACE": 350, "TOP_8": 120, "PARTICIPATION": 100,
    }),
})

SPA_CHALLENGE_REWARDS = MappingProxyType({
    "WIN": 50,
    "LOSS": 10,
    "STREAK_BONUS": 25,  # per consecutive win
    "COMEBACK_BONUS": 100,  # winning from behind
    "DAILY_LIMIT": 500,  # max SPA per day from challenges
})

# Numeric placement (1st, 2nd, ... top 16) -> placement code
PLACEMENT_TO_POSITION = MappingProxyType({
    1: "CHAMPION",
    2: "RUNNER_UP",
    3: "THIRD_PLACE",
    4: "FOURTH_PLACE",
    8: "TOP_8",
    16: "TOP_16",
})


# ============================================================================
# Lookups
# ============================================================================


def parse_rank(rank: str) -> str:
    """Normalize a rank code ("g+" -> "G+"). Raises ValueError if unknown."""
    code = rank.strip().upper()
    if code not in RANK_ELO:
        raise ValueError(f"Unknown rank code: {rank!r} (expected one of {', '.join(RANK_ORDER)})")
    return code


def parse_position(position: str) -> str:
    """Normalize a placement code ("top_8" -> "TOP_8"). Raises ValueError if unknown."""
    code = position.strip().upper()
    if code not in TOURNAMENT_ELO_REWARDS:
        raise ValueError(
            f"Unknown tournament position: {position!r} "
            f"(expected one of {', '.join(TOURNAMENT_POSITIONS)})"
        )
    return code


def base_rank(rank: str) -> str:
    """Strip the "+" suffix: "H+" -> "H"."""
    return rank.rstrip("+")


def rank_elo(rank: str) -> int:
    """Minimum ELO for a rank code."""
    return RANK_ELO[rank]


def tournament_elo(position: str) -> int:
    """ELO awarded for a placement. Unknown placements earn participation."""
    return TOURNAMENT_ELO_REWARDS.get(position, TOURNAMENT_ELO_REWARDS["PARTICIPATION"])


def tournament_spa(position: str, rank: str) -> int:
    """SPA awarded for a placement, scaled by the player's rank row.

    Ranks without a row of their own ("+" ranks, unknown codes) read the K
    row; placements missing from the row earn that row's participation value.
    """
    row = SPA_TOURNAMENT_REWARDS.get(rank, SPA_TOURNAMENT_REWARDS["K"])
    return row.get(position, row["PARTICIPATION"])


def position_for_placement(placement: int) -> str:
    """Map a numeric finish (1, 2, 3, 4, 8, 16) to its placement code."""
    return PLACEMENT_TO_POSITION.get(placement, "PARTICIPATION")


def round_points(value: float) -> int:
    """Round half up (22.5 -> 23). Point values are never banker's-rounded."""
    return math.floor(value + 0.5)
