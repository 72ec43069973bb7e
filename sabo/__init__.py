"""
SABO Arena - Pool club and tournament management

Player ranks, ELO/SPA rewards, tournament prize structures and the admin
tournament setup wizard.
"""

__version__ = "0.1.0"

from .ranks import (
    FIXED_K_FACTOR,
    RANK_ELO,
    RANK_ORDER,
    SPA_CHALLENGE_REWARDS,
    SPA_TOURNAMENT_REWARDS,
    TOURNAMENT_ELO_REWARDS,
    TOURNAMENT_POSITIONS,
)

from .ranking import (
    TournamentReward,
    calculate_elo_change,
    calculate_match_elo,
    is_eligible_for_promotion,
    next_rank,
    rank_by_elo,
    tournament_rewards,
)

from .rewards import (
    GameFormat,
    TournamentRewards,
    TournamentTier,
    calculate_rewards,
    recalculate_rewards,
    validate_rewards,
)

__all__ = [
    # Version
    "__version__",
    # Tables
    "FIXED_K_FACTOR",
    "RANK_ELO",
    "RANK_ORDER",
    "SPA_CHALLENGE_REWARDS",
    "SPA_TOURNAMENT_REWARDS",
    "TOURNAMENT_ELO_REWARDS",
    "TOURNAMENT_POSITIONS",
    # Ranking
    "TournamentReward",
    "calculate_elo_change",
    "calculate_match_elo",
    "is_eligible_for_promotion",
    "next_rank",
    "rank_by_elo",
    "tournament_rewards",
    # Prize rewards
    "GameFormat",
    "TournamentRewards",
    "TournamentTier",
    "calculate_rewards",
    "recalculate_rewards",
    "validate_rewards",
]
