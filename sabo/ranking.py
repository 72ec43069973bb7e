"""
sabo/ranking.py - ELO math and rank progression

Match ELO uses the standard logistic formula with the arena's fixed
K-factor. Ranks are derived from ELO thresholds in sabo.ranks.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from .ranks import (
    FIXED_K_FACTOR,
    RANK_ELO,
    RANK_ORDER,
    SPA_CHALLENGE_REWARDS,
    round_points,
    tournament_elo,
    tournament_spa,
)

logger = logging.getLogger(__name__)

# Promotion gates
MIN_PROMOTION_MATCHES = 10
MIN_DAYS_BETWEEN_PROMOTIONS = 7

WIN = 1.0
DRAW = 0.5
LOSS = 0.0

POSITION_LABELS = {
    "CHAMPION": "Champion",
    "RUNNER_UP": "Runner-up",
    "THIRD_PLACE": "3rd place",
    "FOURTH_PLACE": "4th place",
    "TOP_8": "Top 8",
    "TOP_16": "Top 16",
    "PARTICIPATION": "Participation",
}


@dataclass
class TournamentReward:
    """ELO + SPA earned by one player for one tournament finish."""
    position: str
    rank: str
    elo_points: int
    spa_points: int


# ============================================================================
# Match ELO
# ============================================================================


def expected_score(player_elo: int, opponent_elo: int) -> float:
    return 1 / (1 + 10 ** ((opponent_elo - player_elo) / 400))


def calculate_elo_change(player_elo: int, opponent_elo: int, result: float) -> int:
    """ELO delta for one match. result: 1 win, 0.5 draw, 0 loss."""
    if result not in (WIN, DRAW, LOSS):
        raise ValueError(f"Match result must be 1, 0.5 or 0, got {result}")
    return round_points(FIXED_K_FACTOR * (result - expected_score(player_elo, opponent_elo)))


def calculate_match_elo(player_elo: int, opponent_elo: int, result: float) -> int:
    """New ELO after a match."""
    if result not in (WIN, DRAW, LOSS):
        raise ValueError(f"Match result must be 1, 0.5 or 0, got {result}")
    expected = expected_score(player_elo, opponent_elo)
    return round_points(player_elo + FIXED_K_FACTOR * (result - expected))


# ============================================================================
# Ranks
# ============================================================================


def rank_by_elo(elo: int) -> str:
    """Highest rank whose threshold the ELO reaches. Floor is K."""
    for rank in reversed(RANK_ORDER):
        if elo >= RANK_ELO[rank]:
            return rank
    return "K"


def next_rank(rank: str) -> str | None:
    """The rank above `rank`, or None at E+ (or for an unknown code)."""
    if rank not in RANK_ORDER:
        return None
    idx = RANK_ORDER.index(rank)
    if idx == len(RANK_ORDER) - 1:
        return None
    return RANK_ORDER[idx + 1]


def is_eligible_for_promotion(
    current_elo: int,
    current_rank: str,
    match_count: int,
    last_promotion: datetime | None = None,
    now: datetime | None = None,
) -> bool:
    """Whether a player can move up one rank.

    Requires enough matches, a cooldown since the last promotion, and an ELO
    at or above the next rank's threshold.
    """
    if match_count < MIN_PROMOTION_MATCHES:
        return False

    if last_promotion is not None:
        now = now or datetime.now(timezone.utc)
        if (now - last_promotion).days < MIN_DAYS_BETWEEN_PROMOTIONS:
            return False

    target = next_rank(current_rank)
    if target is None:
        return False

    return current_elo >= RANK_ELO[target]


# ============================================================================
# Rewards
# ============================================================================


def tournament_rewards(position: str, rank: str) -> TournamentReward:
    """ELO and SPA for a tournament finish."""
    return TournamentReward(
        position=position,
        rank=rank,
        elo_points=tournament_elo(position),
        spa_points=tournament_spa(position, rank),
    )


def format_position(position: str) -> str:
    return POSITION_LABELS.get(position, position)


def challenge_spa(
    won: bool,
    win_streak: int = 0,
    comeback: bool = False,
    earned_today: int = 0,
) -> int:
    """SPA for a challenge match, capped by what's left of the daily limit.

    win_streak counts consecutive wins before this match; each one adds a
    streak bonus on a win.
    """
    if won:
        points = SPA_CHALLENGE_REWARDS["WIN"]
        points += SPA_CHALLENGE_REWARDS["STREAK_BONUS"] * max(win_streak, 0)
        if comeback:
            points += SPA_CHALLENGE_REWARDS["COMEBACK_BONUS"]
    else:
        points = SPA_CHALLENGE_REWARDS["LOSS"]

    remaining = max(SPA_CHALLENGE_REWARDS["DAILY_LIMIT"] - earned_today, 0)
    if points > remaining:
        logger.debug(f"Challenge SPA capped: {points} -> {remaining} (daily limit)")
    return min(points, remaining)
