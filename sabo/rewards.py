"""
sabo/rewards.py - Tournament prize structures

Builds the reward sheet for a tournament from its tier, entry fee, field
size and game format: cash split per placement, ELO and SPA per placement,
and special awards for large high-tier events.

Placements are numeric finishes: 1, 2, 3, 4, then "top 8" (8) and
"top 16" (16).
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum

from .ranks import position_for_placement, round_points, tournament_spa

logger = logging.getLogger(__name__)


# ============================================================================
# Enums
# ============================================================================


class TournamentTier(IntEnum):
    K = 1
    I = 2
    H = 3
    G = 4


class GameFormat(str, Enum):
    EIGHT_BALL = "8_ball"
    NINE_BALL = "9_ball"
    TEN_BALL = "10_ball"
    STRAIGHT_POOL = "straight_pool"


# ============================================================================
# Tables
# ============================================================================

PRIZE_PERCENTAGE = {
    TournamentTier.K: 0.70,
    TournamentTier.I: 0.75,
    TournamentTier.H: 0.80,
    TournamentTier.G: 0.85,
}

ELO_BASE_POINTS = {1: 100, 2: 60, 3: 40, 4: 25, 8: 15, 16: 10}

ELO_TIER_MULTIPLIER = {
    TournamentTier.K: 1.0,
    TournamentTier.I: 1.2,
    TournamentTier.H: 1.4,
    TournamentTier.G: 1.6,
}

ELO_GAME_MULTIPLIER = {
    GameFormat.NINE_BALL: 1.0,
    GameFormat.EIGHT_BALL: 0.9,
    GameFormat.TEN_BALL: 1.1,
    GameFormat.STRAIGHT_POOL: 1.2,
}

SPA_TIER_POINTS = {
    TournamentTier.K: {1: 900, 2: 700, 3: 500, 4: 350, 8: 200, 16: 100},
    TournamentTier.I: {1: 1000, 2: 800, 3: 600, 4: 400, 8: 250, 16: 120},
    TournamentTier.H: {1: 1200, 2: 950, 3: 700, 4: 450, 8: 300, 16: 150},
    TournamentTier.G: {1: 1500, 2: 1200, 3: 900, 4: 600, 8: 400, 16: 200},
}

PLACEMENT_NAMES = {
    1: "Champion",
    2: "Runner-up",
    3: "Third place",
    4: "Fourth place",
    8: "Top 8",
    16: "Top 16",
}

DEFAULT_ITEMS = {
    1: ["Champion trophy", "Certificate"],
    2: ["Silver medal"],
    3: ["Bronze medal"],
}

SPECIAL_AWARD_MIN_REVENUE = 1_000_000
SPECIAL_AWARD_REVENUE_SHARE = 0.02
MIN_DISTRIBUTION_RATIO = 0.8


# ============================================================================
# Data Types
# ============================================================================


@dataclass
class RewardPosition:
    position: int
    name: str
    elo_points: int
    spa_points: int
    cash_prize: int
    items: list[str] = field(default_factory=list)
    is_visible: bool = True


@dataclass
class SpecialAward:
    id: str
    name: str
    description: str = ""
    cash_prize: int = 0


@dataclass
class TournamentRewards:
    total_prize: int
    show_prizes: bool
    positions: list[RewardPosition] = field(default_factory=list)
    special_awards: list[SpecialAward] = field(default_factory=list)


@dataclass
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


# ============================================================================
# Placement helpers
# ============================================================================


def valid_positions(max_participants: int) -> list[int]:
    """Placements that make sense for a field of this size."""
    if max_participants >= 32:
        return [1, 2, 3, 4, 8, 16]
    if max_participants >= 16:
        return [1, 2, 3, 4, 8]
    if max_participants >= 8:
        return [1, 2, 3, 4]
    if max_participants >= 4:
        return [1, 2, 3]
    return [1, 2]


def prize_distribution(max_participants: int) -> dict[int, float]:
    """Share of the prize pool per placement."""
    if max_participants >= 16:
        return {1: 0.40, 2: 0.25, 3: 0.15, 4: 0.10, 8: 0.10}
    if max_participants >= 8:
        return {1: 0.45, 2: 0.30, 3: 0.15, 4: 0.10}
    if max_participants >= 4:
        return {1: 0.50, 2: 0.30, 3: 0.20}
    return {1: 0.60, 2: 0.40}


def elo_points(tier: TournamentTier, game_format: GameFormat, position: int) -> int:
    base = ELO_BASE_POINTS.get(position, 5)
    return round_points(base * ELO_TIER_MULTIPLIER[tier] * ELO_GAME_MULTIPLIER[game_format])


def spa_points(tier: TournamentTier, position: int) -> int:
    return SPA_TIER_POINTS[tier].get(position, 50)


def placement_name(position: int) -> str:
    return PLACEMENT_NAMES.get(position, f"Place {position}")


def _saved_default_cash(rewards: TournamentRewards, position: int) -> int:
    """Cash the saved sheet would have had for `position` before any edits."""
    top = max((p.position for p in rewards.positions), default=2)
    field_size = {16: 32, 8: 16, 4: 8, 3: 4}.get(top, 2)
    return round_points(rewards.total_prize * prize_distribution(field_size).get(position, 0))


# ============================================================================
# Calculation
# ============================================================================


def calculate_rewards(
    tier: TournamentTier,
    entry_fee: int,
    max_participants: int,
    game_format: GameFormat,
) -> TournamentRewards:
    """Build the default reward sheet for a tournament."""
    tier = TournamentTier(tier)
    game_format = GameFormat(game_format)

    total_revenue = entry_fee * max_participants
    total_prize = round_points(total_revenue * PRIZE_PERCENTAGE[tier])
    distribution = prize_distribution(max_participants)
    logger.debug(
        f"Rewards for tier {tier.name}: revenue {total_revenue:,}, pool {total_prize:,} "
        f"({max_participants} players, {game_format.value})"
    )

    positions = [
        RewardPosition(
            position=pos,
            name=placement_name(pos),
            elo_points=elo_points(tier, game_format, pos),
            spa_points=spa_points(tier, pos),
            cash_prize=round_points(total_prize * distribution.get(pos, 0)),
            items=list(DEFAULT_ITEMS.get(pos, [])),
        )
        for pos in valid_positions(max_participants)
    ]

    return TournamentRewards(
        total_prize=total_prize,
        show_prizes=entry_fee > 0,
        positions=positions,
        special_awards=_special_awards(tier, total_revenue),
    )


def _special_awards(tier: TournamentTier, total_revenue: int) -> list[SpecialAward]:
    # Only larger high-tier events get a best-break prize
    if tier < TournamentTier.H or total_revenue < SPECIAL_AWARD_MIN_REVENUE:
        return []
    return [
        SpecialAward(
            id="best-break",
            name="Best break",
            description="Best break of the tournament",
            cash_prize=round_points(total_revenue * SPECIAL_AWARD_REVENUE_SHARE),
        )
    ]


def recalculate_rewards(
    current: TournamentRewards,
    tier: TournamentTier,
    entry_fee: int,
    max_participants: int,
    game_format: GameFormat,
    preserve_customizations: bool = True,
) -> TournamentRewards:
    """Rebuild rewards after tournament parameters change.

    With preserve_customizations, hand-edited cash prizes, custom item lists,
    visibility flags and extra special awards carry over to the new sheet.
    """
    base = calculate_rewards(tier, entry_fee, max_participants, game_format)
    if not preserve_customizations:
        return base

    existing = {p.position: p for p in current.positions}
    positions = []
    for new in base.positions:
        old = existing.get(new.position)
        if old is None:
            positions.append(new)
            continue
        customized_cash = old.cash_prize != _saved_default_cash(current, new.position)
        if customized_cash:
            logger.debug(f"Keeping edited cash prize for place {new.position}: {old.cash_prize:,}")
        positions.append(replace(
            new,
            cash_prize=old.cash_prize if customized_cash else new.cash_prize,
            items=list(old.items) if old.items else new.items,
            is_visible=old.is_visible,
        ))

    base_ids = {a.id for a in base.special_awards}
    extra_awards = [a for a in current.special_awards if a.id not in base_ids]

    return replace(
        base,
        positions=positions,
        special_awards=base.special_awards + extra_awards,
    )


def validate_rewards(rewards: TournamentRewards, max_participants: int) -> ValidationReport:
    """Check a reward sheet against its budget and field size."""
    report = ValidationReport()

    total_awarded = (
        sum(p.cash_prize for p in rewards.positions)
        + sum(a.cash_prize for a in rewards.special_awards)
    )

    if total_awarded > rewards.total_prize:
        report.errors.append(
            f"Total prizes exceed the budget ({total_awarded:,} > {rewards.total_prize:,})"
        )

    if rewards.total_prize > 0 and total_awarded < rewards.total_prize * MIN_DISTRIBUTION_RATIO:
        share = total_awarded / rewards.total_prize * 100
        report.warnings.append(f"Only {share:.1f}% of the prize pool is distributed")

    allowed = valid_positions(max_participants)
    invalid = [p.position for p in rewards.positions if p.position not in allowed]
    if invalid:
        report.errors.append(
            f"Placements not valid for {max_participants} players: "
            f"{', '.join(str(p) for p in invalid)}"
        )

    if any(p.elo_points < 0 or p.spa_points < 0 or p.cash_prize < 0 for p in rewards.positions):
        report.errors.append("Rewards cannot be negative")

    placements = {p.position for p in rewards.positions}
    if 1 not in placements:
        report.errors.append("A first-place reward is required")

    if max_participants >= 4 and 2 not in placements:
        report.warnings.append("Tournaments with 4+ players should reward second place")

    return report


# ============================================================================
# Templates
# ============================================================================

_BEST_BREAK = {
    "id": "best-break",
    "name": "Best break",
    "description": "Best break of the tournament",
}

REWARD_TEMPLATES: dict[str, dict] = {
    "basic": {
        "positions": [
            {"position": 1, "items": ["Trophy", "Certificate"]},
            {"position": 2, "items": ["Silver medal"]},
            {"position": 3, "items": ["Bronze medal"]},
        ],
        "special_awards": [],
    },
    "premium": {
        "positions": [
            {"position": 1, "items": ["Gold cup", "Certificate", "T-shirt"]},
            {"position": 2, "items": ["Silver cup", "Certificate"]},
            {"position": 3, "items": ["Bronze cup", "Certificate"]},
            {"position": 4, "items": ["Certificate"]},
        ],
        "special_awards": [_BEST_BREAK],
    },
    "championship": {
        "positions": [
            {"position": 1, "items": ["Champion cup", "Gold medal", "T-shirt", "Cue"]},
            {"position": 2, "items": ["Runner-up cup", "Silver medal", "T-shirt"]},
            {"position": 3, "items": ["Third place cup", "Bronze medal", "T-shirt"]},
            {"position": 4, "items": ["Merit medal"]},
        ],
        "special_awards": [
            _BEST_BREAK,
            {
                "id": "highest-run",
                "name": "Highest run",
                "description": "Longest run of the tournament",
            },
            {
                "id": "fair-play",
                "name": "Fair play",
                "description": "Best sportsmanship",
            },
        ],
    },
}


def template_rewards(kind: str) -> dict:
    """Item/award presets. Raises KeyError for an unknown template."""
    template = REWARD_TEMPLATES[kind]
    return {
        "positions": [dict(p, items=list(p["items"])) for p in template["positions"]],
        "special_awards": [
            SpecialAward(**award) for award in template["special_awards"]
        ],
    }


def spa_points_for_rank(rank: str, position: int) -> int:
    """SPA a player of `rank` earns for a numeric finish."""
    return tournament_spa(position_for_placement(position), rank)
