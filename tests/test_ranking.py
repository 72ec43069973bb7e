"""Tests for sabo.ranks and sabo.ranking — reward tables and ELO math."""

from datetime import datetime, timedelta, timezone

import pytest

from sabo.ranking import (
    MIN_PROMOTION_MATCHES,
    calculate_elo_change,
    calculate_match_elo,
    challenge_spa,
    format_position,
    is_eligible_for_promotion,
    next_rank,
    rank_by_elo,
    tournament_rewards,
)
from sabo.ranks import (
    RANK_ELO,
    RANK_ORDER,
    SPA_TOURNAMENT_REWARDS,
    TOURNAMENT_ELO_REWARDS,
    TOURNAMENT_POSITIONS,
    base_rank,
    parse_position,
    parse_rank,
    position_for_placement,
    tournament_elo,
    tournament_spa,
)


# ============================================================================
# Tables
# ============================================================================


class TestTables:
    def test_twelve_ranks_ascending(self):
        assert len(RANK_ORDER) == 12
        elos = [RANK_ELO[r] for r in RANK_ORDER]
        assert elos == sorted(elos)
        assert RANK_ELO["K"] == 1000
        assert RANK_ELO["E+"] == 2100

    def test_seven_placements(self):
        assert len(TOURNAMENT_POSITIONS) == 7
        assert set(TOURNAMENT_POSITIONS) == set(TOURNAMENT_ELO_REWARDS)

    def test_tables_are_read_only(self):
        with pytest.raises(TypeError):
            RANK_ELO["K"] = 0
        with pytest.raises(TypeError):
            SPA_TOURNAMENT_REWARDS["G"]["CHAMPION"] = 0

    def test_parse_rank_normalizes(self):
        assert parse_rank(" g+ ") == "G+"
        with pytest.raises(ValueError):
            parse_rank("Z")

    def test_parse_position_normalizes(self):
        assert parse_position("top_8") == "TOP_8"
        with pytest.raises(ValueError):
            parse_position("FIFTH")

    def test_base_rank(self):
        assert base_rank("H+") == "H"
        assert base_rank("E") == "E"


class TestLookups:
    def test_tournament_elo(self):
        assert tournament_elo("CHAMPION") == 100
        assert tournament_elo("TOP_16") == 3

    def test_unknown_position_earns_participation(self):
        assert tournament_elo("FIFTH") == 1

    def test_tournament_spa_by_rank_row(self):
        assert tournament_spa("CHAMPION", "E") == 1500
        assert tournament_spa("CHAMPION", "K") == 900

    @pytest.mark.parametrize("rank", ["K+", "I+", "H+", "G+", "F+", "E+"])
    def test_plus_ranks_read_k_row(self, rank):
        assert tournament_spa("CHAMPION", rank) == 900
        assert tournament_spa("RUNNER_UP", rank) == 700
        assert tournament_spa("TOP_16", rank) == 100

    def test_unknown_rank_uses_k_row(self):
        assert tournament_spa("CHAMPION", "Z") == 900

    def test_top_16_falls_back_to_participation(self):
        assert tournament_spa("TOP_16", "F") == 110

    @pytest.mark.parametrize(
        "placement,position",
        [(1, "CHAMPION"), (2, "RUNNER_UP"), (3, "THIRD_PLACE"), (4, "FOURTH_PLACE"),
         (8, "TOP_8"), (16, "TOP_16"), (5, "PARTICIPATION"), (32, "PARTICIPATION")],
    )
    def test_position_for_placement(self, placement, position):
        assert position_for_placement(placement) == position


# ============================================================================
# Match ELO
# ============================================================================


class TestMatchElo:
    def test_even_match_win(self):
        assert calculate_match_elo(1500, 1500, 1) == 1516

    def test_even_match_loss(self):
        assert calculate_match_elo(1500, 1500, 0) == 1484

    def test_even_match_draw(self):
        assert calculate_match_elo(1500, 1500, 0.5) == 1500

    def test_upset_gains_more(self):
        underdog = calculate_elo_change(1200, 1600, 1)
        favourite = calculate_elo_change(1600, 1200, 1)
        assert underdog > favourite > 0

    def test_change_matches_new_elo(self):
        assert calculate_match_elo(1320, 1410, 1) - 1320 == calculate_elo_change(1320, 1410, 1)

    def test_bad_result_raises(self):
        with pytest.raises(ValueError):
            calculate_match_elo(1500, 1500, 2)


# ============================================================================
# Rank progression
# ============================================================================


class TestRanks:
    @pytest.mark.parametrize(
        "elo,rank",
        [(0, "K"), (999, "K"), (1000, "K"), (1099, "K"), (1100, "K+"), (1250, "I"),
         (1500, "H+"), (1999, "F+"), (2000, "E"), (2100, "E+"), (3000, "E+")],
    )
    def test_rank_by_elo(self, elo, rank):
        assert rank_by_elo(elo) == rank

    def test_next_rank(self):
        assert next_rank("K") == "K+"
        assert next_rank("F+") == "E"
        assert next_rank("E+") is None
        assert next_rank("Z") is None


class TestPromotion:
    def test_eligible(self):
        assert is_eligible_for_promotion(1400, "I+", MIN_PROMOTION_MATCHES)

    def test_too_few_matches(self):
        assert not is_eligible_for_promotion(1400, "I+", MIN_PROMOTION_MATCHES - 1)

    def test_elo_below_next_rank(self):
        assert not is_eligible_for_promotion(1399, "I+", 50)

    def test_top_rank_cannot_promote(self):
        assert not is_eligible_for_promotion(3000, "E+", 50)

    def test_promotion_cooldown(self):
        now = datetime(2025, 6, 10, tzinfo=timezone.utc)
        recent = now - timedelta(days=3)
        old = now - timedelta(days=30)
        assert not is_eligible_for_promotion(1400, "I+", 50, last_promotion=recent, now=now)
        assert is_eligible_for_promotion(1400, "I+", 50, last_promotion=old, now=now)


# ============================================================================
# Rewards
# ============================================================================


class TestTournamentRewards:
    def test_summary(self):
        reward = tournament_rewards("CHAMPION", "G")
        assert reward.elo_points == 100
        assert reward.spa_points == 1200
        assert reward.position == "CHAMPION"
        assert reward.rank == "G"

    def test_format_position(self):
        assert format_position("TOP_8") == "Top 8"
        assert format_position("SOMETHING") == "SOMETHING"


class TestChallengeSpa:
    def test_plain_win(self):
        assert challenge_spa(won=True) == 50

    def test_loss(self):
        assert challenge_spa(won=False, win_streak=4) == 10

    def test_streak_and_comeback(self):
        assert challenge_spa(won=True, win_streak=2, comeback=True) == 50 + 50 + 100

    def test_daily_limit_caps(self):
        assert challenge_spa(won=True, earned_today=480) == 20
        assert challenge_spa(won=True, earned_today=500) == 0
