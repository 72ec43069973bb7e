"""Tests for sabo.rewards — prize structures, recalculation, validation."""

import pytest

from sabo.rewards import (
    REWARD_TEMPLATES,
    GameFormat,
    SpecialAward,
    TournamentTier,
    calculate_rewards,
    elo_points,
    prize_distribution,
    recalculate_rewards,
    spa_points_for_rank,
    template_rewards,
    valid_positions,
    validate_rewards,
)


def _small_k_event():
    """K tier, 8 players at 50,000, 8-ball: pool 280,000."""
    return calculate_rewards(TournamentTier.K, 50_000, 8, GameFormat.EIGHT_BALL)


def _by_place(rewards):
    return {p.position: p for p in rewards.positions}


# ============================================================================
# Placement helpers
# ============================================================================


class TestPlacements:
    @pytest.mark.parametrize(
        "players,expected",
        [(2, [1, 2]), (4, [1, 2, 3]), (8, [1, 2, 3, 4]), (16, [1, 2, 3, 4, 8]),
         (32, [1, 2, 3, 4, 8, 16]), (64, [1, 2, 3, 4, 8, 16])],
    )
    def test_valid_positions(self, players, expected):
        assert valid_positions(players) == expected

    @pytest.mark.parametrize("players", [2, 4, 8, 16])
    def test_distribution_sums_to_one(self, players):
        assert sum(prize_distribution(players).values()) == pytest.approx(1.0)

    def test_elo_rounds_half_up(self):
        # 25 * 1.0 * 0.9 = 22.5
        assert elo_points(TournamentTier.K, GameFormat.EIGHT_BALL, 4) == 23

    def test_elo_unknown_place_uses_floor_value(self):
        assert elo_points(TournamentTier.K, GameFormat.NINE_BALL, 5) == 5


# ============================================================================
# calculate_rewards
# ============================================================================


class TestCalculate:
    def test_small_event(self):
        rewards = _small_k_event()
        assert rewards.total_prize == 280_000
        assert rewards.show_prizes is True
        assert rewards.special_awards == []

        places = _by_place(rewards)
        assert list(places) == [1, 2, 3, 4]
        assert [p.cash_prize for p in rewards.positions] == [126_000, 84_000, 42_000, 28_000]
        assert [p.elo_points for p in rewards.positions] == [90, 54, 36, 23]
        assert [p.spa_points for p in rewards.positions] == [900, 700, 500, 350]
        assert places[1].name == "Champion"
        assert places[1].items == ["Champion trophy", "Certificate"]
        assert places[4].items == []

    def test_large_g_event_gets_best_break(self):
        rewards = calculate_rewards(TournamentTier.G, 100_000, 32, GameFormat.NINE_BALL)
        assert rewards.total_prize == 2_720_000

        places = _by_place(rewards)
        assert places[1].cash_prize == 1_088_000
        assert places[1].elo_points == 160
        assert places[16].cash_prize == 0
        assert places[16].elo_points == 16
        assert places[16].spa_points == 200

        assert len(rewards.special_awards) == 1
        award = rewards.special_awards[0]
        assert award.id == "best-break"
        assert award.cash_prize == 64_000

    def test_high_tier_small_revenue_has_no_special_award(self):
        rewards = calculate_rewards(TournamentTier.H, 10_000, 32, GameFormat.NINE_BALL)
        assert rewards.special_awards == []

    def test_low_tier_large_revenue_has_no_special_award(self):
        rewards = calculate_rewards(TournamentTier.I, 100_000, 32, GameFormat.NINE_BALL)
        assert rewards.special_awards == []

    def test_free_event_hides_prizes(self):
        rewards = calculate_rewards(TournamentTier.K, 0, 16, GameFormat.NINE_BALL)
        assert rewards.show_prizes is False
        assert rewards.total_prize == 0
        assert all(p.cash_prize == 0 for p in rewards.positions)

    def test_accepts_raw_values(self):
        a = calculate_rewards(4, 100_000, 32, "9_ball")
        b = calculate_rewards(TournamentTier.G, 100_000, 32, GameFormat.NINE_BALL)
        assert a == b

    def test_default_items_are_not_shared(self):
        first = _small_k_event()
        first.positions[0].items.append("Cue")
        assert _small_k_event().positions[0].items == ["Champion trophy", "Certificate"]


# ============================================================================
# recalculate_rewards
# ============================================================================


class TestRecalculate:
    def _edited_sheet(self):
        rewards = _small_k_event()
        places = _by_place(rewards)
        places[1].cash_prize = 150_000
        places[2].items = []
        places[3].is_visible = False
        rewards.special_awards.append(SpecialAward(id="fair-play", name="Fair play"))
        return rewards

    def test_keeps_customizations(self):
        new = recalculate_rewards(
            self._edited_sheet(), TournamentTier.K, 60_000, 16, GameFormat.EIGHT_BALL
        )
        places = _by_place(new)

        assert new.total_prize == 672_000
        assert list(places) == [1, 2, 3, 4, 8]
        assert places[1].cash_prize == 150_000
        assert places[2].cash_prize == 168_000
        assert places[2].items == ["Silver medal"]
        assert places[3].is_visible is False
        assert places[8].cash_prize == 67_200
        assert [a.id for a in new.special_awards] == ["fair-play"]

    def test_untouched_prizes_follow_new_pool(self):
        new = recalculate_rewards(
            _small_k_event(), TournamentTier.K, 60_000, 16, GameFormat.EIGHT_BALL
        )
        assert _by_place(new)[1].cash_prize == 268_800

    def test_base_special_award_not_duplicated(self):
        current = calculate_rewards(TournamentTier.G, 100_000, 32, GameFormat.NINE_BALL)
        new = recalculate_rewards(current, TournamentTier.G, 120_000, 32, GameFormat.NINE_BALL)
        assert [a.id for a in new.special_awards] == ["best-break"]
        assert new.special_awards[0].cash_prize == 76_800

    def test_without_preserve_returns_defaults(self):
        new = recalculate_rewards(
            self._edited_sheet(), TournamentTier.K, 60_000, 16, GameFormat.EIGHT_BALL,
            preserve_customizations=False,
        )
        assert new == calculate_rewards(TournamentTier.K, 60_000, 16, GameFormat.EIGHT_BALL)


# ============================================================================
# validate_rewards
# ============================================================================


class TestValidate:
    def test_default_sheet_is_valid(self):
        report = validate_rewards(_small_k_event(), 8)
        assert report.is_valid
        assert report.errors == []
        assert report.warnings == []

    def test_over_budget(self):
        rewards = _small_k_event()
        rewards.positions[0].cash_prize = 999_999
        report = validate_rewards(rewards, 8)
        assert not report.is_valid
        assert any("exceed" in e for e in report.errors)

    def test_under_distributed_warns(self):
        rewards = _small_k_event()
        rewards.positions[1].cash_prize = 0
        rewards.positions[2].cash_prize = 0
        report = validate_rewards(rewards, 8)
        assert report.is_valid
        assert any("55.0%" in w for w in report.warnings)

    def test_placement_too_deep_for_field(self):
        report = validate_rewards(_small_k_event(), 4)
        assert not report.is_valid
        assert any("not valid for 4 players: 4" in e for e in report.errors)

    def test_negative_values(self):
        rewards = _small_k_event()
        rewards.positions[3].elo_points = -1
        report = validate_rewards(rewards, 8)
        assert "Rewards cannot be negative" in report.errors

    def test_first_place_required(self):
        rewards = _small_k_event()
        rewards.positions = rewards.positions[1:]
        report = validate_rewards(rewards, 8)
        assert "A first-place reward is required" in report.errors

    def test_second_place_warning(self):
        rewards = _small_k_event()
        rewards.positions = [p for p in rewards.positions if p.position != 2]
        report = validate_rewards(rewards, 8)
        assert any("second place" in w for w in report.warnings)

    def test_free_event_has_no_distribution_warning(self):
        rewards = calculate_rewards(TournamentTier.K, 0, 8, GameFormat.NINE_BALL)
        assert validate_rewards(rewards, 8).warnings == []


# ============================================================================
# Templates and rank lookups
# ============================================================================


class TestTemplates:
    def test_known_templates(self):
        assert set(REWARD_TEMPLATES) == {"basic", "premium", "championship"}

    def test_basic(self):
        template = template_rewards("basic")
        assert [p["position"] for p in template["positions"]] == [1, 2, 3]
        assert template["special_awards"] == []

    def test_championship_awards(self):
        awards = template_rewards("championship")["special_awards"]
        assert all(isinstance(a, SpecialAward) for a in awards)
        assert [a.id for a in awards] == ["best-break", "highest-run", "fair-play"]

    def test_returns_copies(self):
        template = template_rewards("premium")
        template["positions"][0]["items"].append("Extra")
        assert "Extra" not in REWARD_TEMPLATES["premium"]["positions"][0]["items"]

    def test_unknown_template(self):
        with pytest.raises(KeyError):
            template_rewards("platinum")


class TestSpaForRank:
    def test_champion_by_rank(self):
        assert spa_points_for_rank("G", 1) == 1200
        assert spa_points_for_rank("E", 1) == 1500
        assert spa_points_for_rank("E+", 1) == 900

    def test_top_16_earns_participation(self):
        assert spa_points_for_rank("F", 16) == 110

    def test_unlisted_place_earns_participation(self):
        assert spa_points_for_rank("E", 5) == 120
