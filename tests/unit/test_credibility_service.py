from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from trustgate.models.credibility import (
    BadgeCategory,
    BadgeDefinition,
    CredibilityConfig,
    CredibilityFactors,
    RecencyWindows,
    Tier,
    default_credibility_config,
)
from trustgate.services.credibility_service import (
    UnknownTierError,
    badge_score,
    compute_credibility_score,
    credibility_breakdown,
    diversity_score,
    extract_credibility_factors,
    inactivity_penalty,
    recency_boost,
    response_bonus,
    tier_score,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _factors(**kwargs) -> CredibilityFactors:
    kwargs.setdefault("tier", Tier.STANDARD)
    return CredibilityFactors(**kwargs)


@pytest.fixture
def config() -> CredibilityConfig:
    return default_credibility_config()


# ---------- documented examples ----------


class TestExampleScores:
    def test_verified_five_bookings_single_client(self, config):
        factors = CredibilityFactors.model_validate({
            "tier": "verified",
            "axVerifiedCredits": 5,
            "clientConfirmedCredits": 0,
            "distinctClients90d": 1,
            "positiveReviewCount": 5,
            "completedBookings": 5,
        })
        assert compute_credibility_score(factors, config, NOW) == 535

    def test_verified_two_bookings_two_clients(self, config):
        factors = CredibilityFactors.model_validate({
            "tier": "verified",
            "axVerifiedCredits": 2,
            "distinctClients90d": 2,
            "positiveReviewCount": 2,
            "completedBookings": 2,
        })
        assert compute_credibility_score(factors, config, NOW) == 522

    def test_breakdown_sums_to_score(self, config):
        factors = _factors(
            tier=Tier.VERIFIED,
            ax_verified_credits=30,
            distinct_clients_90d=4,
            response_rate=92,
            avg_response_time_hours=3,
            days_since_last_activity=10,
        )
        breakdown = credibility_breakdown(factors, config, NOW)
        assert set(breakdown) == {
            "tier", "axVerifiedCredits", "clientConfirmedCredits", "clientDiversity",
            "reviews", "badges", "response", "recencyBoost", "inactivityPenalty",
        }
        assert sum(breakdown.values()) == compute_credibility_score(factors, config, NOW)


# ---------- tier ----------


class TestTier:
    def test_signature_without_credits_beats_standard_with_credits(self, config):
        signature = _factors(tier=Tier.SIGNATURE)
        standard = _factors(
            tier=Tier.STANDARD,
            ax_verified_credits=40,
            client_confirmed_credits=40,
            distinct_clients_90d=20,
            positive_review_count=50,
            completed_bookings=80,
            response_rate=99,
            avg_response_time_hours=0.5,
            days_since_last_activity=1,
        )
        assert compute_credibility_score(signature, config, NOW) > compute_credibility_score(
            standard, config, NOW
        )

    def test_unknown_tier_rejected(self, config):
        with pytest.raises(UnknownTierError):
            tier_score("platinum", config)

    def test_unknown_tier_rejected_by_factors(self):
        with pytest.raises(ValidationError):
            CredibilityFactors.model_validate({"tier": "platinum"})


# ---------- diversity ----------


class TestDiversity:
    def test_capped_at_max_impact(self, config):
        assert diversity_score(50, config) == 100

    def test_linear_below_cap(self, config):
        assert diversity_score(3, config) == 15


# ---------- badges ----------


class TestBadges:
    def _badge(self, expires_at=None, impact=40) -> BadgeDefinition:
        return BadgeDefinition(
            id="rising-talent",
            name="Rising Talent",
            category=BadgeCategory.DYNAMIC,
            score_impact=impact,
            expires_at=expires_at,
        )

    def test_counts_just_before_expiry(self):
        badge = self._badge(expires_at=NOW + timedelta(milliseconds=1))
        assert badge_score([badge], NOW) == 40

    def test_excluded_just_after_expiry(self):
        badge = self._badge(expires_at=NOW - timedelta(milliseconds=1))
        assert badge_score([badge], NOW) == 0

    def test_excluded_at_expiry(self):
        assert badge_score([self._badge(expires_at=NOW)], NOW) == 0

    def test_static_badge_never_expires(self):
        static = BadgeDefinition(
            id="verified-pro", name="Verified Pro", category=BadgeCategory.ACHIEVEMENT, score_impact=75
        )
        assert badge_score([static], NOW) == 75

    def test_missing_impact_contributes_zero(self):
        assert badge_score([self._badge(impact=None)], NOW) == 0

    def test_no_badges(self):
        assert badge_score(None, NOW) == 0


# ---------- response ----------


class TestResponseBonus:
    def test_rate_and_time_combine(self, config):
        assert response_bonus(96, 0.5, config.response_metrics) == 30 + 25

    def test_first_matching_rate_only(self, config):
        assert response_bonus(91, None, config.response_metrics) == 20

    def test_slow_time_earns_nothing(self, config):
        assert response_bonus(None, 24, config.response_metrics) == 0

    def test_zero_rate_is_a_real_value(self, config):
        assert response_bonus(0, None, config.response_metrics) == 0

    def test_absent_metrics(self, config):
        assert response_bonus(None, None, config.response_metrics) == 0


# ---------- recency ----------


class TestRecency:
    @pytest.mark.parametrize(
        "days,boost,penalty",
        [
            (0, 50, 0),
            (7, 50, 0),
            (8, 25, 0),
            (30, 25, 0),
            (90, 10, 0),
            (91, 0, -50),
            (180, 0, -50),
            (181, 0, -100),
        ],
    )
    def test_windows(self, config, days, boost, penalty):
        assert recency_boost(days, config) == boost
        assert inactivity_penalty(days, config) == penalty

    def test_unknown_activity_is_neutral(self, config):
        assert recency_boost(None, config) == 0
        assert inactivity_penalty(None, config) == 0

    def test_last_completed_at_used_when_days_absent(self, config):
        factors = _factors(last_completed_at=NOW - timedelta(days=3))
        assert credibility_breakdown(factors, config, NOW)["recencyBoost"] == 50

    def test_score_never_negative(self, config):
        factors = _factors(days_since_last_activity=400)
        zero_tier = config.model_copy(update={"tier_weights": {t: 0 for t in Tier}})
        assert compute_credibility_score(factors, zero_tier, NOW) == 0


# ---------- config validation ----------


class TestConfigValidation:
    def test_defaults_are_valid(self):
        config = default_credibility_config()
        assert config.tier_weights[Tier.SIGNATURE] == 1000

    def test_positive_penalty_rejected(self):
        with pytest.raises(ValidationError):
            CredibilityConfig.model_validate({"inactivityPenalties": {"moderate": 10, "heavy": -100}})

    def test_negative_weight_rejected(self):
        with pytest.raises(ValidationError):
            CredibilityConfig.model_validate({"creditMultipliers": {"axVerified": -1}})

    def test_zero_log_scale_rejected(self):
        with pytest.raises(ValidationError):
            CredibilityConfig.model_validate({"diminishingReturns": {"logScaling": 0}})

    def test_missing_tier_rejected(self):
        with pytest.raises(ValidationError):
            CredibilityConfig.model_validate({"tierWeights": {"signature": 1000, "verified": 500}})

    def test_boost_window_overlapping_penalty_rejected(self):
        with pytest.raises(ValidationError):
            CredibilityConfig(
                recency_windows=RecencyWindows(somewhat_recent=120, inactivity_threshold=90)
            )

    def test_descending_windows_rejected(self):
        with pytest.raises(ValidationError):
            CredibilityConfig(recency_windows=RecencyWindows(very_recent=40, recent=30))


# ---------- factor extraction ----------


class TestExtractFactors:
    def test_reads_profile_row(self):
        row = {
            "tier": "signature",
            "ax_verified_credits": 12,
            "client_confirmed_credits": None,
            "distinct_clients_90d": 4,
            "positive_review_count": 9,
            "completed_bookings": 14,
            "response_rate": 0,
            "avg_response_time_hours": None,
            "last_completed_at": NOW - timedelta(days=2, hours=3),
            "created_at": NOW - timedelta(days=400),
        }
        factors = extract_credibility_factors(row, now=NOW)
        assert factors.tier == Tier.SIGNATURE
        assert factors.ax_verified_credits == 12
        assert factors.client_confirmed_credits == 0
        assert factors.response_rate == 0
        assert factors.avg_response_time_hours is None
        assert factors.account_age_days == 400
        assert factors.days_since_last_activity == 2

    def test_missing_activity_stays_none(self):
        factors = extract_credibility_factors({"tier": "standard"}, now=NOW)
        assert factors.days_since_last_activity is None
        assert factors.account_age_days is None
