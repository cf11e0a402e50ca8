"""
Unit tests for risk scoring and fleet aggregation.

Tests the factor table, the canonical scale conversions, risk levels and
the fleet-wide security score.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from umbra.config import EngineConfig
from umbra.engine import RiskScoringEngine, risk_level_for, to_dashboard_scale, to_risk_scale
from umbra.models import (
    Entity,
    EntityType,
    FactorCategory,
    Policy,
    PolicyKind,
    Provider,
    RiskAssessment,
    Severity,
    ShadowPermissionRisk,
    ShadowPermissionType,
)


@pytest.fixture
def engine() -> RiskScoringEngine:
    """Create a scoring engine with default configuration."""
    return RiskScoringEngine()


def make_assessment(
    name: str,
    high: int = 0,
    medium: int = 0,
    active: bool = True,
    score: int = 0,
    entity_type: EntityType = EntityType.USER,
) -> RiskAssessment:
    """Build an assessment carrying the given number of findings."""
    findings = [
        ShadowPermissionRisk(
            finding_id=f"{name}:{i}",
            type=ShadowPermissionType.UNUSED_ACCOUNT,
            severity=severity,
            description="",
            details="",
            entity_name=name,
            item=str(i),
        )
        for i, severity in enumerate([Severity.HIGH] * high + [Severity.MEDIUM] * medium)
    ]
    return RiskAssessment(
        entity_name=name,
        entity_type=entity_type,
        provider=Provider.AWS,
        raw_points=0,
        score=score,
        shadow_permissions=findings,
        recently_active=active,
    )


class TestScaleConversions:
    """Tests for the named scale functions."""

    @pytest.mark.parametrize(
        "score, level",
        [(0, Severity.LOW), (4, Severity.LOW), (5, Severity.MEDIUM), (9, Severity.MEDIUM),
         (10, Severity.HIGH), (14, Severity.HIGH), (15, Severity.CRITICAL)],
    )
    def test_risk_level_boundaries(self, score, level):
        """Test risk level buckets on the 0-15 scale."""
        assert risk_level_for(score) == level

    def test_risk_level_monotonic(self):
        """Test that risk level never decreases as score increases."""
        levels = [risk_level_for(score) for score in range(0, 16)]
        assert all(a <= b for a, b in zip(levels, levels[1:]))

    def test_to_risk_scale_saturates(self):
        """Test that raw points saturate at 15."""
        assert to_risk_scale(0, 3) == 0
        assert to_risk_scale(2, 3) == 6
        assert to_risk_scale(8, 3) == 15

    def test_dashboard_scale(self):
        """Test conversion to the 0-100 dashboard scale."""
        assert to_dashboard_scale(0) == 0
        assert to_dashboard_scale(6) == 40
        assert to_dashboard_scale(15) == 100

    def test_dashboard_scale_clamps(self):
        """Test that out-of-range scores are clamped."""
        assert to_dashboard_scale(40) == 100
        assert to_dashboard_scale(-3) == 0


class TestEntityScoring:
    """Tests for per-entity scores."""

    def test_clean_user(self, engine, clean_user, now):
        """Test that a clean user scores zero."""
        assessment = engine.score(clean_user, now)
        assert assessment.score == 0
        assert assessment.risk_level == Severity.LOW
        assert assessment.factors == []
        assert assessment.shadow_permissions == []

    def test_dormant_admin(self, engine, dormant_admin, now):
        """Test an unused admin user without MFA is critical."""
        assessment = engine.score(dormant_admin, now)
        assert set(assessment.factor_categories) == {
            FactorCategory.MFA_DISABLED,
            FactorCategory.ADMIN_ACCESS,
            FactorCategory.UNUSED_ACCOUNT,
        }
        assert assessment.raw_points == 8
        assert assessment.score == 15
        assert assessment.risk_level == Severity.CRITICAL
        assert assessment.dashboard_score == 100

    def test_old_key_user(self, engine, old_key_user, now):
        """Test a user with one old key is medium."""
        assessment = engine.score(old_key_user, now)
        assert assessment.factor_categories == [FactorCategory.OLD_ACCESS_KEY]
        assert assessment.score == 6
        assert assessment.risk_level == Severity.MEDIUM

    def test_roles_carry_no_mfa_factor(self, engine, deploy_role, now):
        """Test that roles never get the MFA factor."""
        assessment = engine.score(deploy_role, now)
        assert FactorCategory.MFA_DISABLED not in assessment.factor_categories
        assert FactorCategory.INLINE_POLICIES in assessment.factor_categories
        assert FactorCategory.FORGOTTEN_POLICY in assessment.factor_categories

    def test_factor_counted_once(self, engine, now):
        """Test that several full-access policies add one factor."""
        entity = Entity(
            name="svc",
            last_used=now,
            mfa_enabled=True,
            policies=(Policy("IAMFullAccess"), Policy("AmazonVPCFullAccess")),
        )
        assessment = engine.score(entity, now)
        assert assessment.factor_categories.count(FactorCategory.FULL_SERVICE_ACCESS) == 1
        assert assessment.factor_categories.count(FactorCategory.LEGACY_POLICY) == 1
        assert assessment.raw_points == 4
        assert assessment.risk_level == Severity.HIGH

    def test_power_user(self, engine, now):
        """Test power user access."""
        entity = Entity(
            name="dev", last_used=now, mfa_enabled=True, policies=(Policy("PowerUserAccess"),)
        )
        assessment = engine.score(entity, now)
        assert assessment.factor_categories == [FactorCategory.POWER_USER_ACCESS]
        assert assessment.score == 9

    def test_provider_admin_without_policies(self, engine, now):
        """Test that a Google admin with no policies gets the admin factor."""
        entity = Entity.from_dict({
            "primaryEmail": "root@example.com",
            "provider": "google",
            "lastLoginTime": now.isoformat(),
            "isAdmin": True,
            "isEnrolledIn2Sv": True,
        })
        assessment = engine.score(entity, now)
        assert assessment.factor_categories == [FactorCategory.ADMIN_ACCESS]
        assert assessment.score == 12
        assert assessment.risk_level == Severity.HIGH

    def test_provider_admin_counted_once(self, engine, now):
        """Test that the admin flag and an admin policy add one factor."""
        entity = Entity(
            name="root",
            last_used=now,
            mfa_enabled=True,
            is_admin=True,
            policies=(Policy("AdministratorAccess"),),
        )
        assessment = engine.score(entity, now)
        assert assessment.factor_categories == [FactorCategory.ADMIN_ACCESS]
        assert assessment.raw_points == 4

    def test_suspended_account(self, engine, now):
        """Test the suspended account factor."""
        entity = Entity(
            name="gone@example.com",
            provider=Provider.GOOGLE,
            last_used=now,
            mfa_enabled=True,
            suspended=True,
        )
        assessment = engine.score(entity, now)
        assert assessment.factor_categories == [FactorCategory.SUSPENDED_ACCOUNT]
        assert assessment.raw_points == 2
        assert assessment.risk_level == Severity.MEDIUM

    def test_inline_policy_factor(self, engine, now):
        """Test that a recent inline policy only adds the inline factor."""
        entity = Entity(
            name="dev",
            last_used=now,
            mfa_enabled=True,
            policies=(
                Policy("inline", PolicyKind.INLINE, created_at=now - timedelta(days=10)),
            ),
        )
        assert engine.score(entity, now).factor_categories == [FactorCategory.INLINE_POLICIES]

    def test_given_findings_are_used(self, engine, dormant_admin, now):
        """Test that supplied findings replace detection."""
        assessment = engine.score(dormant_admin, now, findings=[])
        assert FactorCategory.UNUSED_ACCOUNT not in assessment.factor_categories
        assert assessment.raw_points == 5

    def test_idempotent(self, engine, deploy_role, now):
        """Test identical output for identical input."""
        assert engine.score(deploy_role, now).to_dict() == engine.score(deploy_role, now).to_dict()

    def test_custom_weights(self, dormant_admin, now):
        """Test configured weights."""
        config = EngineConfig.from_dict({
            "weights": {"admin_access": 0, "unused_account": 0},
            "scale": {"points_multiplier": 1},
        })
        assessment = RiskScoringEngine(config).score(dormant_admin, now)
        assert assessment.raw_points == 1
        assert assessment.score == 1

    def test_score_many_preserves_order(self, engine, fleet, now):
        """Test batch scoring order."""
        names = [a.entity_name for a in engine.score_many(fleet, now)]
        assert names == [e.name for e in fleet]


class TestAggregate:
    """Tests for the fleet security score."""

    def test_empty_fleet(self, engine):
        """Test that an empty fleet scores 100 with no trend."""
        breakdown = engine.aggregate([])
        assert breakdown.overall_score == 100.0
        assert breakdown.user_activity_impact == 0.0
        assert breakdown.trend is None
        assert "trend" not in breakdown.to_dict()

    def test_two_high_findings_even_activity(self, engine):
        """Test ten entities with two high findings and an even activity split."""
        assessments = (
            [make_assessment(f"high{i}", high=1, active=False) for i in range(2)]
            + [make_assessment(f"idle{i}", active=False) for i in range(3)]
            + [make_assessment(f"busy{i}", active=True) for i in range(5)]
        )
        breakdown = engine.aggregate(assessments)
        assert breakdown.user_activity_impact == 0.0
        assert breakdown.high_risk_deduction == 10.0
        assert breakdown.overall_score == 90.0
        assert breakdown.trend is None

    def test_trend_with_previous_score(self, engine):
        """Test trend against a previous score."""
        assessments = [make_assessment("a", high=1), make_assessment("b", active=False)]
        breakdown = engine.aggregate(assessments, previous_score=90.0)
        assert breakdown.overall_score == 95.0
        assert breakdown.trend == 5.0
        assert breakdown.to_dict()["trend"] == 5.0

    def test_medium_deduction(self, engine):
        """Test medium finding deductions."""
        assessments = [make_assessment("a", medium=3), make_assessment("b", active=False)]
        breakdown = engine.aggregate(assessments)
        assert breakdown.medium_risk_deduction == 6.0
        assert breakdown.overall_score == 94.0

    def test_activity_impact_sign(self, engine):
        """Test that activity impact is signed."""
        all_active = engine.aggregate([make_assessment("a", high=1, active=True)])
        none_active = engine.aggregate([make_assessment("a", high=1, active=False)])
        assert all_active.user_activity_impact == 5.0
        assert none_active.user_activity_impact == -5.0
        assert all_active.overall_score == 100.0
        assert none_active.overall_score == 90.0

    def test_clamped_at_zero(self, engine):
        """Test that the fleet score never goes negative."""
        breakdown = engine.aggregate([make_assessment("a", high=30, active=False)])
        assert breakdown.overall_score == 0.0
        assert breakdown.risk_level == Severity.CRITICAL

    def test_order_independent(self, engine):
        """Test that aggregation does not depend on order."""
        assessments = [
            make_assessment("a", high=2, active=False),
            make_assessment("b", medium=1),
            make_assessment("c", active=False),
        ]
        forward = engine.aggregate(assessments)
        backward = engine.aggregate(list(reversed(assessments)))
        assert forward.to_dict() == backward.to_dict()

    def test_risk_distribution(self, engine):
        """Test entity counts per risk level."""
        breakdown = engine.aggregate([
            make_assessment("a", score=15),
            make_assessment("b", score=6),
            make_assessment("c", score=0),
        ])
        assert breakdown.risk_distribution == {
            "critical": 1, "high": 0, "medium": 1, "low": 1,
        }

    def test_recommendations(self, engine, dormant_admin, old_key_user, now):
        """Test recommendations follow the factors present."""
        assessments = engine.score_many([dormant_admin, old_key_user], now)
        recommendations = engine.aggregate(assessments).recommendations
        assert "Audit administrator and power-user access" in recommendations
        assert "Rotate or deactivate old access keys" in recommendations
        assert "Enable MFA for users without it" in recommendations
        assert "Remove access to services that are not in use" not in recommendations


class TestSummarizeBy:
    """Tests for grouped summaries."""

    def test_by_entity_type(self, engine):
        """Test grouping by entity type."""
        assessments = [
            make_assessment("u1", score=6),
            make_assessment("u2", score=0),
            make_assessment("r1", score=15, entity_type=EntityType.ROLE, high=1),
        ]
        summary = engine.summarize_by(assessments, "entity_type")
        assert summary["user"]["count"] == 2
        assert summary["user"]["average_score"] == 3.0
        assert summary["role"]["risk_levels"]["critical"] == 1
        assert summary["role"]["shadow_findings"] == 1

    def test_by_provider(self, engine):
        """Test grouping by provider."""
        summary = engine.summarize_by([make_assessment("a")], "provider")
        assert list(summary) == ["aws"]

    def test_callable_key(self, engine):
        """Test grouping by a custom key."""
        summary = engine.summarize_by(
            [make_assessment("a", active=True), make_assessment("b", active=False)],
            key=lambda a: "active" if a.recently_active else "idle",
        )
        assert summary["active"]["count"] == 1
        assert summary["idle"]["count"] == 1

    def test_unsupported_key(self, engine):
        """Test that unknown grouping keys raise."""
        with pytest.raises(ValueError):
            engine.summarize_by([], "region")
