"""
Risk Scoring for Mantissa Umbra.

Combines weighted risk factors into a per-entity score and aggregates
entity assessments into one fleet-wide security score.

Shadow findings are the single source of truth for the shadow-derived
factors (unused account, old key, forgotten policy, unused service,
legacy policy, excessive permissions): the scorer turns findings into
factors and never re-applies detection thresholds itself. Each factor
contributes its weight once per entity, regardless of how many findings
or policies triggered it.

Scales:
- raw points: sum of factor weights
- risk scale (canonical, 0-15): min(15, raw points * points_multiplier)
- dashboard scale (0-100): derived from the risk scale
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from umbra.config import EngineConfig
from umbra.engine.classifier import AccessClass, PolicyClassifier
from umbra.engine.detector import ShadowPermissionDetector
from umbra.models import (
    RISK_SCALE_MAX,
    Entity,
    FactorCategory,
    RiskAssessment,
    RiskFactor,
    SecurityScoreBreakdown,
    Severity,
    ShadowPermissionRisk,
    ShadowPermissionType,
    clamp_score,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

SHADOW_FACTORS: dict[ShadowPermissionType, FactorCategory] = {
    ShadowPermissionType.UNUSED_ACCOUNT: FactorCategory.UNUSED_ACCOUNT,
    ShadowPermissionType.OLD_ACCESS: FactorCategory.OLD_ACCESS_KEY,
    ShadowPermissionType.FORGOTTEN_POLICY: FactorCategory.FORGOTTEN_POLICY,
    ShadowPermissionType.UNUSED_SERVICE: FactorCategory.UNUSED_SERVICE,
    ShadowPermissionType.LEGACY_POLICY: FactorCategory.LEGACY_POLICY,
    ShadowPermissionType.EXCESSIVE_PERMISSIONS: FactorCategory.EXCESSIVE_PERMISSIONS,
}

_SHADOW_FACTOR_LABELS: dict[ShadowPermissionType, str] = {
    ShadowPermissionType.UNUSED_ACCOUNT: "Account unused past the inactivity threshold",
    ShadowPermissionType.OLD_ACCESS: "{count} old access key(s)",
    ShadowPermissionType.FORGOTTEN_POLICY: "{count} inline policy(ies) never reviewed",
    ShadowPermissionType.UNUSED_SERVICE: "Access to {count} unused service(s)",
    ShadowPermissionType.LEGACY_POLICY: "{count} legacy policy(ies)",
    ShadowPermissionType.EXCESSIVE_PERMISSIONS: "Holds excessive full-access policies",
}

# Ordered (type, recommendation) pairs for fleet recommendations
_RECOMMENDATIONS: list[tuple[FactorCategory, str]] = [
    (FactorCategory.UNUSED_ACCOUNT,
     "Review and remove unused accounts with no recent activity"),
    (FactorCategory.FORGOTTEN_POLICY,
     "Review inline policies that have not been updated since creation"),
    (FactorCategory.EXCESSIVE_PERMISSIONS,
     "Reduce excessive full-access grants and apply least privilege"),
    (FactorCategory.ADMIN_ACCESS,
     "Audit administrator and power-user access"),
    (FactorCategory.OLD_ACCESS_KEY,
     "Rotate or deactivate old access keys"),
    (FactorCategory.LEGACY_POLICY,
     "Replace legacy managed policies with scoped alternatives"),
    (FactorCategory.UNUSED_SERVICE,
     "Remove access to services that are not in use"),
    (FactorCategory.MFA_DISABLED,
     "Enable MFA for users without it"),
    (FactorCategory.SUSPENDED_ACCOUNT,
     "Remove suspended accounts that are no longer needed"),
]


def to_risk_scale(raw_points: int, multiplier: int) -> int:
    """
    Convert raw factor points to the canonical 0-15 risk scale.

    Args:
        raw_points: Sum of factor weights
        multiplier: Scale points per raw point

    Returns:
        Integer score in [0, 15]
    """
    return int(clamp_score(raw_points * multiplier, 0, RISK_SCALE_MAX))


class RiskScoringEngine:
    """
    Engine for scoring entities and aggregating fleet security scores.

    Scoring is deterministic for a given entity, timestamp and findings.
    Aggregation reads only RiskAssessment instances and is independent of
    their order, so assessments may be computed in any order or in
    parallel.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        detector: ShadowPermissionDetector | None = None,
    ):
        """
        Initialize the scoring engine.

        Args:
            config: Engine configuration supplying weights and units
            detector: Shadow permission detector (built from config if omitted)
        """
        self._config = config or EngineConfig()
        self._detector = detector or ShadowPermissionDetector(self._config)
        self._classifier: PolicyClassifier = self._detector.classifier

    @property
    def config(self) -> EngineConfig:
        """Get the engine configuration."""
        return self._config

    @property
    def detector(self) -> ShadowPermissionDetector:
        """Get the shadow permission detector."""
        return self._detector

    def score(
        self,
        entity: Entity,
        now: datetime,
        findings: list[ShadowPermissionRisk] | None = None,
    ) -> RiskAssessment:
        """
        Score a single entity.

        Args:
            entity: Entity to score
            now: Reference time for activity checks
            findings: Shadow findings for this entity; detected if omitted

        Returns:
            Risk assessment for the entity
        """
        now = parse_timestamp(now)
        if findings is None:
            findings = self._detector.detect(entity, now)

        factors = self._static_factors(entity) + self._shadow_factors(findings)
        raw_points = sum(f.points for f in factors)
        score = to_risk_scale(raw_points, self._config.scale.points_multiplier)
        logger.debug(f"Scored {entity.name}: {raw_points} raw points, {score}/15")

        return RiskAssessment(
            entity_name=entity.name,
            entity_type=entity.entity_type,
            provider=entity.provider,
            raw_points=raw_points,
            score=score,
            factors=factors,
            shadow_permissions=list(findings),
            recently_active=self._detector.is_recently_active(entity, now),
        )

    def score_many(self, entities: Iterable[Entity], now: datetime) -> list[RiskAssessment]:
        """Score each entity once, in input order."""
        return [self.score(entity, now) for entity in entities]

    def aggregate(
        self,
        assessments: Iterable[RiskAssessment],
        previous_score: float | None = None,
    ) -> SecurityScoreBreakdown:
        """
        Aggregate entity assessments into a fleet security score.

        Starts from 100, deducts per high and medium severity finding,
        applies the signed user activity impact and clamps to [0, 100].

        Args:
            assessments: Per-entity assessments
            previous_score: Previous overall score for trend calculation

        Returns:
            Fleet security score breakdown
        """
        assessments = list(assessments)
        fleet = self._config.fleet

        high = sum(len(a.findings_with_severity(Severity.HIGH)) for a in assessments)
        medium = sum(len(a.findings_with_severity(Severity.MEDIUM)) for a in assessments)
        active = sum(1 for a in assessments if a.recently_active)

        high_deduction = high * fleet.high_deduction_unit
        medium_deduction = medium * fleet.medium_deduction_unit
        activity_impact = self._activity_impact(active, len(assessments))

        overall = round(
            clamp_score(100.0 - high_deduction - medium_deduction + activity_impact), 1
        )

        trend = None
        if previous_score is not None:
            trend = round(overall - previous_score, 1)

        distribution = {level.value: 0 for level in Severity}
        for assessment in assessments:
            distribution[assessment.risk_level.value] += 1

        return SecurityScoreBreakdown(
            overall_score=overall,
            high_risk_deduction=high_deduction,
            medium_risk_deduction=medium_deduction,
            user_activity_impact=activity_impact,
            trend=trend,
            previous_score=previous_score,
            high_findings=high,
            medium_findings=medium,
            total_entities=len(assessments),
            active_entities=active,
            risk_distribution=distribution,
            recommendations=self._recommendations(assessments),
        )

    def summarize_by(
        self,
        assessments: Iterable[RiskAssessment],
        key: str | Callable[[RiskAssessment], Any] = "entity_type",
    ) -> dict[str, dict[str, Any]]:
        """
        Group assessments and summarize each group.

        Uses the given assessment instances as-is; nothing is re-scored.

        Args:
            assessments: Per-entity assessments
            key: "entity_type", "provider", or a callable returning a group key

        Returns:
            Mapping of group name to summary dictionary
        """
        if callable(key):
            key_fn = key
        elif key in ("entity_type", "provider"):
            attribute = key

            def key_fn(assessment: RiskAssessment) -> str:
                return getattr(assessment, attribute).value
        else:
            raise ValueError(f"Unsupported grouping key: {key}")

        groups: dict[str, list[RiskAssessment]] = {}
        for assessment in assessments:
            groups.setdefault(str(key_fn(assessment)), []).append(assessment)

        summaries: dict[str, dict[str, Any]] = {}
        for name in sorted(groups):
            members = groups[name]
            by_level = {level.value: 0 for level in Severity}
            for member in members:
                by_level[member.risk_level.value] += 1
            summaries[name] = {
                "count": len(members),
                "average_score": round(sum(m.score for m in members) / len(members), 2),
                "average_dashboard_score": round(
                    sum(m.dashboard_score for m in members) / len(members), 2
                ),
                "risk_levels": by_level,
                "shadow_findings": sum(len(m.shadow_permissions) for m in members),
            }
        return summaries

    def _static_factors(self, entity: Entity) -> list[RiskFactor]:
        """Factors read directly from entity attributes."""
        factors: list[RiskFactor] = []

        if not entity.is_role and not entity.mfa_enabled:
            factors.append(self._factor(FactorCategory.MFA_DISABLED, "MFA is not enabled"))

        # Classify each distinct name once
        classes = {
            name: self._classifier.access_class(name)
            for name in {p.name for p in entity.policies}
        }
        present = set(classes.values())

        if entity.is_admin or AccessClass.ADMIN in present:
            factors.append(
                self._factor(FactorCategory.ADMIN_ACCESS, "Has administrator access")
            )
        if AccessClass.POWER_USER in present:
            factors.append(
                self._factor(FactorCategory.POWER_USER_ACCESS, "Has power user access")
            )
        full_service = [
            p.name for p in entity.policies if classes[p.name] == AccessClass.FULL_SERVICE
        ]
        if full_service:
            factors.append(
                self._factor(
                    FactorCategory.FULL_SERVICE_ACCESS,
                    f"Has full access to {len(full_service)} service(s)",
                )
            )

        inline = entity.inline_policies
        if inline:
            factors.append(
                self._factor(
                    FactorCategory.INLINE_POLICIES,
                    f"Has {len(inline)} inline policy(ies)",
                )
            )

        if entity.suspended:
            factors.append(
                self._factor(FactorCategory.SUSPENDED_ACCOUNT, "Account is suspended")
            )

        return factors

    def _shadow_factors(self, findings: list[ShadowPermissionRisk]) -> list[RiskFactor]:
        """Factors derived from shadow findings, one per finding type."""
        counts: dict[ShadowPermissionType, int] = {}
        for finding in findings:
            counts[finding.type] = counts.get(finding.type, 0) + 1

        factors: list[RiskFactor] = []
        for shadow_type, category in SHADOW_FACTORS.items():
            count = counts.get(shadow_type)
            if count:
                label = _SHADOW_FACTOR_LABELS[shadow_type].format(count=count)
                factors.append(self._factor(category, label))
        return factors

    def _factor(self, category: FactorCategory, details: str) -> RiskFactor:
        return RiskFactor(
            category=category,
            points=self._config.weights.weight_for(category),
            details=details,
        )

    def _activity_impact(self, active: int, total: int) -> float:
        """Signed impact: positive when most entities are recently active."""
        if total == 0:
            return 0.0
        ratio = active / total
        return round(self._config.fleet.max_activity_impact * (2 * ratio - 1), 1)

    def _recommendations(self, assessments: list[RiskAssessment]) -> list[str]:
        present: set[FactorCategory] = set()
        for assessment in assessments:
            present.update(assessment.factor_categories)
        if FactorCategory.POWER_USER_ACCESS in present:
            present.add(FactorCategory.ADMIN_ACCESS)
        return [text for category, text in _RECOMMENDATIONS if category in present]

