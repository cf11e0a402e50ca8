"""
Risk data models for Mantissa Umbra.

Defines the derived structures the engine emits: shadow permission
findings, per-entity risk assessments, the fleet-wide security score
breakdown and predicted timeline events. All of them are created fresh
on every pass and are JSON-serializable through to_dict().

Scores use one canonical internal scale (0-15). The dashboard scale
(0-100) and the discrete risk level are always derived from it through
the named conversion functions below.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from umbra.models.entity import EntityType, Provider

RISK_SCALE_MAX = 15
DASHBOARD_SCALE_MAX = 100


class Severity(Enum):
    """Severity of a finding or event, also used as an entity risk level."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Numeric rank for comparison (higher = more severe)."""
        ranks = {
            Severity.CRITICAL: 4,
            Severity.HIGH: 3,
            Severity.MEDIUM: 2,
            Severity.LOW: 1,
        }
        return ranks[self]

    def __gt__(self, other: "Severity") -> bool:
        return self.rank > other.rank

    def __ge__(self, other: "Severity") -> bool:
        return self.rank >= other.rank

    def __lt__(self, other: "Severity") -> bool:
        return self.rank < other.rank

    def __le__(self, other: "Severity") -> bool:
        return self.rank <= other.rank

    @classmethod
    def from_string(cls, value: str) -> Severity:
        """
        Create Severity from string value.

        Args:
            value: String representation (case-insensitive)

        Returns:
            Matching Severity enum value

        Raises:
            ValueError: If value is not a valid severity
        """
        value_lower = value.lower()
        for severity in cls:
            if severity.value == value_lower:
                return severity
        raise ValueError(f"Invalid severity: {value}")


class ShadowPermissionType(Enum):
    """Types of shadow permission findings."""

    UNUSED_ACCOUNT = "unused_account"  # No activity past the inactivity threshold
    OLD_ACCESS = "old_access"  # Active access key past the age threshold
    FORGOTTEN_POLICY = "forgotten_policy"  # Inline policy never revisited
    UNUSED_SERVICE = "unused_service"  # Access to services nobody uses
    LEGACY_POLICY = "legacy_policy"  # Deprecated broad managed policy
    EXCESSIVE_PERMISSIONS = "excessive_permissions"  # Too many full-access grants


class FactorCategory(Enum):
    """Categories in the risk factor table."""

    MFA_DISABLED = "mfa_disabled"
    ADMIN_ACCESS = "admin_access"
    POWER_USER_ACCESS = "power_user_access"
    FULL_SERVICE_ACCESS = "full_service_access"
    INLINE_POLICIES = "inline_policies"
    UNUSED_ACCOUNT = "unused_account"
    OLD_ACCESS_KEY = "old_access_key"
    FORGOTTEN_POLICY = "forgotten_policy"
    UNUSED_SERVICE = "unused_service"
    LEGACY_POLICY = "legacy_policy"
    EXCESSIVE_PERMISSIONS = "excessive_permissions"
    SUSPENDED_ACCOUNT = "suspended_account"


class PredictionBasis(Enum):
    """Which timestamp a timeline prediction was projected from."""

    LAST_USED = "last_used"  # Entity's last observed activity
    POLICY_UPDATE = "policy_update"  # Policy's last update (equal to creation)
    CREATED = "created"  # Creation time of the key or entity


def risk_level_for(score: float) -> Severity:
    """
    Map a 0-15 risk score to its discrete risk level.

    low <= 4, medium 5-9, high 10-14, critical >= 15 (saturating).

    Args:
        score: Score on the canonical 0-15 scale

    Returns:
        Risk level
    """
    if score >= 15:
        return Severity.CRITICAL
    if score >= 10:
        return Severity.HIGH
    if score >= 5:
        return Severity.MEDIUM
    return Severity.LOW


def to_dashboard_scale(score: float) -> int:
    """
    Convert a canonical 0-15 score to the 0-100 dashboard scale.

    Args:
        score: Score on the canonical 0-15 scale

    Returns:
        Integer score in [0, 100]
    """
    clamped = max(0.0, min(float(RISK_SCALE_MAX), float(score)))
    return int(round(clamped * DASHBOARD_SCALE_MAX / RISK_SCALE_MAX))


def clamp_score(value: float, low: float = 0, high: float = DASHBOARD_SCALE_MAX) -> float:
    """Clamp a score into [low, high]."""
    return max(low, min(high, value))


@dataclass(frozen=True)
class ShadowPermissionRisk:
    """
    A shadow permission finding for one entity.

    Attributes:
        finding_id: Deterministic identifier (entity, type and item)
        type: Shadow permission type
        severity: Severity (low, medium or high)
        description: Fixed human-readable description for the type
        details: Free text naming the offending policy or key
        entity_name: Entity the finding belongs to
        item: Offending policy name, key id, or "account"
    """

    finding_id: str
    type: ShadowPermissionType
    severity: Severity
    description: str
    details: str
    entity_name: str
    item: str

    def to_dict(self) -> dict[str, Any]:
        """Convert finding to dictionary."""
        return {
            "finding_id": self.finding_id,
            "type": self.type.value,
            "severity": self.severity.value,
            "description": self.description,
            "details": self.details,
            "entity_name": self.entity_name,
            "item": self.item,
        }


@dataclass(frozen=True)
class RiskFactor:
    """
    A weighted contribution to an entity's risk score.

    Attributes:
        category: Factor category from the weight table
        points: Raw weight contributed
        details: Human-readable explanation
    """

    category: FactorCategory
    points: int
    details: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert factor to dictionary."""
        return {
            "category": self.category.value,
            "points": self.points,
            "details": self.details,
        }


@dataclass
class RiskAssessment:
    """
    Risk assessment for a single entity.

    Attributes:
        entity_name: Assessed entity
        entity_type: User or role
        provider: Identity provider
        raw_points: Weighted sum of contributing factors
        score: Canonical score on the 0-15 scale
        factors: Contributing factors
        shadow_permissions: Shadow findings the score was derived from
        recently_active: Whether the entity was active within the
            inactivity threshold at assessment time
    """

    entity_name: str
    entity_type: EntityType
    provider: Provider
    raw_points: int
    score: int
    factors: list[RiskFactor] = field(default_factory=list)
    shadow_permissions: list[ShadowPermissionRisk] = field(default_factory=list)
    recently_active: bool = False

    @property
    def risk_level(self) -> Severity:
        """Discrete risk level derived from the score."""
        return risk_level_for(self.score)

    @property
    def dashboard_score(self) -> int:
        """Score on the 0-100 dashboard scale."""
        return to_dashboard_scale(self.score)

    @property
    def factor_categories(self) -> list[FactorCategory]:
        """Get the categories of contributing factors."""
        return [f.category for f in self.factors]

    def findings_with_severity(self, severity: Severity) -> list[ShadowPermissionRisk]:
        """Get shadow findings of a given severity."""
        return [f for f in self.shadow_permissions if f.severity == severity]

    def to_dict(self) -> dict[str, Any]:
        """Convert assessment to dictionary."""
        return {
            "entity_name": self.entity_name,
            "entity_type": self.entity_type.value,
            "provider": self.provider.value,
            "raw_points": self.raw_points,
            "score": self.score,
            "dashboard_score": self.dashboard_score,
            "risk_level": self.risk_level.value,
            "factors": [f.to_dict() for f in self.factors],
            "shadow_permissions": [s.to_dict() for s in self.shadow_permissions],
            "recently_active": self.recently_active,
        }


@dataclass
class SecurityScoreBreakdown:
    """
    Fleet-wide security score.

    Attributes:
        overall_score: Score in [0, 100], 100 meaning no risk observed
        high_risk_deduction: Points deducted for high severity findings
        medium_risk_deduction: Points deducted for medium severity findings
        user_activity_impact: Signed adjustment for fleet activity
        trend: overall_score - previous_score, None without a previous score
        previous_score: Caller-supplied previous score
        high_findings: Number of high severity findings
        medium_findings: Number of medium severity findings
        total_entities: Number of assessments aggregated
        active_entities: Number of recently active entities
        risk_distribution: Entity count per risk level
        recommendations: Suggested remediation themes
    """

    overall_score: float
    high_risk_deduction: float = 0.0
    medium_risk_deduction: float = 0.0
    user_activity_impact: float = 0.0
    trend: float | None = None
    previous_score: float | None = None
    high_findings: int = 0
    medium_findings: int = 0
    total_entities: int = 0
    active_entities: int = 0
    risk_distribution: dict[str, int] = field(default_factory=dict)
    recommendations: list[str] = field(default_factory=list)

    @property
    def risk_level(self) -> Severity:
        """Fleet risk level (higher score means lower risk)."""
        if self.overall_score >= 80:
            return Severity.LOW
        if self.overall_score >= 60:
            return Severity.MEDIUM
        if self.overall_score >= 40:
            return Severity.HIGH
        return Severity.CRITICAL

    def to_dict(self) -> dict[str, Any]:
        """Convert breakdown to dictionary, omitting an undefined trend."""
        result: dict[str, Any] = {
            "overall_score": self.overall_score,
            "risk_level": self.risk_level.value,
            "high_risk_deduction": self.high_risk_deduction,
            "medium_risk_deduction": self.medium_risk_deduction,
            "user_activity_impact": self.user_activity_impact,
            "high_findings": self.high_findings,
            "medium_findings": self.medium_findings,
            "total_entities": self.total_entities,
            "active_entities": self.active_entities,
            "risk_distribution": self.risk_distribution,
            "recommendations": self.recommendations,
        }
        if self.trend is not None:
            result["trend"] = self.trend
            result["previous_score"] = self.previous_score
        return result


@dataclass(frozen=True)
class ShadowTimelineEvent:
    """
    A predicted future crossing into shadow risk.

    Attributes:
        event_id: Deterministic identifier
        entity_name: Entity the event concerns
        entity_type: User or role
        provider: Identity provider
        event_type: Shadow type that will fire at the estimated date
        item: Policy name, key id, or "account"
        severity: Severity the detector will assign once crossed
        estimated_date: Predicted crossing date (never before prediction time)
        basis: Timestamp the projection was made from
        has_usage_data: False when the projection fell back to creation time
        confidence: Confidence in the estimate (0-100)
        days_until: Whole days from prediction time to the estimated date
        description: Short description
        recommendations: Suggested actions
    """

    event_id: str
    entity_name: str
    entity_type: EntityType
    provider: Provider
    event_type: ShadowPermissionType
    item: str
    severity: Severity
    estimated_date: datetime
    basis: PredictionBasis
    has_usage_data: bool
    confidence: int
    days_until: int
    description: str = ""
    recommendations: tuple[str, ...] = ()

    @property
    def sort_key(self) -> tuple[datetime, int, str, str]:
        """Date ascending, severity descending, then entity and item."""
        return (self.estimated_date, -self.severity.rank, self.entity_name, self.item)

    def __lt__(self, other: "ShadowTimelineEvent") -> bool:
        return self.sort_key < other.sort_key

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary."""
        return {
            "event_id": self.event_id,
            "entity_name": self.entity_name,
            "entity_type": self.entity_type.value,
            "provider": self.provider.value,
            "event_type": self.event_type.value,
            "item": self.item,
            "severity": self.severity.value,
            "estimated_date": self.estimated_date.isoformat(),
            "basis": self.basis.value,
            "has_usage_data": self.has_usage_data,
            "confidence": self.confidence,
            "days_until": self.days_until,
            "description": self.description,
            "recommendations": list(self.recommendations),
        }


@dataclass
class TimelineSummary:
    """
    Summary counts over a projected timeline.

    Attributes:
        total_events: Number of events
        critical_events: Critical severity events
        high_risk_events: High severity events
        medium_risk_events: Medium severity events
        low_risk_events: Low severity events
        next_30_days: Events due within 30 days
        next_90_days: Events due within 90 days
        next_180_days: Events due within 180 days
        events_by_type: Event count per shadow type
    """

    total_events: int = 0
    critical_events: int = 0
    high_risk_events: int = 0
    medium_risk_events: int = 0
    low_risk_events: int = 0
    next_30_days: int = 0
    next_90_days: int = 0
    next_180_days: int = 0
    events_by_type: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert summary to dictionary."""
        return {
            "total_events": self.total_events,
            "critical_events": self.critical_events,
            "high_risk_events": self.high_risk_events,
            "medium_risk_events": self.medium_risk_events,
            "low_risk_events": self.low_risk_events,
            "next_30_days": self.next_30_days,
            "next_90_days": self.next_90_days,
            "next_180_days": self.next_180_days,
            "events_by_type": self.events_by_type,
        }
