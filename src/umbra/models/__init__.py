"""
Data models for Mantissa Umbra.

This package provides the core data models used throughout Umbra:

- Entity: a normalized user or role with its policies and access keys
- ShadowPermissionRisk: a shadow permission finding for one entity
- RiskAssessment: per-entity score, risk level and contributing factors
- SecurityScoreBreakdown: fleet-wide security score
- ShadowTimelineEvent: predicted future crossing into shadow risk
"""

from umbra.models.entity import (
    AccessKey,
    Entity,
    EntityType,
    KeyStatus,
    Policy,
    PolicyKind,
    Provider,
    parse_bool,
    parse_timestamp,
)
from umbra.models.risk import (
    DASHBOARD_SCALE_MAX,
    RISK_SCALE_MAX,
    FactorCategory,
    PredictionBasis,
    RiskAssessment,
    RiskFactor,
    SecurityScoreBreakdown,
    Severity,
    ShadowPermissionRisk,
    ShadowPermissionType,
    ShadowTimelineEvent,
    TimelineSummary,
    clamp_score,
    risk_level_for,
    to_dashboard_scale,
)

__all__ = [
    # Entity module
    "AccessKey",
    "Entity",
    "EntityType",
    "KeyStatus",
    "Policy",
    "PolicyKind",
    "Provider",
    "parse_bool",
    "parse_timestamp",
    # Risk module
    "DASHBOARD_SCALE_MAX",
    "RISK_SCALE_MAX",
    "FactorCategory",
    "PredictionBasis",
    "RiskAssessment",
    "RiskFactor",
    "SecurityScoreBreakdown",
    "Severity",
    "ShadowPermissionRisk",
    "ShadowPermissionType",
    "ShadowTimelineEvent",
    "TimelineSummary",
    "clamp_score",
    "risk_level_for",
    "to_dashboard_scale",
]
