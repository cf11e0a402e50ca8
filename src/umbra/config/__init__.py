"""
Configuration management for Mantissa Umbra.

Provides the immutable engine configuration (weights, policy name sets,
thresholds) and helpers to load it from files or the environment.
"""

from umbra.config.engine_config import (
    DEFAULT_HIGH_RISK_POLICIES,
    DEFAULT_LEGACY_POLICIES,
    DEFAULT_MEDIUM_RISK_POLICIES,
    DEFAULT_UNUSED_SERVICES,
    EngineConfig,
    FleetScoring,
    PolicyPatterns,
    RiskWeights,
    ScoreScale,
    ShadowThresholds,
    TimelineSettings,
    create_default_config,
    load_config_from_env,
)

__all__ = [
    "DEFAULT_HIGH_RISK_POLICIES",
    "DEFAULT_LEGACY_POLICIES",
    "DEFAULT_MEDIUM_RISK_POLICIES",
    "DEFAULT_UNUSED_SERVICES",
    "EngineConfig",
    "FleetScoring",
    "PolicyPatterns",
    "RiskWeights",
    "ScoreScale",
    "ShadowThresholds",
    "TimelineSettings",
    "create_default_config",
    "load_config_from_env",
]
