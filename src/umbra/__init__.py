"""
Mantissa Umbra - Shadow permission risk engine.

Detects, scores and forecasts shadow permissions across identity
providers: access grants that are technically valid but unused,
unreviewed or excessive.

Quick Start:
    >>> from umbra import ShadowAnalyzer, load_entities
    >>>
    >>> entities = load_entities("snapshot.json")
    >>> result = ShadowAnalyzer().analyze(entities)
    >>> print(f"Security score: {result.breakdown.overall_score}")
"""

from __future__ import annotations

__version__ = "0.1.0"
__author__ = "Mantissa"

from umbra.config import EngineConfig, create_default_config, load_config_from_env
from umbra.engine import (
    AnalysisResult,
    PolicyClassifier,
    RiskScoringEngine,
    ShadowAnalyzer,
    ShadowPermissionDetector,
    ShadowTimeline,
    TimeToShadowPredictor,
)
from umbra.errors import (
    ConfigurationError,
    EntityValidationError,
    SnapshotLoadError,
    UmbraError,
)
from umbra.loader import entities_from_data, load_entities
from umbra.models import AccessKey, Entity, EntityType, Policy, PolicyKind, Provider

__all__ = [
    "__version__",
    # Config
    "EngineConfig",
    "create_default_config",
    "load_config_from_env",
    # Engine
    "AnalysisResult",
    "PolicyClassifier",
    "RiskScoringEngine",
    "ShadowAnalyzer",
    "ShadowPermissionDetector",
    "ShadowTimeline",
    "TimeToShadowPredictor",
    # Errors
    "ConfigurationError",
    "EntityValidationError",
    "SnapshotLoadError",
    "UmbraError",
    # Loader
    "entities_from_data",
    "load_entities",
    # Models
    "AccessKey",
    "Entity",
    "EntityType",
    "Policy",
    "PolicyKind",
    "Provider",
]
