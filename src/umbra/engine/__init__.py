"""
Shadow permission engine for Mantissa Umbra.

Components:
- PolicyClassifier: tags policy names by risk and shadow category
- ShadowPermissionDetector: finds stale, unreviewed and excessive grants
- RiskScoringEngine: scores entities and aggregates the fleet
- TimeToShadowPredictor: projects when grants will become shadow risks
- ShadowAnalyzer: runs all of the above once over a fleet
"""

from umbra.engine.analyzer import AnalysisResult, ShadowAnalyzer
from umbra.engine.classifier import AccessClass, PolicyClassifier, PolicyRisk
from umbra.engine.detector import (
    ACCOUNT_ITEM,
    RULE_DESCRIPTIONS,
    RULE_SEVERITIES,
    ShadowPermissionDetector,
)
from umbra.engine.scoring import RiskScoringEngine, to_risk_scale
from umbra.engine.timeline import ShadowTimeline, TimeToShadowPredictor
from umbra.models import risk_level_for, to_dashboard_scale

__all__ = [
    # Analyzer
    "AnalysisResult",
    "ShadowAnalyzer",
    # Classifier
    "AccessClass",
    "PolicyClassifier",
    "PolicyRisk",
    # Detector
    "ACCOUNT_ITEM",
    "RULE_DESCRIPTIONS",
    "RULE_SEVERITIES",
    "ShadowPermissionDetector",
    # Scoring
    "RiskScoringEngine",
    "risk_level_for",
    "to_dashboard_scale",
    "to_risk_scale",
    # Timeline
    "ShadowTimeline",
    "TimeToShadowPredictor",
]
