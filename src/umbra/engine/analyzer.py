"""
Analysis pipeline for Mantissa Umbra.

Runs the engine once over a fleet of entities: detect shadow permissions,
score each entity once, aggregate the fleet and its groupings over the
same assessment instances, and optionally project the timeline.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from umbra.config import EngineConfig
from umbra.engine.classifier import PolicyClassifier
from umbra.engine.detector import ShadowPermissionDetector
from umbra.engine.scoring import RiskScoringEngine
from umbra.engine.timeline import ShadowTimeline, TimeToShadowPredictor
from umbra.models import (
    Entity,
    RiskAssessment,
    SecurityScoreBreakdown,
    Severity,
    ShadowPermissionRisk,
    ShadowPermissionType,
    parse_timestamp,
)
from umbra.observability import get_logger


@dataclass
class AnalysisResult:
    """
    Result of one analysis run.

    Attributes:
        analysis_id: Unique identifier for the run
        now: Reference time the analysis was evaluated at
        started_at: Wall-clock start of the run
        completed_at: Wall-clock completion of the run
        assessments: Per-entity assessments, in input order
        breakdown: Fleet security score
        by_entity_type: Group summaries keyed by entity type
        by_provider: Group summaries keyed by provider
        timeline: Projected timeline, if requested
    """

    analysis_id: str
    now: datetime
    started_at: datetime
    completed_at: datetime | None = None
    assessments: list[RiskAssessment] = field(default_factory=list)
    breakdown: SecurityScoreBreakdown = field(
        default_factory=lambda: SecurityScoreBreakdown(overall_score=100.0)
    )
    by_entity_type: dict[str, dict[str, Any]] = field(default_factory=dict)
    by_provider: dict[str, dict[str, Any]] = field(default_factory=dict)
    timeline: ShadowTimeline | None = None

    @property
    def entities_analyzed(self) -> int:
        """Get the number of entities analyzed."""
        return len(self.assessments)

    @property
    def findings(self) -> list[ShadowPermissionRisk]:
        """Get all shadow findings, flattened in entity order."""
        return [f for a in self.assessments for f in a.shadow_permissions]

    @property
    def findings_by_type(self) -> dict[str, int]:
        """Count findings per shadow type."""
        counts = {t.value: 0 for t in ShadowPermissionType}
        for finding in self.findings:
            counts[finding.type.value] += 1
        return counts

    @property
    def findings_by_severity(self) -> dict[str, int]:
        """Count findings per severity."""
        counts = {s.value: 0 for s in Severity}
        for finding in self.findings:
            counts[finding.severity.value] += 1
        return counts

    @property
    def duration_seconds(self) -> float:
        """Get the run duration in seconds."""
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    def assessments_at_level(self, level: Severity) -> list[RiskAssessment]:
        """Get assessments with a given risk level."""
        return [a for a in self.assessments if a.risk_level == level]

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary."""
        result: dict[str, Any] = {
            "analysis_id": self.analysis_id,
            "now": self.now.isoformat(),
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "entities_analyzed": self.entities_analyzed,
            "security_score": self.breakdown.to_dict(),
            "findings_by_type": self.findings_by_type,
            "findings_by_severity": self.findings_by_severity,
            "by_entity_type": self.by_entity_type,
            "by_provider": self.by_provider,
            "assessments": [a.to_dict() for a in self.assessments],
        }
        if self.timeline is not None:
            result["timeline"] = self.timeline.to_dict()
        return result


class ShadowAnalyzer:
    """
    Runs the full shadow permission analysis over a set of entities.

    All components share one immutable configuration, so detection,
    scoring and prediction agree on thresholds.
    """

    def __init__(self, config: EngineConfig | None = None):
        """
        Initialize the analyzer.

        Args:
            config: Engine configuration (defaults if omitted)
        """
        self._config = config or EngineConfig()
        self._classifier = PolicyClassifier(self._config)
        self._detector = ShadowPermissionDetector(self._config, self._classifier)
        self._scorer = RiskScoringEngine(self._config, self._detector)
        self._predictor = TimeToShadowPredictor(self._config, self._detector)

    @property
    def config(self) -> EngineConfig:
        """Get the engine configuration."""
        return self._config

    @property
    def detector(self) -> ShadowPermissionDetector:
        """Get the shadow permission detector."""
        return self._detector

    @property
    def scorer(self) -> RiskScoringEngine:
        """Get the risk scoring engine."""
        return self._scorer

    @property
    def predictor(self) -> TimeToShadowPredictor:
        """Get the time-to-shadow predictor."""
        return self._predictor

    def analyze(
        self,
        entities: Sequence[Entity],
        now: datetime | str | None = None,
        previous_score: float | None = None,
        include_timeline: bool = True,
    ) -> AnalysisResult:
        """
        Analyze a fleet of entities.

        Args:
            entities: Entities to analyze
            now: Reference time (current UTC time if omitted)
            previous_score: Previous overall score for trend calculation
            include_timeline: Whether to project the time-to-shadow timeline

        Returns:
            Analysis result
        """
        reference = parse_timestamp(now) if now is not None else None
        if reference is None:
            reference = datetime.now(timezone.utc)

        result = AnalysisResult(
            analysis_id=f"shadow-{uuid.uuid4().hex[:12]}",
            now=reference,
            started_at=datetime.now(timezone.utc),
        )
        run_logger = get_logger(__name__)
        run_logger.set_context(analysis_id=result.analysis_id)
        run_logger.analysis_started(result.analysis_id, len(entities))
        start = time.monotonic()

        try:
            findings = [self._detector.detect(entity, reference) for entity in entities]
            for entity_findings in findings:
                for finding in entity_findings:
                    run_logger.finding_detected(
                        finding.finding_id,
                        finding.severity.value,
                        finding.type.value,
                        finding.entity_name,
                    )

            result.assessments = [
                self._scorer.score(entity, reference, entity_findings)
                for entity, entity_findings in zip(entities, findings)
            ]
            result.breakdown = self._scorer.aggregate(result.assessments, previous_score)
            result.by_entity_type = self._scorer.summarize_by(result.assessments, "entity_type")
            result.by_provider = self._scorer.summarize_by(result.assessments, "provider")

            if include_timeline:
                result.timeline = self._predictor.project_timeline(
                    entities, reference, findings
                )
        except Exception as e:
            run_logger.analysis_failed(result.analysis_id, str(e))
            raise

        result.completed_at = datetime.now(timezone.utc)
        run_logger.analysis_completed(
            result.analysis_id,
            entity_count=result.entities_analyzed,
            finding_count=len(result.findings),
            overall_score=result.breakdown.overall_score,
            duration_seconds=round(time.monotonic() - start, 3),
        )
        return result
