"""
Time-to-Shadow prediction for Mantissa Umbra.

Projects when currently healthy permissions will cross the same
thresholds the shadow permission detector applies, producing a sorted
timeline of predicted events.

Projections:
- Account inactivity: last activity + inactivity threshold
- Access key age: key creation + key age threshold
- Policy staleness: unchanged inline policy creation + staleness threshold

Items already flagged by the detector are not projected. When an item
lacks its own timestamp the projection falls back to the entity creation
time, with lower confidence. Only the time-based rules can be projected;
pattern-based findings (legacy, unused service, excessive permissions)
either exist today or do not.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from umbra.config import EngineConfig, TimelineSettings
from umbra.engine.detector import ACCOUNT_ITEM, RULE_SEVERITIES, ShadowPermissionDetector
from umbra.models import (
    Entity,
    PredictionBasis,
    Severity,
    ShadowPermissionRisk,
    ShadowPermissionType,
    ShadowTimelineEvent,
    TimelineSummary,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

SUMMARY_WINDOWS = (30, 90, 180)

_EVENT_TEXT: dict[ShadowPermissionType, tuple[str, tuple[str, ...]]] = {
    ShadowPermissionType.UNUSED_ACCOUNT: (
        "Account will become a shadow risk due to inactivity",
        (
            "Review if the account is still needed",
            "Remove the account if it is no longer used",
            "Confirm the owner still requires its permissions",
        ),
    ),
    ShadowPermissionType.OLD_ACCESS: (
        "Access key will exceed the maximum key age",
        (
            "Rotate the access key",
            "Deactivate the key if it is not in use",
        ),
    ),
    ShadowPermissionType.FORGOTTEN_POLICY: (
        "Inline policy will become a forgotten policy",
        (
            "Review the inline policy and confirm it is still required",
            "Replace the inline policy with a managed policy where possible",
        ),
    ),
}


@dataclass(frozen=True)
class _Anchor:
    """Timestamp a projection starts from."""

    time: datetime
    basis: PredictionBasis
    confidence: int
    has_usage_data: bool = True


class ShadowTimeline:
    """
    A sorted timeline of predicted shadow events.

    Query helpers filter the already-computed events; nothing is
    re-projected.
    """

    def __init__(self, events: Sequence[ShadowTimelineEvent], generated_at: datetime):
        """
        Initialize the timeline.

        Args:
            events: Predicted events (sorted on construction)
            generated_at: Time the prediction was made
        """
        self._events: tuple[ShadowTimelineEvent, ...] = tuple(sorted(events))
        self._generated_at = generated_at

    @property
    def events(self) -> list[ShadowTimelineEvent]:
        """Get all events, sorted ascending by estimated date."""
        return list(self._events)

    @property
    def generated_at(self) -> datetime:
        """Get the time the prediction was made."""
        return self._generated_at

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[ShadowTimelineEvent]:
        return iter(self._events)

    def events_by_severity(self, severity: Severity | str) -> list[ShadowTimelineEvent]:
        """
        Get events of a given severity.

        Args:
            severity: Severity level or its string value

        Returns:
            Matching events in timeline order
        """
        if isinstance(severity, str):
            severity = Severity.from_string(severity)
        return [e for e in self._events if e.severity == severity]

    def events_within_days(self, days: int) -> list[ShadowTimelineEvent]:
        """
        Get events estimated within a number of days of prediction time.

        Args:
            days: Window size in days

        Returns:
            Matching events in timeline order
        """
        cutoff = self._generated_at + timedelta(days=days)
        return [e for e in self._events if e.estimated_date <= cutoff]

    def events_for_entity(self, entity_name: str) -> list[ShadowTimelineEvent]:
        """Get events for one entity."""
        return [e for e in self._events if e.entity_name == entity_name]

    def summary(self) -> TimelineSummary:
        """
        Summarize the timeline.

        Returns:
            Counts by severity, type and upcoming window
        """
        summary = TimelineSummary(total_events=len(self._events))
        summary.critical_events = len(self.events_by_severity(Severity.CRITICAL))
        summary.high_risk_events = len(self.events_by_severity(Severity.HIGH))
        summary.medium_risk_events = len(self.events_by_severity(Severity.MEDIUM))
        summary.low_risk_events = len(self.events_by_severity(Severity.LOW))
        summary.next_30_days, summary.next_90_days, summary.next_180_days = (
            len(self.events_within_days(days)) for days in SUMMARY_WINDOWS
        )
        for event in self._events:
            type_val = event.event_type.value
            summary.events_by_type[type_val] = summary.events_by_type.get(type_val, 0) + 1
        return summary

    def to_dict(self) -> dict[str, Any]:
        """Convert timeline to dictionary."""
        return {
            "generated_at": self._generated_at.isoformat(),
            "summary": self.summary().to_dict(),
            "events": [e.to_dict() for e in self._events],
        }


class TimeToShadowPredictor:
    """
    Predictor for when permissions will become shadow risks.

    Uses the detector's thresholds so a predicted event fires on the same
    terms, with the same severity, as the detector would report it.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        detector: ShadowPermissionDetector | None = None,
    ):
        """
        Initialize the predictor.

        Args:
            config: Engine configuration supplying thresholds and confidences
            detector: Shadow permission detector (built from config if omitted)
        """
        self._config = config or EngineConfig()
        self._detector = detector or ShadowPermissionDetector(self._config)

    @property
    def settings(self) -> TimelineSettings:
        """Get the timeline settings."""
        return self._config.timeline

    def project_timeline(
        self,
        entities: Sequence[Entity],
        now: datetime,
        findings: Sequence[list[ShadowPermissionRisk]] | None = None,
    ) -> ShadowTimeline:
        """
        Project the time-to-shadow timeline for a set of entities.

        Args:
            entities: Entities to project
            now: Prediction time
            findings: Current findings per entity, aligned with entities;
                detected if omitted

        Returns:
            Sorted timeline
        """
        now = parse_timestamp(now)
        events: list[ShadowTimelineEvent] = []

        for index, entity in enumerate(entities):
            current = findings[index] if findings is not None else None
            events.extend(self.project_entity(entity, now, current))

        logger.debug(f"Projected {len(events)} timeline events for {len(entities)} entities")
        return ShadowTimeline(events, now)

    def project_entity(
        self,
        entity: Entity,
        now: datetime,
        findings: list[ShadowPermissionRisk] | None = None,
    ) -> list[ShadowTimelineEvent]:
        """
        Project events for one entity.

        Args:
            entity: Entity to project
            now: Prediction time
            findings: Current findings for the entity; detected if omitted

        Returns:
            Unsorted events for the entity
        """
        now = parse_timestamp(now)
        if findings is None:
            findings = self._detector.detect(entity, now)
        flagged = {(f.type, f.item) for f in findings}
        thresholds = self._detector.thresholds
        settings = self.settings
        events: list[ShadowTimelineEvent] = []
        seen: set[tuple[ShadowPermissionType, str]] = set()

        def add(shadow_type: ShadowPermissionType, item: str, anchor: _Anchor | None,
                threshold_days: int) -> None:
            key = (shadow_type, item)
            if anchor is None or key in flagged or key in seen:
                return
            seen.add(key)
            event = self._build_event(entity, shadow_type, item, anchor, threshold_days, now)
            if event is not None:
                events.append(event)

        if entity.policies and entity.last_used is not None:
            add(
                ShadowPermissionType.UNUSED_ACCOUNT,
                ACCOUNT_ITEM,
                _Anchor(entity.last_used, PredictionBasis.LAST_USED,
                        settings.confidence_last_used),
                thresholds.inactivity_days,
            )

        for key in entity.active_keys:
            anchor = (
                _Anchor(key.created_at, PredictionBasis.CREATED,
                        settings.confidence_key_creation)
                if key.created_at is not None
                else self._fallback_anchor(entity)
            )
            add(ShadowPermissionType.OLD_ACCESS, key.key_id, anchor, thresholds.key_age_days)

        for policy in entity.inline_policies:
            if not policy.is_unchanged:
                continue
            anchor = (
                _Anchor(policy.reference_time, PredictionBasis.POLICY_UPDATE,
                        settings.confidence_policy_update)
                if policy.reference_time is not None
                else self._fallback_anchor(entity)
            )
            add(ShadowPermissionType.FORGOTTEN_POLICY, policy.name, anchor,
                thresholds.policy_staleness_days)

        return events

    def _fallback_anchor(self, entity: Entity) -> _Anchor | None:
        """Anchor on entity creation when an item has no timestamp."""
        if entity.created_at is None:
            return None
        return _Anchor(entity.created_at, PredictionBasis.CREATED,
                       self.settings.confidence_no_usage, has_usage_data=False)

    def _build_event(
        self,
        entity: Entity,
        shadow_type: ShadowPermissionType,
        item: str,
        anchor: _Anchor,
        threshold_days: int,
        now: datetime,
    ) -> ShadowTimelineEvent | None:
        """Build an event, or None if it falls beyond the horizon."""
        estimated = max(anchor.time + timedelta(days=threshold_days), now)
        days_until = (estimated - now).days
        if days_until > self.settings.horizon_days:
            return None

        description, recommendations = _EVENT_TEXT[shadow_type]
        return ShadowTimelineEvent(
            event_id=f"{entity.name}:{shadow_type.value}:{item}:predicted",
            entity_name=entity.name,
            entity_type=entity.entity_type,
            provider=entity.provider,
            event_type=shadow_type,
            item=item,
            severity=RULE_SEVERITIES[shadow_type],
            estimated_date=estimated,
            basis=anchor.basis,
            has_usage_data=anchor.has_usage_data,
            confidence=anchor.confidence,
            days_until=days_until,
            description=description,
            recommendations=recommendations,
        )
