"""
Shadow Permission Detection for Mantissa Umbra.

Finds access grants that are technically valid but practically stale,
unreviewed or excessive. Each rule is evaluated independently against a
single entity, so one entity can carry several findings.

Rules:
- Unused account: no activity past the inactivity threshold
- Old access key: active key older than the key age threshold
- Forgotten policy: inline policy never updated and past staleness
- Unused service: policy granting access to a rarely used service
- Legacy policy: deprecated broad managed policy
- Excessive permissions: too many full-access policies at once
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from umbra.config import EngineConfig, ShadowThresholds
from umbra.engine.classifier import PolicyClassifier
from umbra.models import (
    Entity,
    Severity,
    ShadowPermissionRisk,
    ShadowPermissionType,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

ACCOUNT_ITEM = "account"

RULE_SEVERITIES: dict[ShadowPermissionType, Severity] = {
    ShadowPermissionType.UNUSED_ACCOUNT: Severity.HIGH,
    ShadowPermissionType.OLD_ACCESS: Severity.MEDIUM,
    ShadowPermissionType.FORGOTTEN_POLICY: Severity.HIGH,
    ShadowPermissionType.UNUSED_SERVICE: Severity.MEDIUM,
    ShadowPermissionType.LEGACY_POLICY: Severity.MEDIUM,
    ShadowPermissionType.EXCESSIVE_PERMISSIONS: Severity.HIGH,
}

RULE_DESCRIPTIONS: dict[ShadowPermissionType, str] = {
    ShadowPermissionType.UNUSED_ACCOUNT: "Unused Account",
    ShadowPermissionType.OLD_ACCESS: "Old Access Key",
    ShadowPermissionType.FORGOTTEN_POLICY: "Forgotten Policy",
    ShadowPermissionType.UNUSED_SERVICE: "Unused Service Access",
    ShadowPermissionType.LEGACY_POLICY: "Legacy Policy",
    ShadowPermissionType.EXCESSIVE_PERMISSIONS: "Excessive Permissions",
}


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days from earlier to later."""
    return (later - earlier).days


class ShadowPermissionDetector:
    """
    Detector for shadow permissions on a single entity.

    Output is deterministic for a given entity and timestamp: findings are
    emitted in rule order, then in the order items appear on the entity,
    with at most one finding per rule and offending item.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        classifier: PolicyClassifier | None = None,
    ):
        """
        Initialize the detector.

        Args:
            config: Engine configuration supplying thresholds
            classifier: Policy classifier (built from config if omitted)
        """
        self._config = config or EngineConfig()
        self._classifier = classifier or PolicyClassifier(self._config)

    @property
    def thresholds(self) -> ShadowThresholds:
        """Get the detection thresholds."""
        return self._config.thresholds

    @property
    def classifier(self) -> PolicyClassifier:
        """Get the policy classifier."""
        return self._classifier

    def detect(self, entity: Entity, now: datetime) -> list[ShadowPermissionRisk]:
        """
        Detect shadow permissions for an entity.

        Args:
            entity: Entity to analyze
            now: Reference time for age calculations

        Returns:
            List of shadow permission findings
        """
        now = parse_timestamp(now)
        findings: list[ShadowPermissionRisk] = []
        seen: set[tuple[ShadowPermissionType, str]] = set()

        def emit(shadow_type: ShadowPermissionType, item: str, details: str) -> None:
            key = (shadow_type, item)
            if key in seen:
                return
            seen.add(key)
            findings.append(self._create_finding(entity, shadow_type, item, details))

        unused_details = self._check_unused_account(entity, now)
        if unused_details:
            emit(ShadowPermissionType.UNUSED_ACCOUNT, ACCOUNT_ITEM, unused_details)

        for key in entity.access_keys:
            if self.is_key_old(key.is_active, key.created_at, now):
                age = days_between(key.created_at, now)
                emit(
                    ShadowPermissionType.OLD_ACCESS,
                    key.key_id,
                    f"Access key {key.key_id} is {age} days old and still active",
                )

        for policy in entity.policies:
            if self.is_policy_forgotten(policy.is_inline, policy.is_unchanged,
                                        policy.reference_time, now):
                age = days_between(policy.reference_time, now)
                emit(
                    ShadowPermissionType.FORGOTTEN_POLICY,
                    policy.name,
                    f"Inline policy {policy.name} has not been reviewed since it "
                    f"was created {age} days ago",
                )

        for shadow_type, details in (
            (
                ShadowPermissionType.UNUSED_SERVICE,
                "Policy {name} grants access to a service that appears to be unused",
            ),
            (
                ShadowPermissionType.LEGACY_POLICY,
                "Policy {name} is a legacy policy that should be reviewed",
            ),
        ):
            for policy in entity.policies:
                if shadow_type in self._classifier.shadow_categories(policy.name):
                    emit(shadow_type, policy.name, details.format(name=policy.name))

        full_access = [
            p.name for p in entity.policies if self._classifier.is_full_access(p.name)
        ]
        if len(full_access) > self.thresholds.excessive_policy_count:
            emit(
                ShadowPermissionType.EXCESSIVE_PERMISSIONS,
                ACCOUNT_ITEM,
                f"Entity holds {len(full_access)} full-access policies "
                f"({', '.join(full_access)}), which may indicate excessive permissions",
            )

        if findings:
            logger.debug(f"Detected {len(findings)} shadow permissions for {entity.name}")
        return findings

    def is_account_unused(self, entity: Entity, now: datetime) -> bool:
        """Check the unused account rule without building a finding."""
        return self._check_unused_account(entity, parse_timestamp(now)) is not None

    def is_recently_active(self, entity: Entity, now: datetime) -> bool:
        """Check if the entity was active within the inactivity threshold."""
        if entity.last_used is None:
            return False
        limit = timedelta(days=self.thresholds.inactivity_days)
        return parse_timestamp(now) - entity.last_used <= limit

    def is_key_old(
        self,
        is_active: bool,
        created_at: datetime | None,
        now: datetime,
    ) -> bool:
        """Check the old access key rule for one key."""
        if not is_active or created_at is None:
            return False
        return now - created_at > timedelta(days=self.thresholds.key_age_days)

    def is_policy_forgotten(
        self,
        is_inline: bool,
        is_unchanged: bool,
        reference_time: datetime | None,
        now: datetime,
    ) -> bool:
        """Check the forgotten policy rule for one policy."""
        if not is_inline or not is_unchanged or reference_time is None:
            return False
        return now - reference_time > timedelta(days=self.thresholds.policy_staleness_days)

    def _check_unused_account(self, entity: Entity, now: datetime) -> str | None:
        """Return finding details if the account is unused, else None."""
        if not entity.policies:
            return None

        if entity.last_used is None:
            if entity.created_at is None:
                return "Account has no recorded activity"
            age = days_between(entity.created_at, now)
            return f"Account has never been used since creation ({age} days ago)"

        idle = days_between(entity.last_used, now)
        if now - entity.last_used > timedelta(days=self.thresholds.inactivity_days):
            return f"Account has not been used for {idle} days"
        return None

    def _create_finding(
        self,
        entity: Entity,
        shadow_type: ShadowPermissionType,
        item: str,
        details: str,
    ) -> ShadowPermissionRisk:
        return ShadowPermissionRisk(
            finding_id=f"{entity.name}:{shadow_type.value}:{item}",
            type=shadow_type,
            severity=RULE_SEVERITIES[shadow_type],
            description=RULE_DESCRIPTIONS[shadow_type],
            details=details,
            entity_name=entity.name,
            item=item,
        )
