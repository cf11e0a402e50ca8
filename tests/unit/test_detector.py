"""
Unit tests for shadow permission detection.

Tests each detection rule, its thresholds and boundaries, deduplication
and the insufficient-data branches.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from umbra.config import EngineConfig
from umbra.engine import ShadowPermissionDetector
from umbra.models import (
    AccessKey,
    Entity,
    EntityType,
    KeyStatus,
    Policy,
    PolicyKind,
    Severity,
    ShadowPermissionType,
)


@pytest.fixture
def detector() -> ShadowPermissionDetector:
    """Create a detector with default thresholds."""
    return ShadowPermissionDetector()


def types_of(findings) -> list[ShadowPermissionType]:
    return [f.type for f in findings]


class TestUnusedAccount:
    """Tests for the unused account rule."""

    def test_inactive_with_policies(self, detector, dormant_admin, now):
        """Test that 200 days of inactivity is flagged high."""
        findings = detector.detect(dormant_admin, now)
        assert types_of(findings) == [ShadowPermissionType.UNUSED_ACCOUNT]
        assert findings[0].severity == Severity.HIGH
        assert findings[0].item == "account"
        assert "200 days" in findings[0].details

    def test_boundary_not_flagged(self, detector, now):
        """Test that exactly the threshold is not yet unused."""
        entity = Entity(
            name="edge",
            last_used=now - timedelta(days=90),
            policies=(Policy("ReadOnlyAccess"),),
        )
        assert detector.detect(entity, now) == []
        assert detector.is_recently_active(entity, now)

    def test_no_policies_not_flagged(self, detector, now):
        """Test that inactive entities without policies are not flagged."""
        entity = Entity(name="empty", last_used=now - timedelta(days=400))
        assert detector.detect(entity, now) == []

    def test_never_used(self, detector, google_user, now):
        """Test that an entity with policies and no activity is flagged."""
        findings = detector.detect(google_user, now)
        assert types_of(findings) == [ShadowPermissionType.UNUSED_ACCOUNT]
        assert "never been used" in findings[0].details
        assert not detector.is_recently_active(google_user, now)

    def test_never_used_without_creation_time(self, detector, now):
        """Test the no-timestamps branch."""
        entity = Entity(name="ghost", policies=(Policy("ReadOnlyAccess"),))
        assert detector.is_account_unused(entity, now)


class TestOldAccessKey:
    """Tests for the old access key rule."""

    def test_old_active_key(self, detector, old_key_user, now):
        """Test that a 200-day-old active key is flagged medium."""
        findings = detector.detect(old_key_user, now)
        assert types_of(findings) == [ShadowPermissionType.OLD_ACCESS]
        assert findings[0].severity == Severity.MEDIUM
        assert findings[0].item == "AKIAOLDKEY"

    def test_inactive_key_ignored(self, detector, now):
        """Test that inactive keys are never flagged."""
        entity = Entity(
            name="svc",
            last_used=now,
            access_keys=(
                AccessKey("AKIA1", KeyStatus.INACTIVE, created_at=now - timedelta(days=900)),
            ),
        )
        assert detector.detect(entity, now) == []

    def test_key_without_creation_time(self, detector, now):
        """Test that keys without a creation time are skipped."""
        entity = Entity(name="svc", last_used=now, access_keys=(AccessKey("AKIA1"),))
        assert detector.detect(entity, now) == []

    def test_one_finding_per_key(self, detector, now):
        """Test that each old key yields its own finding."""
        old = now - timedelta(days=365)
        entity = Entity(
            name="svc",
            last_used=now,
            access_keys=(AccessKey("AKIA1", created_at=old), AccessKey("AKIA2", created_at=old)),
        )
        findings = detector.detect(entity, now)
        assert [f.item for f in findings] == ["AKIA1", "AKIA2"]


class TestForgottenPolicy:
    """Tests for the forgotten policy rule."""

    def test_unchanged_inline_policy(self, detector, deploy_role, now):
        """Test that an old unchanged inline policy is flagged high."""
        findings = detector.detect(deploy_role, now)
        forgotten = [f for f in findings if f.type == ShadowPermissionType.FORGOTTEN_POLICY]
        assert len(forgotten) == 1
        assert forgotten[0].item == "deploy-inline"
        assert forgotten[0].severity == Severity.HIGH

    def test_updated_inline_policy(self, detector, now):
        """Test that updated inline policies are not forgotten."""
        entity = Entity(
            name="svc",
            last_used=now,
            policies=(
                Policy(
                    "inline",
                    PolicyKind.INLINE,
                    created_at=now - timedelta(days=500),
                    updated_at=now - timedelta(days=10),
                ),
            ),
        )
        assert detector.detect(entity, now) == []

    def test_managed_policy_ignored(self, detector, now):
        """Test that managed policies are never forgotten."""
        entity = Entity(
            name="svc",
            last_used=now,
            policies=(Policy("custom", created_at=now - timedelta(days=900)),),
        )
        assert detector.detect(entity, now) == []

    def test_no_timestamps(self, detector, now):
        """Test that inline policies without timestamps are skipped."""
        entity = Entity(
            name="svc",
            last_used=now,
            policies=(Policy("inline", PolicyKind.INLINE),),
        )
        assert detector.detect(entity, now) == []


class TestPatternRules:
    """Tests for legacy, unused service and excessive permission rules."""

    def test_legacy_policy(self, detector, now):
        """Test that a legacy policy is flagged medium."""
        entity = Entity(name="svc", last_used=now, policies=(Policy("AmazonS3FullAccess"),))
        findings = detector.detect(entity, now)
        assert types_of(findings) == [ShadowPermissionType.LEGACY_POLICY]
        assert findings[0].severity == Severity.MEDIUM

    def test_unused_service(self, detector, now):
        """Test that access to an unused service is flagged."""
        entity = Entity(
            name="svc",
            last_used=now,
            policies=(Policy("AmazonSageMakerFullAccess"),),
        )
        assert types_of(detector.detect(entity, now)) == [ShadowPermissionType.UNUSED_SERVICE]

    def test_duplicate_policy_names(self, detector, now):
        """Test that repeated names yield one finding per rule and item."""
        entity = Entity(
            name="svc",
            last_used=now,
            policies=(Policy("AmazonS3FullAccess"), Policy("AmazonS3FullAccess")),
        )
        assert len(detector.detect(entity, now)) == 1

    def test_excessive_permissions(self, detector, now):
        """Test that more than three full-access policies are excessive."""
        entity = Entity(
            name="svc",
            last_used=now,
            policies=tuple(
                Policy(name)
                for name in ("AdministratorAccess", "PowerUserAccess", "IAMFullAccess",
                             "AmazonKMSFullAccess")
            ),
        )
        findings = detector.detect(entity, now)
        excessive = [f for f in findings if f.type == ShadowPermissionType.EXCESSIVE_PERMISSIONS]
        assert len(excessive) == 1
        assert excessive[0].severity == Severity.HIGH
        assert excessive[0].item == "account"

    def test_three_full_access_not_excessive(self, detector, now):
        """Test the excessive permissions boundary."""
        entity = Entity(
            name="svc",
            last_used=now,
            policies=tuple(
                Policy(name)
                for name in ("AdministratorAccess", "PowerUserAccess", "IAMFullAccess")
            ),
        )
        assert detector.detect(entity, now) == []

    def test_duplicates_count_toward_excessive(self, detector, now):
        """Test that every occurrence counts toward the excessive threshold."""
        entity = Entity(
            name="svc",
            last_used=now,
            policies=tuple(Policy("IAMFullAccess") for _ in range(4)),
        )
        assert types_of(detector.detect(entity, now)) == [
            ShadowPermissionType.EXCESSIVE_PERMISSIONS
        ]


class TestDetectorBehavior:
    """Tests for ordering, determinism and configuration."""

    def test_rule_order(self, detector, now):
        """Test that findings are emitted in rule order."""
        entity = Entity(
            name="messy",
            entity_type=EntityType.ROLE,
            last_used=now - timedelta(days=120),
            policies=(
                Policy("AmazonS3FullAccess"),
                Policy("inline", PolicyKind.INLINE, created_at=now - timedelta(days=400)),
            ),
            access_keys=(AccessKey("AKIA1", created_at=now - timedelta(days=200)),),
        )
        assert types_of(detector.detect(entity, now)) == [
            ShadowPermissionType.UNUSED_ACCOUNT,
            ShadowPermissionType.OLD_ACCESS,
            ShadowPermissionType.FORGOTTEN_POLICY,
            ShadowPermissionType.LEGACY_POLICY,
        ]

    def test_deterministic(self, detector, deploy_role, now):
        """Test identical output for identical input."""
        assert detector.detect(deploy_role, now) == detector.detect(deploy_role, now)

    def test_finding_ids(self, detector, old_key_user, now):
        """Test deterministic finding identifiers."""
        finding = detector.detect(old_key_user, now)[0]
        assert finding.finding_id == "old.key.user:old_access:AKIAOLDKEY"

    def test_custom_thresholds(self, old_key_user, now):
        """Test that configured thresholds are honored."""
        config = EngineConfig.from_dict({"thresholds": {"key_age_days": 365}})
        assert ShadowPermissionDetector(config).detect(old_key_user, now) == []

    def test_clean_user(self, detector, clean_user, now):
        """Test that a clean user has no findings."""
        assert detector.detect(clean_user, now) == []
