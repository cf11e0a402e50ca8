"""
Policy classification for Mantissa Umbra.

Tags policy names against the curated lists in the engine configuration.
Risk level and shadow category are looked up independently, so one
policy can be both high risk and legacy.
"""

from __future__ import annotations

from enum import Enum

from umbra.config import EngineConfig, PolicyPatterns
from umbra.models import ShadowPermissionType


class PolicyRisk(Enum):
    """Coarse risk tag for a policy name."""

    HIGH = "high"
    MEDIUM = "medium"
    NONE = "none"


class AccessClass(Enum):
    """Breadth of access a policy grants."""

    ADMIN = "admin"
    POWER_USER = "power_user"
    FULL_SERVICE = "full_service"
    READ_ONLY = "read_only"
    NONE = "none"


class PolicyClassifier:
    """
    Classifier for policy names.

    Matching is exact and case-sensitive against the high and medium risk
    sets and the legacy set. Unused-service entries are name fragments and
    match anywhere in the policy name.
    """

    def __init__(self, config: EngineConfig | None = None):
        """
        Initialize the classifier.

        Args:
            config: Engine configuration supplying the pattern tables
        """
        self._patterns: PolicyPatterns = (config or EngineConfig()).patterns

    @property
    def patterns(self) -> PolicyPatterns:
        """Get the pattern tables in use."""
        return self._patterns

    def classify(self, policy_name: str) -> PolicyRisk:
        """
        Classify a policy name into a coarse risk tag.

        Args:
            policy_name: Exact policy name

        Returns:
            HIGH, MEDIUM or NONE
        """
        if policy_name in self._patterns.high_risk:
            return PolicyRisk.HIGH
        if policy_name in self._patterns.medium_risk:
            return PolicyRisk.MEDIUM
        return PolicyRisk.NONE

    def access_class(self, policy_name: str) -> AccessClass:
        """
        Determine the breadth of access a policy grants.

        Administrator and power-user names take precedence; any other
        high-risk name grants full access to a service.

        Args:
            policy_name: Exact policy name

        Returns:
            Access class
        """
        if policy_name in self._patterns.admin:
            return AccessClass.ADMIN
        if policy_name in self._patterns.power_user:
            return AccessClass.POWER_USER
        risk = self.classify(policy_name)
        if risk == PolicyRisk.HIGH:
            return AccessClass.FULL_SERVICE
        if risk == PolicyRisk.MEDIUM:
            return AccessClass.READ_ONLY
        return AccessClass.NONE

    def is_full_access(self, policy_name: str) -> bool:
        """Check if a policy belongs to the full-access (high risk) class."""
        return self.classify(policy_name) == PolicyRisk.HIGH

    def shadow_categories(self, policy_name: str) -> list[ShadowPermissionType]:
        """
        Get every shadow category a policy name matches.

        Args:
            policy_name: Exact policy name

        Returns:
            Matching categories, legacy first
        """
        categories: list[ShadowPermissionType] = []
        if policy_name in self._patterns.legacy:
            categories.append(ShadowPermissionType.LEGACY_POLICY)
        if policy_name and any(
            fragment in policy_name for fragment in self._patterns.unused_services
        ):
            categories.append(ShadowPermissionType.UNUSED_SERVICE)
        return categories

    def shadow_category(self, policy_name: str) -> ShadowPermissionType | None:
        """
        Get the primary shadow category for a policy name.

        Args:
            policy_name: Exact policy name

        Returns:
            LEGACY_POLICY, UNUSED_SERVICE, or None
        """
        categories = self.shadow_categories(policy_name)
        return categories[0] if categories else None
