"""
Engine configuration for Mantissa Umbra.

Holds the static lookup data the engine runs on: risk factor weights,
curated policy name sets, shadow thresholds and fleet scoring units.
Configuration is immutable once built and is passed explicitly into
each component, so alternate thresholds can be used side by side.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from umbra.errors import ConfigurationError
from umbra.models.risk import FactorCategory

logger = logging.getLogger(__name__)


DEFAULT_HIGH_RISK_POLICIES = frozenset({
    "AdministratorAccess",
    "PowerUserAccess",
    "IAMFullAccess",
    "AmazonS3FullAccess",
    "AmazonRDSFullAccess",
    "AmazonEC2FullAccess",
    "AmazonDynamoDBFullAccess",
    "AmazonSQSFullAccess",
    "AmazonSNSFullAccess",
    "AmazonKMSFullAccess",
    "AWSCloudFormationFullAccess",
    "AWSLambdaFullAccess",
    "AmazonAPIGatewayAdministrator",
    "AmazonRoute53FullAccess",
    "AmazonVPCFullAccess",
})

DEFAULT_MEDIUM_RISK_POLICIES = frozenset({
    "ReadOnlyAccess",
    "AmazonS3ReadOnlyAccess",
    "AmazonRDSReadOnlyAccess",
    "AmazonEC2ReadOnlyAccess",
    "AmazonDynamoDBReadOnlyAccess",
    "AmazonSQSReadOnlyAccess",
    "AmazonSNSReadOnlyAccess",
    "AmazonKMSReadOnlyAccess",
    "AWSCloudFormationReadOnlyAccess",
    "AWSLambdaReadOnlyAccess",
    "AmazonAPIGatewayReadOnlyAccess",
    "AmazonRoute53ReadOnlyAccess",
    "AmazonVPCReadOnlyAccess",
})

DEFAULT_LEGACY_POLICIES = frozenset({
    "AWSCloudTrailFullAccess",
    "AmazonS3FullAccess",
    "AmazonEC2FullAccess",
    "AmazonRDSFullAccess",
    "AmazonDynamoDBFullAccess",
    "AmazonSQSFullAccess",
    "AmazonSNSFullAccess",
    "AmazonKMSFullAccess",
    "AWSCloudFormationFullAccess",
    "AWSLambdaFullAccess",
    "AmazonAPIGatewayAdministrator",
    "AmazonRoute53FullAccess",
    "AmazonVPCFullAccess",
})

# Name fragments, matched as substrings of the policy name
DEFAULT_UNUSED_SERVICES = frozenset({
    "AmazonWorkSpaces",
    "AmazonWorkDocs",
    "AmazonWorkMail",
    "AmazonChime",
    "AmazonConnect",
    "AmazonPinpoint",
    "AmazonSageMaker",
    "AmazonRekognition",
    "AmazonComprehend",
    "AmazonTranscribe",
})


@dataclass(frozen=True)
class RiskWeights:
    """
    Weights for each risk factor category.

    Attribute names match FactorCategory values.
    """

    mfa_disabled: int = 1
    admin_access: int = 4
    power_user_access: int = 3
    full_service_access: int = 2
    inline_policies: int = 2
    unused_account: int = 3
    old_access_key: int = 2
    forgotten_policy: int = 3
    unused_service: int = 2
    legacy_policy: int = 2
    excessive_permissions: int = 3
    suspended_account: int = 2

    def __post_init__(self) -> None:
        for f in fields(self):
            if getattr(self, f.name) < 0:
                raise ConfigurationError(f"Risk weight '{f.name}' must not be negative")

    def weight_for(self, category: FactorCategory) -> int:
        """Get the weight for a factor category."""
        return getattr(self, category.value)


@dataclass(frozen=True)
class ShadowThresholds:
    """
    Thresholds for shadow permission detection.

    Attributes:
        inactivity_days: Days without activity before an account is unused
        key_age_days: Age in days before an active access key is old
        policy_staleness_days: Age in days before an unchanged inline
            policy is considered forgotten
        excessive_policy_count: Full-access policies tolerated per entity
    """

    inactivity_days: int = 90
    key_age_days: int = 180
    policy_staleness_days: int = 365
    excessive_policy_count: int = 3

    def __post_init__(self) -> None:
        for f in fields(self):
            if getattr(self, f.name) < 0:
                raise ConfigurationError(f"Threshold '{f.name}' must not be negative")


@dataclass(frozen=True)
class PolicyPatterns:
    """
    Curated policy name sets.

    Attributes:
        high_risk: Administrator, power-user and full-access policy names
        medium_risk: Read-only policy names
        admin: Names treated as administrator access
        power_user: Names treated as power-user access
        legacy: Legacy policy names (exact match)
        unused_services: Service name fragments (substring match)
    """

    high_risk: frozenset[str] = DEFAULT_HIGH_RISK_POLICIES
    medium_risk: frozenset[str] = DEFAULT_MEDIUM_RISK_POLICIES
    admin: frozenset[str] = frozenset({"AdministratorAccess"})
    power_user: frozenset[str] = frozenset({"PowerUserAccess"})
    legacy: frozenset[str] = DEFAULT_LEGACY_POLICIES
    unused_services: frozenset[str] = DEFAULT_UNUSED_SERVICES

    def __post_init__(self) -> None:
        # Lists from config files become frozensets
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, str):
                raise ConfigurationError(f"Pattern set '{f.name}' must be a list of names")
            if not isinstance(value, frozenset):
                object.__setattr__(self, f.name, frozenset(str(v) for v in value))


@dataclass(frozen=True)
class ScoreScale:
    """
    Mapping from raw factor points to the canonical 0-15 scale.

    Attributes:
        points_multiplier: Scale points per raw factor point
    """

    points_multiplier: int = 3

    def __post_init__(self) -> None:
        if self.points_multiplier <= 0:
            raise ConfigurationError("points_multiplier must be positive")


@dataclass(frozen=True)
class FleetScoring:
    """
    Fleet-wide security score parameters.

    Attributes:
        high_deduction_unit: Points deducted per high severity finding
        medium_deduction_unit: Points deducted per medium severity finding
        max_activity_impact: Largest absolute user activity adjustment
    """

    high_deduction_unit: float = 5.0
    medium_deduction_unit: float = 2.0
    max_activity_impact: float = 5.0

    def __post_init__(self) -> None:
        for f in fields(self):
            if getattr(self, f.name) < 0:
                raise ConfigurationError(f"Fleet setting '{f.name}' must not be negative")


@dataclass(frozen=True)
class TimelineSettings:
    """
    Time-to-shadow projection parameters.

    Attributes:
        horizon_days: Events further out than this are not reported
        confidence_last_used: Confidence for projections from last activity
        confidence_policy_update: Confidence for projections from policy dates
        confidence_key_creation: Confidence for key age projections
        confidence_no_usage: Confidence when falling back to entity creation
    """

    horizon_days: int = 365
    confidence_last_used: int = 85
    confidence_policy_update: int = 75
    confidence_key_creation: int = 95
    confidence_no_usage: int = 50

    def __post_init__(self) -> None:
        if self.horizon_days < 0:
            raise ConfigurationError("horizon_days must not be negative")
        for f in fields(self):
            if f.name.startswith("confidence_") and not 0 <= getattr(self, f.name) <= 100:
                raise ConfigurationError(f"'{f.name}' must be between 0 and 100")


_SECTIONS: dict[str, type] = {
    "weights": RiskWeights,
    "thresholds": ShadowThresholds,
    "patterns": PolicyPatterns,
    "scale": ScoreScale,
    "fleet": FleetScoring,
    "timeline": TimelineSettings,
}


def _build_section(section: str, data: dict[str, Any] | None) -> Any:
    """Build one config section, rejecting unknown keys."""
    section_cls = _SECTIONS[section]
    if data is None:
        return section_cls()
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config section '{section}' must be a mapping")

    known = {f.name for f in fields(section_cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown keys in config section '{section}': {', '.join(sorted(unknown))}"
        )
    try:
        return section_cls(**data)
    except TypeError as e:
        raise ConfigurationError(f"Invalid config section '{section}': {e}") from e


def _section_to_dict(section: Any) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for f in fields(section):
        value = getattr(section, f.name)
        result[f.name] = sorted(value) if isinstance(value, frozenset) else value
    return result


@dataclass(frozen=True)
class EngineConfig:
    """
    Complete engine configuration.

    This is the main configuration class that contains all static
    tables and thresholds used by the classifier, detector, scoring
    engine and timeline predictor.
    """

    weights: RiskWeights = field(default_factory=RiskWeights)
    thresholds: ShadowThresholds = field(default_factory=ShadowThresholds)
    patterns: PolicyPatterns = field(default_factory=PolicyPatterns)
    scale: ScoreScale = field(default_factory=ScoreScale)
    fleet: FleetScoring = field(default_factory=FleetScoring)
    timeline: TimelineSettings = field(default_factory=TimelineSettings)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {name: _section_to_dict(getattr(self, name)) for name in _SECTIONS}

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> EngineConfig:
        """
        Create from dictionary.

        Missing sections and keys keep their defaults.

        Raises:
            ConfigurationError: On unknown sections, keys or invalid values
        """
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigurationError("Engine configuration must be a mapping")
        unknown = set(data) - set(_SECTIONS)
        if unknown:
            raise ConfigurationError(
                f"Unknown config sections: {', '.join(sorted(unknown))}"
            )
        return cls(**{name: _build_section(name, data.get(name)) for name in _SECTIONS})

    @classmethod
    def from_file(cls, path: str) -> EngineConfig:
        """
        Load configuration from a JSON or YAML file.

        Raises:
            ConfigurationError: If the file cannot be read or parsed
        """
        path = os.path.expanduser(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.endswith(".json"):
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot parse config file {path}: {e}") from e

        logger.debug(f"Loaded engine configuration from {path}")
        return cls.from_dict(data)

    def save(self, path: str) -> None:
        """Save configuration to a JSON or YAML file."""
        path = os.path.expanduser(path)
        Path(path).parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            if path.endswith(".json"):
                json.dump(self.to_dict(), f, indent=2)
            else:
                yaml.safe_dump(self.to_dict(), f, default_flow_style=False)


def load_config_from_env() -> EngineConfig:
    """
    Load configuration from environment variables.

    Environment variables:
        UMBRA_CONFIG_FILE: Path to configuration file
        UMBRA_INACTIVITY_DAYS: Unused account threshold in days
        UMBRA_KEY_AGE_DAYS: Old access key threshold in days
        UMBRA_POLICY_STALENESS_DAYS: Forgotten policy threshold in days
        UMBRA_EXCESSIVE_POLICY_COUNT: Full-access policies tolerated

    Returns:
        EngineConfig instance
    """
    config_file = os.getenv("UMBRA_CONFIG_FILE")
    if config_file and os.path.exists(config_file):
        return EngineConfig.from_file(config_file)

    env_thresholds = {
        "inactivity_days": "UMBRA_INACTIVITY_DAYS",
        "key_age_days": "UMBRA_KEY_AGE_DAYS",
        "policy_staleness_days": "UMBRA_POLICY_STALENESS_DAYS",
        "excessive_policy_count": "UMBRA_EXCESSIVE_POLICY_COUNT",
    }
    thresholds: dict[str, int] = {}
    for key, env_name in env_thresholds.items():
        value = os.getenv(env_name)
        if value:
            try:
                thresholds[key] = int(value)
            except ValueError as e:
                raise ConfigurationError(f"{env_name} must be an integer, got '{value}'") from e

    return EngineConfig.from_dict({"thresholds": thresholds} if thresholds else {})


def create_default_config() -> EngineConfig:
    """
    Create the default engine configuration.

    Returns:
        EngineConfig with the reference weights and thresholds
    """
    return EngineConfig()
