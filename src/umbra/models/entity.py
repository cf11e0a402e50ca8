"""
Entity data model for Mantissa Umbra.

This module defines the normalized identity records the engine consumes:
Entity (a user or role), Policy and AccessKey. Provider integrations
build these once per fetch cycle; the engine never mutates them.

Parsing is lenient about identity data. Unknown providers, statuses and
policy kinds map to neutral values and unparsable timestamps become None,
so one bad record cannot abort scoring for a whole fleet. Only an entity
without a name is rejected, since that is a caller bug.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from umbra.errors import EntityValidationError

logger = logging.getLogger(__name__)

# Google Workspace reports "never logged in" as the epoch.
_NEVER_SENTINEL_PREFIX = "1970-01-01"

_TRUE_STRINGS = frozenset({"true", "yes", "y", "1", "on"})


class Provider(Enum):
    """Identity providers an entity can come from."""

    AWS = "aws"
    GOOGLE = "google"
    UNKNOWN = "unknown"

    @classmethod
    def from_string(cls, value: str | None) -> Provider:
        """
        Create Provider from string value.

        Unrecognized values map to UNKNOWN instead of raising.

        Args:
            value: String representation (case-insensitive)

        Returns:
            Matching Provider enum value
        """
        if not value:
            return cls.UNKNOWN
        value_lower = str(value).strip().lower()
        aliases = {
            "gsuite": cls.GOOGLE,
            "google_workspace": cls.GOOGLE,
            "workspace": cls.GOOGLE,
        }
        if value_lower in aliases:
            return aliases[value_lower]
        for provider in cls:
            if provider.value == value_lower:
                return provider
        logger.warning(f"Unknown provider '{value}', treating as unknown")
        return cls.UNKNOWN


class EntityType(Enum):
    """Kinds of identity entity."""

    USER = "user"
    ROLE = "role"

    @classmethod
    def from_string(cls, value: str | None) -> EntityType:
        """Create EntityType from string value, defaulting to USER."""
        if value and str(value).strip().lower() == "role":
            return cls.ROLE
        return cls.USER


class PolicyKind(Enum):
    """How a policy is attached to its entity."""

    INLINE = "inline"
    MANAGED = "managed"

    @classmethod
    def from_string(cls, value: str | None) -> PolicyKind:
        """Create PolicyKind from string value, defaulting to MANAGED."""
        if value and str(value).strip().lower() == "inline":
            return cls.INLINE
        return cls.MANAGED


class KeyStatus(Enum):
    """Access key status."""

    ACTIVE = "active"
    INACTIVE = "inactive"

    @classmethod
    def from_string(cls, value: str | None) -> KeyStatus:
        """Create KeyStatus from string value (AWS reports 'Active')."""
        if value and str(value).strip().lower() == "active":
            return cls.ACTIVE
        return cls.INACTIVE


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse a timestamp from a snapshot value.

    Accepts datetime objects and ISO-8601 strings (with or without a
    trailing 'Z'). Naive values are assumed to be UTC. Empty values, the
    epoch "never" sentinel and unparsable strings all yield None.

    Args:
        value: Raw timestamp value

    Returns:
        Timezone-aware datetime, or None if unavailable
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.startswith(_NEVER_SENTINEL_PREFIX):
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.warning(f"Unparsable timestamp '{value}', treating as missing")
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    if parsed.date().isoformat() == _NEVER_SENTINEL_PREFIX:
        return None
    return parsed


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _first(data: dict[str, Any], *keys: str) -> Any:
    """Return the first present value among snake_case/camelCase keys."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def parse_bool(value: Any) -> bool:
    """
    Parse a boolean flag from a snapshot value.

    Strings such as "false", "no", "0" and "" are False, so flags read
    from CSV exports or hand-written JSON are not inverted.

    Args:
        value: Raw flag value

    Returns:
        Parsed boolean
    """
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _normalize_timestamps(instance: Any, *names: str) -> None:
    """Make timestamp fields of a frozen dataclass timezone-aware."""
    for name in names:
        object.__setattr__(instance, name, parse_timestamp(getattr(instance, name)))


def _parse_entries(
    parse: Callable[[Any], Any], raw: Any, entity_name: str, label: str
) -> tuple[Any, ...]:
    """Parse a list of nested records, skipping malformed entries."""
    if raw is None:
        return ()
    if not isinstance(raw, (list, tuple)):
        logger.warning(
            f"Entity '{entity_name}': expected a list of {label} entries, "
            f"got {type(raw).__name__}; ignoring"
        )
        return ()

    parsed = []
    for entry in raw:
        try:
            parsed.append(parse(entry))
        except EntityValidationError as e:
            logger.warning(f"Entity '{entity_name}': skipping {label} entry: {e}")
    return tuple(parsed)


@dataclass(frozen=True)
class Policy:
    """
    A policy attached to an entity.

    Attributes:
        name: Policy name (exact identifier, e.g. AdministratorAccess)
        kind: Inline or managed attachment
        created_at: When the policy was created
        updated_at: When the policy was last updated
        description: Optional description from the provider
    """

    name: str
    kind: PolicyKind = PolicyKind.MANAGED
    created_at: datetime | None = None
    updated_at: datetime | None = None
    description: str = ""

    def __post_init__(self) -> None:
        _normalize_timestamps(self, "created_at", "updated_at")

    @property
    def is_inline(self) -> bool:
        """Check if the policy is an inline policy."""
        return self.kind == PolicyKind.INLINE

    @property
    def is_unchanged(self) -> bool:
        """Check if the policy was never updated after creation."""
        if self.updated_at is None or self.created_at is None:
            return True
        return self.updated_at == self.created_at

    @property
    def reference_time(self) -> datetime | None:
        """Creation time, or the update time when creation is unknown."""
        return self.created_at or self.updated_at

    def to_dict(self) -> dict[str, Any]:
        """Convert policy to dictionary."""
        return {
            "name": self.name,
            "kind": self.kind.value,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | str) -> Policy:
        """
        Create a Policy from a dictionary.

        A bare string is accepted as a managed policy with that name.

        Args:
            data: Dictionary with policy fields, or a policy name

        Returns:
            New Policy instance
        """
        if isinstance(data, str):
            return cls(name=data)
        if not isinstance(data, dict):
            raise EntityValidationError(
                f"Policy entry must be a name or a mapping, got {type(data).__name__}"
            )
        return cls(
            name=str(_first(data, "name", "policy_name", "policyName") or ""),
            kind=PolicyKind.from_string(_first(data, "kind", "type")),
            created_at=parse_timestamp(_first(data, "created_at", "createDate")),
            updated_at=parse_timestamp(_first(data, "updated_at", "updateDate")),
            description=str(data.get("description") or ""),
        )


@dataclass(frozen=True)
class AccessKey:
    """
    A programmatic access key belonging to an entity.

    Attributes:
        key_id: Access key identifier
        status: Active or inactive
        created_at: When the key was created
        last_used: When the key was last used, if known
    """

    key_id: str
    status: KeyStatus = KeyStatus.ACTIVE
    created_at: datetime | None = None
    last_used: datetime | None = None

    def __post_init__(self) -> None:
        _normalize_timestamps(self, "created_at", "last_used")

    @property
    def is_active(self) -> bool:
        """Check if the key is active."""
        return self.status == KeyStatus.ACTIVE

    def to_dict(self) -> dict[str, Any]:
        """Convert access key to dictionary."""
        return {
            "key_id": self.key_id,
            "status": self.status.value,
            "created_at": _isoformat(self.created_at),
            "last_used": _isoformat(self.last_used),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccessKey:
        """Create an AccessKey from a dictionary."""
        if not isinstance(data, dict):
            raise EntityValidationError(
                f"Access key entry must be a mapping, got {type(data).__name__}"
            )
        return cls(
            key_id=str(_first(data, "key_id", "id", "accessKeyId") or ""),
            status=KeyStatus.from_string(_first(data, "status")),
            created_at=parse_timestamp(_first(data, "created_at", "createDate")),
            last_used=parse_timestamp(_first(data, "last_used", "lastUsed")),
        )


@dataclass(frozen=True)
class Entity:
    """
    A user or role from an identity provider.

    Attributes:
        name: Unique entity name
        provider: Identity provider the entity came from
        entity_type: User or role
        created_at: When the entity was created
        last_used: Most recent login or API activity, if any
        mfa_enabled: Whether MFA (or 2-Step Verification) is enrolled
        is_admin: Provider-level administrator (Google super or delegated admin)
        suspended: Whether the account is suspended at the provider
        policies: Attached and inline policies, in provider order
        access_keys: Programmatic access keys
        metadata: Provider-specific extras carried through untouched
    """

    name: str
    provider: Provider = Provider.AWS
    entity_type: EntityType = EntityType.USER
    created_at: datetime | None = None
    last_used: datetime | None = None
    mfa_enabled: bool = False
    is_admin: bool = False
    suspended: bool = False
    policies: tuple[Policy, ...] = ()
    access_keys: tuple[AccessKey, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise EntityValidationError("Entity must have a non-empty name")
        # Accept lists from callers but store immutable tuples
        if not isinstance(self.policies, tuple):
            object.__setattr__(self, "policies", tuple(self.policies))
        if not isinstance(self.access_keys, tuple):
            object.__setattr__(self, "access_keys", tuple(self.access_keys))
        _normalize_timestamps(self, "created_at", "last_used")

    @property
    def is_role(self) -> bool:
        """Check if the entity is a role."""
        return self.entity_type == EntityType.ROLE

    @property
    def inline_policies(self) -> list[Policy]:
        """Get inline policies."""
        return [p for p in self.policies if p.is_inline]

    @property
    def active_keys(self) -> list[AccessKey]:
        """Get active access keys."""
        return [k for k in self.access_keys if k.is_active]

    def to_dict(self) -> dict[str, Any]:
        """Convert entity to dictionary."""
        return {
            "name": self.name,
            "provider": self.provider.value,
            "entity_type": self.entity_type.value,
            "created_at": _isoformat(self.created_at),
            "last_used": _isoformat(self.last_used),
            "mfa_enabled": self.mfa_enabled,
            "is_admin": self.is_admin,
            "suspended": self.suspended,
            "policies": [p.to_dict() for p in self.policies],
            "access_keys": [k.to_dict() for k in self.access_keys],
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        entity_type: EntityType | None = None,
    ) -> Entity:
        """
        Create an Entity from a dictionary.

        Both the normalized snake_case shape and the camelCase shape
        produced by the provider integrations (userName, roleName,
        createDate, lastUsed, hasMFA, accessKeys, isAdmin, suspended) are
        accepted. Malformed policy and access key entries are skipped with
        a warning.

        Args:
            data: Dictionary with entity fields
            entity_type: Force an entity type (used for "roles" lists)

        Returns:
            New Entity instance

        Raises:
            EntityValidationError: If the record has no name
        """
        if not isinstance(data, dict):
            raise EntityValidationError(
                f"Entity record must be a mapping, got {type(data).__name__}"
            )

        name = _first(data, "name", "userName", "roleName", "primaryEmail")
        if not name:
            raise EntityValidationError("Entity record is missing a name")

        if entity_type is None:
            if "roleName" in data and "userName" not in data:
                entity_type = EntityType.ROLE
            else:
                entity_type = EntityType.from_string(
                    _first(data, "entity_type", "entityType", "type")
                )

        mfa = _first(data, "mfa_enabled", "hasMFA", "isEnrolledIn2Sv")
        is_admin = parse_bool(_first(data, "is_admin", "isAdmin")) or parse_bool(
            _first(data, "isDelegatedAdmin")
        )
        metadata = data.get("metadata")

        return cls(
            name=str(name),
            provider=Provider.from_string(_first(data, "provider")),
            entity_type=entity_type,
            created_at=parse_timestamp(
                _first(data, "created_at", "createDate", "creationTime")
            ),
            last_used=parse_timestamp(
                _first(data, "last_used", "lastUsed", "lastLoginTime")
            ),
            mfa_enabled=parse_bool(mfa),
            is_admin=is_admin,
            suspended=parse_bool(_first(data, "suspended")),
            policies=_parse_entries(
                Policy.from_dict, _first(data, "policies"), str(name), "policy"
            ),
            access_keys=_parse_entries(
                AccessKey.from_dict,
                _first(data, "access_keys", "accessKeys"),
                str(name),
                "access key",
            ),
            metadata=dict(metadata) if isinstance(metadata, dict) else {},
        )
