"""
Pytest configuration and fixtures for Mantissa Umbra tests.

This module provides common fixtures used across the unit tests. All
tests evaluate against a fixed reference time so results are stable.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from umbra.config import EngineConfig
from umbra.models import (
    AccessKey,
    Entity,
    EntityType,
    KeyStatus,
    Policy,
    PolicyKind,
    Provider,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def days_ago(days: int) -> datetime:
    """Return the reference time shifted back by a number of days."""
    return NOW - timedelta(days=days)


# Configuration fixtures


@pytest.fixture
def now() -> datetime:
    """Return the fixed reference time."""
    return NOW


@pytest.fixture
def config() -> EngineConfig:
    """Return the default engine configuration."""
    return EngineConfig()


# Entity fixtures


@pytest.fixture
def clean_user() -> Entity:
    """Return a user with MFA, no policies and recent activity."""
    return Entity(
        name="clean.user",
        provider=Provider.AWS,
        created_at=days_ago(30),
        last_used=days_ago(1),
        mfa_enabled=True,
    )


@pytest.fixture
def dormant_admin() -> Entity:
    """Return an AWS user unused for 200 days with admin access and no MFA."""
    return Entity(
        name="dormant.admin",
        provider=Provider.AWS,
        created_at=days_ago(400),
        last_used=days_ago(200),
        mfa_enabled=False,
        policies=(Policy("AdministratorAccess"),),
    )


@pytest.fixture
def old_key_user() -> Entity:
    """Return an otherwise clean user with a 200-day-old active key."""
    return Entity(
        name="old.key.user",
        provider=Provider.AWS,
        created_at=days_ago(300),
        last_used=days_ago(2),
        mfa_enabled=True,
        access_keys=(
            AccessKey("AKIAOLDKEY", KeyStatus.ACTIVE, created_at=days_ago(200)),
        ),
    )


@pytest.fixture
def deploy_role() -> Entity:
    """Return a role with a stale inline policy and broad access."""
    return Entity(
        name="deploy-role",
        provider=Provider.AWS,
        entity_type=EntityType.ROLE,
        created_at=days_ago(500),
        last_used=days_ago(10),
        policies=(
            Policy("IAMFullAccess"),
            Policy(
                "deploy-inline",
                PolicyKind.INLINE,
                created_at=days_ago(400),
                updated_at=days_ago(400),
            ),
        ),
    )


@pytest.fixture
def google_user() -> Entity:
    """Return a Google Workspace user that has never logged in."""
    return Entity(
        name="intern@example.com",
        provider=Provider.GOOGLE,
        created_at=days_ago(60),
        last_used=None,
        mfa_enabled=False,
        policies=(Policy("ReadOnlyAccess"),),
    )


@pytest.fixture
def fleet(clean_user, dormant_admin, old_key_user, deploy_role, google_user) -> list[Entity]:
    """Return a small mixed fleet."""
    return [clean_user, dormant_admin, old_key_user, deploy_role, google_user]


# Snapshot fixtures


@pytest.fixture
def snapshot_data() -> dict[str, Any]:
    """Return a raw snapshot in the provider integrations' camelCase shape."""
    return {
        "providers": {
            "aws": {
                "users": [
                    {
                        "userName": "alice",
                        "createDate": "2024-01-10T00:00:00Z",
                        "lastUsed": "2024-11-01T00:00:00Z",
                        "hasMFA": False,
                        "policies": [{"name": "AdministratorAccess", "kind": "managed"}],
                        "accessKeys": [
                            {
                                "accessKeyId": "AKIAALICE",
                                "status": "Active",
                                "createDate": "2024-01-10T00:00:00Z",
                            }
                        ],
                    },
                    {
                        "userName": "bob",
                        "createDate": "2025-01-01T00:00:00Z",
                        "lastUsed": "2025-05-30T00:00:00Z",
                        "hasMFA": True,
                        "policies": ["ReadOnlyAccess"],
                    },
                ],
                "roles": [
                    {
                        "roleName": "ci-role",
                        "createDate": "2024-03-01T00:00:00Z",
                        "lastUsed": "2025-05-20T00:00:00Z",
                        "policies": [
                            {
                                "name": "ci-inline",
                                "kind": "inline",
                                "createDate": "2025-03-01T00:00:00Z",
                            }
                        ],
                    }
                ],
            },
            "google": {
                "users": [
                    {
                        "primaryEmail": "carol@example.com",
                        "creationTime": "2025-02-01T00:00:00Z",
                        "lastLoginTime": "1970-01-01T00:00:00.000Z",
                        "isEnrolledIn2Sv": True,
                    }
                ]
            },
        }
    }


@pytest.fixture
def snapshot_file(tmp_path: Path, snapshot_data: dict[str, Any]) -> Path:
    """Write the sample snapshot to a JSON file."""
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(snapshot_data), encoding="utf-8")
    return path
