"""
Entity snapshot loading for Mantissa Umbra.

Reads JSON or YAML snapshots of identity data into Entity records.
Accepted shapes:

- a list of entity records
- {"entities": [...]}
- {"provider": "aws", "users": [...], "roles": [...]}
- {"providers": {"aws": {"users": [...], "roles": [...]}, "google": [...]}}

Records may use snake_case or the provider integrations' camelCase keys.
Entities from every provider block are concatenated in file order.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from umbra.errors import EntityValidationError, SnapshotLoadError
from umbra.models import Entity, EntityType

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


def load_entities(path: str | Path, strict: bool = False) -> list[Entity]:
    """
    Load entities from a snapshot file.

    Args:
        path: Path to a JSON or YAML snapshot
        strict: Raise on invalid records instead of skipping them

    Returns:
        Entities in file order

    Raises:
        SnapshotLoadError: If the file cannot be read or parsed, or has an
            unsupported structure
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            if path.suffix.lower() in YAML_SUFFIXES:
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except OSError as e:
        raise SnapshotLoadError(f"Cannot read snapshot {path}: {e}") from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise SnapshotLoadError(f"Cannot parse snapshot {path}: {e}") from e

    entities = entities_from_data(data, strict=strict)
    logger.info(f"Loaded {len(entities)} entities from {path}")
    return entities


def entities_from_data(data: Any, strict: bool = False) -> list[Entity]:
    """
    Build entities from already-parsed snapshot data.

    Args:
        data: Parsed snapshot (list or mapping)
        strict: Raise on invalid records instead of skipping them

    Returns:
        Entities in input order

    Raises:
        SnapshotLoadError: If the structure is not a supported shape, or a
            record is invalid in strict mode
    """
    if data is None:
        return []

    if isinstance(data, list):
        return _build(data, None, None, strict)

    if not isinstance(data, dict):
        raise SnapshotLoadError(
            f"Snapshot must be a list or mapping, got {type(data).__name__}"
        )

    if "providers" in data:
        providers = data["providers"]
        if not isinstance(providers, dict):
            raise SnapshotLoadError("'providers' must be a mapping of provider name to data")
        entities: list[Entity] = []
        for provider_name, block in providers.items():
            entities.extend(_from_block(block, str(provider_name), strict))
        return entities

    return _from_block(data, data.get("provider"), strict)


def _from_block(block: Any, provider: str | None, strict: bool) -> list[Entity]:
    """Build entities from one provider block."""
    if isinstance(block, list):
        return _build(block, None, provider, strict)
    if not isinstance(block, dict):
        raise SnapshotLoadError(
            f"Provider block must be a list or mapping, got {type(block).__name__}"
        )

    known = [key for key in ("entities", "users", "roles") if key in block]
    if not known:
        raise SnapshotLoadError(
            "Snapshot mapping must contain 'entities', 'users', 'roles' or 'providers'"
        )

    entities: list[Entity] = []
    for key, entity_type in (
        ("entities", None),
        ("users", EntityType.USER),
        ("roles", EntityType.ROLE),
    ):
        records = block.get(key) or []
        if not isinstance(records, list):
            raise SnapshotLoadError(f"'{key}' must be a list")
        entities.extend(_build(records, entity_type, provider, strict))
    return entities


def _build(
    records: list[Any],
    entity_type: EntityType | None,
    provider: str | None,
    strict: bool,
) -> list[Entity]:
    entities: list[Entity] = []
    for index, record in enumerate(records):
        if provider and isinstance(record, dict) and not record.get("provider"):
            record = {**record, "provider": provider}
        try:
            entities.append(Entity.from_dict(record, entity_type=entity_type))
        except EntityValidationError as e:
            if strict:
                raise SnapshotLoadError(f"Invalid entity record at index {index}: {e}") from e
            logger.warning(f"Skipping invalid entity record at index {index}: {e}")
    return entities
