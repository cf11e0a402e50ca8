"""
Error types for Mantissa Umbra.

Identity data irregularities (missing timestamps, unknown providers,
empty policy lists) are never errors; they degrade to neutral values
inside the engine. These exceptions are reserved for caller bugs and
unusable inputs.
"""

from __future__ import annotations


class UmbraError(Exception):
    """Base Umbra error."""
    pass


class EntityValidationError(UmbraError):
    """An entity record violates the input contract (e.g. has no name)."""
    pass


class ConfigurationError(UmbraError):
    """Engine configuration is invalid or could not be read."""
    pass


class SnapshotLoadError(UmbraError):
    """An entity snapshot file could not be read or parsed."""
    pass
