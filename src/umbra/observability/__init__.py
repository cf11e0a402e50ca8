"""
Observability for Mantissa Umbra.

Provides structured logging for analysis runs.
"""

from umbra.observability.logging import (
    HumanReadableFormatter,
    StructuredFormatter,
    UmbraLogger,
    configure_logging,
    get_logger,
)

__all__ = [
    "HumanReadableFormatter",
    "StructuredFormatter",
    "UmbraLogger",
    "configure_logging",
    "get_logger",
]
