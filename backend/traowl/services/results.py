"""
Typed gateway results and the exception taxonomy of the data layer.

Read operations produce a ``DataResult`` that records which backend served
the call, so degraded reads can be told apart from genuine failures.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class DataSource(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


class ErrorKind(str, Enum):
    NOT_READY = "not_ready"                  # primary store unavailable, fallback used
    QUERY_FAILED = "query_failed"            # primary query raised, fallback used
    UNKNOWN_COLLECTION = "unknown_collection"
    FILE_ERROR = "file_error"                # flat file missing or malformed


@dataclass(frozen=True)
class DataResult:
    data: Any
    source: DataSource
    error_kind: Optional[ErrorKind] = None
    warning: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.source is DataSource.FALLBACK

    @property
    def ok(self) -> bool:
        return self.error_kind not in (ErrorKind.UNKNOWN_COLLECTION, ErrorKind.FILE_ERROR)


class GatewayError(Exception):
    """Base class for data layer errors."""


class UnknownCollectionError(GatewayError, KeyError):
    def __init__(self, collection: str):
        super().__init__(collection)
        self.collection = collection

    def __str__(self) -> str:
        return f"Unknown collection: {self.collection}"


class FlatFileError(GatewayError):
    """A flat file is unmapped, unreadable or not valid JSON."""


class InvalidTransitionError(GatewayError, ValueError):
    """A booking status change not allowed from the current status."""


class MigrationError(GatewayError):
    """Fatal ingestion failure (primary store unreachable)."""
