"""
Flat-file store -- the read-only fallback path.

Each collection maps to one JSON export under the configured data
directory. Parsed documents are memoized in the ``ResponseCache`` so a
request does not re-parse the file while the entry is fresh.
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Optional
import json
import logging

from traowl.core.cache import ResponseCache
from traowl.services.results import FlatFileError

logger = logging.getLogger(__name__)


def find_records(document: Any, array_key: Optional[str] = None, default: Any = None) -> Any:
    """
    Locate the main records array of a legacy export.

    With an ``array_key`` only that property counts: ``default`` comes back
    when it is missing or not a list. Without one, the first list-valued
    property is used, which is ambiguous when a document has several.
    A bare top-level list is returned as is.
    """
    if isinstance(document, list):
        return document
    if not isinstance(document, dict):
        return default
    if array_key is not None:
        records = document.get(array_key)
        return records if isinstance(records, list) else default
    for value in document.values():
        if isinstance(value, list):
            return value
    return default


class JsonFileStore:
    """Reads and caches the legacy JSON exports."""

    def __init__(self, data_dir: str | Path, cache: Optional[ResponseCache] = None):
        self.data_dir = Path(data_dir)
        self.cache = cache if cache is not None else ResponseCache()

    def path_for(self, file_name: str) -> Path:
        return self.data_dir / file_name

    @property
    def available(self) -> bool:
        return self.data_dir.is_dir()

    def _parse(self, file_name: str) -> Any:
        path = self.path_for(file_name)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError as e:
            raise FlatFileError(f"{file_name} not found in {self.data_dir}") from e
        except json.JSONDecodeError as e:
            raise FlatFileError(f"{file_name} is not valid JSON: {e}") from e
        except OSError as e:
            raise FlatFileError(f"Error reading {file_name}: {e}") from e

    def load(self, file_name: str) -> Any:
        """Parsed document for ``file_name``, served from cache while fresh."""
        return self.cache.get_or_set(f"json_{file_name}", lambda: self._parse(file_name))

    def invalidate(self, file_name: str) -> None:
        self.cache.invalidate(f"json_{file_name}")
