"""Run-scoped cache for derived values.

Values such as package descriptors, aliases and externals are pure
functions of an identifier. They are computed on first access and kept
for the rest of the run; nothing is ever invalidated.

Entries are addressed by a SHA-256 over the canonical JSON of the
namespace and key, so structured keys (tuples, lists) are accepted.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")


def compute_entry_key(namespace: str, key: Any) -> str:
    """Compute the content address of a cache entry.

    Args:
        namespace: Kind of value being cached (e.g. "descriptor").
        key: JSON-serializable input identifier.

    Returns:
        Key as hex string (sha256:...).
    """
    canonical_json = json.dumps(
        [namespace, key],
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    digest = hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()
    return f"sha256:{digest}"


class DerivedCache:
    """Mapping of content-addressed keys to computed values."""

    def __init__(self) -> None:
        self._entries: dict[str, Any] = {}
        self.hits = 0
        self.misses = 0

    def get_or_compute(
        self,
        namespace: str,
        key: Any,
        compute: Callable[[], T],
    ) -> T:
        """Return the cached value, computing and storing it on first access.

        Exceptions raised by ``compute`` propagate and nothing is stored.
        """
        entry_key = compute_entry_key(namespace, key)
        if entry_key in self._entries:
            self.hits += 1
            return self._entries[entry_key]
        self.misses += 1
        value = compute()
        self._entries[entry_key] = value
        return value

    def __contains__(self, item: tuple[str, Any]) -> bool:
        namespace, key = item
        return compute_entry_key(namespace, key) in self._entries

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["DerivedCache", "compute_entry_key"]
