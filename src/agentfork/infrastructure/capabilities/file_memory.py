"""
File Memory

Session-scoped record of the files an agent has read or modified. Each
entry keeps the SHA-256 of the content the agent last saw, so a later edit
can tell whether the file changed underneath it, and caches read summaries
per prompt until the content changes.

Usage:
    memory = FileMemory()
    memory.record(path, hash_content(text))
    if memory.has_changed(path, hash_content(current)):
        ...
"""

from __future__ import annotations

import hashlib
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field

MAX_TRACKED_FILES = 100
MAX_SUMMARIES_PER_FILE = 10


def hash_content(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


@dataclass
class FileMemoryEntry:
    content_hash: str
    last_accessed: float
    summaries: OrderedDict[str, str] = field(default_factory=OrderedDict)


class FileMemory:
    """
    Per-session memory of file contents seen by one agent.

    At most ``max_files`` files are tracked; the least recently accessed
    entry is evicted first. Summaries are dropped whenever a file is
    recorded with a different hash.
    """

    def __init__(
        self,
        max_files: int = MAX_TRACKED_FILES,
        max_summaries_per_file: int = MAX_SUMMARIES_PER_FILE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: dict[str, FileMemoryEntry] = {}
        self._max_files = max_files
        self._max_summaries = max_summaries_per_file
        self._clock = clock

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, path: str, content_hash: str) -> None:
        """Remember that the agent has seen ``path`` with this content."""
        entry = self._entries.get(path)
        if entry is None:
            self._evict_if_full()
            self._entries[path] = FileMemoryEntry(content_hash, self._clock())
            return
        if entry.content_hash != content_hash:
            entry.content_hash = content_hash
            entry.summaries.clear()
        entry.last_accessed = self._clock()

    def has_changed(self, path: str, content_hash: str) -> bool:
        """True when ``path`` was seen with different content. Unknown files count as unchanged."""
        entry = self._entries.get(path)
        return entry is not None and entry.content_hash != content_hash

    def cached_summary(self, path: str, prompt: str, content_hash: str) -> str | None:
        entry = self._entries.get(path)
        if entry is None or entry.content_hash != content_hash:
            return None
        entry.last_accessed = self._clock()
        return entry.summaries.get(prompt)

    def cache_summary(self, path: str, prompt: str, content_hash: str, summary: str) -> None:
        self.record(path, content_hash)
        summaries = self._entries[path].summaries
        summaries[prompt] = summary
        summaries.move_to_end(prompt)
        while len(summaries) > self._max_summaries:
            summaries.popitem(last=False)

    def _evict_if_full(self) -> None:
        if len(self._entries) < self._max_files:
            return
        oldest = min(self._entries, key=lambda path: self._entries[path].last_accessed)
        del self._entries[oldest]
