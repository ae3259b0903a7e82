"""Execution transcript collected over one job run."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from src.automation.models import LogEntry, LogLevel
from src.utils.logging import get_logger, level_for


class Transcript:
    """Append-only, emission-ordered list of :class:`LogEntry`.

    Every entry is also mirrored to the process logger so operators see
    the same lines the caller receives.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._entries: list[LogEntry] = []
        self._logger = logger or get_logger("transcript")

    def add(self, level: LogLevel, message: str) -> LogEntry:
        entry = LogEntry(level=level, message=message)
        self._entries.append(entry)
        self._logger.log(level_for(entry.level), message)
        return entry

    def info(self, message: str) -> LogEntry:
        return self.add(LogLevel.INFO, message)

    def success(self, message: str) -> LogEntry:
        return self.add(LogLevel.SUCCESS, message)

    def warn(self, message: str) -> LogEntry:
        return self.add(LogLevel.WARN, message)

    def error(self, message: str) -> LogEntry:
        return self.add(LogLevel.ERROR, message)

    def extend(self, entries: Iterable[LogEntry]) -> None:
        """Merge entries recorded elsewhere (already mirrored, not re-logged)."""
        self._entries.extend(entries)

    @property
    def entries(self) -> list[LogEntry]:
        """Snapshot copy of the entries recorded so far."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
