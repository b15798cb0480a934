"""
Append-only history of every operation tickle attempts.

The log is a single plaintext file shared by every tickle process on the
host. Each line is

    YYYY-MM-DD HH:MM:SS | <command> | <target-label> | SUCCESS|FAILED

All access goes through POSIX advisory locks: appends and truncation take an
exclusive lock, reads a shared one. Each append is one write of one complete
line while the exclusive lock is held, so lines from concurrent processes
never interleave.
"""

import fcntl
import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

from .errors import HistoryWriteFailedError
from .schemas import HistoryEntry, HistoryStatus, OperationOutcome

log = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(moment: Optional[datetime] = None) -> str:
    return (moment or datetime.now()).strftime(TIMESTAMP_FORMAT)


def entry_for_outcome(outcome: OperationOutcome, moment: Optional[datetime] = None) -> HistoryEntry:
    """Builds the history entry recording an attempted operation."""
    return HistoryEntry(
        timestamp=format_timestamp(moment),
        command=outcome.command.value,
        target_label=outcome.target.label,
        status=HistoryStatus.SUCCESS if outcome.succeeded else HistoryStatus.FAILED,
    )


@contextmanager
def locked(handle, operation: int) -> Iterator[None]:
    fcntl.flock(handle.fileno(), operation)
    try:
        yield
    finally:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


class HistoryLog:
    """The on-disk history log."""

    def __init__(self, path: Path):
        self.path = path

    def append(self, entry: HistoryEntry):
        """
        Appends one entry, creating the directory and file if needed.

        Raises:
            HistoryWriteFailedError: the log could not be opened or written.
        """
        data = entry.to_line().encode("utf-8")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "ab") as f:
                with locked(f, fcntl.LOCK_EX):
                    f.write(data)
                    f.flush()
        except OSError as e:
            raise HistoryWriteFailedError(f"Failed to write to history file {self.path}: {e}") from e
        log.debug(f"Logged to history: {entry.to_line().strip()}")

    def read(self, limit: Optional[int] = None) -> List[HistoryEntry]:
        """
        Returns entries oldest-first.

        With a limit, only the most recent `limit` entries are returned, still
        oldest-first. A missing log reads as empty. Undecodable bytes are
        replaced with U+FFFD; lines left malformed by that are skipped.
        """
        if not self.path.exists():
            return []

        with open(self.path, "r", encoding="utf-8", errors="replace") as f:
            with locked(f, fcntl.LOCK_SH):
                lines = f.readlines()

        entries = []
        for line in lines:
            if not line.strip():
                continue
            entry = HistoryEntry.from_line(line)
            if entry is None:
                log.debug(f"Skipping malformed history line: {line.rstrip()}")
                continue
            entries.append(entry)

        if limit is None:
            return entries
        if limit <= 0:
            return []
        return entries[-limit:]

    def clear(self):
        """Truncates the log to empty. Clearing an absent or empty log succeeds."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Append mode creates the file without truncating before the lock is held
            with open(self.path, "ab") as f:
                with locked(f, fcntl.LOCK_EX):
                    f.truncate(0)
        except OSError as e:
            raise HistoryWriteFailedError(f"Failed to clear history file {self.path}: {e}") from e
        log.debug(f"Cleared history file {self.path}")
