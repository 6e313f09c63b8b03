"""
Log scanning and event parsing.

Walks raw-log roots, streams each log file line by line and yields one
validated event per JSON line, dropping records whose identity has
already been seen during the run.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Set

from loguru import logger

from usage_wrapped.storage.models import RawEvent


@dataclass
class ScanStats:
    """Counters describing one scan, for diagnostics."""
    files_scanned: int = 0
    files_skipped: int = 0
    lines_read: int = 0
    malformed_lines: int = 0
    duplicate_events: int = 0
    events_emitted: int = 0


def list_log_files(root: Path, extension: str = ".jsonl") -> List[Path]:
    """Recursively list log files under root in a stable order.

    Directory symlinks are not followed. Unreadable directories are skipped.
    """
    files = []

    def _on_error(error: OSError) -> None:
        logger.warning("Cannot list {}: {}", error.filename, error.strerror)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        dirnames.sort()
        for name in sorted(filenames):
            if name.endswith(extension):
                files.append(Path(dirpath) / name)
    return files


def iter_json_lines(path: Path, stats: Optional[ScanStats] = None) -> Iterator[object]:
    """Stream one parsed JSON value per non-blank line of a file.

    Malformed lines are skipped. Invalid UTF-8 bytes are replaced rather
    than aborting the read, so a bad byte affects only its own line. A
    file that cannot be opened or read is skipped from the point of
    failure onwards.
    """
    stats = stats if stats is not None else ScanStats()
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            for raw in f:
                line = raw.strip()
                if not line:
                    continue
                stats.lines_read += 1
                try:
                    yield json.loads(line)
                except json.JSONDecodeError:
                    stats.malformed_lines += 1
    except OSError as e:
        stats.files_skipped += 1
        logger.warning("Skipping unreadable log file {}: {}", path, e)


class EventScanner:
    """Yields deduplicated events from raw-log roots.

    The set of seen identity keys lives as long as the scanner, so a
    record repeated in another file, or in an overlapping root, is only
    emitted once. Records without a complete identity are never deduplicated.
    """

    def __init__(self, extension: str = ".jsonl"):
        self.extension = extension
        self.stats = ScanStats()
        self._seen: Set[str] = set()

    def scan_roots(self, roots: Iterable[Path]) -> Iterator[RawEvent]:
        for root in roots:
            if not Path(root).is_dir():
                continue
            for path in list_log_files(Path(root), self.extension):
                yield from self.scan_file(path)

    def scan_file(self, path: Path) -> Iterator[RawEvent]:
        self.stats.files_scanned += 1
        for record in iter_json_lines(path, self.stats):
            event = RawEvent.from_record(record)
            if event is None:
                self.stats.malformed_lines += 1
                continue

            key = event.identity_key
            if key is not None:
                if key in self._seen:
                    self.stats.duplicate_events += 1
                    continue
                self._seen.add(key)

            self.stats.events_emitted += 1
            yield event
