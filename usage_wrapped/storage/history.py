"""
Prompt history reader.

Counts the distinct projects worked on during the requested period.
"""

from pathlib import Path
from typing import Optional, Set

from usage_wrapped.core.context import ReportPeriod, UsageContext
from usage_wrapped.core.scanner import iter_json_lines
from .models import parse_timestamp


def collect_projects(path: Optional[Path], period: ReportPeriod, context: UsageContext) -> Set[str]:
    """Return the distinct project paths seen in the period.

    Each history line carries a `timestamp` (epoch milliseconds or ISO
    string) and a `project`. Lines missing either are ignored, as are
    malformed lines. A missing file yields an empty set.
    """
    projects: Set[str] = set()
    if path is None or not Path(path).is_file():
        return projects

    for entry in iter_json_lines(Path(path)):
        if not isinstance(entry, dict):
            continue
        project = entry.get("project")
        timestamp = parse_timestamp(entry.get("timestamp"))
        if not isinstance(project, str) or not project or timestamp is None:
            continue
        if period.contains(context.local_date(timestamp)):
            projects.add(project)
    return projects
