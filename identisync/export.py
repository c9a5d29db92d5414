"""
CSV export of the records and organizations a run could not match.
"""

import csv
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Sequence

from .models import DEFAULT_END_DATE, DEFAULT_START_DATE, IncomingRecord, ymd


def time_suffix(now: Optional[datetime] = None) -> str:
    dt = now or datetime.now()
    return dt.strftime("_%Y%m%d%H%M%S") + f"{dt.microsecond * 1000:09d}"


def format_affiliations(record: IncomingRecord) -> str:
    parts = []
    for affiliation in record.affiliations:
        s = affiliation.organization
        if affiliation.start is not None and affiliation.start > DEFAULT_START_DATE:
            s += " from:" + ymd(affiliation.start)
        if affiliation.end is not None and affiliation.end < DEFAULT_END_DATE:
            s += " to:" + ymd(affiliation.end)
        parts.append(s)
    return ",".join(parts)


def format_aliases(record: IncomingRecord) -> str:
    return ",".join(
        f"{source}: [{','.join(usernames)}]"
        for source, usernames in record.aliases.items()
        if usernames
    )


def write_missing_profiles(records: Sequence[IncomingRecord], prefix: str, now: Optional[datetime] = None) -> Path:
    """Write one row per unresolved record; returns the file written."""
    path = Path(prefix + time_suffix(now) + ".csv")
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["Name", "Emails", "Identities", "Enrollments"])
        for record in records:
            writer.writerow([
                record.profile.name,
                ",".join(record.emails),
                format_aliases(record),
                format_affiliations(record),
            ])
    return path


def write_missing_orgs(names: Iterable[str], prefix: str, now: Optional[datetime] = None) -> Path:
    path = Path(prefix + time_suffix(now) + ".csv")
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["Organization Name"])
        for name in sorted(names):
            writer.writerow([name])
    return path
