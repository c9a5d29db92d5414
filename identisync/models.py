"""
In-memory records passed between the pipeline stages.

The store-facing ORM classes live in identisync.database; these are the
plain records built from incoming documents and the aggregate counters
produced by a run.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple

DEFAULT_START_DATE = datetime(1900, 1, 1)
DEFAULT_END_DATE = datetime(2100, 1, 1)

UNAFFILIATED = "Unaffiliated"


def ymd(dt: Optional[datetime]) -> str:
    if dt is None:
        return "(nil)"
    return f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}"


@dataclass
class Affiliation:
    """A time-bounded association between an identity and an organization."""

    organization: str
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    org_id: Optional[int] = None
    project_slug: Optional[str] = None
    uuid: Optional[str] = None

    def key(self) -> Tuple[Optional[int], str, str, Optional[str]]:
        """Canonical representation used when diffing affiliation sets."""
        return (self.org_id, ymd(self.start), ymd(self.end), self.project_slug)

    def __str__(self) -> str:
        return (
            f"{{{self.organization}#{self.org_id} "
            f"{ymd(self.start)}..{ymd(self.end)} slug={self.project_slug}}}"
        )


@dataclass
class ProfileInfo:
    name: str
    is_bot: Optional[bool] = None
    uuid: Optional[str] = None


@dataclass
class IncomingRecord:
    """One identity document as read from an input file."""

    profile: ProfileInfo
    emails: List[str] = field(default_factory=list)
    aliases: Dict[str, List[str]] = field(default_factory=dict)
    affiliations: List[Affiliation] = field(default_factory=list)
    uuid: Optional[str] = None
    position: int = 0

    def describe(self) -> str:
        rols = ",".join(str(a) for a in self.affiliations)
        return (
            f"{{uuid={self.uuid} name={self.profile.name!r} is_bot={self.profile.is_bot} "
            f"emails={self.emails} aliases={self.aliases} affiliations=[{rols}]}}"
        )


@dataclass
class ResolvedIdentity:
    """An incoming record bound to a canonical identity."""

    uuid: str
    record: IncomingRecord

    @classmethod
    def bind(cls, record: IncomingRecord, uuid: str, project_slug: Optional[str]) -> "ResolvedIdentity":
        record.uuid = uuid
        record.profile.uuid = uuid
        for affiliation in record.affiliations:
            affiliation.uuid = uuid
            affiliation.project_slug = project_slug
        return cls(uuid=uuid, record=record)

    @property
    def profile(self) -> ProfileInfo:
        return self.record.profile

    @property
    def affiliations(self) -> List[Affiliation]:
        return self.record.affiliations


@dataclass
class ReconciliationStats:
    identities_found: int = 0
    identities_not_found: int = 0
    profiles_found: int = 0
    profiles_same: int = 0
    aliases_found: int = 0
    aliases_same: int = 0
    affiliations_found: int = 0
    affiliations_same: int = 0
    affiliations_added: int = 0
    affiliations_skipped: int = 0
    affiliations_deleted: int = 0

    def merge(self, other: "ReconciliationStats") -> None:
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))

    def as_dict(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class RunResult:
    stats: ReconciliationStats = field(default_factory=ReconciliationStats)
    resolved: List[Dict[str, ResolvedIdentity]] = field(default_factory=list)
    missing_records: List[IncomingRecord] = field(default_factory=list)
    missing_organizations: Set[str] = field(default_factory=set)
    organizations: int = 0
    dry_run: bool = False
