"""
Record Preprocessing.

Responsibilities:
- Enforce the mandatory fields of an incoming record.
- Drop "Unaffiliated" enrollments.
- Fill open affiliation date bounds with the 1900-01-01 / 2100-01-01 sentinels.
- Hand the record to the identity resolver.

Non-Responsibilities:
- No YAML decoding (identisync.schema).
- No store writes.

Invariant:
A record failing validation raises before any store lookup is issued for it.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from identisync.errors import MalformedInputError
from identisync.logger import get_logger
from identisync.models import (
    DEFAULT_END_DATE,
    DEFAULT_START_DATE,
    UNAFFILIATED,
    IncomingRecord,
)

from .resolver import IdentityResolver

logger = get_logger()


@dataclass
class PreprocessOutcome:
    record: IncomingRecord
    uuid: Optional[str] = None
    skipped: bool = False

    @property
    def position(self) -> int:
        return self.record.position


def remove_unaffiliated(records: Iterable[IncomingRecord]) -> int:
    """Drop enrollments to the "Unaffiliated" placeholder organization."""
    removed = 0
    for record in records:
        kept = [a for a in record.affiliations if a.organization != UNAFFILIATED]
        if len(kept) != len(record.affiliations):
            removed += len(record.affiliations) - len(kept)
            record.affiliations = kept
            logger.debug("removed Unaffiliated enrollment", name=record.profile.name, left=len(kept))
    return removed


def validate(record: IncomingRecord) -> None:
    if not record.profile.name:
        raise MalformedInputError("profile without name", record.describe())
    for affiliation in record.affiliations:
        if not affiliation.organization:
            raise MalformedInputError("enrollment without organization name", record.describe())


def apply_default_dates(record: IncomingRecord) -> None:
    for affiliation in record.affiliations:
        if affiliation.start is None:
            affiliation.start = DEFAULT_START_DATE
        if affiliation.end is None:
            affiliation.end = DEFAULT_END_DATE


class RecordPreprocessor:
    def __init__(self, resolver: IdentityResolver):
        self.resolver = resolver

    def process(self, record: IncomingRecord) -> PreprocessOutcome:
        validate(record)
        if not record.affiliations:
            return PreprocessOutcome(record=record, skipped=True)
        apply_default_dates(record)
        uuid = self.resolver.resolve(record)
        if uuid is None:
            logger.debug("cannot find identity in the store", record=record.describe())
        else:
            logger.debug("found identity", uuid=uuid, name=record.profile.name)
        return PreprocessOutcome(record=record, uuid=uuid)
