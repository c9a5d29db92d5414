"""
Identity Lookup Cascade.

Responsibilities:
- Define the ordered lookup strategies used to bind a record to a uuid.
- Enumerate the lookup keys each strategy derives from a record.

Non-Responsibilities:
- No decision logic; the resolver stops at the first unique match.
- No persistence.

Invariant:
Coarse keys (profile name) come first, the most specific combination
(name + alias + email) last.
"""

from dataclasses import dataclass
from typing import Callable, Iterator, List, Tuple

from identisync.models import IncomingRecord
from storage.repositories.identities import IdentityRepository

Key = Tuple[str, ...]


@dataclass(frozen=True)
class LookupStrategy:
    name: str
    keys: Callable[[IncomingRecord], Iterator[Key]]
    lookup: Callable[[IdentityRepository, Key], List[str]]


def _alias_pairs(record: IncomingRecord) -> Iterator[Tuple[str, str]]:
    for source, usernames in record.aliases.items():
        for username in usernames:
            yield source, username


def _alias_email_triples(record: IncomingRecord) -> Iterator[Tuple[str, str, str]]:
    for source, usernames in record.aliases.items():
        for email in record.emails:
            for username in usernames:
                yield source, username, email


def _by_name(record):
    yield (record.profile.name,)


def _by_source_username(record):
    yield from _alias_pairs(record)


def _by_email(record):
    for email in record.emails:
        yield (email,)


def _by_name_source_username(record):
    for source, username in _alias_pairs(record):
        yield record.profile.name, source, username


def _by_name_email(record):
    for email in record.emails:
        yield record.profile.name, email


def _by_source_username_email(record):
    yield from _alias_email_triples(record)


def _by_name_source_username_email(record):
    for source, username, email in _alias_email_triples(record):
        yield record.profile.name, source, username, email


CASCADE: Tuple[LookupStrategy, ...] = (
    LookupStrategy("name", _by_name, lambda repo, k: repo.uuids_by_name(*k)),
    LookupStrategy("source/username", _by_source_username, lambda repo, k: repo.uuids_by_source_username(*k)),
    LookupStrategy("email", _by_email, lambda repo, k: repo.uuids_by_email(*k)),
    LookupStrategy(
        "name/source/username", _by_name_source_username, lambda repo, k: repo.uuids_by_name_source_username(*k)
    ),
    LookupStrategy("name/email", _by_name_email, lambda repo, k: repo.uuids_by_name_email(*k)),
    LookupStrategy(
        "source/username/email", _by_source_username_email, lambda repo, k: repo.uuids_by_source_username_email(*k)
    ),
    LookupStrategy(
        "name/source/username/email",
        _by_name_source_username_email,
        lambda repo, k: repo.uuids_by_name_source_username_email(*k),
    ),
)
