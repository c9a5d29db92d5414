"""
Organizations Repository.

Responsibilities:
- Dump the organization table.
- Evaluate a name against an alias pattern with the store's REGEXP operator.

Non-Responsibilities:
- No caching; the canonicalizer owns the in-memory index.
"""

from typing import List, Tuple

from sqlalchemy import literal, select

from identisync.database import Organization

from .base import Repository, store_call


class OrganizationRepository(Repository):

    @store_call("all_organizations")
    def all_organizations(self) -> List[Tuple[int, str]]:
        with self._session() as session:
            return [(row.id, row.name) for row in session.query(Organization.id, Organization.name).all()]

    @store_call("matches_pattern")
    def matches_pattern(self, value: str, pattern: str) -> bool:
        """True when ``value REGEXP pattern`` yields a positive match."""
        with self._session() as session:
            m = session.execute(select(literal(value).regexp_match(pattern))).scalar()
            return bool(m) and int(m) > 0

    @store_call("add_organization")
    def add(self, name: str) -> int:
        with self._session() as session:
            org = Organization(name=name)
            session.add(org)
            session.flush()
            return org.id
