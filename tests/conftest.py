"""
Pytest configuration and shared fixtures.
"""

import pytest
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from identisync.database import (
    Enrollment,
    Identity,
    Organization,
    Profile,
    UniqueIdentity,
    get_engine,
    get_session_factory,
    init_database,
    session_scope,
)
from identisync.models import Affiliation, IncomingRecord, ProfileInfo


@pytest.fixture
def db_path(tmp_path) -> Path:
    """Create an empty identity store."""
    path = tmp_path / "identities.db"
    init_database(path)
    return path


@pytest.fixture
def session_factory(db_path):
    """Session factory bound to the temporary store."""
    engine = get_engine(db_path)
    yield get_session_factory(engine)
    engine.dispose()


class StoreSeeder:
    """Small helper for writing fixture rows."""

    def __init__(self, factory):
        self.factory = factory
        self._identity_seq = 0

    def org(self, org_id: int, name: str) -> int:
        with session_scope(self.factory) as s:
            s.add(Organization(id=org_id, name=name))
        return org_id

    def person(
        self,
        uuid: str,
        name: Optional[str],
        aliases: Optional[List[Dict[str, Any]]] = None,
        is_bot: Optional[bool] = None,
    ) -> str:
        with session_scope(self.factory) as s:
            s.add(UniqueIdentity(uuid=uuid))
            s.add(Profile(uuid=uuid, name=name, is_bot=is_bot))
            for alias in aliases or []:
                self._identity_seq += 1
                s.add(Identity(id=f"id-{self._identity_seq}", uuid=uuid, **alias))
        return uuid

    def enrollment(self, uuid: str, org_id: int, start: datetime, end: datetime, project_slug: Optional[str] = None):
        with session_scope(self.factory) as s:
            s.add(Enrollment(uuid=uuid, organization_id=org_id, start=start, end=end, project_slug=project_slug))

    def enrollments(self, uuid: Optional[str] = None) -> List[Enrollment]:
        with session_scope(self.factory) as s:
            query = s.query(Enrollment)
            if uuid is not None:
                query = query.filter(Enrollment.uuid == uuid)
            return query.order_by(Enrollment.id).all()


@pytest.fixture
def seeder(session_factory) -> StoreSeeder:
    return StoreSeeder(session_factory)


@pytest.fixture
def populated_store(seeder) -> StoreSeeder:
    """
    Store with three organizations and four people.

    Two different people share the profile name "Jane Doe".
    """
    seeder.org(1, "Acme Corp")
    seeder.org(2, "Globex")
    seeder.org(3, "Initech")
    seeder.person("u-jane1", "Jane Doe", [
        {"source": "github", "username": "jane1", "email": "jane@acme.com", "name": "Jane Doe"},
    ])
    seeder.person("u-jane2", "Jane Doe", [
        {"source": "github", "username": "jdoe2", "email": "jd2@globex.com", "name": "Jane Doe"},
    ])
    seeder.person("u-bob", "Bob Smith", [
        {"source": "github", "username": "bobs", "email": "bob@initech.com", "name": "Bob Smith"},
        {"source": "gerrit", "username": "bob", "email": "bob@initech.com", "name": "Robert Smith"},
    ], is_bot=False)
    seeder.person("u-carol", "Carol King", [
        {"source": "gerrit", "username": "carolk", "email": "carol@acme.com", "name": "Carol King"},
    ])
    return seeder


def make_record(
    name: str,
    orgs: Optional[List[str]] = None,
    emails: Optional[List[str]] = None,
    aliases: Optional[Dict[str, List[str]]] = None,
    position: int = 0,
    is_bot: Optional[bool] = None,
) -> IncomingRecord:
    return IncomingRecord(
        profile=ProfileInfo(name=name, is_bot=is_bot),
        emails=list(emails or []),
        aliases=dict(aliases or {}),
        affiliations=[Affiliation(organization=o) for o in (orgs or [])],
        position=position,
    )


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def identities_yaml(tmp_path) -> Path:
    """Import file covering resolved, ambiguous, unknown and skipped records."""
    path = tmp_path / "identities.yaml"
    path.write_text(
        """
- profile:
    name: Bob Smith
  email:
    - bob@initech.com
  enrollments:
    - organization: initech
  github:
    - bobs
- profile:
    name: Jane Doe
  enrollments:
    - organization: Acme Corp
      start: 2010-01-01
- profile:
    name: Jane Doe
  github:
    - jane1
  enrollments:
    - organization: ACME Inc.
      start: 2012-05-01
      end: 2019-12-31
- profile:
    name: Carol King
  email:
    - carol@acme.com
  enrollments:
    - organization: Umbrella
- profile:
    name: Nobody Known
  email:
    - nobody@example.com
  enrollments:
    - organization: Globex
- profile:
    name: Carol King
  enrollments:
    - organization: Unaffiliated
""",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def orgs_map(tmp_path) -> Path:
    path = tmp_path / "orgs_map.yaml"
    path.write_text(
        """
mappings:
  - ['^ACME\\\\s+Inc\\\\.?$', 'Acme Corp']
  - ['^umbrella', 'Umbrella Corporation']
""",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def open_store():
    """Open extra stores by path; engines are disposed at teardown."""
    engines = []

    def opener(path: Path) -> StoreSeeder:
        init_database(path)
        engine = get_engine(path)
        engines.append(engine)
        return StoreSeeder(get_session_factory(engine))

    yield opener
    for engine in engines:
        engine.dispose()
