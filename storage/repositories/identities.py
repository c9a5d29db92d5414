"""
Identities Repository.

Responsibilities:
- Point lookups of unique identity uuids by profile name, alias and email.
- Point lookups of stored profiles and alias emails for a uuid.

Non-Responsibilities:
- No business logic.
- No decision about which lookup wins.

Invariant:
Lookups return at most two distinct uuids. Two is enough to tell a unique
match from an ambiguous one, and callers must never pick between them.
"""

from typing import List, Optional

from identisync.database import Identity, Profile, UniqueIdentity
from identisync.models import ProfileInfo

from .base import Repository, store_call

CANDIDATE_LIMIT = 2


class IdentityRepository(Repository):

    def _uuids(self, query) -> List[str]:
        return [row[0] for row in query.distinct().limit(CANDIDATE_LIMIT).all()]

    @store_call("uuids_by_name")
    def uuids_by_name(self, name: str) -> List[str]:
        with self._session() as session:
            return self._uuids(session.query(Profile.uuid).filter(Profile.name == name))

    @store_call("uuids_by_source_username")
    def uuids_by_source_username(self, source: str, username: str) -> List[str]:
        with self._session() as session:
            return self._uuids(
                session.query(Identity.uuid).filter(
                    Identity.username == username,
                    Identity.source == source,
                )
            )

    @store_call("uuids_by_email")
    def uuids_by_email(self, email: str) -> List[str]:
        with self._session() as session:
            return self._uuids(session.query(Identity.uuid).filter(Identity.email == email))

    @store_call("uuids_by_name_source_username")
    def uuids_by_name_source_username(self, name: str, source: str, username: str) -> List[str]:
        with self._session() as session:
            return self._uuids(
                session.query(Identity.uuid).filter(
                    Identity.name == name,
                    Identity.username == username,
                    Identity.source == source,
                )
            )

    @store_call("uuids_by_name_email")
    def uuids_by_name_email(self, name: str, email: str) -> List[str]:
        with self._session() as session:
            return self._uuids(
                session.query(Identity.uuid).filter(
                    Identity.name == name,
                    Identity.email == email,
                )
            )

    @store_call("uuids_by_source_username_email")
    def uuids_by_source_username_email(self, source: str, username: str, email: str) -> List[str]:
        with self._session() as session:
            return self._uuids(
                session.query(Identity.uuid).filter(
                    Identity.username == username,
                    Identity.source == source,
                    Identity.email == email,
                )
            )

    @store_call("uuids_by_name_source_username_email")
    def uuids_by_name_source_username_email(self, name: str, source: str, username: str, email: str) -> List[str]:
        with self._session() as session:
            return self._uuids(
                session.query(Identity.uuid).filter(
                    Identity.username == username,
                    Identity.source == source,
                    Identity.email == email,
                    Identity.name == name,
                )
            )

    @store_call("uidentity_exists")
    def uidentity_exists(self, uuid: str) -> bool:
        with self._session() as session:
            return session.query(UniqueIdentity.uuid).filter(UniqueIdentity.uuid == uuid).first() is not None

    @store_call("get_profile")
    def get_profile(self, uuid: str) -> Optional[ProfileInfo]:
        with self._session() as session:
            row = session.query(Profile).filter(Profile.uuid == uuid).first()
            if row is None:
                return None
            return ProfileInfo(name=row.name or "", is_bot=row.is_bot, uuid=row.uuid)

    @store_call("get_alias_email")
    def get_alias_email(self, uuid: str, source: str, username: str) -> Optional[str]:
        """Stored email of a (uuid, source, username) alias; None when absent or null."""
        with self._session() as session:
            row = (
                session.query(Identity.email)
                .filter(
                    Identity.uuid == uuid,
                    Identity.source == source,
                    Identity.username == username,
                    Identity.email.isnot(None),
                )
                .first()
            )
            return row[0] if row is not None else None
