"""
Enrollments Repository.

Responsibilities:
- Read the enrollments of one unique identity.
- Delete an identity's enrollments and insert new ones, always inside
  one transaction per call.

Non-Responsibilities:
- No diffing; the reconciler decides what to write.

Invariant:
A null project slug and a concrete slug are separate partitions. Every
query filters on exactly one of them.
"""

from typing import List, Optional, Sequence, Tuple

from identisync.database import Enrollment
from identisync.models import Affiliation

from .base import Repository, store_call


def _scope(query, uuid: str, project_slug: Optional[str]):
    query = query.filter(Enrollment.uuid == uuid)
    if project_slug is None:
        return query.filter(Enrollment.project_slug.is_(None))
    return query.filter(Enrollment.project_slug == project_slug)


class EnrollmentRepository(Repository):

    @store_call("list_enrollments")
    def list_for(self, uuid: str, project_slug: Optional[str]) -> List[Affiliation]:
        with self._session() as session:
            rows = _scope(session.query(Enrollment), uuid, project_slug).all()
            return [
                Affiliation(
                    organization="",
                    start=row.start,
                    end=row.end,
                    org_id=row.organization_id,
                    project_slug=row.project_slug,
                    uuid=row.uuid,
                )
                for row in rows
            ]

    @store_call("enrollments_exist")
    def exists_for(self, uuid: str, project_slug: Optional[str]) -> bool:
        with self._session() as session:
            return _scope(session.query(Enrollment.uuid), uuid, project_slug).first() is not None

    @store_call("apply_enrollments")
    def apply(
        self,
        uuid: str,
        project_slug: Optional[str],
        delete_existing: bool,
        affiliations: Sequence[Affiliation],
    ) -> Tuple[int, int]:
        """
        Optionally clear the uuid/slug partition, then insert affiliations,
        all in one transaction.

        Returns:
            Tuple of (rows_deleted, rows_inserted)
        """
        deleted = 0
        with self._session() as session:
            if delete_existing:
                deleted = delete_enrollments(session, uuid, project_slug)
            for affiliation in affiliations:
                insert_enrollment(session, affiliation)
        return deleted, len(affiliations)


def delete_enrollments(session, uuid: str, project_slug: Optional[str]) -> int:
    return _scope(session.query(Enrollment), uuid, project_slug).delete(synchronize_session=False)


def insert_enrollment(session, affiliation: Affiliation) -> None:
    session.add(Enrollment(
        uuid=affiliation.uuid,
        organization_id=affiliation.org_id,
        start=affiliation.start,
        end=affiliation.end,
        project_slug=affiliation.project_slug,
    ))
