"""
Affiliation Reconciliation.

Responsibilities:
- Check that a resolved identity still exists in the store.
- Compare the incoming profile and aliases with the stored ones (compare mode).
- Diff incoming enrollments against the stored ones for the run's project slug.
- Delete and/or insert enrollments according to compare and replace modes.

Non-Responsibilities:
- No identity resolution.
- No organization canonicalization; ids come from the shared index.

Invariant:
Replacement is all-or-nothing per identity and project slug, and the
delete + insert pair is applied in one transaction.
"""

from typing import List, Optional, Sequence

from identisync.config import ReconcileMode
from identisync.logger import get_logger
from identisync.models import Affiliation, ProfileInfo, ReconciliationStats, ResolvedIdentity
from identisync.normalize import normalize_email, strip_unicode
from pipelines.organizations.canonicalizer import OrganizationIndex
from storage.repositories.enrollments import EnrollmentRepository
from storage.repositories.identities import IdentityRepository

logger = get_logger()


def profiles_differ(p1: ProfileInfo, p2: ProfileInfo) -> bool:
    """Names differ after normalization, or both bot flags are set and differ."""
    if strip_unicode(p1.name) != strip_unicode(p2.name):
        return True
    if p1.is_bot is not None and p2.is_bot is not None and p1.is_bot != p2.is_bot:
        return True
    return False


def affiliations_differ(a1: Sequence[Affiliation], a2: Sequence[Affiliation]) -> bool:
    """True when any canonical affiliation key is present on one side only."""
    return {a.key() for a in a1} != {a.key() for a in a2}


def describe_affiliations(affiliations: Sequence[Affiliation]) -> str:
    return "[" + ",".join(sorted(str(a) for a in affiliations)) + "]"


class AffiliationReconciler:
    def __init__(
        self,
        identities: IdentityRepository,
        enrollments: EnrollmentRepository,
        index: OrganizationIndex,
        mode: ReconcileMode,
        project_slug: Optional[str] = None,
    ):
        self.identities = identities
        self.enrollments = enrollments
        self.index = index
        self.mode = mode
        self.project_slug = project_slug

    def _report(self, message: str, **context):
        if self.mode.verbose:
            logger.info(message, **context)

    def assign_org_ids(self, affiliations: List[Affiliation]) -> None:
        for affiliation in affiliations:
            org_id = self.index.get_id(affiliation.organization)
            if org_id is None:
                logger.debug("unknown organization", organization=affiliation.organization, uuid=affiliation.uuid)
                continue
            affiliation.org_id = org_id

    def compare_profile(self, identity: ResolvedIdentity, stats: ReconciliationStats) -> None:
        existing = self.identities.get_profile(identity.uuid)
        if existing is None:
            return
        stats.profiles_found += 1
        if not self.mode.compare:
            return
        if profiles_differ(identity.profile, existing):
            self._report("Profiles differ", incoming=identity.profile, existing=existing)
        else:
            stats.profiles_same += 1

    def compare_aliases(self, identity: ResolvedIdentity, stats: ReconciliationStats) -> None:
        emails = {normalize_email(e) for e in identity.record.emails}
        if not emails or not self.mode.compare:
            return
        for source, usernames in identity.record.aliases.items():
            for username in usernames:
                stored = self.identities.get_alias_email(identity.uuid, source, strip_unicode(username))
                if stored is None:
                    continue
                stats.aliases_found += 1
                if normalize_email(stored) in emails:
                    stats.aliases_same += 1
                else:
                    self._report(
                        "Identities differ",
                        uuid=identity.uuid, source=source, username=username,
                        email=stored, emails=sorted(emails),
                    )

    def _existing(self, uuid: str) -> Optional[List[Affiliation]]:
        """Stored enrollments when comparing; an empty list stands for 'some exist' otherwise."""
        if self.mode.compare:
            existing = self.enrollments.list_for(uuid, self.project_slug)
            for affiliation in existing:
                affiliation.organization = self.index.get_name(affiliation.org_id) or ""
            return existing or None
        return [] if self.enrollments.exists_for(uuid, self.project_slug) else None

    def reconcile(self, identity: ResolvedIdentity) -> ReconciliationStats:
        stats = ReconciliationStats()
        uuid = identity.uuid

        if not self.identities.uidentity_exists(uuid):
            logger.warning(f"cannot find uidentity '{uuid}'")
            stats.identities_not_found += 1
            return stats
        stats.identities_found += 1

        self.compare_profile(identity, stats)
        self.compare_aliases(identity, stats)

        existing = self._existing(uuid)
        fetched = existing is not None
        if fetched:
            stats.affiliations_found += 1

        self.assign_org_ids(identity.affiliations)

        same = False
        if fetched and self.mode.compare:
            same = not affiliations_differ(identity.affiliations, existing)
            if same:
                stats.affiliations_same += 1
            else:
                self._report(
                    "Enrollments differ",
                    incoming=describe_affiliations(identity.affiliations),
                    existing=describe_affiliations(existing),
                )

        delete = fetched and not same and self.mode.replace
        insert = not same and (not fetched or self.mode.replace)
        if not (delete or insert):
            return stats

        to_insert: List[Affiliation] = []
        if insert:
            for affiliation in identity.affiliations:
                if affiliation.org_id is None:
                    stats.affiliations_skipped += 1
                    continue
                to_insert.append(affiliation)
        if not delete and not to_insert:
            return stats

        logger.debug(
            "applying enrollments",
            uuid=uuid, project_slug=self.project_slug, delete=delete, insert=len(to_insert),
        )
        self.enrollments.apply(uuid, self.project_slug, delete, to_insert)
        if delete:
            stats.affiliations_deleted += 1
        stats.affiliations_added += len(to_insert)
        return stats
