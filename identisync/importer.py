"""
Batch driver for an identity import run.

A run goes through three fan-out phases, each finishing before the next
starts:

1. preprocess and resolve every incoming record of a file;
2. canonicalize every distinct organization name used by resolved records;
3. reconcile the enrollments of every resolved identity.

The driver owns the organization index, the missing-organization set and
the merged statistics for the lifetime of the run.
"""

from collections import Counter
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy.orm import sessionmaker

from pipelines.affiliations.reconciler import AffiliationReconciler
from pipelines.coordinator import WorkerPool
from pipelines.identity_resolution.preprocess import (
    PreprocessOutcome,
    RecordPreprocessor,
    remove_unaffiliated,
)
from pipelines.identity_resolution.resolver import IdentityResolver
from pipelines.organizations.canonicalizer import OrganizationCanonicalizer, OrganizationIndex
from storage.repositories.enrollments import EnrollmentRepository
from storage.repositories.identities import IdentityRepository
from storage.repositories.organizations import OrganizationRepository

from .config import ImportConfig
from .database import get_engine, get_session_factory
from .logger import get_logger
from .models import IncomingRecord, ReconciliationStats, ResolvedIdentity, RunResult
from .schema import load_identities, load_org_mappings

logger = get_logger()


class Importer:
    def __init__(self, config: ImportConfig, session_factory: sessionmaker):
        self.config = config
        self.identities = IdentityRepository(session_factory)
        self.organizations = OrganizationRepository(session_factory)
        self.enrollments = EnrollmentRepository(session_factory)
        self.pool = WorkerPool(config.parallelism)
        self.resolver = IdentityResolver(self.identities)
        self.preprocessor = RecordPreprocessor(self.resolver)

    def resolve_records(self, records: Sequence[IncomingRecord]):
        """
        Phase 1: bind records to canonical identities.

        Returns:
            Tuple of (uuid -> ResolvedIdentity, records that could not be resolved)
        """
        resolved: Dict[str, ResolvedIdentity] = {}
        missing: List[IncomingRecord] = []

        def merge(outcome: PreprocessOutcome):
            if outcome.skipped:
                return
            if outcome.uuid is None:
                missing.append(outcome.record)
                return
            current = resolved.get(outcome.uuid)
            if current is None or current.record.position < outcome.position:
                resolved[outcome.uuid] = ResolvedIdentity.bind(outcome.record, outcome.uuid, self.config.project_slug)

        logger.info(f"processing {len(records)} profiles")
        self.pool.run(records, self.preprocessor.process, merge)
        missing.sort(key=lambda r: r.position)
        if missing:
            logger.info(f"cannot find {len(missing)} profiles")
        return resolved, missing

    def load_index(self) -> OrganizationIndex:
        return OrganizationIndex.from_rows(self.organizations.all_organizations())

    def canonicalizer_for(self, index: OrganizationIndex) -> OrganizationCanonicalizer:
        loader = None
        if self.config.orgs_map_file is not None:
            path = self.config.orgs_map_file
            loader = lambda: load_org_mappings(path)  # noqa: E731
        return OrganizationCanonicalizer(index, self.organizations, loader)

    def canonicalize_organizations(self, names: Iterable[str], canonicalizer: OrganizationCanonicalizer) -> Set[str]:
        """Phase 2: resolve every distinct organization name once."""
        tiers: Counter = Counter()
        self.pool.run(sorted(set(names)), canonicalizer.resolve, lambda match: tiers.update([match.tier]))
        logger.debug("organization resolution tiers", **dict(tiers))
        return set(canonicalizer.missing)

    def reconcile(self, resolved: Dict[str, ResolvedIdentity], index: OrganizationIndex) -> ReconciliationStats:
        """Phase 3: compare and apply enrollments for each resolved identity."""
        stats = ReconciliationStats()
        reconciler = AffiliationReconciler(
            self.identities, self.enrollments, index, self.config.mode, self.config.project_slug
        )
        self.pool.run(list(resolved.values()), reconciler.reconcile, stats.merge)
        return stats

    def run(self, batches: Sequence[Sequence[IncomingRecord]]) -> RunResult:
        result = RunResult(dry_run=self.config.dry_run)
        organizations: Set[str] = set()

        for records in batches:
            remove_unaffiliated(records)
            resolved, missing = self.resolve_records(records)
            result.resolved.append(resolved)
            result.missing_records.extend(missing)
            for identity in resolved.values():
                organizations.update(a.organization for a in identity.affiliations)

        logger.info(f"{len(organizations)} orgs present in import files")
        index = self.load_index()
        result.organizations = len(index)
        if self.config.dry_run:
            logger.info("Returning due to dry-run mode")
            return result

        canonicalizer = self.canonicalizer_for(index)
        result.missing_organizations = self.canonicalize_organizations(organizations, canonicalizer)
        logger.info(
            f"Number of organizations: {result.organizations}, missing: {len(result.missing_organizations)}"
        )

        for resolved in result.resolved:
            result.stats.merge(self.reconcile(resolved, index))
        logger.info("Stats", **result.stats.as_dict())
        return result


def load_batches(files: Sequence[Path]) -> List[List[IncomingRecord]]:
    """Decode every input file before any store access."""
    batches = []
    for i, path in enumerate(files, 1):
        logger.info(f"importing {i}/{len(files)}: {path}")
        records = load_identities(Path(path))
        logger.info(f"{path}: {len(records)} records")
        batches.append(records)
    return batches


def run_import(files: Sequence[Path], config: ImportConfig, session_factory: Optional[sessionmaker] = None) -> RunResult:
    """Load the input files and run a full import against the configured store."""
    batches = load_batches(files)
    engine = None
    if session_factory is None:
        engine = get_engine(config.database, echo=config.debug_sql)
        session_factory = get_session_factory(engine)
    try:
        return Importer(config, session_factory).run(batches)
    finally:
        if engine is not None:
            engine.dispose()
