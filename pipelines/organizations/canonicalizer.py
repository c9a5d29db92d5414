"""
Organization Name Canonicalization.

Responsibilities:
- Hold the run's organization index (name/id in both directions, plus
  lowercase variants) behind a reader/writer lock.
- Map a free-text organization name to an organization id through three
  tiers: exact name, case-insensitive name, alias pattern.
- Learn every successful fallback as an exact alias so a repeated name is
  a single dictionary hit.
- Track names that cannot be mapped.

Non-Responsibilities:
- No writes to the organization table.
- No regular expression evaluation in Python; patterns are evaluated by
  the store.

Invariant:
Alias patterns are loaded at most once per run, however many workers miss
the cache at the same time.
"""

from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

from identisync.locks import ReadWriteLock
from identisync.logger import get_logger
from identisync.normalize import normalize_org
from storage.repositories.organizations import OrganizationRepository

logger = get_logger()

EXACT = "exact"
CASE_INSENSITIVE = "case_insensitive"
PATTERN = "pattern"
MISSING = "missing"

Mapping = Tuple[str, str]


class OrgMatch(NamedTuple):
    org_id: Optional[int]
    tier: str


class OrganizationIndex:
    """Organization lookup tables shared by all workers of a run."""

    def __init__(self):
        self.lock = ReadWriteLock()
        self.name_to_id: Dict[str, int] = {}
        self.id_to_name: Dict[int, str] = {}
        self.lower_to_id: Dict[str, int] = {}
        self.id_to_lower: Dict[int, str] = {}

    @classmethod
    def from_rows(cls, rows: Iterable[Tuple[int, str]]) -> "OrganizationIndex":
        index = cls()
        for org_id, name in rows:
            lname = normalize_org(name)
            index.name_to_id[name] = org_id
            index.id_to_name[org_id] = name
            index.lower_to_id[lname] = org_id
            index.id_to_lower[org_id] = lname
        return index

    def get_id(self, name: str) -> Optional[int]:
        with self.lock.read():
            return self.name_to_id.get(name)

    def get_lower_id(self, lname: str) -> Optional[int]:
        with self.lock.read():
            return self.lower_to_id.get(lname)

    def get_name(self, org_id: int) -> Optional[str]:
        with self.lock.read():
            return self.id_to_name.get(org_id)

    def learn(self, alias: str, org_id: int) -> None:
        """Record ``alias`` as an exact name for ``org_id``; canonical names are kept."""
        with self.lock.write():
            self.name_to_id[alias] = org_id

    def __len__(self) -> int:
        with self.lock.read():
            return len(self.name_to_id)


class OrganizationCanonicalizer:
    def __init__(
        self,
        index: OrganizationIndex,
        repository: OrganizationRepository,
        mappings_loader: Optional[Callable[[], List[Mapping]]] = None,
    ):
        self.index = index
        self.repository = repository
        self._mappings_loader = mappings_loader
        self._mappings: List[Mapping] = []
        self._mappings_loaded = False
        self.mapping_loads = 0
        self.missing: Set[str] = set()

    def ensure_mappings_loaded(self) -> List[Mapping]:
        with self.index.lock.read():
            if self._mappings_loaded:
                return self._mappings
        with self.index.lock.write():
            if not self._mappings_loaded:
                if self._mappings_loader is not None:
                    self._mappings = [
                        (pattern.replace("\\\\", "\\"), target)
                        for pattern, target in self._mappings_loader()
                    ]
                    logger.debug("loaded organization name mappings", count=len(self._mappings))
                self.mapping_loads += 1
                self._mappings_loaded = True
            return self._mappings

    def _match_pattern(self, value: str, lookup: Callable[[str], Optional[int]], fold) -> Optional[int]:
        for pattern, target in self.ensure_mappings_loaded():
            if not self.repository.matches_pattern(value, pattern):
                logger.debug("organization does not match pattern", name=value, pattern=pattern)
                continue
            org_id = lookup(fold(target))
            if org_id is None:
                logger.warning(f"'{value}' maps to '{target}' which cannot be found", pattern=pattern)
                continue
            return org_id
        return None

    def resolve(self, name: str) -> OrgMatch:
        org_id = self.index.get_id(name)
        if org_id is not None:
            return OrgMatch(org_id, EXACT)

        lname = normalize_org(name)
        org_id = self.index.get_lower_id(lname)
        if org_id is not None:
            self.index.learn(name, org_id)
            return OrgMatch(org_id, CASE_INSENSITIVE)

        logger.debug("organization not in index, trying name mappings", name=name)
        org_id = self._match_pattern(name, self.index.get_id, lambda t: t)
        if org_id is None:
            logger.debug("trying lower case name mappings", name=name, lower=lname)
            org_id = self._match_pattern(lname, self.index.get_lower_id, normalize_org)
        if org_id is not None:
            logger.debug("added organization mapping", name=name, org_id=org_id)
            self.index.learn(name, org_id)
            return OrgMatch(org_id, PATTERN)

        logger.info(f"nothing found for organization '{name}'")
        with self.index.lock.write():
            self.missing.add(name)
        return OrgMatch(None, MISSING)

    def canonicalize(self, name: str) -> Optional[int]:
        return self.resolve(name).org_id
