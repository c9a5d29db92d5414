"""
Identity Resolution.

Responsibilities:
- Walk the lookup cascade for one incoming record.
- Return the uuid of the first lookup that yields exactly one candidate.
- Explain which strategy and key produced the match.

Non-Responsibilities:
- No mutation of persistent state.
- No tie-breaking: several candidates are as inconclusive as none.

Invariant:
This module must be deterministic given the same inputs and store contents.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from identisync.logger import get_logger
from identisync.models import IncomingRecord
from storage.repositories.identities import IdentityRepository

from .cascade import CASCADE, Key, LookupStrategy

logger = get_logger()


@dataclass(frozen=True)
class Resolution:
    uuid: Optional[str]
    strategy: Optional[str] = None
    key: Optional[Key] = None
    attempts: int = 0

    @property
    def found(self) -> bool:
        return self.uuid is not None


class IdentityResolver:
    def __init__(self, repository: IdentityRepository, cascade: Sequence[LookupStrategy] = CASCADE):
        self.repository = repository
        self.cascade = cascade

    def lookup(self, record: IncomingRecord) -> Resolution:
        attempts = 0
        for strategy in self.cascade:
            for key in strategy.keys(record):
                attempts += 1
                candidates = strategy.lookup(self.repository, key)
                if len(candidates) == 1:
                    logger.debug(f"found by {strategy.name}", key=key, uuid=candidates[0])
                    return Resolution(uuid=candidates[0], strategy=strategy.name, key=key, attempts=attempts)
                logger.debug(f"not found by {strategy.name}", key=key, candidates=len(candidates))
        return Resolution(uuid=None, attempts=attempts)

    def resolve(self, record: IncomingRecord) -> Optional[str]:
        return self.lookup(record).uuid
