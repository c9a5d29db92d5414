"""
Run configuration.

Every setting can come from a command-line flag or from the environment
variable of the same meaning; flags win.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_DATABASE = "data/identities.db"


def env_flag(name: str, env: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if env is None else env
    return env.get(name, "") != ""


def database_from_env(env: Optional[Mapping[str, str]] = None) -> str:
    env = os.environ if env is None else env
    return env.get("IDENTISYNC_DB") or DEFAULT_DATABASE


def worker_count(env: Optional[Mapping[str, str]] = None, cpu_count: Optional[int] = None) -> int:
    """
    Number of workers for the fan-out phases.

    ST forces sequential mode. NCPUS overrides the CPU count but is clamped
    to it; zero or negative values are ignored.
    """
    env = os.environ if env is None else env
    if env_flag("ST", env):
        return 1
    n_cpus = cpu_count or os.cpu_count() or 1
    requested = env.get("NCPUS", "")
    if requested:
        try:
            n = int(requested)
        except ValueError:
            raise ValueError(f"NCPUS must be an integer, got {requested!r}")
        if n > 0:
            return min(n, n_cpus)
    return n_cpus


@dataclass
class ReconcileMode:
    verbose: bool = False
    compare: bool = False
    replace: bool = False


@dataclass
class ImportConfig:
    database: str = DEFAULT_DATABASE
    parallelism: int = 1
    verbose: bool = False
    compare: bool = False
    replace: bool = False
    project_slug: Optional[str] = None
    orgs_map_file: Optional[Path] = None
    dry_run: bool = False
    debug_sql: bool = False
    missing_profiles_csv: str = "missing_profiles"
    missing_orgs_csv: str = "missing_orgs"

    @property
    def mode(self) -> ReconcileMode:
        return ReconcileMode(verbose=self.verbose, compare=self.compare, replace=self.replace)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ImportConfig":
        env = os.environ if env is None else env
        orgs_map = env.get("ORGS_MAP_FILE") or None
        return cls(
            database=database_from_env(env),
            parallelism=worker_count(env),
            verbose=env_flag("DEBUG", env),
            compare=env_flag("COMPARE", env),
            replace=env_flag("REPLACE", env),
            project_slug=env.get("PROJECT_SLUG") or None,
            orgs_map_file=Path(orgs_map) if orgs_map else None,
            dry_run=env_flag("DRY", env),
            debug_sql=env_flag("DEBUG_SQL", env),
            missing_profiles_csv=env.get("MISSING_PROFILES_CSV") or "missing_profiles",
            missing_orgs_csv=env.get("MISSING_ORGS_CSV") or "missing_orgs",
        )
