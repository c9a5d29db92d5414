import argparse
import time
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import ImportConfig, database_from_env, worker_count
from .database import init_database
from .env import load_env
from .errors import IdentisyncError
from .export import write_missing_orgs, write_missing_profiles
from .importer import run_import
from .logger import get_logger
from .models import RunResult
from .schema import load_identities


def build_config(args: argparse.Namespace) -> ImportConfig:
    config = ImportConfig.from_env()
    overrides = {}
    if args.db:
        overrides["database"] = args.db
    if args.sequential:
        overrides["parallelism"] = 1
    elif args.workers:
        overrides["parallelism"] = worker_count({"NCPUS": str(args.workers)})
    if args.project_slug:
        overrides["project_slug"] = args.project_slug
    if args.orgs_map:
        overrides["orgs_map_file"] = Path(args.orgs_map)
    if args.missing_profiles_csv:
        overrides["missing_profiles_csv"] = args.missing_profiles_csv
    if args.missing_orgs_csv:
        overrides["missing_orgs_csv"] = args.missing_orgs_csv
    for flag in ("verbose", "compare", "replace", "dry_run", "debug_sql"):
        if getattr(args, flag):
            overrides[flag] = True
    return replace(config, **overrides)


def print_result(result: RunResult) -> None:
    print(f"Resolved identities: {sum(len(r) for r in result.resolved)}")
    print(f"Missing profiles: {len(result.missing_records)}")
    if result.dry_run:
        print(f"Organizations in store: {result.organizations}")
        return
    print(f"Organizations: {result.organizations}, missing: {len(result.missing_organizations)}")
    print("Stats:")
    for name, value in result.stats.as_dict().items():
        print(f"  {name}: {value}")


def cmd_import(args: argparse.Namespace) -> None:
    files = [Path(f) for f in args.files]
    for path in files:
        if not path.exists():
            raise SystemExit(f"Input file not found: {path}")

    try:
        config = build_config(args)
    except ValueError as e:
        raise SystemExit(str(e))

    if config.orgs_map_file is not None and not config.orgs_map_file.exists():
        raise SystemExit(f"Organization mappings file not found: {config.orgs_map_file}")

    logger = get_logger()
    if args.log_dir:
        logger.add_file_handler(Path(args.log_dir))
    logger.set_level("DEBUG" if config.verbose else "INFO")
    logger.debug(
        "import settings",
        files=len(files), workers=config.parallelism, dry_run=config.dry_run,
        compare=config.compare, replace=config.replace, project_slug=config.project_slug,
    )

    started = time.monotonic()
    try:
        result = run_import(files, config)
    except IdentisyncError as e:
        logger.critical(f"Import aborted: {e}")
        logger.log_metrics_summary()
        raise SystemExit(f"Error: {e}")

    if result.missing_records:
        path = write_missing_profiles(result.missing_records, config.missing_profiles_csv)
        print(f"Missing profiles written to {path}")
    if result.missing_organizations:
        path = write_missing_orgs(result.missing_organizations, config.missing_orgs_csv)
        print(f"Missing organizations written to {path}")

    print_result(result)
    logger.log_metrics_summary()
    logger.info(f"Time: {time.monotonic() - started:.3f}s")


def cmd_validate(args: argparse.Namespace) -> None:
    failed = False
    for name in args.files:
        path = Path(name)
        if not path.exists():
            raise SystemExit(f"Input file not found: {path}")
        try:
            records = load_identities(path)
        except IdentisyncError as e:
            print(f"Invalid: {path}")
            print(f" - {e}")
            failed = True
            continue
        print(f"Valid: {path} ({len(records)} records)")
    if failed:
        raise SystemExit(2)


def cmd_init_db(args: argparse.Namespace) -> None:
    database = args.db or database_from_env()
    init_database(database)
    print(f"Initialized identity store at {database}")


def main(argv: Optional[List[str]] = None):
    # Load .env if present (IDENTISYNC_DB, PROJECT_SLUG, ORGS_MAP_FILE, etc.)
    load_env()
    parser = argparse.ArgumentParser(prog="identisync", description="Reconcile identity YAML files with an identity store")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")
    imp = subparsers.add_parser("import", help="Import identity YAML files into the store")
    imp.add_argument("files", nargs="+", help="Identity YAML files")
    imp.add_argument("--db", help="SQLite file or SQLAlchemy URL (or set IDENTISYNC_DB)")
    imp.add_argument("--workers", type=int, help="Worker threads, clamped to the CPU count (or set NCPUS)")
    imp.add_argument("--sequential", action="store_true", help="Single-threaded run (or set ST)")
    imp.add_argument("--verbose", action="store_true", help="Debug output (or set DEBUG)")
    imp.add_argument("--compare", action="store_true", help="Diff incoming data against the store before writing (or set COMPARE)")
    imp.add_argument("--replace", action="store_true", help="Replace differing enrollments (or set REPLACE)")
    imp.add_argument("--project-slug", help="Scope enrollments to a project (or set PROJECT_SLUG)")
    imp.add_argument("--orgs-map", help="YAML file with organization name mappings (or set ORGS_MAP_FILE)")
    imp.add_argument("--dry-run", action="store_true", help="Resolve identities only, write nothing (or set DRY)")
    imp.add_argument("--debug-sql", action="store_true", help="Echo SQL statements (or set DEBUG_SQL)")
    imp.add_argument("--missing-profiles-csv", help="CSV prefix for unresolved profiles (default: missing_profiles)")
    imp.add_argument("--missing-orgs-csv", help="CSV prefix for unknown organizations (default: missing_orgs)")
    imp.add_argument("--log-dir", help="Also write a debug log file to this directory")
    imp.set_defaults(func=cmd_import)

    val = subparsers.add_parser("validate", help="Validate identity YAML files without touching the store")
    val.add_argument("files", nargs="+", help="Identity YAML files")
    val.set_defaults(func=cmd_validate)

    ini = subparsers.add_parser("init-db", help="Create the identity store tables")
    ini.add_argument("--db", help="SQLite file or SQLAlchemy URL (or set IDENTISYNC_DB)")
    ini.set_defaults(func=cmd_init_db)

    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
