#!/usr/bin/env python3
"""
Seed the organizations table from a list of names.

The input is either a YAML list of names or a text file with one name per
line (blank lines and lines starting with # are ignored).

Usage:
    python scripts/load_organizations.py --input orgs.yaml --db data/identities.db
"""

import argparse
from pathlib import Path
import sys

import yaml

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from identisync.database import get_engine, get_session_factory, init_database
from identisync.errors import StoreError
from storage.repositories.organizations import OrganizationRepository


def read_names(path: Path) -> list:
    """Read organization names from a YAML list or a plain text file."""
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or []
        if not isinstance(data, list):
            raise ValueError(f"{path}: expected a YAML list of organization names")
        return [str(name).strip() for name in data if str(name).strip()]
    return [
        line.strip()
        for line in text.splitlines()
        if line.strip() and not line.strip().startswith("#")
    ]


def load(input_path: Path, db_path: str, dry_run: bool = False):
    """
    Insert organizations that are not in the store yet.

    Args:
        input_path: YAML or text file with organization names
        db_path: SQLite file or SQLAlchemy URL
        dry_run: If True, don't write to database
    """
    print(f"Loading organization names from {input_path}...")
    names = read_names(input_path)
    print(f"Found {len(names)} names")

    init_database(db_path)
    engine = get_engine(db_path)
    repo = OrganizationRepository(get_session_factory(engine))

    added = 0
    skipped = 0
    try:
        existing = {name for _, name in repo.all_organizations()}
        for name in names:
            if name in existing:
                skipped += 1
                continue
            existing.add(name)
            if dry_run:
                print(f"  [dry run] would add {name}")
            else:
                repo.add(name)
            added += 1

        print("\nDone.")
        print(f"   Added:   {added}")
        print(f"   Skipped: {skipped} (already present)")
    except StoreError as e:
        print(f"Failed to load organizations: {e}")
        return False
    finally:
        engine.dispose()

    return True


def main():
    parser = argparse.ArgumentParser(description="Seed the organizations table")
    parser.add_argument("--input", type=Path, required=True,
                        help="YAML list or text file of organization names")
    parser.add_argument("--db", default="data/identities.db",
                        help="SQLite file or SQLAlchemy URL")
    parser.add_argument("--dry-run", action="store_true",
                        help="Show what would be added without writing")

    args = parser.parse_args()

    if not args.input.exists():
        print(f"Input file not found: {args.input}")
        sys.exit(1)

    if not load(args.input, args.db, dry_run=args.dry_run):
        sys.exit(1)


if __name__ == "__main__":
    main()
