"""
Seed exams, subjects, topics, sub-categories and tracks from a JSON file.

Usage:
    python seed_hierarchy.py path/to/hierarchy.json

The file holds {"exams": [{"name", "subjects": [{"name", "topics": [...]}],
"sub_categories": [{"name", "tracks": [{"name", "track_type", "duration"}]}]}]}.
Existing entities are left untouched, so the script can be re-run.
"""

import sys
import json
from pathlib import Path

from prepdesk.config.database import get_db, init_db
from prepdesk.services.seeding import HierarchySeeder


def seed_from_file(path: str) -> dict:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    init_db()
    db = next(get_db())
    try:
        return HierarchySeeder(db).seed(data)
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) != 2 or not Path(sys.argv[1]).is_file():
        print("Usage: python seed_hierarchy.py path/to/hierarchy.json")
        sys.exit(2)

    print("Hierarchy Seed Script")
    print("=" * 50)

    try:
        outcome = seed_from_file(sys.argv[1])
    except Exception as e:
        print(f"\nSeeding failed: {str(e)}")
        import traceback
        traceback.print_exc()
        sys.exit(1)

    results = outcome["results"]
    print(f"  Created: {len(results['created'])}")
    print(f"  Already present: {len(results['duplicates'])}")
    print(f"  Errors: {len(results['errors'])}")
    for error in results["errors"]:
        print(f"    {error['type']} {error['name']}: {error['error']}")
    sys.exit(0 if outcome["success"] else 1)
