"""
Seed Permission Definitions Script
This script populates the permission_definitions table from the catalog config.
Run on every deployment; existing keys keep their identity and only their
display metadata and delegatable flag are refreshed.
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from app.config.permissions_config import PERMISSION_CATALOG
from app.database.supabase_client import get_service_supabase
from supabase import Client
from typing import Dict, List
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def seed_definitions(supabase: Client, definitions: List[Dict] = PERMISSION_CATALOG) -> Dict[str, int]:
    """Upsert every catalog definition; returns created/updated counts"""
    logger.info("Seeding permission definitions...")

    existing_result = supabase.table("permission_definitions")\
        .select("key")\
        .execute()
    existing_keys = {row["key"] for row in existing_result.data} if existing_result.data else set()

    if definitions:
        supabase.table("permission_definitions")\
            .upsert(definitions, on_conflict="key")\
            .execute()

    catalog_keys = {d["key"] for d in definitions}
    created = len(catalog_keys - existing_keys)
    updated = len(catalog_keys & existing_keys)

    # Published keys are never deleted automatically; stale ones are only reported
    stale = sorted(existing_keys - catalog_keys)
    if stale:
        logger.warning(f"Keys in database but not in catalog: {', '.join(stale)}")

    logger.info(f"Permission definitions seeded: {created} created, {updated} updated")
    return {"created": created, "updated": updated, "stale": len(stale)}


def main():
    """Main function to seed permission definitions"""
    try:
        supabase = get_service_supabase()
        counts = seed_definitions(supabase)
        logger.info(f"Seeding completed successfully! {counts}")
    except Exception as e:
        logger.error(f"Error during seeding: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
