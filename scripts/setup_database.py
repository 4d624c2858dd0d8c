#!/usr/bin/env python3
"""
💾 DATABASE SETUP SCRIPT
========================
Checks the Supabase project against the Nova schema.

WHAT IT DOES:
1. Connects to your Supabase project
2. Shows how to apply database/schema.sql
3. Verifies that every Nova table exists

USAGE:
    python -m scripts.setup_database
    python -m scripts.setup_database --print-schema

PREREQUISITES:
    1. Create a Supabase project at https://supabase.com
    2. Set SUPABASE_URL and SUPABASE_KEY in your .env file

Without Supabase, Nova still runs on its local in-process store.
"""

import sys
import argparse
from pathlib import Path

from loguru import logger


PROJECT_ROOT = Path(__file__).resolve().parent.parent
SCHEMA_FILE = PROJECT_ROOT / "database" / "schema.sql"

REQUIRED_TABLES = [
    "leads",
    "crm_contacts",
    "events_collection",
    "memories",
]


def setup_logging():
    """Configure logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
        level="INFO"
    )


def check_connection(db) -> bool:
    """Verify Supabase connection."""
    if not db.is_connected:
        logger.error("❌ Supabase credentials not configured!")
        logger.info("")
        logger.info("📝 TO FIX:")
        logger.info("   1. Go to https://supabase.com and create a project")
        logger.info("   2. Go to Project Settings → API")
        logger.info("   3. Copy your Project URL and anon/public key")
        logger.info("   4. Create a .env file in the project root with:")
        logger.info("      SUPABASE_URL=your-project-url")
        logger.info("      SUPABASE_KEY=your-anon-key")
        return False

    logger.info("✅ Supabase client created")
    return True


def show_schema_instructions(print_schema: bool = False) -> bool:
    """Supabase only runs DDL from the dashboard, so point the operator there."""
    if not SCHEMA_FILE.exists():
        logger.error(f"Schema file not found: {SCHEMA_FILE}")
        return False

    logger.info("")
    logger.info("=" * 60)
    logger.info("⚠️  IMPORTANT: Manual Step Required")
    logger.info("=" * 60)
    logger.info("1. Open your project in the Supabase dashboard")
    logger.info("2. Click 'SQL Editor' → 'New query'")
    logger.info(f"3. Paste the contents of: {SCHEMA_FILE}")
    logger.info("4. Click 'Run'")

    if print_schema:
        print("\n" + "=" * 60)
        print("SQL SCHEMA (copy this to Supabase SQL Editor)")
        print("=" * 60 + "\n")
        print(SCHEMA_FILE.read_text())
        print("\n" + "=" * 60)

    return True


def verify_tables(db) -> bool:
    """Verify that tables were created."""
    logger.info("\n🔍 Verifying tables...")

    missing = []

    for table in REQUIRED_TABLES:
        try:
            db.query(table, limit=1)
            logger.info(f"   ✅ {table}")
        except Exception as e:
            if "does not exist" in str(e).lower():
                missing.append(table)
                logger.warning(f"   ❌ {table} (not created yet)")
            else:
                missing.append(table)
                logger.error(f"   ⚠️ {table} (error: {e})")

    if missing:
        logger.warning(f"\n⚠️ {len(missing)} tables missing - run the SQL schema in Supabase")
        return False

    logger.info(f"\n✅ All {len(REQUIRED_TABLES)} tables verified!")
    return True


def main():
    """Main setup function."""
    parser = argparse.ArgumentParser(description="Check the Nova Supabase schema")
    parser.add_argument(
        "--print-schema",
        action="store_true",
        help="Print database/schema.sql for copy-paste"
    )
    args = parser.parse_args()

    setup_logging()

    from database.connection import db

    logger.info("💾 NOVA INTELLIGENCE DATABASE SETUP")
    logger.info("=" * 40)

    logger.info("\n[Step 1/3] Checking Supabase connection...")
    if not check_connection(db):
        sys.exit(1)

    logger.info("\n[Step 2/3] Database schema...")
    show_schema_instructions(args.print_schema)

    logger.info("\n[Step 3/3] Verifying tables...")
    if not verify_tables(db):
        sys.exit(1)

    logger.info("\n🎉 DATABASE SETUP COMPLETE")
    logger.info("   Next: nova-recalibrate")


if __name__ == "__main__":
    main()
