#!/usr/bin/env python3
"""
🚀 RUN RECALIBRATION
====================
Runs one full Nova recalibration from the command line.

WHAT IT DOES:
1. Lead discovery (search, qualify, find decision makers, score)
2. Event discovery for a random month and country
3. Mission synthesis for today
4. Prints today's ranked missions

USAGE:
    nova-recalibrate
    python -m scripts.run_recalibration --verbose
"""

import sys
import argparse
from datetime import datetime
from pathlib import Path

from loguru import logger


PROJECT_ROOT = Path(__file__).resolve().parent.parent


def setup_logging(verbose: bool = False, log_dir: Path = PROJECT_ROOT / "logs"):
    """Configure logging."""
    logger.remove()

    level = "DEBUG" if verbose else "INFO"

    # Console output
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
        level=level
    )

    # File output
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"recalibration_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    logger.add(log_file, level="DEBUG")

    return log_file


def validate_environment() -> bool:
    """Check that required environment variables are set."""
    from config.settings import settings

    validation = settings.validate()

    if not validation["gemini_configured"]:
        logger.error("❌ Gemini API not configured!")
        logger.info("   Set GEMINI_API_KEY in .env")
        return False

    if not validation["database_configured"]:
        logger.warning("⚠️ Supabase not configured - results kept in local memory only")

    if not validation["weights_valid"]:
        logger.error("❌ Priority weights don't sum to 1.0!")
        return False

    logger.info("✅ Environment validated")
    return True


def print_missions(missions: list):
    """Print today's missions, highest priority first."""
    logger.info("\n" + "=" * 60)
    logger.info(f"🎯 TODAY'S MISSIONS ({len(missions)})")
    logger.info("=" * 60)

    if not missions:
        logger.info("No missions cached for today")
        return

    for i, mission in enumerate(missions, 1):
        logger.info(
            f"{i:>2}. [{mission.priority}] {mission.contact_name} "
            f"({mission.role} @ {mission.company}) - {mission.confidence:.0f}%"
        )
        logger.info(f"    ➜ {mission.recommended_action}")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Run one Nova recalibration (discovery, events, missions)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args()

    log_file = setup_logging(args.verbose)

    logger.info("🚀 NOVA INTELLIGENCE RECALIBRATION")
    logger.info(f"📅 {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    logger.info(f"📝 Log file: {log_file}")

    if not validate_environment():
        logger.error("Environment validation failed. Exiting.")
        sys.exit(1)

    from orchestration.orchestrator import NovaOrchestrator

    nova = NovaOrchestrator()
    try:
        future = nova.recalibrate()
        succeeded = future.result() if future is not None else False
    finally:
        nova.shutdown()

    print_missions(nova.get_daily_commands())

    if not succeeded:
        logger.error("❌ Recalibration did not complete - see log for details")
        sys.exit(1)

    logger.info("\n✅ Run complete!")


if __name__ == "__main__":
    main()
