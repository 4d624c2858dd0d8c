"""
🏇 STAGE 2: EVENT DISCOVERY
===========================
Finds equestrian events for one randomly chosen (month, country) pair per
run, so repeated recalibrations gradually cover the regional calendar.
"""

import random
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from loguru import logger

from config.settings import EVENT_COUNTRIES, EVENT_MONTHS
from database.event_repository import EventRepository
from database.models import EquineEvent, utcnow


class EventDiscoveryPipeline:
    """
    Usage:
        pipeline = EventDiscoveryPipeline(gateway, events)
        new_events = pipeline.run()
    """

    def __init__(
        self,
        gateway,
        events: EventRepository,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.gateway = gateway
        self.events = events
        self.rng = rng or random.Random()
        self.clock = clock or utcnow

    def pick_target(self) -> Tuple[str, str, int]:
        """Random (month, country) and the year of the next such month."""
        month = self.rng.choice(EVENT_MONTHS)
        country = self.rng.choice(EVENT_COUNTRIES)
        now = self.clock()
        year = now.year
        if EVENT_MONTHS.index(month) + 1 < now.month:
            year += 1
        return month, country, year

    def run(self) -> List[EquineEvent]:
        """
        Returns:
            Events newly added to the collection
        """
        logger.info("=" * 50)
        logger.info("🏇 STAGE 2: EVENT DISCOVERY")
        logger.info("=" * 50)

        month, country, year = self.pick_target()
        logger.info(f"📅 Target: {month} {year} in {country}")

        found = self.gateway.discover_events(month, country, year)
        added = [e for e in found if self.events.save_event(e)]

        logger.info(f"✅ {len(added)} new events ({len(found) - len(added)} already known)")
        return added
