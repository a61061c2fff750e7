"""
ScanLedger Backend — Dashboard Event Notifier
===============================================

What:  Fans recorded scans out to live dashboard subscribers.
How:   Every subscriber (one per /ws/dashboard connection) owns a bounded
       asyncio.Queue. publish() does put_nowait() into each queue and returns;
       it never awaits a subscriber.

Delivery is fire-and-forget: an event that does not fit a subscriber's queue
is dropped for that subscriber and logged. A missed event only makes a
dashboard stale; stored data is unaffected.

Subscribers are per process. Dashboards connected to another instance see
only the scans that instance recorded.
"""

import asyncio
import logging
from typing import Set

from scanledger.config import settings
from scanledger.models.scan import ScanEvent
from scanledger.schemas.scan import DashboardEvent

logger = logging.getLogger(__name__)


class DashboardNotifier:
    """In-process publish/subscribe hub for the live scan feed."""

    def __init__(self, queue_size: int = settings.notifier_queue_size):
        self.queue_size = queue_size
        self._subscribers: Set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> "asyncio.Queue[DashboardEvent]":
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.add(queue)
        logger.info("Dashboard subscriber connected (%d total)", len(self._subscribers))
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)
        logger.info("Dashboard subscriber disconnected (%d total)", len(self._subscribers))

    @staticmethod
    def build_event(event: ScanEvent) -> DashboardEvent:
        return DashboardEvent(
            type=event.direction,
            barcode=event.barcode,
            model=event.model,
            color=event.color,
            size=event.size,
            quantity=event.quantity,
            username=event.username,
            sequence_number=event.sequence_number,
            timestamp=event.scanned_at,
        )

    def publish(self, event: ScanEvent) -> int:
        """
        Offer a recorded scan to every subscriber without waiting.

        Returns:
            How many subscribers received it.
        """
        message = self.build_event(event)
        delivered = 0
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(
                    "Dashboard subscriber queue full; dropped %s #%d",
                    message.type,
                    message.sequence_number,
                )
        return delivered


dashboard_notifier = DashboardNotifier()
