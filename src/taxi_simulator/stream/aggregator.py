"""
Feed Aggregator
===============

Consumer-side view of the live feed.

Each "taxis-" batch from the hub replaces the displayed feed entirely
(latest batch wins, no merging or diffing). Malformed batches are logged
and dropped; the previous feed stays on display.

Example:
    aggregator = FeedAggregator()
    aggregator.add_listener(lambda batch: print(aggregator.rows()))
    transport.on_message(aggregator.handle_message)
"""

import logging
from typing import Callable, Dict, List, Optional, Union

from taxi_simulator.errors import ProtocolError
from taxi_simulator.models.messages import FeedBatch, parse_feed_batch


logger = logging.getLogger(__name__)


FeedListener = Callable[[FeedBatch], None]


class FeedAggregatorMetrics:
    """Counters for aggregator observability."""

    __slots__ = ("batches_received", "batches_dropped", "ignored_frames")

    def __init__(self) -> None:
        self.batches_received: int = 0
        self.batches_dropped: int = 0
        self.ignored_frames: int = 0

    def to_dict(self) -> dict:
        return {
            "batches_received": self.batches_received,
            "batches_dropped": self.batches_dropped,
            "ignored_frames": self.ignored_frames,
        }


class FeedAggregator:
    """
    Holds the latest feed batch and publishes it to listeners.

    Attributes:
        current: The batch currently on display
        metrics: Received/dropped counters
    """

    def __init__(self) -> None:
        self._current = FeedBatch()
        self._listeners: List[FeedListener] = []
        self.metrics = FeedAggregatorMetrics()

    @property
    def current(self) -> FeedBatch:
        return self._current

    def add_listener(self, listener: FeedListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: FeedListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def handle_message(self, raw: Union[str, bytes]) -> Optional[FeedBatch]:
        """
        Process one incoming frame.

        Args:
            raw: Frame payload; binary frames are ignored

        Returns:
            The new batch, or None if the frame was ignored or dropped
        """
        if not isinstance(raw, str):
            self.metrics.ignored_frames += 1
            return None

        try:
            batch = parse_feed_batch(raw)
        except ProtocolError as e:
            self.metrics.batches_dropped += 1
            logger.warning(f"Dropping malformed feed batch: {e}")
            return None

        self._current = batch
        self.metrics.batches_received += 1
        logger.debug(f"Feed updated with {len(batch)} taxis")

        for listener in list(self._listeners):
            listener(batch)
        return batch

    def clear(self) -> None:
        self._current = FeedBatch()

    def rows(self) -> List[Dict[str, object]]:
        """Display rows for the current batch, one per taxi."""
        return [
            {
                "type": "taxi",
                "id": record.producer_id,
                "latitude": record.latitude,
                "longitude": record.longitude,
            }
            for record in self._current
        ]
