"""
Stream Module
=============

Session transport and the two ends of the position feed.

This module provides:
    - Transport / WebSocketTransport / WebSocketConnector: Per-session connection
    - PositionStreamer: Producer side, one position message per tick
    - FeedAggregator: Consumer side, latest-batch-wins feed view

Example:
    from taxi_simulator.stream import FeedAggregator, PositionStreamer

    streamer = PositionStreamer(session, transport, interval=1.7)
    streamer.start()
"""

from taxi_simulator.stream.transport import (
    Connector,
    Transport,
    WebSocketConnector,
    WebSocketTransport,
    build_endpoint,
)
from taxi_simulator.stream.streamer import PositionStreamer, StreamerState
from taxi_simulator.stream.aggregator import FeedAggregator, FeedAggregatorMetrics


__all__ = [
    "Connector",
    "Transport",
    "WebSocketConnector",
    "WebSocketTransport",
    "build_endpoint",
    "PositionStreamer",
    "StreamerState",
    "FeedAggregator",
    "FeedAggregatorMetrics",
]
