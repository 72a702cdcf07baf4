"""
Feed Aggregator and Simulator CLI Tests
=======================================
"""

import asyncio

import pytest

from taxi_simulator import simulate
from taxi_simulator.config import Settings
from taxi_simulator.errors import RouteLookupError
from taxi_simulator.models.geo import GeoPoint
from taxi_simulator.session.manager import ConnectionRoleManager
from taxi_simulator.stream.aggregator import FeedAggregator

from conftest import REFERENCE_POLYLINE, FakeConnector


class ClosingConnector(FakeConnector):
    """Closes each transport right after it opens, with the next queued code."""

    def __init__(self, codes) -> None:
        super().__init__()
        self.codes = list(codes)

    async def connect(self, role, session_id, position):
        transport = await super().connect(role, session_id, position)
        code = self.codes.pop(0)
        asyncio.get_running_loop().call_soon(transport.remote_close, code)
        return transport


class TestFeedAggregator:
    """Latest batch wins; bad frames leave the feed untouched."""

    def test_batches_replace(self):
        aggregator = FeedAggregator()
        aggregator.handle_message("taxis-1.0,2.0&a$3.0,4.0&b")
        aggregator.handle_message("taxis-5.0,6.0&c")

        assert aggregator.current.ids() == ("c",)
        assert aggregator.rows() == [
            {"type": "taxi", "id": "c", "latitude": 5.0, "longitude": 6.0}
        ]

    def test_malformed_batch_keeps_previous(self):
        aggregator = FeedAggregator()
        aggregator.handle_message("taxis-1.0,2.0&a")

        assert aggregator.handle_message("taxis-1.0&a") is None
        assert aggregator.handle_message("hello") is None

        assert aggregator.current.ids() == ("a",)
        assert aggregator.metrics.batches_dropped == 2
        assert aggregator.metrics.batches_received == 1

    def test_binary_frames_ignored(self):
        aggregator = FeedAggregator()
        assert aggregator.handle_message(b"taxis-1.0,2.0&a") is None
        assert aggregator.metrics.to_dict()["ignored_frames"] == 1

    def test_empty_batch_clears_display(self):
        aggregator = FeedAggregator()
        aggregator.handle_message("taxis-1.0,2.0&a")
        aggregator.handle_message("taxis-")
        assert aggregator.rows() == []

    def test_listeners(self):
        aggregator = FeedAggregator()
        seen = []
        aggregator.add_listener(seen.append)
        aggregator.handle_message("taxis-1.0,2.0&a")
        aggregator.remove_listener(seen.append)
        aggregator.handle_message("taxis-1.0,2.0&b")

        assert [batch.ids() for batch in seen] == [("a",)]


class TestResolveRoute:
    def test_polyline_argument(self):
        args = simulate.build_parser().parse_args(["taxi", "--polyline", REFERENCE_POLYLINE])
        route = asyncio.run(simulate.resolve_route(Settings(), args))
        assert route[0] == GeoPoint(38.5, -120.2)

    def test_places_required(self):
        args = simulate.build_parser().parse_args(["taxi", "--origin", "Wuppertal"])
        with pytest.raises(RouteLookupError):
            asyncio.run(simulate.resolve_route(Settings(), args))


class TestRunners:
    """Runners against an in-memory connector."""

    def test_taxi_completes_route(self, monkeypatch):
        connector = FakeConnector()
        monkeypatch.setattr(
            simulate, "build_manager",
            lambda settings, hub_url, interval: ConnectionRoleManager(connector, tick_interval=0),
        )
        args = simulate.build_parser().parse_args(
            ["map-taxi", "--polyline", REFERENCE_POLYLINE, "--id", "cab1"]
        )

        assert asyncio.run(simulate.run_taxi(Settings(), args)) == 0
        assert len(connector.transports[0].sent) == 3

    def test_client_reconnects_after_abnormal_close(self, monkeypatch):
        connector = ClosingConnector([1006, 1000])
        monkeypatch.setattr(
            simulate, "build_manager",
            lambda settings, hub_url, interval: ConnectionRoleManager(connector),
        )
        settings = Settings()
        settings.client.reconnect_backoff_ms = 100
        args = simulate.build_parser().parse_args(["client", "--id", "watcher"])

        assert asyncio.run(simulate.run_client(settings, args)) == 0
        assert len(connector.attempts) == 2

    def test_client_gives_up_when_hub_unreachable(self, monkeypatch):
        connector = FakeConnector(fail=True)
        monkeypatch.setattr(
            simulate, "build_manager",
            lambda settings, hub_url, interval: ConnectionRoleManager(connector),
        )
        settings = Settings()
        settings.client.reconnect_backoff_ms = 100
        settings.client.max_reconnect_attempts = 2
        args = simulate.build_parser().parse_args(["client", "--id", "watcher"])

        assert asyncio.run(simulate.run_client(settings, args)) == 1
        assert len(connector.attempts) == 3

    def test_unknown_role_exit_code(self):
        assert simulate.main(["admin"]) == 2
