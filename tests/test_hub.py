"""
Feed Hub and Application Tests
==============================
"""

import asyncio

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from taxi_simulator.config import Settings
from taxi_simulator.errors import RouteLookupError
from taxi_simulator.hub import FeedHub
from taxi_simulator.main import create_app, negotiate_role, parse_subscribe_params
from taxi_simulator.models.messages import PositionMessage, parse_feed_batch
from taxi_simulator.models.roles import Role


class FakeSocket:
    """Records text frames; optionally fails every send."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.frames = []

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("socket is gone")
        self.frames.append(data)


class FakeDirections:
    def __init__(self, routes=None, error=None) -> None:
        self.routes = routes or []
        self.error = error
        self.calls = []

    def get_routes(self, origin, destination):
        self.calls.append((origin, destination))
        if self.error is not None:
            raise self.error
        return self.routes


START = PositionMessage(51.5, -0.12, 0)


class TestFeedHub:
    """Hub state and broadcasting."""

    def test_taxi_position_updates_snapshot(self):
        hub = FeedHub()
        hub.add("t1", Role.PRODUCER, FakeSocket(), START)

        position = hub.handle_message("t1", "pos#51.501,-0.12,45")

        assert position == PositionMessage(51.501, -0.12, 45)
        assert hub.snapshot().ids() == ("t1",)
        assert hub.positions() == [
            {"id": "t1", "latitude": 51.501, "longitude": -0.12, "heading": 45}
        ]

    def test_client_and_unknown_messages_ignored(self):
        hub = FeedHub()
        hub.add("c1", Role.CONSUMER, FakeSocket(), START)
        hub.add("t1", Role.PRODUCER, FakeSocket(), START)

        assert hub.handle_message("c1", "pos#1.0,2.0,0") is None
        assert hub.handle_message("t1", "hello") is None
        assert hub.handle_message("t1", "pos#north,2.0,0") is None
        assert len(hub.snapshot()) == 0

    def test_broadcast_reaches_every_client(self):
        hub = FeedHub()
        first, second = FakeSocket(), FakeSocket()
        hub.add("c1", Role.CONSUMER, first, START)
        hub.add("c2", Role.CONSUMER, second, START)
        hub.add("t1", Role.PRODUCER, FakeSocket(), START)
        hub.handle_message("t1", "pos#51.5,-0.12,90")

        delivered = asyncio.run(hub.broadcast_once())

        assert delivered == 2
        assert first.frames == ["taxis-51.5,-0.12&t1"]
        assert second.frames == first.frames
        assert hub.broadcasts_sent == 2

    def test_broadcast_with_heading(self):
        hub = FeedHub(include_heading=True)
        client = FakeSocket()
        hub.add("c1", Role.CONSUMER, client, START)
        hub.add("t1", Role.PRODUCER, FakeSocket(), START)
        hub.handle_message("t1", "pos#51.5,-0.12,90")

        asyncio.run(hub.broadcast_once())

        batch = parse_feed_batch(client.frames[0])
        assert batch.records[0].heading == 90

    def test_nothing_sent_before_first_position(self):
        hub = FeedHub()
        client = FakeSocket()
        hub.add("c1", Role.CONSUMER, client, START)
        hub.add("t1", Role.PRODUCER, FakeSocket(), START)

        assert asyncio.run(hub.broadcast_once()) == 0
        assert client.frames == []

    def test_failing_client_is_dropped(self):
        hub = FeedHub()
        healthy = FakeSocket()
        hub.add("c1", Role.CONSUMER, FakeSocket(fail=True), START)
        hub.add("c2", Role.CONSUMER, healthy, START)
        hub.add("t1", Role.PRODUCER, FakeSocket(), START)
        hub.handle_message("t1", "pos#51.5,-0.12,0")

        delivered = asyncio.run(hub.broadcast_once())

        assert delivered == 1
        assert hub.client_count == 1
        assert len(healthy.frames) == 1

    def test_remove_drops_taxi_position(self):
        hub = FeedHub()
        hub.add("t1", Role.PRODUCER, FakeSocket(), START)
        hub.handle_message("t1", "pos#51.5,-0.12,0")

        hub.remove("t1")

        assert hub.taxi_count == 0
        assert hub.positions() == []

    def test_stale_socket_does_not_evict_replacement(self):
        hub = FeedHub()
        old, new = FakeSocket(), FakeSocket()
        hub.add("t1", Role.PRODUCER, old, START)
        hub.add("t1", Role.PRODUCER, new, START)

        hub.remove("t1", old)

        assert hub.taxi_count == 1

    def test_run_stops(self):
        hub = FeedHub()

        async def scenario():
            task = asyncio.create_task(hub.run(0.01))
            await asyncio.sleep(0.05)
            hub.stop()
            await asyncio.wait_for(task, timeout=1.0)

        asyncio.run(scenario())


class TestSubscribeHelpers:
    """Role negotiation and query parsing."""

    def test_first_known_role_wins(self):
        assert negotiate_role(["chat", "map-client", "map-taxi"]) == (Role.CONSUMER, "map-client")

    def test_no_known_role(self):
        assert negotiate_role(["map-admin"]) == (None, None)
        assert negotiate_role([]) == (None, None)

    def test_params(self):
        session_id, position = parse_subscribe_params(
            {"id": "abc", "lat": "51.5", "lon": "-0.12", "head": "90"}
        )
        assert session_id == "abc"
        assert position == PositionMessage(51.5, -0.12, 90)

    @pytest.mark.parametrize("params", [
        {"lat": "51.5", "lon": "-0.12"},
        {"id": "a&b", "lat": "51.5", "lon": "-0.12"},
        {"id": "abc", "lon": "-0.12"},
        {"id": "abc", "lat": "x", "lon": "-0.12"},
    ])
    def test_invalid_params(self, params):
        with pytest.raises(ValueError):
            parse_subscribe_params(params)


@pytest.fixture
def app_settings():
    settings = Settings()
    settings.hub.broadcast_interval_seconds = 0.05
    return settings


class TestHttpEndpoints:
    """Plain HTTP routes."""

    def test_health(self, app_settings):
        with TestClient(create_app(app_settings)) as client:
            response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["taxis"] == 0
        assert body["clients"] == 0

    def test_taxis_empty(self, app_settings):
        with TestClient(create_app(app_settings)) as client:
            assert client.get("/taxis").json() == []

    def test_route_requires_both_places(self, app_settings):
        with TestClient(create_app(app_settings)) as client:
            response = client.get("/route", params={"from": "Wuppertal"})
        assert response.status_code == 400

    def test_route_unconfigured(self, app_settings):
        with TestClient(create_app(app_settings)) as client:
            response = client.get("/route", params={"from": "Wuppertal", "to": "Dusseldorf"})
        assert response.status_code == 503

    def test_route_passthrough(self, app_settings):
        routes = [{"summary": "A46", "overview_polyline": {"points": "_p~iF~ps|U"}}]
        app = create_app(app_settings)
        app.state.directions = FakeDirections(routes)

        with TestClient(app) as client:
            response = client.get("/route", params={"from": "Wuppertal", "to": "Dusseldorf"})

        assert response.status_code == 200
        assert response.json() == routes
        assert app.state.directions.calls == [("Wuppertal", "Dusseldorf")]

    def test_route_upstream_failure(self, app_settings):
        app = create_app(app_settings)
        app.state.directions = FakeDirections(error=RouteLookupError("OVER_QUERY_LIMIT"))

        with TestClient(app) as client:
            response = client.get("/route", params={"from": "a", "to": "b"})
        assert response.status_code == 502


class TestSubscribeEndpoint:
    """WebSocket sessions against the running app."""

    def test_missing_role_is_rejected(self, app_settings):
        with TestClient(create_app(app_settings)) as client:
            with pytest.raises(WebSocketDisconnect):
                with client.websocket_connect("/subscribe?id=abc&lat=1&lon=2") as ws:
                    ws.receive_text()

    def test_bad_params_are_rejected(self, app_settings):
        with TestClient(create_app(app_settings)) as client:
            with pytest.raises(WebSocketDisconnect):
                with client.websocket_connect(
                    "/subscribe?id=a$b&lat=1&lon=2", subprotocols=["map-taxi"]
                ) as ws:
                    ws.receive_text()

    def test_client_receives_taxi_positions(self, app_settings):
        app = create_app(app_settings)

        with TestClient(app) as client:
            with client.websocket_connect(
                "/subscribe?id=watcher&lat=51.5&lon=-0.12", subprotocols=["map-client"]
            ) as watcher:
                assert watcher.accepted_subprotocol == "map-client"
                with client.websocket_connect(
                    "/subscribe?id=cab1&lat=51.5&lon=-0.12&head=0", subprotocols=["map-taxi"]
                ) as taxi:
                    taxi.send_text("pos#51.501,-0.12,0")
                    batch = parse_feed_batch(watcher.receive_text())

        assert batch.ids() == ("cab1",)
        assert batch.records[0].latitude == 51.501
        assert app.state.hub.taxi_count == 0
        assert app.state.hub.client_count == 0
