"""
Tests for client sessions, the session registry and inbound frame handling.
"""

import asyncio
import json

from nocmon.websocket import (
    HISTORICAL_DATA_UPDATE,
    REQUEST_HISTORICAL_DATA,
    ClientSession,
    SessionRegistry,
    handle_message,
    make_frame,
)


class FakeWebSocket:
    def __init__(self, fail=False):
        self.fail = fail
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, frame):
        if self.fail:
            raise ConnectionResetError("peer gone")
        self.sent.append(frame)


class FakeHistory:
    def __init__(self, fail=False):
        self.fail = fail
        self.requested = []

    async def fetch(self, token=None):
        self.requested.append(token)
        if self.fail:
            raise RuntimeError("store down")
        return {"temperature": {}, "humidity": {}, "electrical": []}


async def _settle():
    for _ in range(5):
        await asyncio.sleep(0)


def test_make_frame():
    assert make_frame("pong") == {"event": "pong", "data": None}


def test_publish_reaches_every_session():
    async def scenario():
        registry = SessionRegistry()
        sockets = [FakeWebSocket(), FakeWebSocket()]
        for ws in sockets:
            await registry.connect(ws)

        registry.publish("noc_temperature", {"suhu": 22.0})
        await _settle()
        await registry.close_all()
        return registry, sockets

    registry, sockets = asyncio.run(scenario())
    for ws in sockets:
        assert ws.accepted
        assert ws.sent == [{"event": "noc_temperature", "data": {"suhu": 22.0}}]
    assert len(registry) == 0


def test_failed_send_removes_only_that_session():
    async def scenario():
        registry = SessionRegistry()
        good = await registry.connect(FakeWebSocket())
        bad = await registry.connect(FakeWebSocket(fail=True))

        registry.publish("fire_smoke_data", {"api_value": 80})
        await _settle()
        state = (good in registry, bad in registry, bad.closed)

        # Later publishes still reach the healthy session
        registry.publish("fire_smoke_data", {"api_value": 81})
        await _settle()
        sent = list(good.websocket.sent)
        await registry.close_all()
        return state, sent

    (good_kept, bad_kept, bad_closed), sent = asyncio.run(scenario())
    assert good_kept is True
    assert bad_kept is False
    assert bad_closed is True
    assert [f["data"]["api_value"] for f in sent] == [80, 81]


def test_closed_session_drops_frames():
    async def scenario():
        session = ClientSession(FakeWebSocket())
        session.start()
        await session.close()
        session.send("noc_temperature", {})
        return session.queue.qsize()

    assert asyncio.run(scenario()) == 0


class TestHandleMessage:
    def _run(self, raw, history=None):
        history = history or FakeHistory()

        async def scenario():
            session = ClientSession(FakeWebSocket())
            await handle_message(session, raw, history)
            frames = []
            while not session.queue.empty():
                frames.append(session.queue.get_nowait())
            return frames

        return asyncio.run(scenario()), history

    def test_plain_ping(self):
        frames, _ = self._run("ping")
        assert frames == [{"event": "pong", "data": None}]

    def test_historical_request(self):
        raw = json.dumps({"event": REQUEST_HISTORICAL_DATA, "data": {"timeRange": "7d"}})
        frames, history = self._run(raw)

        assert history.requested == ["7d"]
        assert frames[0]["event"] == HISTORICAL_DATA_UPDATE
        assert set(frames[0]["data"]) == {"temperature", "humidity", "electrical"}

    def test_historical_request_without_range(self):
        frames, history = self._run(json.dumps({"event": REQUEST_HISTORICAL_DATA}))
        assert history.requested == [None]
        assert frames[0]["event"] == HISTORICAL_DATA_UPDATE

    def test_history_failure_sends_nothing(self):
        raw = json.dumps({"event": REQUEST_HISTORICAL_DATA, "data": {"timeRange": "24h"}})
        frames, _ = self._run(raw, FakeHistory(fail=True))
        assert frames == []

    def test_malformed_frames_are_ignored(self):
        for raw in ("{not json", "[1, 2]", json.dumps({"event": "mystery"})):
            frames, history = self._run(raw)
            assert frames == []
            assert history.requested == []
