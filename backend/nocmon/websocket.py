# backend/nocmon/websocket.py
import asyncio
import json
import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

# Client -> server
REQUEST_HISTORICAL_DATA = "request_historical_data"
# Server -> client
HISTORICAL_DATA_UPDATE = "historical_data_update"


def make_frame(event: str, data: Any = None) -> Dict[str, Any]:
    return {"event": event, "data": data}


class ClientSession:
    """
    One connected dashboard. Outgoing frames go through a private queue
    drained by a writer task, so publishing never waits on a slow socket.
    """

    def __init__(self, websocket: WebSocket, registry: Optional["SessionRegistry"] = None):
        self.websocket = websocket
        self.registry = registry
        self.id = uuid.uuid4().hex[:8]
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False
        self._writer: Optional[asyncio.Task] = None

    def start(self):
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain())

    def send(self, event: str, data: Any = None):
        """Queue a frame; dropped silently once the session is closed."""
        if self.closed:
            return
        self.queue.put_nowait(make_frame(event, data))

    async def _drain(self):
        while True:
            frame = await self.queue.get()
            try:
                await self.websocket.send_json(frame)
            except Exception as e:
                logger.error(f"❌ WS send error [{self.id}]: {e}")
                self.closed = True
                if self.registry is not None:
                    self.registry.discard(self)
                return

    async def close(self):
        self.closed = True
        if self._writer is not None and not self._writer.done():
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass


class SessionRegistry:
    """Active sessions: added on connect, removed on disconnect or send failure."""

    def __init__(self):
        self._sessions: Dict[str, ClientSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session: ClientSession) -> bool:
        return session.id in self._sessions

    async def connect(self, websocket: WebSocket) -> ClientSession:
        await websocket.accept()
        session = ClientSession(websocket, registry=self)
        self._sessions[session.id] = session
        session.start()
        logger.info(f"✅ WebSocket connected [{session.id}]. Total: {len(self._sessions)}")
        return session

    def discard(self, session: ClientSession):
        if self._sessions.pop(session.id, None) is not None:
            logger.info(f"❌ WebSocket disconnected [{session.id}]. Total: {len(self._sessions)}")

    async def disconnect(self, session: ClientSession):
        self.discard(session)
        await session.close()

    def publish(self, event: str, data: Any):
        # Iterate a snapshot: sessions may leave while we fan out.
        for session in list(self._sessions.values()):
            session.send(event, data)

    async def close_all(self):
        for session in list(self._sessions.values()):
            await self.disconnect(session)


async def handle_message(session: ClientSession, raw: str, history) -> None:
    """Dispatch one client frame. Bad frames are logged and ignored."""
    if raw == "ping":
        session.send("pong")
        return

    try:
        message = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error(f"Socket error [{session.id}]: malformed frame ({e})")
        return

    if not isinstance(message, dict):
        logger.error(f"Socket error [{session.id}]: frame is not an object")
        return

    event = message.get("event")
    if event == REQUEST_HISTORICAL_DATA:
        data = message.get("data") or {}
        time_range = data.get("timeRange") if isinstance(data, dict) else None
        try:
            bundle = await history.fetch(time_range)
        except Exception as e:
            logger.error(f"Error sending historical data [{session.id}]: {e}", exc_info=True)
            return
        session.send(HISTORICAL_DATA_UPDATE, bundle)
    elif event == "ping":
        session.send("pong")
    else:
        logger.warning(f"Unknown event from [{session.id}]: {event!r}")


async def run_session(websocket: WebSocket, registry: SessionRegistry, history) -> None:
    """Serve one connection until the client goes away."""
    session = await registry.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            await handle_message(session, raw, history)
    except WebSocketDisconnect as e:
        logger.info(f"Client disconnected [{session.id}]: code={e.code}")
    finally:
        await registry.disconnect(session)
