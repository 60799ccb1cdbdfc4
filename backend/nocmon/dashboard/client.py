# backend/nocmon/dashboard/client.py
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Union

import httpx
import websockets
from pydantic import ValidationError

from ..config import settings
from ..schemas import HistoricalData, HistoricalRequest
from ..thresholds import DEFAULT_POLICY, ThresholdPolicy, alerts_for_event
from ..websocket import HISTORICAL_DATA_UPDATE, REQUEST_HISTORICAL_DATA
from .alerts import AlertAggregator
from .session import AuthSession, NotAuthenticated, SessionExpired

logger = logging.getLogger(__name__)

ACCESS_LOG_POLL_SECONDS = 30.0


class DashboardClient:
    """
    Consumer side of the live channel: keeps the latest payload per event,
    re-checks thresholds on every push and feeds the alert list.
    """

    def __init__(self, ws_url: str, aggregator: Optional[AlertAggregator] = None,
                 session: Optional[AuthSession] = None,
                 policy: ThresholdPolicy = DEFAULT_POLICY,
                 access_log_interval: float = ACCESS_LOG_POLL_SECONDS):
        self.ws_url = ws_url
        self.aggregator = aggregator if aggregator is not None else AlertAggregator()
        self.session = session
        self.policy = policy
        self.access_log_interval = access_log_interval

        self.latest: Dict[str, Any] = {}
        self.historical: Optional[HistoricalData] = None
        self.access_logs: List[Dict[str, Any]] = []
        self.connected = False
        self._ws = None

    # ------------------------------------------------------------------
    # Frame handling
    # ------------------------------------------------------------------
    def handle_frame(self, raw: Union[str, bytes, Dict[str, Any]]) -> int:
        """Apply one server frame. Returns how many new alerts it raised."""
        if isinstance(raw, dict):
            frame = raw
        else:
            try:
                frame = json.loads(raw)
            except (TypeError, ValueError) as e:
                logger.error(f"Malformed frame ignored: {e}")
                return 0
        if not isinstance(frame, dict):
            return 0

        event = frame.get("event")
        data = frame.get("data")

        if event == "pong" or not event:
            return 0

        if event == HISTORICAL_DATA_UPDATE:
            try:
                self.historical = HistoricalData.model_validate(data)
            except ValidationError as e:
                logger.error(f"Bad historical bundle: {e}")
            return 0

        if event == "access_logs":
            self.access_logs = data or []
            return 0

        self.latest[event] = data
        raised = 0
        for alert in alerts_for_event(event, data, self.policy):
            if self.aggregator.add(alert):
                raised += 1
        return raised

    # ------------------------------------------------------------------
    # Live channel
    # ------------------------------------------------------------------
    async def request_historical_data(self, time_range: str = "24h"):
        if self._ws is None:
            raise RuntimeError("Not connected")
        request = HistoricalRequest(timeRange=time_range)
        await self._ws.send(json.dumps({"event": REQUEST_HISTORICAL_DATA, "data": request.model_dump()}))

    async def listen(self):
        async with websockets.connect(
            self.ws_url,
            ping_interval=settings.WS_PING_INTERVAL,
            ping_timeout=settings.WS_PING_TIMEOUT,
        ) as ws:
            self._ws = ws
            self.connected = True
            logger.info(f"Connected to {self.ws_url}")
            try:
                async for raw in ws:
                    self.handle_frame(raw)
                    self.aggregator.expire()
            except websockets.exceptions.ConnectionClosed as e:
                logger.warning(f"Connection closed: {e}")
            finally:
                self.connected = False
                self._ws = None

    # ------------------------------------------------------------------
    # Access-log polling (runs beside the push channel, last write wins)
    # ------------------------------------------------------------------
    async def refresh_access_logs(self) -> bool:
        if self.session is None:
            return False
        try:
            entries = await self.session.access_logs()
        except (SessionExpired, NotAuthenticated) as e:
            logger.warning(f"Access logs unavailable: {e}")
            return False
        except httpx.HTTPError as e:
            logger.error(f"Error fetching access logs: {e}")
            return True
        self.access_logs = [entry.model_dump() for entry in entries]
        return True

    async def poll_access_logs(self):
        while await self.refresh_access_logs():
            await asyncio.sleep(self.access_log_interval)

    async def run(self):
        tasks = [self.listen()]
        if self.session is not None:
            tasks.append(self.poll_access_logs())
        await asyncio.gather(*tasks)
