# backend/nocmon/broadcaster.py
"""
Broadcast Loop - pushes the latest reading of every feed to all sessions
Runs as a background task alongside the API
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from .config import settings
from .datasource import DataSource
from .models.telemetry import SENSOR_TABLES, ElectricalData, FireSmokeData
from .websocket import SessionRegistry

logger = logging.getLogger(__name__)


def zone_payload(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "suhu": float(row["suhu"]),
        "kelembapan": float(row["kelembapan"]),
        "waktu": row["waktu"],
    }


class BroadcastLoop:
    """
    Fixed-cadence poll and fan-out.

    Ticks are started every `interval` seconds as separate tasks. When the
    previous tick is still running, the new one is skipped, so at most one
    tick is ever in flight.
    """

    def __init__(self, datasource: DataSource, registry: SessionRegistry,
                 interval: float = settings.BROADCAST_INTERVAL_SECONDS):
        self.datasource = datasource
        self.registry = registry
        self.interval = interval
        self.running = False
        self.skipped_ticks = 0
        self._task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None

    async def run(self):
        """The loop itself; ends only through stop()."""
        self.running = True
        logger.info(f"📡 Broadcast loop started (every {self.interval:g}s)")

        while self.running:
            if self._tick_task is not None and not self._tick_task.done():
                self.skipped_ticks += 1
                logger.warning("⏳ Previous broadcast tick still running, skipping this one")
            else:
                self._tick_task = asyncio.create_task(self.tick())

            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self):
        self.running = False
        for task in (self._task, self._tick_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        logger.info("📡 Broadcast loop stopped")

    def _sources(self) -> List[Tuple[str, Any]]:
        ds = self.datasource
        sources = [(zone, ds.latest(model)) for zone, model in SENSOR_TABLES.items()]
        sources.append(("electrical", ds.latest(ElectricalData)))
        sources.append(("fire_smoke", ds.latest(FireSmokeData)))
        sources.append(("access_logs", ds.access_logs()))
        return sources

    @staticmethod
    def events_for(source: str, result: Any) -> List[Tuple[str, Any]]:
        if source in SENSOR_TABLES:
            payload = zone_payload(result)
            return [(f"{source}_temperature", payload), (f"{source}_humidity", payload)]
        if source == "electrical":
            return [("electrical_data", result)]
        if source == "fire_smoke":
            return [("fire_smoke_data", result)]
        return [("access_logs", result)]

    async def tick(self) -> int:
        """Read every feed once and publish what came back. Returns events sent."""
        emitted = 0
        try:
            sources = self._sources()
            results = await asyncio.gather(*[c for _, c in sources], return_exceptions=True)

            for (source, _), result in zip(sources, results):
                if isinstance(result, BaseException):
                    logger.error(f"Error fetching {source}: {result}")
                    continue
                if not result:
                    continue
                try:
                    events = self.events_for(source, result)
                except (KeyError, TypeError, ValueError) as e:
                    logger.error(f"Malformed {source} row skipped: {e}")
                    continue
                for event, payload in events:
                    self.registry.publish(event, payload)
                    emitted += 1
        except Exception as e:
            logger.error(f"Error fetching or emitting data: {e}", exc_info=True)
        return emitted
