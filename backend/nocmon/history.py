# backend/nocmon/history.py
"""
Historical series and CSV export.

A range token (24h / 7d / 30d) is resolved to an absolute start time on
every request. Exports of zone metrics are keyed on the NOC timestamps:
the UPS and Data Center columns carry the most recent reading taken at or
before each NOC timestamp (as-of join), not a reading with an equal time.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .config import settings
from .datasource import TIMESTAMP_FORMAT, DataSource, serialize_value
from .models.telemetry import (
    SENSOR_TABLES,
    DatacenterSensorData,
    ElectricalData,
    NocSensorData,
    UpsSensorData,
)
from .thresholds import format_number

logger = logging.getLogger(__name__)

RANGE_DAYS = {"24h": 1, "7d": 7, "30d": 30}
DEFAULT_RANGE = "24h"

# metric kind -> column in the zone tables
METRIC_COLUMNS = {
    "temperature": "suhu",
    "humidity": "kelembapan",
}

HISTORY_ELECTRICAL_COLUMNS = ("phase_r", "phase_s", "phase_t")
EXPORT_ELECTRICAL_COLUMNS = ("phase_r", "phase_s", "phase_t", "power_3ph", "frequency_3ph", "pf_3ph")

EXPORT_HEADERS = {
    "temperature": "Timestamp,NOC Temperature (°C),UPS Temperature (°C),Data Center Temperature (°C)",
    "humidity": "Timestamp,NOC Humidity (%),UPS Humidity (%),Data Center Humidity (%)",
    "electrical": "Timestamp,Phase R (V),Phase S (V),Phase T (V),Power (kW),Frequency (Hz),Power Factor",
}


class InvalidExportType(ValueError):
    pass


@dataclass(frozen=True)
class CsvExport:
    filename: str
    content: str


def local_now() -> datetime:
    """Current wall-clock time in the store's fixed offset, as a naive datetime."""
    tz = timezone(timedelta(hours=settings.TIMEZONE_OFFSET_HOURS))
    return datetime.now(tz).replace(tzinfo=None)


def normalize_range(token: Optional[str]) -> str:
    if isinstance(token, str) and token in RANGE_DAYS:
        return token
    return DEFAULT_RANGE


def resolve_window(token: Optional[str], now: Optional[datetime] = None) -> datetime:
    now = now or local_now()
    return now - timedelta(days=RANGE_DAYS[normalize_range(token)])


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.strptime(str(value), TIMESTAMP_FORMAT)


def asof_lookup(primary_times: Sequence[Any], secondary_times: Sequence[Any],
                secondary_values: Sequence[Any]) -> List[Any]:
    """
    For every primary timestamp, the secondary value whose timestamp is the
    greatest one <= that primary timestamp (None when there is none).
    `secondary_times` must be ascending.
    """
    if not primary_times:
        return []
    if not secondary_times:
        return [None] * len(primary_times)

    primary = np.array([_as_datetime(t) for t in primary_times], dtype="datetime64[us]")
    secondary = np.array([_as_datetime(t) for t in secondary_times], dtype="datetime64[us]")

    idx = np.searchsorted(secondary, primary, side="right") - 1
    return [secondary_values[i] if i >= 0 else None for i in idx.tolist()]


# =========================================================================
# CSV
# =========================================================================
def format_csv_value(value: Any) -> str:
    """Strings are quoted, numbers are bare, missing values are empty."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return format_number(value)
    if isinstance(value, datetime):
        value = value.strftime(TIMESTAMP_FORMAT)
    text = str(value).replace('"', '""')
    return f'"{text}"'


def render_csv(header: str, rows: Sequence[Sequence[Any]]) -> str:
    lines = [",".join(format_csv_value(v) for v in row) for row in rows]
    return header + "\n" + "\n".join(lines)


# =========================================================================
# SERVICE
# =========================================================================
class HistoricalQueryService:
    def __init__(self, datasource: DataSource):
        self.datasource = datasource

    async def fetch(self, token: Optional[str] = DEFAULT_RANGE,
                    now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Bundle for the dashboard charts:
        {"temperature": {zone: [...]}, "humidity": {zone: [...]}, "electrical": [...]}
        """
        start = resolve_window(token, now)
        ds = self.datasource

        pairs = [(kind, zone) for kind in METRIC_COLUMNS for zone in SENSOR_TABLES]
        zone_series = await asyncio.gather(*[
            ds.value_series(SENSOR_TABLES[zone], start, METRIC_COLUMNS[kind])
            for kind, zone in pairs
        ])
        electrical = await ds.series(ElectricalData, start, HISTORY_ELECTRICAL_COLUMNS)

        bundle: Dict[str, Any] = {kind: {} for kind in METRIC_COLUMNS}
        for (kind, zone), rows in zip(pairs, zone_series):
            bundle[kind][zone] = rows
        bundle["electrical"] = electrical
        return bundle

    async def export(self, kind: str, token: Optional[str] = DEFAULT_RANGE,
                     now: Optional[datetime] = None) -> CsvExport:
        if kind not in EXPORT_HEADERS:
            raise InvalidExportType("Invalid export type")

        token = normalize_range(token)
        now = now or local_now()
        start = resolve_window(token, now)

        if kind == "electrical":
            rows = await self._electrical_rows(start)
        else:
            rows = await self._zone_rows(METRIC_COLUMNS[kind], start)

        filename = f"{kind}_data_{token}_{now.strftime('%Y-%m-%d')}.csv"
        logger.info(f"📤 Export {kind} ({token}): {len(rows)} rows")
        return CsvExport(filename=filename, content=render_csv(EXPORT_HEADERS[kind], rows))

    async def _electrical_rows(self, start: datetime) -> List[List[Any]]:
        records = await self.datasource.series(ElectricalData, start, EXPORT_ELECTRICAL_COLUMNS)
        return [[r["timestamp"]] + [r[c] for c in EXPORT_ELECTRICAL_COLUMNS] for r in records]

    async def _zone_rows(self, column: str, start: datetime) -> List[List[Any]]:
        ds = self.datasource
        primary = await ds.series(NocSensorData, start, [column], serialize=False)
        if not primary:
            return []

        primary_times = [r["timestamp"] for r in primary]
        secondary_columns = []
        for model in (UpsSensorData, DatacenterSensorData):
            # One reading from before the window keeps the earliest rows filled.
            prior = await ds.last_before(model, start, [column], serialize=False)
            records = await ds.series(model, start, [column], serialize=False)
            if prior is not None:
                records = [prior] + records
            secondary_columns.append(asof_lookup(
                primary_times,
                [r["timestamp"] for r in records],
                [r[column] for r in records],
            ))

        return [
            [serialize_value(r["timestamp"]), r[column], ups, datacenter]
            for r, ups, datacenter in zip(primary, *secondary_columns)
        ]
