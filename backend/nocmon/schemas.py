#backend/nocmon/schemas.py
from pydantic import BaseModel
from typing import Optional, Dict, List, Literal

class LoginRequest(BaseModel):
    username: str
    password: str

class Token(BaseModel):
    token: str

class HealthResponse(BaseModel):
    status: str
    database: Literal["connected", "disconnected"]
    ssl: bool

class AccessLogEntry(BaseModel):
    access_time: str
    access_granted: bool
    username: Optional[str] = None
    door_name: Optional[str] = None

class SeriesPoint(BaseModel):
    timestamp: str
    value: Optional[float] = None

class ElectricalPoint(BaseModel):
    timestamp: str
    phase_r: Optional[float] = None
    phase_s: Optional[float] = None
    phase_t: Optional[float] = None

class HistoricalData(BaseModel):
    """Payload of the historical_data_update event."""
    temperature: Dict[str, List[SeriesPoint]]
    humidity: Dict[str, List[SeriesPoint]]
    electrical: List[ElectricalPoint]

class HistoricalRequest(BaseModel):
    timeRange: Literal["24h", "7d", "30d"] = "24h"
