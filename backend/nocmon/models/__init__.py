# Database models
from nocmon.models.telemetry import (
    NocSensorData,
    UpsSensorData,
    DatacenterSensorData,
    ElectricalData,
    FireSmokeData,
    User,
    SENSOR_TABLES,
)
from nocmon.models.access import AccessLog, AccessUser, Door

__all__ = [
    "NocSensorData",
    "UpsSensorData",
    "DatacenterSensorData",
    "ElectricalData",
    "FireSmokeData",
    "User",
    "SENSOR_TABLES",
    "AccessLog",
    "AccessUser",
    "Door",
]
