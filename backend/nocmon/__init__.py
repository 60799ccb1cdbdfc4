"""NOC facility monitor: live telemetry broadcast, alerting and history export."""

__version__ = "1.0.0"
