# backend/nocmon/thresholds.py
"""
Threshold policy for facility readings.

Each check is a pure function of (label, value) returning the status and,
when the value is out of band, the alert text shown on the dashboard.
Checks are level triggered: every out-of-band observation yields an alert.
"""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class Status:
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


class Severity:
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class AlertMessage:
    severity: str
    text: str


@dataclass(frozen=True)
class Evaluation:
    status: str
    alert: Optional[AlertMessage] = None


@dataclass(frozen=True)
class Band:
    low: float
    high: float


@dataclass(frozen=True)
class ThresholdPolicy:
    temperature_warning: Band = field(default_factory=lambda: Band(18, 23))
    temperature_critical: Band = field(default_factory=lambda: Band(18, 25))
    humidity_warning: Band = field(default_factory=lambda: Band(30, 60))
    voltage_warning: Band = field(default_factory=lambda: Band(210, 240))
    voltage_critical: Band = field(default_factory=lambda: Band(200, 250))
    fire_alert_below: int = 50
    smoke_detected_value: int = 0


DEFAULT_POLICY = ThresholdPolicy()

NORMAL = Evaluation(Status.NORMAL)

FIRE_ALERT = "CRITICAL ALERT: Fire detected! Take immediate action."
SMOKE_ALERT = "WARNING: Smoke detected! Investigate immediately."


def format_number(value: Any) -> str:
    """Render a number the way the dashboard prints it: 26, 26.5, 230.25."""
    number = float(value)
    if not math.isfinite(number):
        return str(number)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def _critical(text: str) -> Evaluation:
    return Evaluation(Status.CRITICAL, AlertMessage(Severity.CRITICAL, text))


def _warning(text: str) -> Evaluation:
    return Evaluation(Status.WARNING, AlertMessage(Severity.WARNING, text))


# =========================================================================
# 1. TEMPERATURE (°C)
# =========================================================================
def evaluate_temperature(label: str, value: float, policy: ThresholdPolicy = DEFAULT_POLICY) -> Evaluation:
    # Low-side warning is folded into critical: anything under the warning
    # floor is already outside the safe range.
    warn, crit = policy.temperature_warning, policy.temperature_critical
    v = format_number(value)

    if value < warn.low or value > crit.high:
        return _critical(
            f"CRITICAL ALERT: {label} is at {v}°C "
            f"(outside safe range: {format_number(warn.low)}°C - {format_number(crit.high)}°C)!"
        )
    if warn.high <= value <= crit.high:
        return _warning(
            f"WARNING: {label} is at {v}°C "
            f"(warning range: {format_number(warn.high)}°C - {format_number(crit.high)}°C)!"
        )
    return NORMAL


# =========================================================================
# 2. HUMIDITY (%) - single warning tier
# =========================================================================
def evaluate_humidity(label: str, value: float, policy: ThresholdPolicy = DEFAULT_POLICY) -> Evaluation:
    band = policy.humidity_warning
    v = format_number(value)

    if value < band.low:
        return _warning(f"WARNING: {label} is too low at {v}% (minimum: {format_number(band.low)}%)!")
    if value > band.high:
        return _warning(f"WARNING: {label} is too high at {v}% (maximum: {format_number(band.high)}%)!")
    return NORMAL


# =========================================================================
# 3. PHASE VOLTAGE (V)
# =========================================================================
def evaluate_voltage(label: str, value: float, policy: ThresholdPolicy = DEFAULT_POLICY) -> Evaluation:
    warn, crit = policy.voltage_warning, policy.voltage_critical
    v = format_number(value)

    if value <= crit.low:
        return _critical(f"CRITICAL ALERT: {label} voltage is too low at {v}V (threshold: {format_number(crit.low)}V)!")
    if value >= crit.high:
        return _critical(f"CRITICAL ALERT: {label} voltage is too high at {v}V (threshold: {format_number(crit.high)}V)!")
    if value <= warn.low:
        return _warning(f"WARNING: {label} voltage is low at {v}V (threshold: {format_number(warn.low)}V)!")
    if value >= warn.high:
        return _warning(f"WARNING: {label} voltage is high at {v}V (threshold: {format_number(warn.high)}V)!")
    return NORMAL


# =========================================================================
# 4. FIRE / SMOKE
# =========================================================================
def evaluate_fire(api_value: int, policy: ThresholdPolicy = DEFAULT_POLICY) -> Evaluation:
    if api_value < policy.fire_alert_below:
        return _critical(FIRE_ALERT)
    return NORMAL


def evaluate_smoke(asap_value: int, policy: ThresholdPolicy = DEFAULT_POLICY) -> Evaluation:
    if asap_value == policy.smoke_detected_value:
        return _warning(SMOKE_ALERT)
    return NORMAL


# =========================================================================
# EVENT DISPATCH
# =========================================================================
ZONE_LABELS = {
    "noc": "NOC",
    "ups": "UPS",
    "datacenter": "Data Center",
}

PHASES = (("phase_r", "Phase R"), ("phase_s", "Phase S"), ("phase_t", "Phase T"))


def _number(payload: Dict[str, Any], key: str) -> Optional[float]:
    value = payload.get(key)
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def evaluate_event(event: str, payload: Any, policy: ThresholdPolicy = DEFAULT_POLICY) -> List[Evaluation]:
    """Apply every check that the given wire event carries data for."""
    if not isinstance(payload, dict):
        return []

    results: List[Evaluation] = []
    zone, _, kind = event.partition("_")

    if zone in ZONE_LABELS and kind == "temperature":
        value = _number(payload, "suhu")
        if value is not None:
            results.append(evaluate_temperature(f"{ZONE_LABELS[zone]} temperature", value, policy))

    elif zone in ZONE_LABELS and kind == "humidity":
        value = _number(payload, "kelembapan")
        if value is not None:
            results.append(evaluate_humidity(f"{ZONE_LABELS[zone]} humidity", value, policy))

    elif event == "electrical_data":
        for key, label in PHASES:
            value = _number(payload, key)
            if value is not None:
                results.append(evaluate_voltage(label, value, policy))

    elif event == "fire_smoke_data":
        api_value = _number(payload, "api_value")
        if api_value is not None:
            results.append(evaluate_fire(api_value, policy))
        asap_value = _number(payload, "asap_value")
        if asap_value is not None:
            results.append(evaluate_smoke(asap_value, policy))

    return results


def alerts_for_event(event: str, payload: Any, policy: ThresholdPolicy = DEFAULT_POLICY) -> List[AlertMessage]:
    return [e.alert for e in evaluate_event(event, payload, policy) if e.alert is not None]
