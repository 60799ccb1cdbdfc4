# backend/nocmon/dashboard/alerts.py
import asyncio
import logging
import sys
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

from ..thresholds import AlertMessage, Severity

logger = logging.getLogger(__name__)

ALERT_DISPLAY_SECONDS = 10.0
ALARM_SECONDS = 3.0


def severity_from_text(text: str) -> str:
    lowered = text.lower()
    if "critical" in lowered:
        return Severity.CRITICAL
    if "warning" in lowered:
        return Severity.WARNING
    return Severity.INFO


def _terminal_bell():
    sys.stdout.write("\a")
    sys.stdout.flush()


class AlarmCue:
    """Audible cue that silences itself after `duration` seconds."""

    def __init__(self, play: Callable[[], None] = _terminal_bell,
                 stop: Callable[[], None] = lambda: None,
                 duration: float = ALARM_SECONDS):
        self._play = play
        self._stop = stop
        self.duration = duration
        self.is_playing = False
        self._timer: Optional[Union[asyncio.TimerHandle, threading.Timer]] = None

    def play(self):
        self._cancel_timer()
        self.is_playing = True
        self._play()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            timer = threading.Timer(self.duration, self.stop)
            timer.daemon = True
            timer.start()
            self._timer = timer
        else:
            self._timer = loop.call_later(self.duration, self.stop)

    def stop(self):
        self._cancel_timer()
        if self.is_playing:
            self._stop()
            self.is_playing = False

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


@dataclass
class ActiveAlert:
    message: AlertMessage
    raised_at: float


class AlertAggregator:
    """
    Alerts currently on screen.

    De-duplication is by exact text: the same condition at a different
    reading (e.g. 26°C then 26.5°C) yields two entries. Each entry
    disappears `display_seconds` after it was raised.
    """

    def __init__(self, alarm: Optional[AlarmCue] = None,
                 display_seconds: float = ALERT_DISPLAY_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.alarm = alarm
        self.display_seconds = display_seconds
        self._clock = clock
        self._alerts: List[ActiveAlert] = []

    def __len__(self) -> int:
        self.expire()
        return len(self._alerts)

    @property
    def active(self) -> List[AlertMessage]:
        # Reads drop anything past its display window, even without new pushes
        self.expire()
        return [a.message for a in self._alerts]

    def add(self, alert: Union[AlertMessage, str]) -> bool:
        """Append unless the same text is already shown. True when appended."""
        if isinstance(alert, str):
            alert = AlertMessage(severity_from_text(alert), alert)

        self.expire()
        if any(a.message.text == alert.text for a in self._alerts):
            return False

        self._alerts.append(ActiveAlert(alert, self._clock()))
        logger.info(f"🔔 {alert.text}")
        if self.alarm is not None:
            self.alarm.play()
        return True

    def expire(self, now: Optional[float] = None) -> int:
        now = self._clock() if now is None else now
        kept = [a for a in self._alerts if now - a.raised_at < self.display_seconds]
        removed = len(self._alerts) - len(kept)
        self._alerts = kept
        return removed

    def dismiss(self, text: str) -> bool:
        for i, a in enumerate(self._alerts):
            if a.message.text == text:
                del self._alerts[i]
                return True
        return False

    def dismiss_at(self, index: int) -> bool:
        self.expire()
        if 0 <= index < len(self._alerts):
            del self._alerts[index]
            return True
        return False

    def clear(self):
        self._alerts.clear()
