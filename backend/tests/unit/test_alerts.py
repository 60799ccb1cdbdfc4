"""
Tests for the dashboard alert list and alarm cue.
"""

import asyncio

from nocmon.dashboard.alerts import AlarmCue, AlertAggregator, severity_from_text
from nocmon.thresholds import AlertMessage, Severity, evaluate_temperature


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class CountingAlarm:
    def __init__(self):
        self.plays = 0

    def play(self):
        self.plays += 1


class TestDeduplication:
    def test_same_text_is_kept_once(self):
        agg = AlertAggregator()
        alert = evaluate_temperature("NOC temperature", 24).alert

        assert agg.add(alert) is True
        assert agg.add(alert) is False
        assert len(agg) == 1

    def test_different_texts_from_same_category_are_both_kept(self):
        agg = AlertAggregator()
        agg.add(evaluate_temperature("NOC temperature", 26).alert)
        agg.add(evaluate_temperature("NOC temperature", 26.5).alert)

        assert len(agg) == 2

    def test_plain_string_gets_severity_from_text(self):
        agg = AlertAggregator()
        agg.add("CRITICAL ALERT: Fire detected! Take immediate action.")
        agg.add("WARNING: Smoke detected! Investigate immediately.")
        agg.add("Sensor back online")

        assert [a.severity for a in agg.active] == [Severity.CRITICAL, Severity.WARNING, Severity.INFO]


class TestAlarm:
    def test_alarm_fires_once_per_new_alert(self):
        alarm = CountingAlarm()
        agg = AlertAggregator(alarm=alarm)

        agg.add("WARNING: a")
        agg.add("WARNING: a")
        agg.add("WARNING: b")

        assert alarm.plays == 2

    def test_alarm_silences_itself(self):
        events = []

        async def scenario():
            cue = AlarmCue(play=lambda: events.append("play"), stop=lambda: events.append("stop"), duration=0.01)
            cue.play()
            assert cue.is_playing
            await asyncio.sleep(0.05)
            return cue

        cue = asyncio.run(scenario())
        assert events == ["play", "stop"]
        assert cue.is_playing is False

    def test_replay_restarts_the_timer(self):
        events = []

        async def scenario():
            cue = AlarmCue(play=lambda: events.append("play"), stop=lambda: events.append("stop"), duration=0.05)
            cue.play()
            await asyncio.sleep(0.03)
            cue.play()
            await asyncio.sleep(0.03)
            assert cue.is_playing
            await asyncio.sleep(0.05)

        asyncio.run(scenario())
        assert events == ["play", "play", "stop"]


class TestLifetime:
    def test_alerts_expire_after_display_window(self):
        clock = FakeClock()
        agg = AlertAggregator(clock=clock)
        agg.add("WARNING: first")
        clock.now += 6
        agg.add("WARNING: second")

        clock.now += 4
        assert agg.expire() == 1
        assert [a.text for a in agg.active] == ["WARNING: second"]

        clock.now += 6
        agg.expire()
        assert len(agg) == 0

    def test_reading_active_drops_stale_alerts_without_new_pushes(self):
        clock = FakeClock()
        agg = AlertAggregator(clock=clock)
        agg.add(evaluate_temperature("NOC temperature", 24).alert)

        clock.now += 30

        assert agg.active == []
        assert len(agg) == 0

    def test_expired_text_can_be_raised_again(self):
        clock = FakeClock()
        alarm = CountingAlarm()
        agg = AlertAggregator(alarm=alarm, clock=clock)

        agg.add("WARNING: repeat")
        clock.now += 10
        assert agg.add("WARNING: repeat") is True
        assert alarm.plays == 2

    def test_dismiss_and_clear(self):
        agg = AlertAggregator()
        for text in ("WARNING: a", "WARNING: b", "WARNING: c"):
            agg.add(AlertMessage(Severity.WARNING, text))

        assert agg.dismiss("WARNING: b") is True
        assert agg.dismiss("WARNING: missing") is False
        assert agg.dismiss_at(0) is True
        assert agg.dismiss_at(5) is False
        assert [a.text for a in agg.active] == ["WARNING: c"]

        agg.clear()
        assert agg.active == []


def test_severity_from_text():
    assert severity_from_text("critical alert") == Severity.CRITICAL
    assert severity_from_text("Warning: x") == Severity.WARNING
    assert severity_from_text("hello") == Severity.INFO
