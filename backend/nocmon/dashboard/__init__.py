from nocmon.dashboard.alerts import AlarmCue, AlertAggregator
from nocmon.dashboard.client import DashboardClient
from nocmon.dashboard.session import AuthSession, LoginFailed, SessionExpired

__all__ = [
    "AlarmCue",
    "AlertAggregator",
    "DashboardClient",
    "AuthSession",
    "LoginFailed",
    "SessionExpired",
]
