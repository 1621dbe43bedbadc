from .crash_reporter import CrashReporter
from .device_metrics import DeviceMetricsProvider
from .dispatcher import Dispatcher, DispatchState
from .event_batcher import EventBatcher
from .heartbeat import HeartbeatScheduler
from .identity import ClientIdentity, resolve_device_id
from .request_queue import RequestQueue
from .session_tracker import SessionTracker
from .user_profile import UserProfile

__all__ = [
    "ClientIdentity",
    "CrashReporter",
    "DeviceMetricsProvider",
    "Dispatcher",
    "DispatchState",
    "EventBatcher",
    "HeartbeatScheduler",
    "RequestQueue",
    "SessionTracker",
    "UserProfile",
    "resolve_device_id",
]
