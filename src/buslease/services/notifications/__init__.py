"""Journey notifications: realtime broadcast and device push."""

from .broadcast import BroadcastPublisher, SupabaseBroadcastPublisher, trip_channel
from .dispatcher import NotificationDispatcher
from .push import HttpPushSender, PushSender

__all__ = [
    "BroadcastPublisher",
    "SupabaseBroadcastPublisher",
    "trip_channel",
    "NotificationDispatcher",
    "HttpPushSender",
    "PushSender",
]
