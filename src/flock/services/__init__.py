"""Business logic services for the Flock application."""

from .dispatch import BackgroundDispatcher
from .live import LiveHub, SubscriberRegistry, Subscription

__all__ = [
    "BackgroundDispatcher",
    "LiveHub",
    "SubscriberRegistry",
    "Subscription",
]
