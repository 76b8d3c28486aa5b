"""
Event Services - realtime notifications for staff clients.
"""

from .notifier import Notifier, get_notifier

__all__ = [
    "Notifier",
    "get_notifier",
]
