"""Scheduled reminder for unpaid bill shares."""

from .handler import handler
from .job import ReminderResult, run_reminder

__all__ = [
    "handler",
    "run_reminder",
    "ReminderResult",
]
