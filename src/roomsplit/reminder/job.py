"""Unpaid-share reminder job."""

import logging
from dataclasses import asdict, dataclass
from typing import Any

from ..aggregation import global_unpaid_reminder, render_reminder_message
from ..notifications import DEFAULT_SUBJECT, NotificationGateway
from ..repository import Repository

logger = logging.getLogger(__name__)


@dataclass
class ReminderResult:
    """Outcome of one reminder run."""

    reminders: int
    total_owed: int | float
    published: bool
    message: str | None = None  # rendered body, None when nothing is owed
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def run_reminder(
    repo: Repository,
    notifier: NotificationGateway | None,
    subject: str = DEFAULT_SUBJECT,
    dry_run: bool = False,
) -> ReminderResult:
    """
    Scan all bills and send one reminder covering every unpaid share.

    Nothing is published when no share is unpaid, when ``dry_run`` is set
    or when no notifier is given. A failed publish is logged and reported
    in the result; it does not raise.

    Args:
        repo: Repository to scan
        notifier: Gateway receiving the reminder
        subject: Subject line, also used as the message title
        dry_run: Render the message without publishing it

    Returns:
        ReminderResult with counts, the rendered message and publish outcome
    """
    report = global_unpaid_reminder(repo)

    if report.is_empty:
        logger.info("No unpaid shares, skipping publish")
        return ReminderResult(reminders=0, total_owed=0, published=False)

    message = render_reminder_message(report, subject)
    result = ReminderResult(
        reminders=report.count,
        total_owed=report.total_owed,
        published=False,
        message=message,
    )

    if dry_run or notifier is None:
        logger.info("Reminder rendered without publishing (%d lines)", report.count)
        return result

    try:
        message_id = notifier.publish(message, subject)
    except Exception as e:
        logger.error("Reminder publish failed (non-fatal): %s", e, exc_info=True)
        result.error = str(e)
        return result

    result.published = message_id is not None
    logger.info("Reminder published (%d lines)", report.count)
    return result
