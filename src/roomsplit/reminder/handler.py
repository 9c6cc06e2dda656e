"""Lambda handler for the scheduled bill reminder."""

import time
from typing import Any

from ..config import Settings
from ..log import StructuredLogger
from ..notifications import Notifier
from ..repository import Repository
from .job import run_reminder

logger = StructuredLogger(__name__)


def handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    Lambda handler for the EventBridge reminder schedule.

    Scans every bill, itemizes unpaid shares and publishes one reminder to
    the SNS topic. The event payload is ignored.

    Environment variables:
        TABLE_NAME: DynamoDB table name (default: roomsplit)
        SNS_TOPIC_ARN: Reminder topic (publishing is skipped when unset)
        REMINDER_SUBJECT: Subject line (default: Housemate bill reminder)

    Args:
        event: EventBridge scheduled event
        context: Lambda context

    Returns:
        Run summary
    """
    start_time = time.perf_counter()
    request_id = getattr(context, "aws_request_id", "unknown")
    settings = Settings.from_environment()

    logger.info(
        "Running bill reminder job",
        request_id=request_id,
        table_name=settings.table_name,
        topic_configured=bool(settings.sns_topic_arn),
    )

    notifier = Notifier(
        settings.sns_topic_arn,
        region=settings.region,
        endpoint_url=settings.endpoint_url,
    )
    with Repository(
        settings.table_name,
        region=settings.region,
        endpoint_url=settings.endpoint_url,
    ) as repo:
        result = run_reminder(repo, notifier, subject=settings.reminder_subject)

    processing_time_ms = (time.perf_counter() - start_time) * 1000
    logger.info(
        "Bill reminder job completed",
        request_id=request_id,
        reminders=result.reminders,
        total_owed=result.total_owed,
        published=result.published,
        error=result.error,
        processing_time_ms=round(processing_time_ms, 2),
    )

    if result.reminders == 0:
        return {"status": "ok", "message": "No unpaid shares"}

    return {
        "status": "ok" if result.error is None else "error",
        "reminders": result.reminders,
        "total_owed": result.total_owed,
        "published": result.published,
        "error": result.error,
    }
