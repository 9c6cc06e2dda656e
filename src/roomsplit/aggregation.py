"""Per-user summaries and the unpaid-share reminder report.

Both reports are computed from a scan of every bill in the table; there is
no index by user or by paid status. They also disagree on what "paid"
means: the user summary only treats the exact lowercase ``"paid"`` as
settled, while the reminder report ignores case (``"Paid"`` and ``"PAID"``
count as settled there). The frontend only ever writes ``"paid"``, so the
two agree in practice; unifying them needs sign-off from whoever owns the
reminder wording.
"""

import logging
from collections.abc import Iterable

from .models import Bill, BillLine, ReminderReport, ShareStatus, UserSummary
from .notifications import DEFAULT_SUBJECT
from .repository import Repository

logger = logging.getLogger(__name__)

UNKNOWN_USER = "unknown-user"
UNNAMED_BILL = "Unnamed bill"
NO_DUE_DATE = "N/A"


def format_amount(amount: int | float) -> str:
    """Render an amount as stored, without a trailing ``.0`` for whole numbers."""
    if isinstance(amount, float) and amount.is_integer():
        return str(int(amount))
    return str(amount)


def format_total(amount: int | float) -> str:
    """Render a summed amount rounded to cents."""
    if isinstance(amount, float):
        amount = round(amount, 2)
    return format_amount(amount)


def summarize_user(bills: Iterable[Bill], user_id: str) -> UserSummary:
    """
    Collect the bills on which user_id still owes money.

    Only the user's first share on each bill is considered. A share counts
    as owed unless its status is exactly ``"paid"``.
    """
    summary = UserSummary(user_id=user_id)

    for bill in bills:
        share = bill.share_for(user_id)
        if share is None or share.status == ShareStatus.PAID:
            continue

        summary.total_owed += share.amount
        summary.bills.append(
            BillLine(
                group_id=bill.group_id,
                bill_id=bill.bill_id,
                description=bill.description,
                amount=bill.amount,
                due_date=bill.due_date,
                my_amount=share.amount,
                status=share.status,
            )
        )

    return summary


def is_settled_for_reminder(status: str | None) -> bool:
    """Reminder rule: any casing of "paid" is settled; no status is unpaid."""
    return isinstance(status, str) and status.lower() == ShareStatus.PAID


def build_reminder(bills: Iterable[Bill]) -> ReminderReport:
    """Itemize every unpaid share of every bill."""
    report = ReminderReport()

    for bill in bills:
        description = bill.description or UNNAMED_BILL
        due = bill.due_date or NO_DUE_DATE

        for share in bill.shares:
            if is_settled_for_reminder(share.status):
                continue

            user_id = share.user_id or UNKNOWN_USER
            amount = share.amount or 0
            report.total_owed += amount
            report.lines.append(
                f"{user_id} owes ${format_amount(amount)} for \"{description}\" "
                f"in group {bill.group_id} (bill {bill.bill_id}), due {due}"
            )

    return report


def render_reminder_message(report: ReminderReport, title: str = DEFAULT_SUBJECT) -> str:
    """Render the report as one notification body."""
    return (
        f"{title}\n\n"
        f"There are {report.count} unpaid shares "
        f"(approx total ${format_total(report.total_owed)}).\n\n"
        "Details:\n" + "\n".join(report.lines)
    )


def summary_for_user(repo: Repository, user_id: str) -> UserSummary:
    """Scan all bills and summarize what user_id owes."""
    bills = repo.scan_bills()
    summary = summarize_user(bills, user_id)
    logger.debug(
        "Summary for %s: %d unpaid of %d bills scanned",
        user_id,
        len(summary.bills),
        len(bills),
    )
    return summary


def global_unpaid_reminder(repo: Repository) -> ReminderReport:
    """Scan all bills and itemize every unpaid share."""
    bills = repo.scan_bills()
    report = build_reminder(bills)
    logger.debug("Reminder: %d unpaid shares across %d bills", report.count, len(bills))
    return report
