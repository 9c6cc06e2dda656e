"""
roomsplit: bill-splitting backend on a single DynamoDB table.

Users create groups, join them, split bills into per-user shares and mark
their share paid. A scheduled job mails one reminder listing every unpaid
share.

Example:
    from roomsplit import Repository, Share, User, summary_for_user

    with Repository("roomsplit", region="us-east-1") as repo:
        alice = User("alice", email="alice@example.com")
        repo.create_group("grp-1", alice, "Flat 4B")
        repo.create_bill(
            "grp-1",
            "bill-1",
            alice,
            description="Electricity",
            amount=90,
            shares=[Share("alice", 45), Share("bob", 45)],
        )
        repo.update_share_status("grp-1", "bill-1", "alice", "paid")
        print(summary_for_user(repo, "bob").total_owed)  # 45
"""

from .aggregation import (
    build_reminder,
    global_unpaid_reminder,
    render_reminder_message,
    summarize_user,
    summary_for_user,
)
from .exceptions import (
    AlreadyExistsError,
    BillExistsError,
    EntityError,
    GroupExistsError,
    InfrastructureError,
    NotificationError,
    RoomsplitError,
    StoreUnavailable,
    ValidationError,
)
from .models import (
    Bill,
    BillLine,
    Group,
    GroupMembership,
    Member,
    MemberRole,
    ReminderReport,
    Share,
    ShareStatus,
    User,
    UserSummary,
)
from .notifications import NotificationGateway, Notifier
from .repository import Repository

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Main classes
    "Repository",
    "Notifier",
    "NotificationGateway",
    # Models
    "User",
    "Member",
    "MemberRole",
    "Group",
    "GroupMembership",
    "Share",
    "ShareStatus",
    "Bill",
    "BillLine",
    "UserSummary",
    "ReminderReport",
    # Aggregation
    "summarize_user",
    "summary_for_user",
    "build_reminder",
    "global_unpaid_reminder",
    "render_reminder_message",
    # Exceptions - Base
    "RoomsplitError",
    # Exceptions - Categories
    "EntityError",
    "InfrastructureError",
    # Exceptions - Entity
    "AlreadyExistsError",
    "GroupExistsError",
    "BillExistsError",
    # Exceptions - Infrastructure
    "StoreUnavailable",
    "NotificationError",
    # Exceptions - Validation
    "ValidationError",
]
