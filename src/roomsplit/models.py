"""Core models for roomsplit."""

import math
from dataclasses import dataclass, field
from typing import Any

from .exceptions import ValidationError

MAX_IDENTIFIER_LENGTH = 256


class MemberRole:
    """Group member role constants."""

    OWNER = "owner"
    MEMBER = "member"


class ShareStatus:
    """Conventional share status values (status is free-form)."""

    PENDING = "pending"
    PAID = "paid"


def validate_identifier(value: Any, field_name: str) -> None:
    """
    Validate an identifier used to build a composite key.

    Args:
        value: The identifier to check
        field_name: Name reported in the error

    Raises:
        ValidationError: If the identifier is empty, too long or contains '#'
    """
    if not isinstance(value, str) or not value:
        raise ValidationError(field_name, value, "must be a non-empty string")
    if "#" in value:
        raise ValidationError(field_name, value, "must not contain '#' (key delimiter)")
    if len(value) > MAX_IDENTIFIER_LENGTH:
        raise ValidationError(
            field_name, value, f"exceeds {MAX_IDENTIFIER_LENGTH} character limit"
        )


def is_amount(value: Any) -> bool:
    """True for finite int/float values (bool excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isinstance(value, int) or math.isfinite(value)


@dataclass
class User:
    """The caller acting on a group or bill."""

    user_id: str
    email: str | None = None
    name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"userId": self.user_id, "email": self.email, "name": self.name}


@dataclass
class Member:
    """A user's entry in a group's members list."""

    user_id: str
    email: str | None = None
    name: str | None = None
    role: str = MemberRole.MEMBER
    joined_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the stored/API shape."""
        return {
            "userId": self.user_id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "joinedAt": self.joined_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Member":
        """Deserialize from the stored/API shape."""
        return cls(
            user_id=data.get("userId", ""),
            email=data.get("email"),
            name=data.get("name"),
            role=data.get("role") or MemberRole.MEMBER,
            joined_at=data.get("joinedAt"),
        )


@dataclass
class Group:
    """
    A collection of users sharing bills.

    The creator is always the first member, with role ``owner``. The
    members list only grows; joining twice appends a second entry.
    """

    group_id: str
    name: str
    created_by: str
    created_at: str
    members: list[Member] = field(default_factory=list)

    def role_of(self, user_id: str) -> str | None:
        """Role of the first member entry for user_id, None if not a member."""
        for member in self.members:
            if member.user_id == user_id:
                return member.role
        return None

    def has_member(self, user_id: str) -> bool:
        return any(m.user_id == user_id for m in self.members)

    def to_dict(self) -> dict[str, Any]:
        return {
            "groupId": self.group_id,
            "name": self.name,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "members": [m.to_dict() for m in self.members],
        }


@dataclass
class GroupMembership:
    """A group as seen by one of its members."""

    group: Group
    role: str

    def to_dict(self) -> dict[str, Any]:
        return {**self.group.to_dict(), "role": self.role}


@dataclass
class Share:
    """
    A single user's portion of a bill.

    The share amount is independent of the bill total; nothing enforces
    that shares add up to it.
    """

    user_id: str | None
    amount: int | float = 0
    status: str | None = ShareStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {"userId": self.user_id, "amount": self.amount, "status": self.status}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Share":
        amount = data.get("amount")
        return cls(
            user_id=data.get("userId"),
            amount=amount if is_amount(amount) else 0,
            status=data.get("status"),
        )


@dataclass
class Bill:
    """A monetary obligation owned by a group, divided into shares."""

    group_id: str
    bill_id: str
    description: str | None
    amount: int | float
    due_date: str | None = None
    created_by: str | None = None
    created_at: str | None = None
    shares: list[Share] = field(default_factory=list)

    def share_for(self, user_id: str) -> Share | None:
        """First share belonging to user_id."""
        for share in self.shares:
            if share.user_id == user_id:
                return share
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "groupId": self.group_id,
            "billId": self.bill_id,
            "description": self.description,
            "amount": self.amount,
            "dueDate": self.due_date,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "shares": [s.to_dict() for s in self.shares],
        }


@dataclass
class BillLine:
    """One unpaid bill in a user's summary."""

    group_id: str
    bill_id: str
    description: str | None
    amount: int | float  # bill total
    due_date: str | None
    my_amount: int | float  # the user's share
    status: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "groupId": self.group_id,
            "billId": self.bill_id,
            "description": self.description,
            "amount": self.amount,
            "dueDate": self.due_date,
            "myAmount": self.my_amount,
            "status": self.status,
        }


@dataclass
class UserSummary:
    """What a user still owes across every group."""

    user_id: str
    total_owed: int | float = 0
    bills: list[BillLine] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "totalOwed": self.total_owed,
            "bills": [b.to_dict() for b in self.bills],
        }


@dataclass
class ReminderReport:
    """Itemized unpaid shares across all groups."""

    lines: list[str] = field(default_factory=list)
    total_owed: int | float = 0

    @property
    def count(self) -> int:
        return len(self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines
