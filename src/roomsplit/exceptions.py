"""Exceptions for roomsplit."""

# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------


class RoomsplitError(Exception):
    """
    Base exception for all roomsplit errors.

    All exceptions raised by this package inherit from this class,
    allowing callers to catch all package-specific errors with a single
    except clause.
    """

    pass


# ---------------------------------------------------------------------------
# Category Exceptions
# ---------------------------------------------------------------------------


class EntityError(RoomsplitError):
    """
    Base exception for group and bill record errors.

    Missing records are not errors: read and update operations return
    ``None`` when nothing exists at the derived key.
    """

    pass


class InfrastructureError(RoomsplitError):
    """Base exception for DynamoDB and SNS failures."""

    pass


# ---------------------------------------------------------------------------
# Entity Exceptions
# ---------------------------------------------------------------------------


class AlreadyExistsError(EntityError):
    """Raised when a conditional create finds a record at the target key."""

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} already exists: {key}")


class GroupExistsError(AlreadyExistsError):
    """Raised when trying to create a group that already exists."""

    def __init__(self, group_id: str) -> None:
        self.group_id = group_id
        super().__init__("Group", group_id)


class BillExistsError(AlreadyExistsError):
    """Raised when trying to create a bill that already exists."""

    def __init__(self, group_id: str, bill_id: str) -> None:
        self.group_id = group_id
        self.bill_id = bill_id
        super().__init__("Bill", f"{group_id}/{bill_id}")


# ---------------------------------------------------------------------------
# Infrastructure Exceptions
# ---------------------------------------------------------------------------


class StoreUnavailable(InfrastructureError):  # noqa: N818
    """
    Raised when a DynamoDB call fails for infrastructure reasons.

    Raised once botocore's own retries are exhausted, or when a share
    update keeps losing its condition.

    Attributes:
        cause: The underlying exception
        table_name: The DynamoDB table that was being accessed
        operation: The repository operation that failed
    """

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        *,
        table_name: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.cause = cause
        self.table_name = table_name
        self.operation = operation
        super().__init__(self._format_message(message))

    def _format_message(self, message: str) -> str:
        parts = [message]
        context = []
        if self.table_name:
            context.append(f"table={self.table_name}")
        if self.operation:
            context.append(f"operation={self.operation}")
        if context:
            parts.append(f"[{', '.join(context)}]")
        return " ".join(parts)


class NotificationError(InfrastructureError):
    """
    Raised when an SNS call fails.

    Notifications are best-effort: callers catch and log this error
    instead of failing the surrounding group or bill operation.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.cause = cause
        super().__init__(message)


# ---------------------------------------------------------------------------
# Validation Exceptions
# ---------------------------------------------------------------------------


class ValidationError(RoomsplitError):
    """Raised when an input value is rejected before touching the table."""

    def __init__(self, field: str, value: object, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")
