"""DynamoDB repository for groups and bills."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

import boto3  # type: ignore[import-untyped]
from botocore.exceptions import BotoCoreError, ClientError

from . import schema
from .exceptions import BillExistsError, GroupExistsError, StoreUnavailable, ValidationError
from .models import (
    Bill,
    Group,
    GroupMembership,
    Member,
    MemberRole,
    Share,
    User,
    validate_identifier,
)

logger = logging.getLogger(__name__)

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"
VALIDATION_EXCEPTION = "ValidationException"


class Repository:
    """
    DynamoDB repository for roomsplit data.

    Groups and bills live in one table: a group's details record and all
    of its bills share the ``GROUP#<id>`` partition and are told apart by
    sort key. Every operation goes to the table; nothing is cached.

    The DynamoDB client can be injected. When omitted, a boto3 client is
    created on first use and closed by ``close()``.
    """

    def __init__(
        self,
        table_name: str = schema.DEFAULT_TABLE_NAME,
        region: str | None = None,
        endpoint_url: str | None = None,
        client: Any = None,
        share_update_attempts: int = 3,
    ) -> None:
        self.table_name = table_name
        self.region = region
        self.endpoint_url = endpoint_url
        self.share_update_attempts = share_update_attempts
        self._client: Any = client
        self._owns_client = client is None

    def _get_client(self) -> Any:
        """Get or create the DynamoDB client."""
        if self._client is None:
            self._client = boto3.client(
                "dynamodb",
                region_name=self.region,
                endpoint_url=self.endpoint_url,
            )
        return self._client

    def close(self) -> None:
        """Close the DynamoDB client if this repository created it."""
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "Repository":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _now(self) -> str:
        """Current UTC time as an ISO-8601 string."""
        return datetime.now(UTC).isoformat()

    @contextmanager
    def _store_call(self, operation: str) -> Iterator[None]:
        """
        Translate botocore failures into StoreUnavailable.

        DynamoDB rejecting the request itself is raised as ValidationError.
        """
        try:
            yield
        except ClientError as e:
            error = e.response.get("Error", {})
            code = error.get("Code", "Unknown")
            if code == VALIDATION_EXCEPTION:
                raise ValidationError(
                    operation, None, error.get("Message") or "rejected by DynamoDB"
                ) from e
            raise StoreUnavailable(
                f"DynamoDB call failed ({code})",
                e,
                table_name=self.table_name,
                operation=operation,
            ) from e
        except BotoCoreError as e:
            raise StoreUnavailable(
                f"DynamoDB call failed ({type(e).__name__})",
                e,
                table_name=self.table_name,
                operation=operation,
            ) from e

    # -------------------------------------------------------------------------
    # Table operations
    # -------------------------------------------------------------------------

    def create_table(self) -> None:
        """Create the DynamoDB table if it doesn't exist."""
        client = self._get_client()
        definition = schema.get_table_definition(self.table_name)

        with self._store_call("create_table"):
            try:
                client.create_table(**definition)
            except ClientError as e:
                if e.response["Error"]["Code"] != "ResourceInUseException":
                    raise
                logger.info("Table %s already exists", self.table_name)
            waiter = client.get_waiter("table_exists")
            waiter.wait(TableName=self.table_name)

    def delete_table(self) -> None:
        """Delete the DynamoDB table."""
        client = self._get_client()
        with self._store_call("delete_table"):
            try:
                client.delete_table(TableName=self.table_name)
            except ClientError as e:
                if e.response["Error"]["Code"] != "ResourceNotFoundException":
                    raise

    # -------------------------------------------------------------------------
    # Group operations
    # -------------------------------------------------------------------------

    def create_group(self, group_id: str, creator: User, name: str) -> Group:
        """
        Create a new group with the creator as its owner.

        Args:
            group_id: Unique identifier for the group
            creator: The user creating the group; becomes the first member
            name: Display name

        Returns:
            The created Group

        Raises:
            ValidationError: If group_id is invalid
            GroupExistsError: If a group already occupies the key
        """
        validate_identifier(group_id, "group_id")

        client = self._get_client()
        now = self._now()
        group = Group(
            group_id=group_id,
            name=name,
            created_by=creator.user_id,
            created_at=now,
            members=[
                Member(
                    user_id=creator.user_id,
                    email=creator.email,
                    name=creator.name,
                    role=MemberRole.OWNER,
                    joined_at=now,
                )
            ],
        )

        item = self._serialize_map(
            {
                **schema.group_key(group_id),
                "name": group.name,
                "createdBy": group.created_by,
                "createdAt": group.created_at,
                "members": [m.to_dict() for m in group.members],
            }
        )

        with self._store_call("create_group"):
            try:
                client.put_item(
                    TableName=self.table_name,
                    Item=item,
                    ConditionExpression="attribute_not_exists(PK) AND attribute_not_exists(SK)",
                )
            except ClientError as e:
                if e.response["Error"]["Code"] == CONDITIONAL_CHECK_FAILED:
                    raise GroupExistsError(group_id) from None
                raise

        logger.debug("Created group %s for %s", group_id, creator.user_id)
        return group

    def get_group(self, group_id: str) -> Group | None:
        """Get a group (with members) by ID."""
        validate_identifier(group_id, "group_id")
        client = self._get_client()

        with self._store_call("get_group"):
            response = client.get_item(
                TableName=self.table_name,
                Key=self._serialize_map(schema.group_key(group_id)),
            )

        item = response.get("Item")
        if not item:
            return None
        return self._deserialize_group(item)

    def list_groups_for_user(self, user_id: str) -> list[GroupMembership]:
        """
        List every group the user belongs to, with the user's role.

        This scans all group details records and filters members in
        process, which only holds up while the table is small. A
        member-id secondary index is the way out once it isn't.
        """
        items = self._collect(
            "scan",
            "list_groups_for_user",
            FilterExpression="#sk = :details",
            ExpressionAttributeNames={"#sk": schema.SK},
            ExpressionAttributeValues={":details": {"S": schema.sk_details()}},
        )

        memberships = []
        for item in items:
            group = self._deserialize_group(item)
            if not group.has_member(user_id):
                continue
            memberships.append(
                GroupMembership(group=group, role=group.role_of(user_id) or MemberRole.MEMBER)
            )
        return memberships

    def add_member(
        self,
        group_id: str,
        user: User,
        role: str | None = None,
    ) -> Group | None:
        """
        Append a member to a group.

        The append is a single ``list_append`` update, so concurrent joins
        never lose each other. Joining twice appends two entries.

        Args:
            group_id: ID of the group to join
            user: The joining user
            role: Member role (defaults to "member")

        Returns:
            The updated Group, or None if the group does not exist
        """
        validate_identifier(group_id, "group_id")
        client = self._get_client()

        member = Member(
            user_id=user.user_id,
            email=user.email,
            name=user.name,
            role=role or MemberRole.MEMBER,
            joined_at=self._now(),
        )

        with self._store_call("add_member"):
            try:
                response = client.update_item(
                    TableName=self.table_name,
                    Key=self._serialize_map(schema.group_key(group_id)),
                    UpdateExpression="SET #members = list_append(if_not_exists(#members, :empty), :m)",
                    ConditionExpression="attribute_exists(PK)",
                    ExpressionAttributeNames={"#members": "members"},
                    ExpressionAttributeValues={
                        ":empty": {"L": []},
                        ":m": {"L": [self._serialize_value(member.to_dict())]},
                    },
                    ReturnValues="ALL_NEW",
                )
            except ClientError as e:
                if e.response["Error"]["Code"] == CONDITIONAL_CHECK_FAILED:
                    return None
                raise

        logger.debug("Added %s to group %s as %s", user.user_id, group_id, member.role)
        return self._deserialize_group(response["Attributes"])

    # -------------------------------------------------------------------------
    # Bill operations
    # -------------------------------------------------------------------------

    def create_bill(
        self,
        group_id: str,
        bill_id: str,
        creator: User,
        description: str,
        amount: int | float,
        due_date: str | None = None,
        shares: list[Share] | None = None,
    ) -> Bill:
        """
        Create a bill in a group.

        The bill total and the share amounts are stored as given; they are
        not checked against each other.

        Raises:
            ValidationError: If group_id or bill_id is invalid
            BillExistsError: If a bill already occupies the key
        """
        validate_identifier(group_id, "group_id")
        validate_identifier(bill_id, "bill_id")

        client = self._get_client()
        bill = Bill(
            group_id=group_id,
            bill_id=bill_id,
            description=description,
            amount=amount,
            due_date=due_date or None,
            created_by=creator.user_id,
            created_at=self._now(),
            shares=list(shares or []),
        )

        item = self._serialize_map(
            {
                **schema.bill_key(group_id, bill_id),
                "description": bill.description,
                "amount": bill.amount,
                "dueDate": bill.due_date,
                "createdBy": bill.created_by,
                "createdAt": bill.created_at,
                "shares": [s.to_dict() for s in bill.shares],
            }
        )

        with self._store_call("create_bill"):
            try:
                client.put_item(
                    TableName=self.table_name,
                    Item=item,
                    ConditionExpression="attribute_not_exists(PK) AND attribute_not_exists(SK)",
                )
            except ClientError as e:
                if e.response["Error"]["Code"] == CONDITIONAL_CHECK_FAILED:
                    raise BillExistsError(group_id, bill_id) from None
                raise

        logger.debug("Created bill %s in group %s", bill_id, group_id)
        return bill

    def get_bill(self, group_id: str, bill_id: str, consistent: bool = False) -> Bill | None:
        """Get a bill (with shares) by group and bill ID."""
        validate_identifier(group_id, "group_id")
        validate_identifier(bill_id, "bill_id")
        client = self._get_client()

        with self._store_call("get_bill"):
            response = client.get_item(
                TableName=self.table_name,
                Key=self._serialize_map(schema.bill_key(group_id, bill_id)),
                ConsistentRead=consistent,
            )

        item = response.get("Item")
        if not item:
            return None
        return self._deserialize_bill(item)

    def list_bills_for_group(self, group_id: str) -> list[Bill]:
        """
        List the bills of a group.

        Bills come back in sort-key order, i.e. ordered by bill ID.
        """
        validate_identifier(group_id, "group_id")
        items = self._collect(
            "query",
            "list_bills_for_group",
            KeyConditionExpression="PK = :pk AND begins_with(SK, :bill_prefix)",
            ExpressionAttributeValues={
                ":pk": {"S": schema.pk_group(group_id)},
                ":bill_prefix": {"S": schema.SK_BILL},
            },
        )
        return [self._deserialize_bill(item) for item in items]

    def update_share_status(
        self,
        group_id: str,
        bill_id: str,
        user_id: str,
        status: str,
    ) -> Bill | None:
        """
        Set the status of one user's share in a bill.

        The share is located by reading the bill, then only that share's
        status is written, conditioned on the share at that position still
        belonging to user_id. Concurrent updates to other shares of the same
        bill are left intact. If the condition fails the bill is re-read and
        the update retried.

        Returns:
            The updated Bill, or None if the bill or the user's share
            does not exist (nothing is written)

        Raises:
            StoreUnavailable: If the update kept failing its condition
        """
        client = self._get_client()

        for attempt in range(1, self.share_update_attempts + 1):
            bill = self.get_bill(group_id, bill_id, consistent=True)
            if bill is None:
                return None

            index = next(
                (i for i, share in enumerate(bill.shares) if share.user_id == user_id),
                None,
            )
            if index is None:
                return None

            with self._store_call("update_share_status"):
                try:
                    response = client.update_item(
                        TableName=self.table_name,
                        Key=self._serialize_map(schema.bill_key(group_id, bill_id)),
                        UpdateExpression=f"SET #shares[{index}].#status = :status",
                        ConditionExpression=f"#shares[{index}].#user_id = :user_id",
                        ExpressionAttributeNames={
                            "#shares": "shares",
                            "#status": "status",
                            "#user_id": "userId",
                        },
                        ExpressionAttributeValues={
                            ":status": {"S": status},
                            ":user_id": {"S": user_id},
                        },
                        ReturnValues="ALL_NEW",
                    )
                except ClientError as e:
                    if e.response["Error"]["Code"] != CONDITIONAL_CHECK_FAILED:
                        raise
                    logger.info(
                        "Share %s of bill %s/%s moved during update (attempt %d)",
                        user_id,
                        group_id,
                        bill_id,
                        attempt,
                    )
                    continue

            return self._deserialize_bill(response["Attributes"])

        raise StoreUnavailable(
            f"Share update for {user_id} lost its condition {self.share_update_attempts} times",
            table_name=self.table_name,
            operation="update_share_status",
        )

    def scan_bills(self) -> list[Bill]:
        """Scan every bill record in the table."""
        items = self._collect(
            "scan",
            "scan_bills",
            FilterExpression="begins_with(#sk, :bill_prefix)",
            ExpressionAttributeNames={"#sk": schema.SK},
            ExpressionAttributeValues={":bill_prefix": {"S": schema.SK_BILL}},
        )
        return [self._deserialize_bill(item) for item in items]

    # -------------------------------------------------------------------------
    # Pagination
    # -------------------------------------------------------------------------

    def _collect(self, method: str, operation: str, **request: Any) -> list[dict[str, Any]]:
        """Run a query or scan to the last page and return every item."""
        client = self._get_client()
        call = getattr(client, method)

        items: list[dict[str, Any]] = []
        exclusive_start_key = None
        with self._store_call(operation):
            while True:
                kwargs: dict[str, Any] = {"TableName": self.table_name, **request}
                if exclusive_start_key:
                    kwargs["ExclusiveStartKey"] = exclusive_start_key
                response = call(**kwargs)
                items.extend(response.get("Items", []))

                exclusive_start_key = response.get("LastEvaluatedKey")
                if not exclusive_start_key:
                    break
        return items

    # -------------------------------------------------------------------------
    # Serialization helpers
    # -------------------------------------------------------------------------

    def _serialize_map(self, data: dict[str, Any]) -> dict[str, Any]:
        """Serialize a Python dict to DynamoDB map format."""
        return {key: self._serialize_value(value) for key, value in data.items()}

    def _serialize_value(self, value: Any) -> dict[str, Any]:
        """Serialize a single value to DynamoDB format."""
        if isinstance(value, str):
            return {"S": value}
        elif isinstance(value, bool):
            return {"BOOL": value}
        elif isinstance(value, (int, float)):
            return {"N": str(value)}
        elif isinstance(value, dict):
            return {"M": self._serialize_map(value)}
        elif isinstance(value, list):
            return {"L": [self._serialize_value(v) for v in value]}
        elif value is None:
            return {"NULL": True}
        return {"S": str(value)}

    def _deserialize_map(self, data: dict[str, Any]) -> dict[str, Any]:
        """Deserialize a DynamoDB map to Python dict."""
        return {key: self._deserialize_value(value) for key, value in data.items()}

    def _deserialize_value(self, value: dict[str, Any]) -> Any:
        """Deserialize a single DynamoDB value."""
        if "S" in value:
            return value["S"]
        elif "N" in value:
            num_str = value["N"]
            try:
                return int(num_str)
            except ValueError:
                return float(num_str)
        elif "BOOL" in value:
            return value["BOOL"]
        elif "M" in value:
            return self._deserialize_map(value["M"])
        elif "L" in value:
            return [self._deserialize_value(v) for v in value["L"]]
        elif "NULL" in value:
            return None
        return None

    def _deserialize_group(self, item: dict[str, Any]) -> Group:
        """Deserialize a DynamoDB item to Group."""
        data = self._deserialize_map(item)
        return Group(
            group_id=schema.parse_group_pk(data[schema.PK]),
            name=data.get("name", ""),
            created_by=data.get("createdBy", ""),
            created_at=data.get("createdAt", ""),
            members=[Member.from_dict(m) for m in data.get("members") or []],
        )

    def _deserialize_bill(self, item: dict[str, Any]) -> Bill:
        """Deserialize a DynamoDB item to Bill."""
        data = self._deserialize_map(item)
        return Bill(
            group_id=schema.parse_group_pk(data[schema.PK]),
            bill_id=schema.parse_bill_sk(data[schema.SK]),
            description=data.get("description"),
            amount=data.get("amount", 0),
            due_date=data.get("dueDate"),
            created_by=data.get("createdBy"),
            created_at=data.get("createdAt"),
            shares=[Share.from_dict(s) for s in data.get("shares") or []],
        )
