"""DynamoDB schema definitions and key builders."""

from typing import Any

# Table name
DEFAULT_TABLE_NAME = "roomsplit"

# Key attribute names
PK = "PK"
SK = "SK"

# Partition key prefixes
GROUP_PREFIX = "GROUP#"

# Sort key prefixes
SK_DETAILS = "DETAILS"
SK_BILL = "BILL#"


def pk_group(group_id: str) -> str:
    """Build partition key for a group (details record and bills)."""
    return f"{GROUP_PREFIX}{group_id}"


def sk_details() -> str:
    """Build sort key for group details."""
    return SK_DETAILS


def sk_bill(bill_id: str) -> str:
    """Build sort key for a bill."""
    return f"{SK_BILL}{bill_id}"


def group_key(group_id: str) -> dict[str, str]:
    """Composite key of a group's details record."""
    return {PK: pk_group(group_id), SK: sk_details()}


def bill_key(group_id: str, bill_id: str) -> dict[str, str]:
    """Composite key of a bill record."""
    return {PK: pk_group(group_id), SK: sk_bill(bill_id)}


def parse_group_pk(pk: str) -> str:
    """Parse group_id from a group partition key."""
    if not pk.startswith(GROUP_PREFIX):
        raise ValueError(f"Invalid group PK: {pk}")
    return pk[len(GROUP_PREFIX) :]


def parse_bill_sk(sk: str) -> str:
    """Parse bill_id from a bill sort key."""
    if not sk.startswith(SK_BILL):
        raise ValueError(f"Invalid bill SK: {sk}")
    return sk[len(SK_BILL) :]


def get_table_definition(table_name: str) -> dict[str, Any]:
    """
    Get the DynamoDB table definition for CreateTable.

    Groups and bills share one partition per group; the sort key tells
    them apart. Returns a dictionary suitable for boto3 create_table().
    """
    return {
        "TableName": table_name,
        "BillingMode": "PAY_PER_REQUEST",
        "AttributeDefinitions": [
            {"AttributeName": PK, "AttributeType": "S"},
            {"AttributeName": SK, "AttributeType": "S"},
        ],
        "KeySchema": [
            {"AttributeName": PK, "KeyType": "HASH"},
            {"AttributeName": SK, "KeyType": "RANGE"},
        ],
    }
