"""Runtime configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .notifications import DEFAULT_SUBJECT
from .schema import DEFAULT_TABLE_NAME

TRUE_VALUES = ("1", "true", "yes", "on")


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in TRUE_VALUES


@dataclass
class Settings:
    """Settings shared by the Lambda entry points and the CLI.

    Environment variables:
        TABLE_NAME: DynamoDB table name (default: roomsplit)
        SNS_TOPIC_ARN: Reminder topic; unset disables notifications
        AWS_REGION / AWS_DEFAULT_REGION: Region (default: boto3 resolution)
        AWS_ENDPOINT_URL: Alternate endpoint, e.g. LocalStack
        REMINDER_SUBJECT: Subject line of reminder messages
        ALLOW_STUB_USER: Serve unauthenticated requests as a stub user
    """

    table_name: str = DEFAULT_TABLE_NAME
    sns_topic_arn: str | None = None
    region: str | None = None
    endpoint_url: str | None = None
    reminder_subject: str = DEFAULT_SUBJECT
    allow_stub_user: bool = False

    @classmethod
    def from_environment(cls) -> Settings:
        """Create Settings from environment variables."""
        return cls(
            table_name=os.environ.get("TABLE_NAME") or DEFAULT_TABLE_NAME,
            sns_topic_arn=os.environ.get("SNS_TOPIC_ARN") or None,
            region=os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION") or None,
            endpoint_url=os.environ.get("AWS_ENDPOINT_URL") or None,
            reminder_subject=os.environ.get("REMINDER_SUBJECT") or DEFAULT_SUBJECT,
            allow_stub_user=_env_flag("ALLOW_STUB_USER"),
        )
