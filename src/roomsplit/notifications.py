"""SNS notification gateway for reminder emails.

Delivery is best-effort. ``Notifier`` raises ``NotificationError`` when SNS
rejects a call; callers log it and carry on, so a failed subscription or
publish never undoes the group or bill change that triggered it.
"""

import logging
from typing import Any, Protocol, runtime_checkable

import boto3  # type: ignore[import-untyped]
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import NotificationError

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "Housemate bill reminder"


@runtime_checkable
class NotificationGateway(Protocol):
    """
    Protocol for reminder delivery backends.

    Example:
        class PrintGateway:
            def subscribe_email(self, email: str | None) -> str | None:
                return None

            def publish(self, message: str, subject: str = DEFAULT_SUBJECT) -> str | None:
                print(subject, message)
                return None

        assert isinstance(PrintGateway(), NotificationGateway)
    """

    def subscribe_email(self, email: str | None) -> str | None:
        """Subscribe an email address to reminders."""
        ...

    def publish(self, message: str, subject: str = DEFAULT_SUBJECT) -> str | None:
        """Send a message to every subscriber."""
        ...


class Notifier:
    """
    SNS-backed notification gateway.

    Both operations are no-ops (with a warning) when no topic is
    configured, so local and test deployments run without SNS.
    """

    def __init__(
        self,
        topic_arn: str | None,
        region: str | None = None,
        endpoint_url: str | None = None,
        client: Any = None,
    ) -> None:
        self.topic_arn = topic_arn
        self.region = region
        self.endpoint_url = endpoint_url
        self._client: Any = client

    def _get_client(self) -> Any:
        """Get or create the SNS client."""
        if self._client is None:
            self._client = boto3.client(
                "sns",
                region_name=self.region,
                endpoint_url=self.endpoint_url,
            )
        return self._client

    def subscribe_email(self, email: str | None) -> str | None:
        """
        Subscribe an email address to the reminder topic.

        SNS sends a confirmation mail; the subscription stays pending until
        the recipient confirms it.

        Returns:
            The subscription ARN, or None if skipped

        Raises:
            NotificationError: If SNS rejects the subscription
        """
        if not self.topic_arn:
            logger.warning("SNS topic not configured, skipping subscription")
            return None
        if not email:
            logger.warning("No email provided, skipping subscription")
            return None

        logger.info("Subscribing %s to %s", email, self.topic_arn)
        try:
            response = self._get_client().subscribe(
                TopicArn=self.topic_arn,
                Protocol="email",
                Endpoint=email,
                ReturnSubscriptionArn=True,
            )
        except (ClientError, BotoCoreError) as e:
            raise NotificationError(f"Failed to subscribe {email} to {self.topic_arn}", e) from e

        subscription_arn: str | None = response.get("SubscriptionArn")
        return subscription_arn

    def publish(self, message: str, subject: str = DEFAULT_SUBJECT) -> str | None:
        """
        Publish a message to the reminder topic.

        Returns:
            The SNS message ID, or None if skipped

        Raises:
            NotificationError: If SNS rejects the message
        """
        if not self.topic_arn:
            logger.warning("SNS topic not configured, skipping publish")
            return None

        logger.info("Publishing reminder to %s", self.topic_arn)
        try:
            response = self._get_client().publish(
                TopicArn=self.topic_arn,
                Subject=subject,
                Message=message,
            )
        except (ClientError, BotoCoreError) as e:
            raise NotificationError(f"Failed to publish to {self.topic_arn}", e) from e

        message_id: str | None = response.get("MessageId")
        return message_id
