"""Pytest fixtures for roomsplit tests."""

import pytest
from moto import mock_aws

from roomsplit import Repository, User

TABLE_NAME = "test-roomsplit"
REGION = "us-east-1"


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mock AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)
    # Unset AWS_ENDPOINT_URL to ensure moto intercepts requests
    monkeypatch.delenv("AWS_ENDPOINT_URL", raising=False)
    for name in ("TABLE_NAME", "SNS_TOPIC_ARN", "REMINDER_SUBJECT", "ALLOW_STUB_USER"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def mock_aws_services(aws_credentials):
    """Mock DynamoDB and SNS for tests."""
    with mock_aws():
        yield


@pytest.fixture
def repo(mock_aws_services):
    """Repository backed by a freshly created moto table."""
    repo = Repository(TABLE_NAME, region=REGION)
    repo.create_table()
    yield repo
    repo.close()


@pytest.fixture
def alice() -> User:
    return User(user_id="alice", email="alice@example.com", name="Alice")


@pytest.fixture
def bob() -> User:
    return User(user_id="bob", email="bob@example.com", name="Bob")


class FakeNotifier:
    """Records calls instead of talking to SNS."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.subscribed: list[str | None] = []
        self.published: list[tuple[str, str]] = []

    def subscribe_email(self, email):
        if self.fail:
            raise RuntimeError("SNS is down")
        self.subscribed.append(email)
        return f"arn:aws:sns:us-east-1:123456789012:reminders:{len(self.subscribed)}"

    def publish(self, message, subject="Housemate bill reminder"):
        if self.fail:
            raise RuntimeError("SNS is down")
        self.published.append((message, subject))
        return f"msg-{len(self.published)}"


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def failing_notifier() -> FakeNotifier:
    return FakeNotifier(fail=True)
