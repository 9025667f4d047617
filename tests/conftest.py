"""Pytest configuration and fixtures."""

import os

import pytest

# Set environment variables before imports
os.environ["TABLE_NAME"] = "ruleflow-test"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def dynamodb_table(aws_credentials):
    """Create mocked DynamoDB table."""
    import boto3
    from moto import mock_aws

    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")

        table = dynamodb.create_table(
            TableName="ruleflow-test",
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
                {"AttributeName": "GSI1PK", "AttributeType": "S"},
                {"AttributeName": "GSI1SK", "AttributeType": "S"},
            ],
            GlobalSecondaryIndexes=[
                {
                    "IndexName": "GSI1",
                    "KeySchema": [
                        {"AttributeName": "GSI1PK", "KeyType": "HASH"},
                        {"AttributeName": "GSI1SK", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
            BillingMode="PAY_PER_REQUEST",
        )

        table.wait_until_exists()

        yield table


@pytest.fixture
def sleeps():
    """Delays requested by the code under test, in order."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    """Sleep replacement that records the delay and returns immediately."""

    async def _sleep(delay):
        sleeps.append(delay)

    return _sleep


@pytest.fixture
def sample_rule():
    """Create a sample immediate rule."""
    from ruleflow.models.rule import Rule

    return Rule(
        id="rule-123",
        name="Welcome email",
        trigger_id="guest_checkin",
        action_id="send_email",
        action_params={"to": "guest@example.com", "subject": "Welcome", "body": "Hi!"},
    )


@pytest.fixture
def sample_dlq_item():
    """Create a sample pending DLQ item."""
    from ruleflow.models.dlq_item import DLQItem

    return DLQItem(
        id="dlq-123",
        rule_id="rule-123",
        rule_name="Welcome email",
        trigger_id="guest_checkin",
        action_id="send_email",
        action_params={"to": "guest@example.com"},
        context={"trigger_id": "guest_checkin", "parameters": {"guestId": "g-1"}},
        error_message="Action error (send_email): SMTP unavailable",
    )
