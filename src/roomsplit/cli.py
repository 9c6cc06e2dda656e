"""Command-line interface for roomsplit table management and reports."""

import sys
from dataclasses import replace

import click

from .aggregation import format_amount, format_total, summary_for_user
from .config import Settings
from .exceptions import RoomsplitError
from .notifications import Notifier
from .reminder.job import run_reminder
from .repository import Repository


def _repository(settings: Settings) -> Repository:
    return Repository(
        settings.table_name,
        region=settings.region,
        endpoint_url=settings.endpoint_url,
    )


@click.group()
@click.version_option(package_name="roomsplit")
@click.option(
    "--table-name",
    envvar="TABLE_NAME",
    help="DynamoDB table name (default: roomsplit)",
)
@click.option(
    "--region",
    help="AWS region (default: use boto3 defaults)",
)
@click.option(
    "--endpoint-url",
    help=(
        "AWS endpoint URL "
        "(e.g., http://localhost:4566 for LocalStack, or other AWS-compatible services)"
    ),
)
@click.pass_context
def cli(
    ctx: click.Context,
    table_name: str | None,
    region: str | None,
    endpoint_url: str | None,
) -> None:
    """roomsplit table management and reporting CLI."""
    settings = Settings.from_environment()
    overrides = {
        key: value
        for key, value in (
            ("table_name", table_name),
            ("region", region),
            ("endpoint_url", endpoint_url),
        )
        if value
    }
    ctx.obj = replace(settings, **overrides)


@cli.command("create-table")
@click.pass_obj
def create_table(settings: Settings) -> None:
    """Create the DynamoDB table and wait until it is active."""
    click.echo(f"Creating table: {settings.table_name}")
    click.echo(f"  Region: {settings.region or 'default'}")
    try:
        with _repository(settings) as repo:
            repo.create_table()
    except RoomsplitError as e:
        click.echo(f"✗ Table creation failed: {e}", err=True)
        sys.exit(1)
    click.echo("✓ Table ready")


@cli.command("delete-table")
@click.confirmation_option(prompt="Delete the table and every group and bill in it?")
@click.pass_obj
def delete_table(settings: Settings) -> None:
    """Delete the DynamoDB table."""
    try:
        with _repository(settings) as repo:
            repo.delete_table()
    except RoomsplitError as e:
        click.echo(f"✗ Table deletion failed: {e}", err=True)
        sys.exit(1)
    click.echo(f"✓ Table {settings.table_name} deleted")


@cli.command()
@click.argument("user_id")
@click.pass_obj
def groups(settings: Settings, user_id: str) -> None:
    """List the groups USER_ID belongs to."""
    try:
        with _repository(settings) as repo:
            memberships = repo.list_groups_for_user(user_id)
    except RoomsplitError as e:
        click.echo(f"✗ Listing groups failed: {e}", err=True)
        sys.exit(1)

    if not memberships:
        click.echo(f"No groups for {user_id}")
        return

    for membership in memberships:
        group = membership.group
        click.echo(
            f"{group.group_id}  {group.name}  "
            f"({membership.role}, {len(group.members)} members)"
        )


@cli.command()
@click.argument("user_id")
@click.pass_obj
def summary(settings: Settings, user_id: str) -> None:
    """Show what USER_ID still owes."""
    try:
        with _repository(settings) as repo:
            result = summary_for_user(repo, user_id)
    except RoomsplitError as e:
        click.echo(f"✗ Summary failed: {e}", err=True)
        sys.exit(1)

    click.echo(f"User: {user_id}")
    click.echo(f"Total owed: ${format_total(result.total_owed)}")
    for line in result.bills:
        click.echo(
            f"  {line.group_id}/{line.bill_id}  {line.description}  "
            f"${format_amount(line.my_amount)} of ${format_amount(line.amount)}  "
            f"due {line.due_date or 'N/A'}  [{line.status}]"
        )


@cli.command()
@click.option(
    "--dry-run",
    is_flag=True,
    help="Print the reminder without publishing it",
)
@click.option(
    "--topic-arn",
    help="SNS topic ARN (default: SNS_TOPIC_ARN)",
)
@click.pass_obj
def remind(settings: Settings, dry_run: bool, topic_arn: str | None) -> None:
    """Send one reminder listing every unpaid share."""
    notifier = Notifier(
        topic_arn or settings.sns_topic_arn,
        region=settings.region,
        endpoint_url=settings.endpoint_url,
    )
    try:
        with _repository(settings) as repo:
            result = run_reminder(
                repo,
                notifier,
                subject=settings.reminder_subject,
                dry_run=dry_run,
            )
    except RoomsplitError as e:
        click.echo(f"✗ Reminder failed: {e}", err=True)
        sys.exit(1)

    if result.reminders == 0:
        click.echo("No unpaid shares")
        return

    if dry_run:
        click.echo(result.message)
        return

    if result.error:
        click.echo(f"✗ Publish failed: {result.error}", err=True)
        sys.exit(1)

    if result.published:
        click.echo(f"✓ Reminder published ({result.reminders} unpaid shares)")
    else:
        click.echo("⚠️  No SNS topic configured, reminder not published")


def main() -> None:
    """Entry point for the roomsplit CLI."""
    cli()


if __name__ == "__main__":
    main()
