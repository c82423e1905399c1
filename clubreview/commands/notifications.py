"""Notification delivery CLI commands."""

from datetime import datetime, timedelta, timezone

import click
from flask.cli import with_appcontext

from clubreview.services.notifications import notification_service


@click.group('notifications')
def notification_commands():
    """Notification delivery commands."""
    pass


@notification_commands.command('retry')
@with_appcontext
def retry_notifications():
    """Resend recent failed notifications."""
    result = notification_service.retry_failed_notifications()
    click.echo(click.style(f'Retried {result["retried_count"]} notifications', fg='green'))
    for error in result['errors']:
        click.echo(click.style(f'  Still failing: {error}', fg='red'))


@notification_commands.command('stats')
@click.option('--hours', type=int, default=None, help='Only count deliveries from the last N hours')
@with_appcontext
def notification_stats(hours):
    """Show delivery counts by status."""
    since = datetime.now(timezone.utc) - timedelta(hours=hours) if hours else None
    stats = notification_service.get_stats(since=since)
    click.echo(f'Notification deliveries{f" (last {hours}h)" if hours else ""}:')
    for key in ('total', 'sent', 'failed', 'pending', 'retrying'):
        click.echo(f'  {key.capitalize()}: {stats[key]}')


@notification_commands.command('schedule-retry')
@with_appcontext
def schedule_retry():
    """Queue a retry sweep to run on the worker in one hour."""
    from clubreview.services.queue import queue_service

    job = queue_service.schedule_retry_failed_notifications()
    click.echo(f'Scheduled retry sweep {job.id}')


@notification_commands.command('queue')
@with_appcontext
def queue_stats():
    """Show the background delivery queue."""
    from clubreview.services.queue import queue_service

    stats = queue_service.get_queue_stats()
    click.echo(f'Queue {stats["name"]}:')
    for key in ('waiting', 'scheduled', 'failed'):
        click.echo(f'  {key.capitalize()}: {stats[key]}')
