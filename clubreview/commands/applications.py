"""Application export CLI commands."""

from datetime import datetime
from pathlib import Path

import click
from flask.cli import with_appcontext

from clubreview.services.reporting import export_applications


@click.group('applications')
def application_commands():
    """Club application commands."""
    pass


@application_commands.command('export')
@click.option('--format', 'fmt', type=click.Choice(['csv', 'json']), default='csv', show_default=True)
@click.option('--status', type=click.Choice(['pending', 'approved', 'rejected', 'all']),
              default='all', show_default=True)
@click.option('--output', type=click.Path(dir_okay=False), default=None,
              help='Output file (default: print to stdout)')
@with_appcontext
def export(fmt, status, output):
    """Export club applications as CSV or JSON.

    Example:
        flask applications export --format csv --status approved --output approved.csv
    """
    content = export_applications(fmt=fmt, status=status)
    if not output:
        click.echo(content, nl=False)
        return

    path = Path(output)
    path.write_text(content, encoding='utf-8')
    click.echo(click.style(f'Exported {status} applications to {path}', fg='green'))
    click.echo(f'  Generated: {datetime.now().strftime("%Y-%m-%d %H:%M:%S")}')
