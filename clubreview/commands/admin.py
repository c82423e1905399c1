"""Admin account CLI commands."""

import click
from flask.cli import with_appcontext

from clubreview.extensions import db
from clubreview.models import AdminUser


def _get_admin_by_email(email: str) -> AdminUser | None:
    return db.session.query(AdminUser).filter_by(email=email.strip().lower()).first()


@click.group('admin')
def admin_commands():
    """Admin account commands."""
    pass


@admin_commands.command('create')
@click.option('--email', required=True, help='Admin email')
@click.option('--name', 'display_name', default=None, help='Display name')
@click.option('--no-admin', is_flag=True, help='Create the account without review rights')
@with_appcontext
def create_admin(email, display_name, no_admin):
    """Create an admin account and print its first API token."""
    if _get_admin_by_email(email):
        click.echo(click.style(f'Error: Admin with email "{email}" already exists', fg='red'))
        return

    admin = AdminUser(email=email.strip().lower(), display_name=display_name, is_admin=not no_admin)
    token = admin.issue_api_token()
    db.session.add(admin)
    db.session.commit()

    click.echo(click.style('Admin created successfully!', fg='green'))
    click.echo(f'  Email: {admin.email}')
    click.echo(f'  Admin rights: {"yes" if admin.is_admin else "no"}')
    click.echo(f'  API token: {token}')
    click.echo(click.style('  Store the token now; it cannot be shown again.', fg='yellow'))


@admin_commands.command('issue-token')
@click.option('--email', required=True, help='Admin email')
@with_appcontext
def issue_token(email):
    """Rotate an admin's API token; the previous token stops working."""
    admin = _get_admin_by_email(email)
    if not admin:
        click.echo(click.style(f'Error: Admin with email "{email}" not found', fg='red'))
        return

    token = admin.issue_api_token()
    db.session.commit()
    click.echo(click.style(f'New API token for {admin.email}:', fg='green'))
    click.echo(token)


@admin_commands.command('revoke-token')
@click.option('--email', required=True, help='Admin email')
@with_appcontext
def revoke_token(email):
    """Revoke an admin's API token."""
    admin = _get_admin_by_email(email)
    if not admin:
        click.echo(click.style(f'Error: Admin with email "{email}" not found', fg='red'))
        return

    admin.revoke_api_token()
    db.session.commit()
    click.echo(click.style(f'API token revoked for {admin.email}', fg='green'))
