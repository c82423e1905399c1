"""CLI commands for the review service."""

from .admin import admin_commands
from .applications import application_commands
from .notifications import notification_commands


def register_commands(app):
    """Register all CLI command groups with the Flask app."""
    app.cli.add_command(admin_commands)
    app.cli.add_command(application_commands)
    app.cli.add_command(notification_commands)
