# commands.py - flask CLI commands for operators
# Usage:
#   flask --app app create-admin --email admin@example.com --name "Platform Admin" --phone 9876543210
#   flask --app app issue-token --email admin@example.com
import click
from flask import current_app
from flask.cli import with_appcontext
from models import User
from blueprints.auth_helpers import issue_id_token
from ledger.accounts import AccountService
from ledger.admin_account import AdminAccountResolver
from ledger.exceptions import LedgerException


@click.command("create-admin")
@click.option("--email", required=True, help="Email of the admin account.")
@click.option("--name", default="Platform Admin", show_default=True)
@click.option("--phone", default=None, help="10-digit phone, required when the account is created.")
@click.option("--password", default=None, help="Password, required when the account is created.")
@with_appcontext
def create_admin(email, name, phone, password):
    """Promote an existing user to admin, or create the admin account."""
    user = User.query.filter_by(email=email.strip().lower()).first()

    try:
        if user:
            click.echo(f"Found user id={user.id}, email={user.email}. Promoting to admin...")
            user = AccountService.promote_to_admin(email)
        else:
            if not phone or not password:
                raise click.UsageError("--phone and --password are required to create a new admin")
            click.echo(f"No user with email {email} found; creating a new admin.")
            user = AccountService.register(name, email, phone, password, role="admin")
    except LedgerException as e:
        raise click.ClickException(e.message)

    AdminAccountResolver.reset_cache()
    click.echo(f"User (id={user.id}, email={user.email}) is now admin.")
    if not current_app.config.get("ADMIN_USER_ID"):
        click.echo(f"Set ADMIN_USER_ID={user.id} to pin platform fees to this account.")


@click.command("issue-token")
@click.option("--email", required=True)
@with_appcontext
def issue_token(email):
    """Print a bearer token for a user (local testing and ops)."""
    user = User.query.filter_by(email=email.strip().lower()).first()
    if not user:
        raise click.ClickException(f"No user with email {email}")
    click.echo(issue_id_token(user.id))


def register_commands(app):
    app.cli.add_command(create_admin)
    app.cli.add_command(issue_token)
