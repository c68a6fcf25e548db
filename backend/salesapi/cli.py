# Overview: Flask CLI command groups for bootstrap, users and roles.

# backend/salesapi/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to salesapi:create_app and TOKEN_SECRET_KEY in the environment.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--warehouse-code MAIN]
#   Idempotent: creates tables, default roles (admin, vendedor, almacen) and a default warehouse.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --username ana --password "Password123" --role vendedor
# - python -m flask users list
#
# Roles:
# - python -m flask roles list
# - python -m flask roles assign ana admin
# - python -m flask roles revoke ana admin

import click
from flask.cli import with_appcontext

from .errors import ApiError
from .extensions import db
from .models import User, Warehouse
from .services import auth_service, role_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--warehouse-code', default='MAIN', help='Code of the default warehouse')
@click.option('--warehouse-name', default='Main Warehouse', help='Name of the default warehouse')
@with_appcontext
def init_system(warehouse_code, warehouse_name):
    """Create tables, default roles and a default warehouse (idempotent)."""
    click.echo("START Initializing system...")

    db.create_all()

    created = role_service.create_default_roles()
    click.echo(f"PASS Roles ready ({created} created): {', '.join(r.name for r in role_service.list_roles())}")

    warehouse = db.session.query(Warehouse).filter_by(code=warehouse_code).first()
    if not warehouse:
        warehouse = Warehouse(code=warehouse_code, name=warehouse_name, is_active=True)
        db.session.add(warehouse)
        db.session.commit()
        click.echo(f"PASS Created warehouse: {warehouse.name} (ID: {warehouse.id}, Code: {warehouse.code})")
    else:
        click.echo(f"PASS Using existing warehouse: {warehouse.name} (ID: {warehouse.id})")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', 'roles', multiple=True, help='Role to assign (repeatable)')
@with_appcontext
def create_user_cli(username, password, roles):
    """Create a user with bcrypt-hashed password and optional roles."""
    try:
        user = auth_service.create_user(username, password, roles=list(roles))
    except ApiError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")
        return

    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with roles: {', '.join(roles) or 'none'}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Username':<24} {'Active':<8} {'Roles'}")
    click.echo("="*70)

    for user in users:
        role_names = role_service.get_user_role_names(user.id)
        roles_str = ", ".join(role_names) if role_names else "none"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<24} {active_str:<8} {roles_str}")

    click.echo("="*70 + "\n")


@click.group('roles')
def roles_group():
    """Role inspection and assignment commands."""


@roles_group.command('list')
@with_appcontext
def list_roles_cli():
    """List roles."""
    for role in role_service.list_roles():
        click.echo(f"{role.id:<5} {role.name:<16} {role.description or ''}")


def _user_by_name(username):
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found")
    return user


@roles_group.command('assign')
@click.argument('username')
@click.argument('role_name')
@with_appcontext
def assign_role_cli(username, role_name):
    """Assign a role to a user (effective on the user's next request)."""
    user = _user_by_name(username)
    if not user:
        return
    try:
        role_service.assign_role(user.id, role_name)
    except ApiError as e:
        click.echo(f"FAIL Error: {e.message}")
        return
    click.echo(f"PASS Assigned '{role_name}' to '{username}'")


@roles_group.command('revoke')
@click.argument('username')
@click.argument('role_name')
@with_appcontext
def revoke_role_cli(username, role_name):
    """Revoke a role from a user."""
    user = _user_by_name(username)
    if not user:
        return
    try:
        revoked = role_service.revoke_role(user.id, role_name)
    except ApiError as e:
        click.echo(f"FAIL Error: {e.message}")
        return
    if revoked:
        click.echo(f"PASS Revoked '{role_name}' from '{username}'")
    else:
        click.echo(f"WARN  Role '{role_name}' was not assigned to '{username}'")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(roles_group)
