import click
from flask.cli import with_appcontext
from carehome.extensions import db
from carehome.models.staff_models import Staff
from carehome.utils.permission_util import Role


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create all care-record tables."""
    # Import models so every table is registered on the metadata.
    from carehome.models import care_models, resident_models, system_models  # noqa: F401
    db.create_all()
    click.echo("Database initialized successfully!")


@click.command('create-admin')
@click.option('--email', prompt=True)
@click.option('--first-name', prompt=True)
@click.option('--last-name', prompt=True)
@click.option('--facility', prompt=True, help='Facility the admin belongs to.')
@click.password_option()
@with_appcontext
def create_admin_command(email, first_name, last_name, facility, password):
    """Create the first Admin account for a facility."""
    email = email.strip().lower()
    if Staff.query.filter_by(email=email).first():
        raise click.ClickException(f"A staff member with email {email} already exists")

    admin = Staff(
        email=email,
        first_name=first_name,
        last_name=last_name,
        job_title='Registered Manager',
        facility_id=facility,
    )
    admin.role = Role.ADMIN
    try:
        admin.set_password(password)
    except ValueError as e:
        raise click.ClickException(str(e))

    db.session.add(admin)
    db.session.commit()
    click.echo(f"Admin account created for {email} (id {admin.id})")


def register_commands(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(create_admin_command)
