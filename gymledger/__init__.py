import logging

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_migrate import Migrate
from sqlalchemy import event
from sqlalchemy.engine import Engine

from .config import config

# Initialize extensions
db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'


def create_app(config_name=None):
    """Application factory"""
    import os
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    configure_logging(app)

    # Initialize extensions with app
    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)

    # Models register their tables and the session hooks on import
    from . import models  # noqa: F401

    # Register CLI commands
    register_cli_commands(app)

    @app.shell_context_processor
    def make_shell_context():
        """Make database models available in flask shell"""
        from .models import Gym, StaffUser, Member, MembershipPlan, Membership, CheckIn, Payment
        return {
            'db': db,
            'Gym': Gym,
            'StaffUser': StaffUser,
            'Member': Member,
            'MembershipPlan': MembershipPlan,
            'Membership': Membership,
            'CheckIn': CheckIn,
            'Payment': Payment,
        }

    return app


def configure_logging(app):
    """Attach a single stream handler to the package logger"""
    logger = logging.getLogger('gymledger')
    logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)


@event.listens_for(Engine, 'connect')
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ignores RESTRICT unless foreign keys are switched on per connection"""
    import sqlite3
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


def register_cli_commands(app):
    """Register CLI commands"""
    import click
    from datetime import datetime

    @app.cli.command('init-db')
    def init_db():
        """Create all ledger tables"""
        db.create_all()
        click.echo('Database initialized successfully!')

    @app.cli.command('create-gym')
    @click.option('--name', prompt='Gym name', help='Gym (tenant) name')
    @click.option('--address', default=None, help='Gym address')
    @click.option('--phone', default=None, help='Gym phone')
    @click.option('--owner-name', prompt='Owner name', help='Owner full name')
    @click.option('--owner-email', prompt='Owner email', help='Owner login email')
    @click.option('--password', prompt='Password', hide_input=True, help='Owner password')
    def create_gym(name, address, phone, owner_name, owner_email, password):
        """Onboard a gym together with its first owner"""
        from .exceptions import LedgerError
        from .services.tenants import onboard_tenant

        try:
            gym, owner = onboard_tenant(
                name=name,
                address=address,
                phone=phone,
                owner_name=owner_name,
                owner_email=owner_email,
                owner_password=password,
            )
        except LedgerError as exc:
            raise click.ClickException(str(exc))

        click.echo(f'Created gym #{gym.id}: {gym.name}')
        click.echo(f'Created owner: {owner.email}')

    @app.cli.command('seed-demo')
    def seed_demo():
        """Create the demo gym, its owner and plans"""
        from .seed import seed_demo_data

        seeded = seed_demo_data()
        if seeded is None:
            click.echo('Demo data already present')
            return
        gym, owner, plans = seeded
        click.echo(f'Created gym #{gym.id}: {gym.name}')
        click.echo(f'Created owner: {owner.email}')
        click.echo(f'Created {len(plans)} membership plans')

    @app.cli.command('sweep-memberships')
    @click.option('--as-of', 'as_of', default=None, help='Evaluation date (YYYY-MM-DD), defaults to today')
    @click.option('--gym-id', type=int, default=None, help='Restrict the sweep to one gym')
    def sweep_memberships(as_of, gym_id):
        """Recompute membership statuses (run once a day by the scheduler)"""
        from .services.memberships import recompute_statuses
        from .utils.helpers import utcnow

        if as_of:
            try:
                as_of = datetime.strptime(as_of, '%Y-%m-%d')
            except ValueError:
                raise click.BadParameter('expected YYYY-MM-DD', param_hint='--as-of')
        else:
            as_of = utcnow()

        result = recompute_statuses(as_of, gym_id=gym_id)
        click.echo(
            f"Transitioned {result['transitioned']} memberships "
            f"({result['pending_renewal']} pending renewal, {result['expired']} expired)"
        )
