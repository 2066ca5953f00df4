import click
import logging

from . import db
from .models import Novel

logger = logging.getLogger(__name__)


def register_commands(app):

    @app.cli.command('init-db')
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo('Database initialised.')

    @app.cli.command('clr')
    @click.confirmation_option(prompt='Dangerous: delete ALL novels, chapters and ratings?')
    def clear_novels():
        """Delete every novel together with its chapters and ratings."""
        try:
            novels = Novel.query.all()
            for novel in novels:
                db.session.delete(novel)
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.exception('Clearing novels failed')
            raise click.ClickException('Clearing novels failed, nothing was deleted.')
        click.echo(f'Deleted {len(novels)} novels.')
