from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_migrate import Migrate
from sqlalchemy import event
import logging

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()

from .config import Config


def configure_logging(app):
    """Attach a single stream handler to the package logger."""
    package_logger = logging.getLogger(__name__)
    package_logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)


def _serialize_sqlite_writers(engine):
    # pysqlite opens transactions lazily and fails lock upgrades under
    # concurrent writers; take the write lock up front instead.
    @event.listens_for(engine, 'connect')
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, 'begin')
    def do_begin(conn):
        conn.exec_driver_sql('BEGIN IMMEDIATE')


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_logging(app)

    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)

    from .errors import register_error_handlers
    register_error_handlers(app)

    from .auth import auth as auth_blueprint
    app.register_blueprint(auth_blueprint)
    from .api import api_bp as api_blueprint
    app.register_blueprint(api_blueprint)

    from .commands import register_commands
    register_commands(app)

    with app.app_context():
        # Models must be imported before create_all / migrations see them
        from . import models  # noqa: F401
        if db.engine.dialect.name == 'sqlite':
            _serialize_sqlite_writers(db.engine)

    logging.getLogger(__name__).debug("NovelNest app created with %s", config_class.__name__)
    return app
