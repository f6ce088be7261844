import logging
from flask import Flask
from sqlalchemy import text
from config import Config

logger = logging.getLogger(__name__)


def create_app(config_class=None, services=None):
    app = Flask(__name__)
    app.config.from_object(config_class or Config)

    # Heroku-style DATABASE_URL (postgres:// -> postgresql://)
    db_uri = app.config.get('SQLALCHEMY_DATABASE_URI', '')
    if db_uri.startswith('postgres://'):
        app.config['SQLALCHEMY_DATABASE_URI'] = db_uri.replace('postgres://', 'postgresql://', 1)

    # Logging
    logging.basicConfig(
        level=getattr(logging, app.config.get('LOG_LEVEL', 'INFO')),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    )

    # Extensions
    from feedhub.extensions import db, migrate, scheduler
    db.init_app(app)
    migrate.init_app(app, db)

    if app.config.get('STARTUP_DB_CHECK'):
        with app.app_context():
            try:
                db.session.execute(text('SELECT 1'))
            except Exception as e:
                raise RuntimeError(f"Database unreachable at startup: {e}") from e
            finally:
                db.session.remove()

    # Core services
    from feedhub.services.registry import EXTENSION_KEY, build_services, init_classifier
    if services is None:
        services = build_services(app.config)
    app.extensions[EXTENSION_KEY] = services
    if app.config.get('EMBEDDINGS_ENABLED'):
        ready = init_classifier(services)
        logger.info(f"Embedding classifier ready: {ready}")

    # Register blueprints
    from feedhub.routes import register_blueprints
    register_blueprints(app)

    # Scheduler
    if app.config.get('SCHEDULER_ENABLED') and not app.config.get('TESTING'):
        scheduler.init_app(app)
        with app.app_context():
            from feedhub.jobs.scheduled import register_jobs
            register_jobs(scheduler, app)
        scheduler.start()

    return app
