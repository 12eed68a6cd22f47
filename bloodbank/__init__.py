import atexit
from logging.config import dictConfig

from flask import Flask

from bloodbank.config import Config
from bloodbank.extensions import cors, db, migrate, scheduler

# Import controllers (blueprints) for each module
from bloodbank.controllers.blood_request_controller import blood_request_bp
from bloodbank.controllers.donation_request_controller import donation_request_bp
from bloodbank.cli import fulfillment_cli
from bloodbank.services.reconciliation import ReconciliationScheduler


def configure_logging(level):
    dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'default': {'format': '[%(asctime)s] %(levelname)s in %(name)s: %(message)s'},
        },
        'handlers': {
            'wsgi': {
                'class': 'logging.StreamHandler',
                'stream': 'ext://flask.logging.wsgi_errors_stream',
                'formatter': 'default',
            },
        },
        'loggers': {
            'bloodbank': {'level': level, 'handlers': ['wsgi'], 'propagate': True},
        },
    })


def create_app(config_object=None, **overrides):
    """Flask application factory"""
    config_object = config_object or Config
    configure_logging(getattr(config_object, 'LOG_LEVEL', 'INFO'))

    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.update(overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    cors.init_app(app, resources={r'/api/*': {'origins': app.config['CORS_ORIGINS']}})
    scheduler.init_app(app)

    # Register Blueprints
    app.register_blueprint(blood_request_bp)
    app.register_blueprint(donation_request_bp)
    app.cli.add_command(fulfillment_cli)

    ReconciliationScheduler(app)

    return app


def start_background_jobs(app):
    """Start the reconciliation sweep for a serving process.

    Called from the WSGI entry point only, so `flask db ...` and
    `flask fulfillment ...` never run a sweeper of their own.
    """
    if not app.config.get('FULFILLMENT_SCHEDULER_AUTOSTART'):
        return False
    reconciler = app.extensions['reconciliation']
    reconciler.start()
    atexit.register(reconciler.stop)
    return True
