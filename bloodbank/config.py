import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Base configuration, read from the environment (and .env if present)"""
    SECRET_KEY = os.getenv('SECRET_KEY', 'change-me')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'mysql+pymysql://root:@localhost/bloodbank')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    CORS_ORIGINS = os.getenv('CORS_ORIGINS', 'http://localhost:5173').split(',')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Background reconciliation
    SCHEDULER_API_ENABLED = False
    FULFILLMENT_SCHEDULER_AUTOSTART = _env_bool('FULFILLMENT_SCHEDULER_AUTOSTART', True)
    FULFILLMENT_SWEEP_INTERVAL_SECONDS = int(os.getenv('FULFILLMENT_SWEEP_INTERVAL_SECONDS', '30'))
    FULFILLMENT_CONFLICT_RETRIES = int(os.getenv('FULFILLMENT_CONFLICT_RETRIES', '1'))

    # Allocation / matching
    MATCH_SCHEDULE_OFFSET_DAYS = int(os.getenv('MATCH_SCHEDULE_OFFSET_DAYS', '1'))
    INVENTORY_SCAN_BATCH_SIZE = int(os.getenv('INVENTORY_SCAN_BATCH_SIZE', '100'))
    DEFAULT_INVENTORY_LOCATION = os.getenv('DEFAULT_INVENTORY_LOCATION', 'Default Location')
    DEFAULT_INVENTORY_UNIT = os.getenv('DEFAULT_INVENTORY_UNIT', 'mL')

    NOTIFICATION_TIMEZONE = os.getenv('NOTIFICATION_TIMEZONE', 'Asia/Ho_Chi_Minh')


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    FULFILLMENT_SCHEDULER_AUTOSTART = False
    LOG_LEVEL = 'DEBUG'
