from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context


def utcnow():
    """Naive UTC timestamp, the form every DateTime column is stored in"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def local_now():
    """Wall-clock time in the configured notification timezone (naive)"""
    tz_name = 'UTC'
    if has_app_context():
        tz_name = current_app.config.get('NOTIFICATION_TIMEZONE', 'UTC')
    return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)
