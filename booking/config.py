import os

DEFAULT_DATABASE_URI = 'sqlite:///booking.db'


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def load_config():
    """Build the application config from environment variables"""
    return {
        'SECRET_KEY': os.environ.get('SECRET_KEY', 'dev-key'),
        'SQLALCHEMY_DATABASE_URI': os.environ.get('BOOKING_DATABASE_URL', DEFAULT_DATABASE_URI),
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        # Attempts made by a compensating slot release before it is reported as orphaned
        'SLOT_RELEASE_RETRIES': int(os.environ.get('SLOT_RELEASE_RETRIES', 2)),
        'AUDIT_ENABLED': _env_bool('AUDIT_ENABLED', True),
        'LOG_LEVEL': os.environ.get('LOG_LEVEL', 'INFO').upper(),
    }
