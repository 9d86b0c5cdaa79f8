import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def normalize_database_url(database_url):
    """Heroku/Neon style URLs still use the postgres:// scheme SQLAlchemy rejects."""
    if database_url and database_url.startswith('postgres://'):
        return database_url.replace('postgres://', 'postgresql://', 1)
    return database_url


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')

    # Database configuration
    SQLALCHEMY_DATABASE_URI = normalize_database_url(os.environ.get('DATABASE_URL'))
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    DB_SSLMODE = os.environ.get('DB_SSLMODE')

    # Session configuration
    SESSION_TYPE = 'sqlalchemy'
    SESSION_PERMANENT = False
    PERMANENT_SESSION_LIFETIME = timedelta(days=1)
    SESSION_COOKIE_SECURE = _env_flag('SESSION_COOKIE_SECURE', True)
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get('CORS_ORIGINS', 'http://localhost:3001').split(',')
        if origin.strip()
    ]

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')

    # Circulation rules
    LOAN_PERIOD_DAYS = int(os.environ.get('LOAN_PERIOD_DAYS', 14))

    # Background jobs
    SCHEDULER_ENABLED = _env_flag('SCHEDULER_ENABLED', True)
    OVERDUE_CHECK_INTERVAL_HOURS = int(os.environ.get('OVERDUE_CHECK_INTERVAL_HOURS', 24))

    @staticmethod
    def engine_options(database_url):
        """Pool settings only make sense for the PostgreSQL deployment."""
        if not database_url or not database_url.startswith('postgresql'):
            return {}
        options = {
            'connect_args': {'connect_timeout': 10},
            'pool_size': 5,
            'max_overflow': 10,
            'pool_timeout': 30,
            'pool_pre_ping': True,
        }
        if Config.DB_SSLMODE:
            # Neon cloud deployment needs sslmode=require
            options['connect_args']['sslmode'] = Config.DB_SSLMODE
        return options
