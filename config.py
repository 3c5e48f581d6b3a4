import os
import secrets
from dotenv import load_dotenv
from typing import Optional

# Find the absolute path of the root directory
basedir = os.path.abspath(os.path.dirname(__file__))

# Load the .env file from the root directory
load_dotenv(os.path.join(basedir, '.env'))

class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid"""
    pass

class Config:
    """
    Base configuration class. Contains default configuration settings
    and settings applicable to all environments.
    """
    SECRET_KEY = os.environ.get('SECRET_KEY') or secrets.token_hex(32)
    FLASK_ENV = os.environ.get('FLASK_ENV')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    @classmethod
    def validate_required_config(cls) -> None:
        """Validate that all required configuration is present"""
        # Skip validation in testing environment or during migrations
        if os.environ.get('FLASK_ENV') == 'testing' or os.environ.get('SKIP_ENV_VALIDATION'):
            return

        if not (os.environ.get('DATABASE_URL') or os.environ.get('POSTGRES_URI')):
            raise ConfigurationError(
                "Missing required environment variables: DATABASE_URL"
            )

    @staticmethod
    def get_required_env(key: str) -> str:
        """Get required environment variable or raise error"""
        value = os.environ.get(key)
        if not value:
            raise ConfigurationError(f"Required environment variable {key} is not set")
        return value

    # Database settings
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or os.environ.get('POSTGRES_URI') or \
        'sqlite:///' + os.path.join(basedir, 'tracking.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Webhook secrets. An empty value disables verification for that provider.
    GHL_WEBHOOK_SECRET = os.environ.get('GHL_WEBHOOK_SECRET', '')
    TYPEFORM_WEBHOOK_SECRET = os.environ.get('TYPEFORM_WEBHOOK_SECRET', '')
    CALENDLY_WEBHOOK_SECRET = os.environ.get('CALENDLY_WEBHOOK_SECRET', '')
    WHOP_WEBHOOK_SECRET = os.environ.get('WHOP_WEBHOOK_SECRET', '')
    SCHEDULEONCE_WEBHOOK_SECRET = os.environ.get('SCHEDULEONCE_WEBHOOK_SECRET', '')
    ZAPIER_WEBHOOK_SECRET = os.environ.get('ZAPIER_WEBHOOK_SECRET', '')

    # Stripe needs both values; without them every delivery is rejected
    STRIPE_WEBHOOK_SECRET = os.environ.get('STRIPE_WEBHOOK_SECRET', '')
    STRIPE_SECRET_KEY = os.environ.get('STRIPE_SECRET_KEY', '')

    # Ingestion behaviour
    SESSION_INACTIVITY_MINUTES = int(os.environ.get('SESSION_INACTIVITY_MINUTES', '30'))
    IDENTITY_RESOLUTION_MAX_ATTEMPTS = int(os.environ.get('IDENTITY_RESOLUTION_MAX_ATTEMPTS', '2'))
    ALERT_TOUCH_MODE = os.environ.get('ALERT_TOUCH_MODE', 'celery')  # celery | inline | off

    # Operator API
    ADMIN_API_TOKEN = os.environ.get('ADMIN_API_TOKEN', '')

    # Public URL used when printing the pixel snippet
    APP_URL = os.environ.get('APP_URL', 'http://localhost:5000')

    # Flask will load these, and Celery will automatically map them to its lowercase settings.
    # 'redis' is the service name in docker-compose.
    CELERY_BROKER_URL = os.environ.get('REDIS_URL') or 'redis://redis:6379/0'
    CELERY_RESULT_BACKEND = os.environ.get('REDIS_URL') or 'redis://redis:6379/0'

    # Error monitoring
    SENTRY_DSN = os.environ.get('SENTRY_DSN')

    # Application settings
    MAX_CONTENT_LENGTH = 1 * 1024 * 1024  # webhook bodies are small
    JSON_SORT_KEYS = False

    @classmethod
    def init_app(cls, app):
        """Initialize application with this config"""
        pass


class DevelopmentConfig(Config):
    """Development environment configuration"""
    DEBUG = True
    TESTING = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')

    # Development-specific database URI
    SQLALCHEMY_DATABASE_URI = os.environ.get('DEV_DATABASE_URL') or \
        Config.SQLALCHEMY_DATABASE_URI


class TestingConfig(Config):
    """Testing environment configuration"""
    TESTING = True
    DEBUG = True

    # Use in-memory SQLite for tests
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'

    # Provider secrets are set per test where verification is exercised
    GHL_WEBHOOK_SECRET = ''
    TYPEFORM_WEBHOOK_SECRET = ''
    CALENDLY_WEBHOOK_SECRET = ''
    WHOP_WEBHOOK_SECRET = ''
    SCHEDULEONCE_WEBHOOK_SECRET = ''
    ZAPIER_WEBHOOK_SECRET = ''
    STRIPE_WEBHOOK_SECRET = 'whsec_test_secret'
    STRIPE_SECRET_KEY = 'sk_test_key'
    ADMIN_API_TOKEN = ''

    # Run alert touches in-process so tests need no broker
    ALERT_TOUCH_MODE = 'inline'
    SESSION_INACTIVITY_MINUTES = 30
    IDENTITY_RESOLUTION_MAX_ATTEMPTS = 2

    # Use test Redis database
    CELERY_BROKER_URL = 'redis://localhost:6379/1'
    CELERY_RESULT_BACKEND = 'redis://localhost:6379/1'

    SENTRY_DSN = None


class ProductionConfig(Config):
    """Production environment configuration"""
    DEBUG = False
    TESTING = False

    # Production database
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', '')
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True}

    # Production Redis
    REDIS_URL = os.environ.get('REDIS_URL', '')
    CELERY_BROKER_URL = os.environ.get('REDIS_URL', '')
    CELERY_RESULT_BACKEND = os.environ.get('REDIS_URL', '')

    # If using rediss:// (SSL), append required parameters
    if CELERY_BROKER_URL.startswith('rediss://'):
        if 'ssl_cert_reqs' not in CELERY_BROKER_URL:
            # Use CERT_NONE for managed Redis/Valkey services
            separator = '&' if '?' in CELERY_BROKER_URL else '?'
            ssl_params = f"{separator}ssl_cert_reqs=CERT_NONE"
            CELERY_BROKER_URL += ssl_params
            CELERY_RESULT_BACKEND += ssl_params

    @classmethod
    def init_app(cls, app):
        """Production-specific initialization"""
        Config.init_app(app)

        if not cls.SQLALCHEMY_DATABASE_URI:
            cls.SQLALCHEMY_DATABASE_URI = cls.get_required_env('POSTGRES_URI')
            app.config['SQLALCHEMY_DATABASE_URI'] = cls.SQLALCHEMY_DATABASE_URI

        # Validate all required config
        cls.validate_required_config()


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config(config_name: Optional[str] = None) -> type[Config]:
    """Get configuration class based on environment"""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    return config.get(config_name, DevelopmentConfig)
