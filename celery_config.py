"""
Shared Celery configuration for both Flask app and Celery workers
"""
import os
import ssl
from celery import Celery

from logging_config import get_logger

logger = get_logger(__name__)

SSL_OPTIONS = {
    'ssl_cert_reqs': ssl.CERT_NONE,
    'ssl_ca_certs': None,
    'ssl_certfile': None,
    'ssl_keyfile': None,
}


def add_ssl_params(url):
    """Managed Redis (rediss://) needs ssl_cert_reqs in the URL for kombu."""
    if not url.startswith('rediss://'):
        return url
    from urllib.parse import urlparse, parse_qs
    parsed = urlparse(url)
    if 'ssl_cert_reqs' not in parse_qs(parsed.query):
        separator = '&' if parsed.query else '?'
        return url + f"{separator}ssl_cert_reqs=CERT_NONE"
    return url


def create_celery_app(app_name=__name__):
    """Create a Celery app with proper SSL Redis configuration"""
    broker_url = os.environ.get('CELERY_BROKER_URL') or os.environ.get('REDIS_URL') or 'redis://redis:6379/0'
    result_backend_url = os.environ.get('CELERY_RESULT_BACKEND') or broker_url

    broker_uses_ssl = broker_url.startswith('rediss://')
    backend_uses_ssl = result_backend_url.startswith('rediss://')

    if broker_uses_ssl or backend_uses_ssl:
        celery = Celery(
            app_name,
            broker=add_ssl_params(broker_url),
            backend=add_ssl_params(result_backend_url),
            broker_use_ssl=SSL_OPTIONS if broker_uses_ssl else None,
            redis_backend_use_ssl=SSL_OPTIONS if backend_uses_ssl else None,
            broker_connection_retry_on_startup=True,
            broker_connection_retry=True,
            broker_connection_max_retries=3,
            broker_transport_options={
                'socket_connect_timeout': 30,
                'socket_timeout': 30,
            }
        )
    else:
        celery = Celery(app_name, broker=broker_url, backend=result_backend_url)

    # Alert touches are advisory; a lost task is acceptable
    celery.conf.task_ignore_result = True
    celery.conf.timezone = 'UTC'

    logger.info("Celery configured", broker_ssl=broker_uses_ssl, backend_ssl=backend_uses_ssl)
    return celery
