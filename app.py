# app.py

from flask import Flask, g, request, jsonify
from flask_migrate import Migrate
from config import get_config
from extensions import db
import os
import uuid
from werkzeug.middleware.proxy_fix import ProxyFix
from logging_config import setup_logging, get_logger

# Configure logging as early as possible
setup_logging(app_name="funnel-tracking", log_level=os.environ.get('LOG_LEVEL', 'INFO'))
logger = get_logger(__name__)

# Provider name -> (adapter factory, config keys passed to it)
WEBHOOK_PROVIDERS = {
    'ghl': ('GhlAdapter', ['GHL_WEBHOOK_SECRET']),
    'stripe': ('StripeAdapter', ['STRIPE_WEBHOOK_SECRET', 'STRIPE_SECRET_KEY']),
    'calendly': ('CalendlyAdapter', ['CALENDLY_WEBHOOK_SECRET']),
    'typeform': ('TypeformAdapter', ['TYPEFORM_WEBHOOK_SECRET']),
    'jotform': ('JotformAdapter', []),
    'scheduleonce': ('ScheduleOnceAdapter', ['SCHEDULEONCE_WEBHOOK_SECRET']),
    'whop': ('WhopAdapter', ['WHOP_WEBHOOK_SECRET']),
    'zapier': ('ZapierAdapter', ['ZAPIER_WEBHOOK_SECRET']),
    'clickfunnels': ('ClickFunnelsAdapter', []),
}


# Configure Sentry for production error tracking
def init_sentry():
    """Initialize Sentry error tracking in production."""
    sentry_dsn = os.environ.get('SENTRY_DSN')
    if sentry_dsn and os.environ.get('FLASK_ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
        from sentry_sdk.integrations.celery import CeleryIntegration

        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[
                FlaskIntegration(transaction_style='endpoint'),
                SqlalchemyIntegration(),
                CeleryIntegration()
            ],
            traces_sample_rate=0.1,
            environment=os.environ.get('FLASK_ENV', 'development'),
            release=os.environ.get('GIT_SHA', 'unknown')
        )
        logger.info("Sentry error tracking initialized")

init_sentry()


def create_app(config_name=None, test_config=None):
    """Create and configure an instance of the Flask application."""
    app = Flask(__name__)

    config_class = get_config(config_name)
    app.config.from_object(config_class)
    config_class.init_app(app)

    if test_config:
        app.config.update(test_config)

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    db.init_app(app)
    Migrate(app, db)

    app.services = _build_registry(app.config)

    errors = app.services.validate_dependencies()
    if errors:
        for error in errors:
            logger.error(f"Service dependency error: {error}")
        raise RuntimeError("Service registry has unresolved dependencies")

    # Add request tracking middleware
    @app.before_request
    def before_request():
        g.request_id = str(uuid.uuid4())
        logger.info("Request started",
                    request_id=g.request_id,
                    method=request.method,
                    path=request.path)

    @app.after_request
    def after_request(response):
        logger.info("Request completed",
                    request_id=getattr(g, 'request_id', None),
                    status_code=response.status_code)
        return response

    @app.errorhandler(500)
    def internal_error(error):
        logger.error("Internal server error",
                     request_id=getattr(g, 'request_id', None),
                     error=str(error))
        return jsonify({'error': 'Internal server error'}), 500

    @app.errorhandler(404)
    def not_found_error(error):
        logger.warning("Not found",
                       request_id=getattr(g, 'request_id', None),
                       path=request.path)
        return jsonify({'error': 'Not found'}), 404

    @app.route('/health')
    def health_check():
        """Health check endpoint for monitoring - no auth required"""
        from sqlalchemy import text
        health_status = {
            'status': 'healthy',
            'service': 'funnel-tracking'
        }

        try:
            db.session.execute(text('SELECT 1'))
            health_status['database'] = 'connected'
        except Exception as e:
            health_status['database'] = 'error'
            health_status['status'] = 'degraded'
            logger.error(f"Health check database error: {e}")

        return jsonify(health_status), 200 if health_status['status'] == 'healthy' else 503

    # Register blueprints for routes
    from routes.beacon_routes import beacon_bp
    from routes.webhook_routes import webhook_bp
    from routes.url_rule_routes import url_rule_bp

    app.register_blueprint(beacon_bp, url_prefix='/api')
    app.register_blueprint(webhook_bp, url_prefix='/api')
    app.register_blueprint(url_rule_bp, url_prefix='/api')

    # Register CLI commands
    from scripts import commands
    commands.init_app(app)

    return app


def _build_registry(config):
    """Wire repositories, services and adapters. Everything is created lazily."""
    from services.service_registry import ServiceRegistry

    registry = ServiceRegistry()

    # db.session is already scoped per app context / thread
    registry.register_factory('db_session', lambda: db.session)
    registry.register_factory(
        'unit_of_work',
        lambda db_session: _create_unit_of_work(db_session),
        dependencies=['db_session']
    )

    # Repositories
    repositories = {
        'organization_repository': ('repositories.organization_repository', 'OrganizationRepository'),
        'contact_repository': ('repositories.contact_repository', 'ContactRepository'),
        'identity_signal_repository': ('repositories.identity_signal_repository', 'IdentitySignalRepository'),
        'visitor_session_repository': ('repositories.visitor_session_repository', 'VisitorSessionRepository'),
        'event_repository': ('repositories.event_repository', 'EventRepository'),
        'page_view_repository': ('repositories.page_view_repository', 'PageViewRepository'),
        'payment_repository': ('repositories.payment_repository', 'PaymentRepository'),
        'url_rule_repository': ('repositories.url_rule_repository', 'UrlRuleRepository'),
        'alert_repository': ('repositories.alert_repository', 'AlertRepository'),
        'experiment_assignment_repository': ('repositories.experiment_assignment_repository',
                                             'ExperimentAssignmentRepository'),
    }
    for name, (module_path, class_name) in repositories.items():
        registry.register_factory(
            name,
            _repository_factory(module_path, class_name),
            dependencies=['db_session']
        )

    # Core services
    registry.register_factory(
        'session_tracking',
        lambda unit_of_work, visitor_session_repository: _create_session_tracking_service(
            unit_of_work, visitor_session_repository, config.get('SESSION_INACTIVITY_MINUTES', 30)),
        dependencies=['unit_of_work', 'visitor_session_repository']
    )
    registry.register_factory(
        'identity_resolution',
        lambda unit_of_work, contact_repository, identity_signal_repository, visitor_session_repository:
            _create_identity_resolution_service(
                unit_of_work, contact_repository, identity_signal_repository, visitor_session_repository,
                config.get('IDENTITY_RESOLUTION_MAX_ATTEMPTS', 2)),
        dependencies=['unit_of_work', 'contact_repository', 'identity_signal_repository',
                      'visitor_session_repository']
    )
    registry.register_factory(
        'event_recorder',
        lambda unit_of_work, event_repository: _create_event_recorder_service(unit_of_work, event_repository),
        dependencies=['unit_of_work', 'event_repository']
    )
    registry.register_factory(
        'url_rule_matcher',
        lambda unit_of_work, url_rule_repository, contact_repository, event_recorder:
            _create_url_rule_matcher_service(unit_of_work, url_rule_repository, contact_repository, event_recorder),
        dependencies=['unit_of_work', 'url_rule_repository', 'contact_repository', 'event_recorder']
    )
    registry.register_factory(
        'alert',
        lambda unit_of_work, alert_repository: _create_alert_service(
            unit_of_work, alert_repository, config.get('ALERT_TOUCH_MODE', 'celery')),
        dependencies=['unit_of_work', 'alert_repository']
    )

    # Entry points
    registry.register_factory(
        'beacon',
        _create_beacon_service,
        dependencies=['unit_of_work', 'organization_repository', 'contact_repository', 'page_view_repository',
                      'experiment_assignment_repository', 'session_tracking', 'identity_resolution',
                      'event_recorder', 'url_rule_matcher', 'alert']
    )
    registry.register_factory(
        'webhook_ingestion',
        _create_webhook_ingestion_service,
        dependencies=['unit_of_work', 'organization_repository', 'identity_resolution', 'event_recorder',
                      'payment_repository']
    )
    registry.register_factory(
        'url_rule',
        lambda unit_of_work, organization_repository, url_rule_repository: _create_url_rule_service(
            unit_of_work, organization_repository, url_rule_repository),
        dependencies=['unit_of_work', 'organization_repository', 'url_rule_repository']
    )

    # Webhook adapters, looked up as '<provider>_adapter'
    for provider, (class_name, config_keys) in WEBHOOK_PROVIDERS.items():
        registry.register_factory(
            f'{provider}_adapter',
            _adapter_factory(class_name, config, config_keys),
            tags={'webhook_adapter'}
        )

    return registry


# Service Factory Functions
# These are only called when the service is first requested

def _repository_factory(module_path, class_name):
    def factory(db_session):
        import importlib
        repository_class = getattr(importlib.import_module(module_path), class_name)
        return repository_class(db_session)
    return factory


def _adapter_factory(class_name, config, config_keys):
    # Secrets are read on first use so they can be set after create_app()
    def factory():
        import services.adapters as adapters
        args = [config.get(key) or '' for key in config_keys]
        return getattr(adapters, class_name)(*args)
    return factory


def _create_unit_of_work(db_session):
    from repositories.unit_of_work import UnitOfWork
    return UnitOfWork(db_session)


def _create_session_tracking_service(unit_of_work, visitor_session_repository, inactivity_minutes):
    from services.session_tracking_service import SessionTrackingService
    return SessionTrackingService(
        unit_of_work=unit_of_work,
        session_repository=visitor_session_repository,
        inactivity_minutes=int(inactivity_minutes)
    )


def _create_identity_resolution_service(unit_of_work, contact_repository, identity_signal_repository,
                                        visitor_session_repository, max_attempts):
    from services.identity_resolution_service import IdentityResolutionService
    return IdentityResolutionService(
        unit_of_work=unit_of_work,
        contact_repository=contact_repository,
        signal_repository=identity_signal_repository,
        session_repository=visitor_session_repository,
        max_attempts=int(max_attempts)
    )


def _create_event_recorder_service(unit_of_work, event_repository):
    from services.event_recorder_service import EventRecorderService
    return EventRecorderService(unit_of_work=unit_of_work, event_repository=event_repository)


def _create_url_rule_matcher_service(unit_of_work, url_rule_repository, contact_repository, event_recorder):
    from services.url_rule_matcher_service import UrlRuleMatcherService
    return UrlRuleMatcherService(
        unit_of_work=unit_of_work,
        url_rule_repository=url_rule_repository,
        contact_repository=contact_repository,
        event_recorder=event_recorder
    )


def _create_alert_service(unit_of_work, alert_repository, mode):
    from services.alert_service import AlertService
    return AlertService(unit_of_work=unit_of_work, alert_repository=alert_repository, mode=mode)


def _create_beacon_service(unit_of_work, organization_repository, contact_repository, page_view_repository,
                           experiment_assignment_repository, session_tracking, identity_resolution,
                           event_recorder, url_rule_matcher, alert):
    from services.beacon_service import BeaconService
    return BeaconService(
        unit_of_work=unit_of_work,
        organization_repository=organization_repository,
        contact_repository=contact_repository,
        page_view_repository=page_view_repository,
        experiment_repository=experiment_assignment_repository,
        session_tracker=session_tracking,
        identity_resolver=identity_resolution,
        event_recorder=event_recorder,
        url_rule_matcher=url_rule_matcher,
        alert_service=alert
    )


def _create_webhook_ingestion_service(unit_of_work, organization_repository, identity_resolution,
                                      event_recorder, payment_repository):
    from services.webhook_ingestion_service import WebhookIngestionService
    return WebhookIngestionService(
        unit_of_work=unit_of_work,
        organization_repository=organization_repository,
        identity_resolver=identity_resolution,
        event_recorder=event_recorder,
        payment_repository=payment_repository
    )


def _create_url_rule_service(unit_of_work, organization_repository, url_rule_repository):
    from services.url_rule_service import UrlRuleService
    return UrlRuleService(
        unit_of_work=unit_of_work,
        organization_repository=organization_repository,
        url_rule_repository=url_rule_repository
    )


if __name__ == '__main__':
    app = create_app()
    app.run(debug=True)
