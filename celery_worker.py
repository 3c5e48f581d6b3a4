# celery_worker.py
from app import create_app
from celery_config import create_celery_app

# Create Celery instance with shared configuration
celery = create_celery_app(__name__)

# Tasks need an app context for the service registry and db session.
flask_app = create_app()


class ContextTask(celery.Task):
    def __call__(self, *args, **kwargs):
        with flask_app.app_context():
            return self.run(*args, **kwargs)


celery.Task = ContextTask

# Import tasks to ensure they're registered with Celery
import tasks.alert_tasks  # noqa: E402,F401
