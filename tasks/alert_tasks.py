"""
Celery tasks for alert timestamps
"""

from flask import current_app

from celery_worker import celery
from logging_config import get_logger

logger = get_logger(__name__)


@celery.task(bind=True, ignore_result=True)
def touch_alert_timestamps(self, organization_id):
    """Set last_event_at on the organization's active alerts."""
    alert_service = current_app.services.get('alert')
    touched = alert_service.touch(organization_id)
    logger.info("Alert timestamps touched", organization_id=organization_id, count=touched)
    return touched
