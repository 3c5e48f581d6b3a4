"""
Alert Service - keeps data-health alert timestamps fresh

The touch is advisory only. Depending on ALERT_TOUCH_MODE it is enqueued on
Celery, run in-process, or skipped; a failure is logged and never reaches the
ingestion request.
"""

from datetime import datetime
from typing import Optional

from logging_config import get_logger
from repositories.alert_repository import AlertRepository
from repositories.unit_of_work import UnitOfWork
from utils.datetime_utils import utc_now

logger = get_logger(__name__)

ALERT_TOUCH_MODES = ('celery', 'inline', 'off')


class AlertService:
    """Updates last_event_at on an organization's active alerts"""

    def __init__(self, unit_of_work: UnitOfWork, alert_repository: AlertRepository, mode: str = 'celery'):
        if mode not in ALERT_TOUCH_MODES:
            raise ValueError(f"Unknown alert touch mode: {mode}")
        self.unit_of_work = unit_of_work
        self.alert_repository = alert_repository
        self.mode = mode

    def touch(self, organization_id: str, when: Optional[datetime] = None) -> int:
        """
        Stamp active alerts with the time of the latest event.

        Returns:
            Number of alerts touched
        """
        with self.unit_of_work.transaction():
            return self.alert_repository.touch_active(organization_id, when or utc_now())

    def schedule_touch(self, organization_id: str) -> None:
        """Best-effort touch according to the configured mode."""
        if self.mode == 'off':
            return

        try:
            if self.mode == 'celery':
                from tasks.alert_tasks import touch_alert_timestamps
                touch_alert_timestamps.delay(organization_id)
            else:
                self.touch(organization_id)
        except Exception as e:
            logger.warning("Alert touch failed", organization_id=organization_id, mode=self.mode, error=str(e))
