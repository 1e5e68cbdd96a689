"""
Celery Tasks
Background tasks for the back-office: report workbook export.
"""

import logging
import time
from datetime import datetime, timezone

from orderdesk.celery_worker import celery_app
from orderdesk.schemas import SalesReport
from orderdesk.services.report_exporter import ReportExporter

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(OSError,),
    retry_backoff=True
)
def export_sales_report(self, report_data: dict) -> dict:
    """
    Write a sales report to the Excel workbook.

    Args:
        report_data: SalesReport serialized with model_dump(mode="json")

    Returns:
        dict: Result of the export operation

    Lock timeouts and write errors are OSErrors and are retried with
    backoff; the last failure propagates once retries run out.
    """
    task_id = self.request.id
    report = SalesReport.model_validate(report_data)

    logger.info(f"Task {task_id}: exporting {report.days}-day sales report")
    start_time = time.time()

    result = ReportExporter().export(report)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    logger.info(f"Task {task_id}: report exported in {elapsed}s (attempt {self.request.retries + 1})")

    return result


@celery_app.task
def health_check() -> dict:
    """
    Simple health check task to verify Celery is working.
    """
    return {
        'status': 'healthy',
        'worker': 'celery',
        'timestamp': datetime.now(timezone.utc).isoformat()
    }
