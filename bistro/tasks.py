"""
Celery Tasks
Background jobs queued by the API.
"""

import logging
import time

from bistro.celery_worker import celery_app
from bistro.services.excel_manager import ExcelManager

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(OSError,),
    retry_backoff=True
)
def export_orders_report(self, orders: list) -> dict:
    """
    Write the orders report workbook.

    Args:
        orders: Orders serialized as the API returns them

    Returns:
        dict: Result of the export operation
    """
    task_id = self.request.id
    logger.info(f"Task {task_id}: Exporting {len(orders)} order(s)")
    start_time = time.time()

    result = ExcelManager.from_settings().export_orders(orders)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if result['success']:
        logger.info(f"Task {task_id}: Report written in {elapsed}s")
    else:
        logger.warning(f"Task {task_id}: Report failed - {result['message']}")

    return result

