"""
Excel Report Manager with Concurrency Control

Writes the orders report workbook that back-office staff open in Excel.
Several Celery workers may export at the same time, so every read and
write of the workbook happens under a file lock next to it.

Author: Your Name
Version: 1.0.0
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

import pandas as pd
from filelock import FileLock, Timeout

from bistro.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class ExcelManager:
    """
    Lock-protected orders report.

    Args:
        data_directory: Folder holding the workbook and its lock
        report_filename: Workbook name (e.g. orders_report.xlsx)
        lock_timeout: Seconds to wait for the lock
    """

    ORDER_COLUMNS = [
        "order_id",
        "created_at",
        "user_id",
        "status",
        "delivery_method",
        "delivery_address",
        "payment_method",
        "payment_completed",
        "payment_id",
        "items",
        "item_count",
        "subtotal",
        "delivery_fee",
        "tax",
        "total",
        "exported_at",
    ]

    def __init__(
        self,
        data_directory: Union[str, Path],
        report_filename: str = "orders_report.xlsx",
        lock_timeout: int = 30,
    ):
        self.data_dir = Path(data_directory)
        self.report_file = self.data_dir / report_filename
        self.lock_file = self.data_dir / f"{report_filename}.lock"
        self.lock_timeout = lock_timeout

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ExcelManager":
        settings = settings or get_settings()
        return cls(
            settings.data_directory,
            report_filename=settings.report_filename,
            lock_timeout=settings.excel_lock_timeout,
        )

    def _ensure_data_dir(self) -> None:
        """Create data directory if needed."""
        if not self.data_dir.exists():
            self.data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.data_dir}")

    @staticmethod
    def order_row(order: dict[str, Any], exported_at: str) -> dict[str, Any]:
        """Flatten one serialized order (camelCase, as the API returns it)."""
        items = order.get("items") or []
        return {
            "order_id": order.get("id"),
            "created_at": order.get("createdAt"),
            "user_id": order.get("userId"),
            "status": order.get("status"),
            "delivery_method": order.get("deliveryMethod"),
            "delivery_address": order.get("deliveryAddress"),
            "payment_method": order.get("paymentMethod"),
            "payment_completed": bool(order.get("paymentCompleted")),
            "payment_id": order.get("paymentId"),
            "items": "; ".join(
                f"{line.get('quantity')}x {line.get('name') or line.get('menuItemId')}"
                for line in items
            ),
            "item_count": sum(int(line.get("quantity", 0)) for line in items),
            "subtotal": order.get("subtotal"),
            "delivery_fee": order.get("deliveryFee"),
            "tax": order.get("tax"),
            "total": order.get("total"),
            "exported_at": exported_at,
        }

    def export_orders(self, orders: list[dict[str, Any]]) -> dict[str, Any]:
        """Replace the report with ``orders``, under the file lock."""
        self._ensure_data_dir()

        result = {
            "success": False,
            "message": "",
            "orders": len(orders),
            "path": str(self.report_file),
            "exported_at": None,
        }

        try:
            lock = FileLock(str(self.lock_file), timeout=self.lock_timeout)

            with lock:
                logger.debug(f"Lock acquired for {self.report_file.name}")

                export_time = datetime.now(timezone.utc).isoformat()
                df = pd.DataFrame(
                    [self.order_row(order, export_time) for order in orders],
                    columns=self.ORDER_COLUMNS,
                )
                df.to_excel(str(self.report_file), index=False, engine="openpyxl")

                logger.info(f"Exported {len(orders)} order(s) to {self.report_file}")

                result["success"] = True
                result["message"] = f"{len(orders)} order(s) exported"
                result["exported_at"] = export_time

            logger.debug(f"Lock released for {self.report_file.name}")

        except Timeout:
            result["message"] = f"Lock timeout ({self.lock_timeout}s)"
            logger.error(f"Lock timeout for {self.report_file}")

        return result

    def read_orders(self) -> list[dict[str, Any]]:
        """Rows of the current report (empty if none was written yet)."""
        if not self.report_file.exists():
            return []

        with FileLock(str(self.lock_file), timeout=self.lock_timeout):
            df = pd.read_excel(self.report_file, engine="openpyxl")
        return df.to_dict("records")

    def clear(self) -> bool:
        """Delete the report and its lock file."""
        removed = False
        for path in (self.report_file, self.lock_file):
            if path.exists():
                path.unlink()
                removed = True
        if removed:
            logger.info(f"Cleared {self.report_file}")
        return removed
