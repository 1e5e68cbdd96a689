"""
Sales Report Workbook Export

Writes a SalesReport to an .xlsx workbook with three sheets (summary,
daily sales, top products). Writers are serialized by a file lock so a
Celery worker and an API process can export at the same time without
corrupting the file.

Version: 1.0.0
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from filelock import FileLock, Timeout

from orderdesk.core.config import get_settings
from orderdesk.schemas import SalesReport

logger = logging.getLogger(__name__)


class ReportExporter:
    """Lock-guarded Excel writer for sales reports."""

    SUMMARY_SHEET = "Summary"
    DAILY_SHEET = "Daily Sales"
    PRODUCTS_SHEET = "Top Products"

    DAILY_COLUMNS = ["date", "revenue", "orders"]
    PRODUCT_COLUMNS = ["name", "quantity", "revenue"]

    def __init__(
        self,
        data_directory: Optional[str] = None,
        filename: Optional[str] = None,
        lock_timeout: Optional[int] = None,
    ):
        settings = get_settings()
        self.data_dir = Path(data_directory or settings.data_directory)
        self.report_file = self.data_dir / (filename or settings.report_filename)
        self.lock_file = self.report_file.with_name(self.report_file.name + ".lock")
        self.lock_timeout = settings.storage_lock_timeout if lock_timeout is None else lock_timeout
        self.currency = settings.currency

    def _ensure_data_dir(self) -> None:
        if not self.data_dir.exists():
            self.data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.data_dir}")

    def _summary_frame(self, report: SalesReport, exported_at: str) -> pd.DataFrame:
        return pd.DataFrame([
            {"metric": "period_days", "value": report.days},
            {"metric": "total_revenue", "value": float(report.total_revenue)},
            {"metric": "total_orders", "value": report.total_orders},
            {"metric": "average_order_value", "value": float(report.average_order_value)},
            {"metric": "delivery_orders", "value": report.delivery_orders},
            {"metric": "pickup_orders", "value": report.pickup_orders},
            {"metric": "currency", "value": self.currency},
            {"metric": "exported_at", "value": exported_at},
        ])

    def export(self, report: SalesReport) -> dict[str, Any]:
        """
        Write the report workbook, replacing any previous export.

        Returns:
            dict: success flag, message, file path and export time

        Raises:
            filelock.Timeout: Another writer held the lock too long
            OSError: The workbook could not be written
        """
        self._ensure_data_dir()

        result = {
            "success": False,
            "message": "",
            "file": str(self.report_file),
            "exported_at": None,
        }

        try:
            with FileLock(str(self.lock_file), timeout=self.lock_timeout):
                logger.debug(f"Lock acquired for {self.report_file}")

                exported_at = datetime.now(timezone.utc).isoformat()
                daily = pd.DataFrame(
                    [day.model_dump() for day in report.daily_sales], columns=self.DAILY_COLUMNS
                )
                products = pd.DataFrame(
                    [product.model_dump() for product in report.top_products],
                    columns=self.PRODUCT_COLUMNS,
                )
                for frame in (daily, products):
                    frame["revenue"] = frame["revenue"].astype(float)

                with pd.ExcelWriter(self.report_file, engine="openpyxl") as writer:
                    self._summary_frame(report, exported_at).to_excel(
                        writer, sheet_name=self.SUMMARY_SHEET, index=False
                    )
                    daily.to_excel(writer, sheet_name=self.DAILY_SHEET, index=False)
                    products.to_excel(writer, sheet_name=self.PRODUCTS_SHEET, index=False)

                logger.info(f"Sales report ({report.days} days) exported to {self.report_file}")
                result["success"] = True
                result["message"] = f"Sales report ({report.days} days) exported"
                result["exported_at"] = exported_at

        except Timeout:
            logger.error(f"Lock timeout ({self.lock_timeout}s) exporting {self.report_file}")
            raise

        except OSError:
            logger.exception(f"Error writing {self.report_file}")
            raise

        return result

    def read(self) -> dict[str, pd.DataFrame]:
        """Load every sheet of the last export (empty dict if none)."""
        if not self.report_file.exists():
            return {}
        return pd.read_excel(self.report_file, sheet_name=None, engine="openpyxl")
