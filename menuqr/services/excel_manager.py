"""
Excel Order Ledger with Concurrency Control

Process-safe append-only ledger of placed orders (data/orders.xlsx).
Several Celery worker processes may export at once, so every
read-modify-write of the workbook happens under a FileLock.
"""

import logging
from datetime import datetime
from typing import Any
from pathlib import Path

import pandas as pd
from filelock import FileLock, Timeout

from menuqr.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class ExcelManager:
    """Process-safe Excel ledger manager."""

    DATA_DIR = Path(settings.data_directory)
    FILENAME = settings.excel_filename
    LOCK_TIMEOUT = settings.excel_lock_timeout

    ORDER_COLUMNS = [
        "order_id",
        "date_time",
        "menu_id",
        "menu_name",
        "client_type",
        "table_number",
        "delivery_address",
        "phone_number",
        "items",
        "items_count",
        "total_amount",
        "order_status",
        "exported_at",
    ]

    @classmethod
    def orders_file(cls) -> Path:
        return cls.DATA_DIR / cls.FILENAME

    @classmethod
    def lock_file(cls) -> Path:
        return cls.DATA_DIR / f"{cls.FILENAME}.lock"

    @classmethod
    def _ensure_data_dir(cls) -> None:
        """Create data directory if needed."""
        if not cls.DATA_DIR.exists():
            cls.DATA_DIR.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {cls.DATA_DIR}")

    @classmethod
    def _load_or_create_df(cls) -> pd.DataFrame:
        """Load existing ledger or create an empty one."""
        file_path = cls.orders_file()
        if file_path.exists():
            try:
                return pd.read_excel(file_path, engine="openpyxl")
            except Exception as e:
                logger.warning(f"Error reading {file_path}: {e}")
                return pd.DataFrame(columns=cls.ORDER_COLUMNS)
        return pd.DataFrame(columns=cls.ORDER_COLUMNS)

    @staticmethod
    def format_items(items: list[dict[str, Any]]) -> str:
        """[{"name": "Pasta", "quantity": 2}] -> "Pasta x2"."""
        return ", ".join(f"{item.get('name')} x{item.get('quantity')}" for item in items)

    @classmethod
    def export_order(cls, order_data: dict[str, Any]) -> dict[str, Any]:
        """Append one order row to the ledger with file locking."""
        cls._ensure_data_dir()

        order_id = order_data.get("order_id", 0)
        result = {
            "success": False,
            "message": "",
            "order_id": order_id,
            "exported_at": None,
        }

        try:
            lock = FileLock(str(cls.lock_file()), timeout=cls.LOCK_TIMEOUT)

            with lock:
                logger.debug(f"Lock acquired for Order #{order_id}")

                df = cls._load_or_create_df()

                items = order_data.get("items") or []
                export_time = datetime.now().isoformat()
                new_row = {
                    "order_id": order_id,
                    "date_time": order_data.get("created_at", export_time),
                    "menu_id": order_data.get("menu_id"),
                    "menu_name": order_data.get("menu_name"),
                    "client_type": order_data.get("client_type"),
                    "table_number": order_data.get("table_number"),
                    "delivery_address": order_data.get("delivery_address"),
                    "phone_number": order_data.get("phone_number"),
                    "items": cls.format_items(items),
                    "items_count": sum(int(i.get("quantity", 0)) for i in items),
                    "total_amount": order_data.get("total_amount", 0),
                    "order_status": order_data.get("order_status", "pending"),
                    "exported_at": export_time,
                }

                if df.empty:
                    df = pd.DataFrame([new_row], columns=cls.ORDER_COLUMNS)
                else:
                    df = pd.concat([df, pd.DataFrame([new_row])], ignore_index=True)
                df.to_excel(str(cls.orders_file()), index=False, engine="openpyxl")

                logger.info(f"Order #{order_id} exported to Excel")

                result["success"] = True
                result["message"] = f"Order #{order_id} exported"
                result["exported_at"] = export_time

            logger.debug(f"Lock released for Order #{order_id}")

        except Timeout:
            result["message"] = f"Lock timeout ({cls.LOCK_TIMEOUT}s)"
            logger.error(f"Lock timeout for Order #{order_id}")

        except Exception as e:
            result["message"] = str(e)
            logger.exception(f"Error exporting Order #{order_id}")

        return result

    @classmethod
    def get_all_orders(cls) -> list[dict[str, Any]]:
        """Get all ledger rows."""
        file_path = cls.orders_file()
        if not file_path.exists():
            return []

        try:
            df = pd.read_excel(file_path, engine="openpyxl")
            return df.to_dict("records")
        except Exception as e:
            logger.error(f"Error reading orders: {e}")
            return []
