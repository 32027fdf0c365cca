import pytest

from bistro.core.config import get_settings
from bistro.services.excel_manager import ExcelManager
from bistro.tasks import export_orders_report

ORDER = {
    "id": 7,
    "userId": 2,
    "status": "pending",
    "subtotal": 20.0,
    "deliveryFee": 3.99,
    "tax": 1.65,
    "total": 25.64,
    "deliveryMethod": "delivery",
    "deliveryAddress": "1 Main St",
    "paymentMethod": "cash",
    "paymentCompleted": False,
    "paymentId": None,
    "createdAt": "2030-06-01T19:00:00Z",
    "items": [
        {"id": 1, "orderId": 7, "menuItemId": 4, "name": "Soup of the Day", "quantity": 2, "price": 10.0},
    ],
}


@pytest.fixture
def manager(tmp_path):
    return ExcelManager(tmp_path / "reports", lock_timeout=5)


class TestOrderRow:
    def test_flattens_lines(self):
        row = ExcelManager.order_row(ORDER, "now")

        assert row["order_id"] == 7
        assert row["items"] == "2x Soup of the Day"
        assert row["item_count"] == 2
        assert row["total"] == 25.64
        assert list(row) == ExcelManager.ORDER_COLUMNS

    def test_unnamed_line_falls_back_to_menu_item_id(self):
        order = dict(ORDER, items=[{"menuItemId": 9, "quantity": 1}])
        assert ExcelManager.order_row(order, "now")["items"] == "1x 9"


class TestExport:
    def test_write_and_read_back(self, manager):
        result = manager.export_orders([ORDER, dict(ORDER, id=8, status="cancelled")])

        assert result["success"] is True
        assert result["orders"] == 2
        rows = manager.read_orders()
        assert [r["order_id"] for r in rows] == [7, 8]
        assert rows[1]["status"] == "cancelled"
        assert rows[0]["delivery_address"] == "1 Main St"

    def test_export_replaces_previous_report(self, manager):
        manager.export_orders([ORDER, dict(ORDER, id=8)])
        manager.export_orders([ORDER])

        assert len(manager.read_orders()) == 1

    def test_empty_export_keeps_header(self, manager):
        assert manager.export_orders([])["success"] is True
        assert manager.read_orders() == []

    def test_read_before_export(self, manager):
        assert manager.read_orders() == []

    def test_clear(self, manager):
        manager.export_orders([ORDER])

        assert manager.clear() is True
        assert not manager.report_file.exists()
        assert manager.clear() is False

    def test_from_settings(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DATA_DIRECTORY", str(tmp_path))
        monkeypatch.setenv("REPORT_FILENAME", "weekly.xlsx")
        get_settings.cache_clear()

        manager = ExcelManager.from_settings()
        assert manager.report_file == tmp_path / "weekly.xlsx"


class TestReportTask:
    def test_task_writes_report(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DATA_DIRECTORY", str(tmp_path))
        get_settings.cache_clear()

        result = export_orders_report.apply(args=[[ORDER]]).get()

        assert result["success"] is True
        assert result["orders"] == 1
        assert result["task_id"]
        assert result["processing_time_seconds"] >= 0
        assert ExcelManager.from_settings().read_orders()[0]["items"] == "2x Soup of the Day"
