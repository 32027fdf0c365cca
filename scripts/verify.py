"""
Report Verification Script

Checks the orders report written by the Celery export task.
Run from project root: python scripts/verify.py
"""

import math
import os
import sys
from datetime import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bistro.services.excel_manager import ExcelManager


def verify_report() -> bool:
    """Verify report integrity after an export."""
    manager = ExcelManager.from_settings()

    print("=" * 60)
    print("🔍 ORDERS REPORT VERIFICATION")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 File: {manager.report_file}")
    print("=" * 60)

    if not manager.report_file.exists():
        print("\n❌ Report not found!")
        print("   Queue one first: POST /api/reports/orders")
        return False

    rows = manager.read_orders()
    print(f"\n📊 STATISTICS:")
    print(f"   Total Orders: {len(rows)}")

    if rows:
        missing = [col for col in ExcelManager.ORDER_COLUMNS if col not in rows[0]]
        if missing:
            print(f"\n⚠️ Missing Columns: {missing}")
        else:
            print(f"\n✅ All columns present")

    ids = [row["order_id"] for row in rows]
    duplicates = len(ids) - len(set(ids))
    if duplicates:
        print(f"⚠️ {duplicates} duplicate order IDs found!")
    else:
        print(f"✅ No duplicate order IDs")

    # Each total must equal subtotal + delivery fee + tax
    broken = [
        row["order_id"] for row in rows
        if not math.isclose(
            row["total"], row["subtotal"] + row["delivery_fee"] + row["tax"], abs_tol=0.005
        )
    ]
    if broken:
        print(f"⚠️ Totals that do not add up: {broken[:10]}")
    else:
        print(f"✅ All totals add up")

    billable = [row for row in rows if row["status"] != "cancelled"]
    revenue = sum(row["total"] for row in billable)
    print(f"\n💰 REVENUE (excluding cancelled): ${revenue:.2f}")

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE" if not (duplicates or broken) else "⚠️ VERIFICATION FOUND ISSUES")
    print("=" * 60)

    return not (duplicates or broken)


if __name__ == "__main__":
    sys.exit(0 if verify_report() else 1)
