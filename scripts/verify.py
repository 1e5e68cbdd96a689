"""
Report Workbook Verification Script

Checks the sales report workbook written by the export task.
Run from project root: python scripts/verify.py [path/to/sales_report.xlsx]

Version: 1.0.0
"""

import os
import sys
from datetime import datetime

import pandas as pd

REPORT_FILE = os.path.join('data', 'sales_report.xlsx')
REQUIRED_SHEETS = {
    'Summary': ['metric', 'value'],
    'Daily Sales': ['date', 'revenue', 'orders'],
    'Top Products': ['name', 'quantity', 'revenue'],
}


def verify_report(path: str = REPORT_FILE) -> bool:
    """Verify sheets, columns and totals of an exported report."""

    print("=" * 60)
    print("SALES REPORT VERIFICATION")
    print("=" * 60)
    print(f"Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"File: {path}")
    print("=" * 60)

    if not os.path.exists(path):
        print("\nReport file not found!")
        print("   Export one first: POST /api/admin/reports/export")
        return False

    try:
        sheets = pd.read_excel(path, sheet_name=None, engine='openpyxl')
    except (OSError, ValueError) as e:
        print(f"\nCould not read report: {e}")
        return False

    ok = True
    for name, columns in REQUIRED_SHEETS.items():
        if name not in sheets:
            print(f"\nMissing sheet: {name}")
            ok = False
            continue
        missing = [col for col in columns if col not in sheets[name].columns]
        if missing:
            print(f"\nSheet '{name}' is missing columns: {missing}")
            ok = False
    if not ok:
        return False
    print("\nAll sheets and columns present")

    summary = dict(zip(sheets['Summary']['metric'], sheets['Summary']['value']))
    daily = sheets['Daily Sales']

    print(f"\nSUMMARY ({summary.get('period_days')} days):")
    print(f"   Orders: {summary.get('total_orders')}")
    print(f"   Revenue: {summary.get('total_revenue')} {summary.get('currency', '')}")
    print(f"   Average: {summary.get('average_order_value')}")

    daily_revenue = round(float(daily['revenue'].sum()), 2)
    daily_orders = int(daily['orders'].sum())
    if abs(daily_revenue - float(summary.get('total_revenue', 0))) > 0.01:
        print(f"\nDaily revenue {daily_revenue} does not add up to the total")
        ok = False
    if daily_orders != int(summary.get('total_orders', 0)):
        print(f"\nDaily order counts {daily_orders} do not add up to the total")
        ok = False
    if ok:
        print("Daily sales add up to the totals")

    print(f"\nTOP PRODUCTS:")
    print("-" * 60)
    print(sheets['Top Products'].head(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("VERIFICATION COMPLETE" if ok else "VERIFICATION FAILED")
    print("=" * 60)

    return ok


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else REPORT_FILE
    sys.exit(0 if verify_report(target) else 1)
