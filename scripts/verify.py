"""
Order Ledger Verification Script

Checks the Excel ledger written by the Celery worker.
Run from project root: python scripts/verify.py
"""

import os
import sys
from datetime import datetime

import pandas as pd

EXCEL_FILE = os.path.join(os.getenv("DATA_DIRECTORY", "data"), "orders.xlsx")
REQUIRED_COLUMNS = ["order_id", "date_time", "client_type", "items", "total_amount", "order_status"]


def verify_excel() -> bool:
    """Verify ledger integrity after a simulation."""

    print("=" * 60)
    print("ORDER LEDGER VERIFICATION REPORT")
    print("=" * 60)
    print(f"Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"File: {EXCEL_FILE}")
    print("=" * 60)

    if not os.path.exists(EXCEL_FILE):
        print("\nLedger not found!")
        print("   Run the simulation first: python scripts/simulate.py")
        return False

    try:
        df = pd.read_excel(EXCEL_FILE, engine="openpyxl")
        print("\nFile loaded successfully!")
    except Exception as e:
        print(f"\nCould not read ledger: {e}")
        return False

    print("\nSTATISTICS:")
    print(f"   Total Orders: {len(df)}")
    print(f"   Columns: {len(df.columns)}")

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        print(f"\nMissing Columns: {missing}")
    else:
        print("\nAll required columns present")

    ok = not missing

    if "order_id" in df.columns:
        duplicates = df["order_id"].duplicated().sum()
        if duplicates > 0:
            print(f"\n{duplicates} duplicate order IDs found!")
            ok = False
        else:
            print("No duplicate order IDs")

    if "client_type" in df.columns:
        print("\nBY CLIENT TYPE:")
        for client_type, count in df["client_type"].value_counts().items():
            print(f"   {client_type}: {count}")

    if "total_amount" in df.columns and len(df) > 0:
        print("\nREVENUE (ordered, not necessarily served):")
        print(f"   Total: {df['total_amount'].sum():.2f}")
        print(f"   Average: {df['total_amount'].mean():.2f}")

    print("\nRECENT ORDERS:")
    print("-" * 60)
    if len(df) > 0:
        cols = [c for c in ["order_id", "client_type", "items", "total_amount"] if c in df.columns]
        print(df[cols].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("VERIFICATION COMPLETE" if ok else "VERIFICATION FOUND PROBLEMS")
    print("=" * 60)

    return ok


if __name__ == "__main__":
    sys.exit(0 if verify_excel() else 1)
