"""
Delete audit log rows older than the retention period (data minimization).
The same cleanup runs daily at 03:00 when AUDIT_CLEANUP_CRON_ENABLED is true.

Run from project root:
  python scripts/clean_audit_logs.py [years]

years defaults to AUDIT_RETENTION_YEARS (5).
"""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.config import get_settings
from app.database import SessionLocal
from app.services.audit_log import clean_old_logs


def main():
    years = int(sys.argv[1]) if len(sys.argv) > 1 else get_settings().audit_retention_years
    db = SessionLocal()
    try:
        deleted = clean_old_logs(db, years)
        print(f"Deleted {deleted} audit log(s) older than {years} year(s).")
    finally:
        db.close()


if __name__ == "__main__":
    main()
