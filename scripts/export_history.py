import argparse
import logging
import sys
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from reference import ReferenceData
from reports import write_history_workbook
from shifts import ShiftService
from storage import SqliteStorage


def main(argv=None):
    parser = argparse.ArgumentParser(description="Export saved shifts to an Excel workbook")
    parser.add_argument("--db", default=str(ROOT / "tips.db"), help="sqlite database file")
    parser.add_argument("--out", default="tip-history.xlsx", help="workbook to write")
    parser.add_argument("--since", type=date.fromisoformat, default=None, help="only shifts on or after YYYY-MM-DD")
    args = parser.parse_args(argv)

    if not Path(args.db).exists():
        print(f"ERROR: database not found: {args.db}")
        return 1

    logging.basicConfig(level=logging.INFO)
    storage = SqliteStorage(args.db)
    try:
        service = ShiftService(storage, ReferenceData(storage))
        path = write_history_workbook(service, args.out, since=args.since)
    finally:
        storage.close()
    print(f"Wrote {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
