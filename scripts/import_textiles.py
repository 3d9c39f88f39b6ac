from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from schoolshop.db.base import session_scope  # noqa: E402
from schoolshop.services.textile_import import import_textiles  # noqa: E402


def main(csv_path: Path) -> int:
    if not csv_path.exists():
        print(f"CSV file not found: {csv_path}")
        return 1
    content = csv_path.read_text(encoding="utf-8-sig")

    with session_scope() as session:
        report = import_textiles(session, content)

    print(f"Created: {report.created}")
    print(f"Updated: {report.updated}")
    print(f"Skipped: {report.skipped}")
    for error in report.errors:
        print(f"Error: {error}")
    if report.created + report.updated == 0:
        print("No textiles imported")
        return 1
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Import textiles from a CSV export into textile_catalog.")
    parser.add_argument(
        "csv_path",
        type=Path,
        nargs="?",
        default=ROOT / "textildatenbank_rows.csv",
        help="CSV with id, produktname, herstellername, produktfarben, produktgrößen columns.",
    )
    args = parser.parse_args()
    sys.exit(main(csv_path=args.csv_path))
