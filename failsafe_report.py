# failsafe_report.py
# Write resolved fail-safe records as a CSV table.
import csv
import logging
from pathlib import Path

from failsafe_blocks import REPORT_FIELDS

logger = logging.getLogger("ehsalyze.report")

def format_rows(records) -> list[list[str]]:
    """Header row followed by one row per record, missing values as ''."""
    rows = [list(REPORT_FIELDS)]
    for r in records:
        rows.append([str(r.get(k) or "") for k in REPORT_FIELDS])
    return rows

def write_csv_report(records, out_path) -> Path | None:
    """
    Write `records` to `out_path`.
    Returns the output Path, or None when there was nothing to write
    (no file is created in that case).
    """
    if not records:
        logger.info("No qualifying blocks; report not written.")
        return None

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
        writer.writerows(format_rows(records))
    logger.info("Report written to %s (%d rows)", out_path.resolve(), len(records))
    return out_path
