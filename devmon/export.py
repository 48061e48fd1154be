"""CSV export of the alert log."""

import csv
import io
from datetime import datetime
from typing import Iterable

from devmon.clock import format_file_timestamp, format_timestamp
from devmon.models import AlertRecord

CSV_HEADER = ["Timestamp", "Device Name", "Device IP", "Event Type", "Severity", "Message"]


def _alert_row(record: AlertRecord, tz) -> list:
    return [
        format_timestamp(record.ts, tz),
        record.device_name,
        record.device_ip,
        record.event_type.value,
        record.severity.value,
        record.message,
    ]


def format_alerts_csv(records: Iterable[AlertRecord], tz=None) -> str:
    """Render alerts as CSV text, one row per alert in the given order.

    Fields containing a comma, quote or newline are quoted with embedded
    quotes doubled. Rows are separated by ``\\n`` with no trailing newline.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(CSV_HEADER)
    for record in records:
        writer.writerow(_alert_row(record, tz))
    return buffer.getvalue().rstrip("\n")


def export_filename(now: datetime, tz=None) -> str:
    """Suggested download name, e.g. ``network-logs-2024-05-01-142233.csv``."""
    return f"network-logs-{format_file_timestamp(now, tz)}.csv"


def write_alerts_csv(path: str, records: Iterable[AlertRecord], tz=None):
    """Write the CSV rendering of ``records`` to ``path``."""
    with open(path, "w", newline="", encoding="utf-8") as csvfile:
        csvfile.write(format_alerts_csv(records, tz))
