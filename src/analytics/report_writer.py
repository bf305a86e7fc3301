# src/analytics/report_writer.py
"""Writes query results to delimited files and renders them as text tables."""
import csv
import logging
import os
from typing import Dict, NamedTuple, Optional, Sequence

from config.config import cfg
from src.analytics.queries import (
    monthly_sales_pattern,
    top_selling_categories,
    top_spending_customers,
)
from src.models.database import Database

logger = logging.getLogger(__name__)


def write_report(
    rows: Sequence[NamedTuple],
    path: str,
    delimiter: Optional[str] = None,
    fieldnames: Optional[Sequence[str]] = None,
) -> str:
    """
    Write query rows to a delimited file with a header line.

    Args:
        rows: Result rows of one of the analytics queries
        path: Target file; parent directories are created
        delimiter: Field separator (defaults to CSV_DELIMITER)
        fieldnames: Header to use when `rows` is empty

    Returns:
        The path written
    """
    delimiter = delimiter or cfg.csv_delimiter
    if rows:
        fieldnames = rows[0]._fields
    elif fieldnames is None:
        fieldnames = []

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, delimiter=delimiter)
        writer.writerow(fieldnames)
        for row in rows:
            writer.writerow(row)

    logger.info(f"Wrote {len(rows)} rows to {path}")
    return path


def format_table(rows: Sequence[NamedTuple]) -> str:
    """Render rows as an aligned plain-text table."""
    if not rows:
        return "(no rows)"

    header = list(rows[0]._fields)
    cells = [[str(value) for value in row] for row in rows]
    widths = [
        max(len(header[i]), *(len(r[i]) for r in cells)) for i in range(len(header))
    ]

    lines = [
        "  ".join(h.ljust(w) for h, w in zip(header, widths)),
        "  ".join("-" * w for w in widths),
    ]
    lines.extend("  ".join(c.ljust(w) for c, w in zip(r, widths)) for r in cells)
    return "\n".join(lines)


def export_all_reports(
    db: Database,
    output_dir: Optional[str] = None,
    top_n: Optional[int] = None,
    delimiter: Optional[str] = None,
) -> Dict[str, str]:
    """Run the three analytics queries and write one file per report."""
    output_dir = output_dir or cfg.output_dir
    top_n = cfg.top_n if top_n is None else top_n

    reports = {
        "top_spending_customers": (
            top_spending_customers(db, top_n),
            ["customer_unique_id", "total_spent"],
        ),
        "top_selling_categories": (
            top_selling_categories(db, top_n),
            ["category", "items_sold"],
        ),
        "monthly_sales_pattern": (
            monthly_sales_pattern(db),
            ["year", "month", "average_order_value", "order_count"],
        ),
    }

    written = {}
    for name, (rows, fieldnames) in reports.items():
        logger.info(f"{name}:\n{format_table(rows)}")
        path = os.path.join(output_dir, f"{name}.csv")
        written[name] = write_report(rows, path, delimiter, fieldnames)
    return written
