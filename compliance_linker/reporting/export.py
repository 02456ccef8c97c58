"""Tabular and JSON export of linking reports.

- Linking CSV: one row per link (Evidence Name, Requirement Code,
  Requirement Title, Link Type, Link Strength, Description, Created Date)
- Requirements-tree CSV: one row per requirement with its evidence count
- JSON dump of a full LinkingReport

Every CSV cell is quoted; rows are separated by a bare newline.
"""

import csv
import io
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Sequence

from compliance_linker.data_management.schemas import (
    Link,
    LinkingReport,
    Requirement,
    StandardNode,
)
from compliance_linker.errors import StoreError

LINKING_CSV_HEADERS = [
    "Evidence Name",
    "Requirement Code",
    "Requirement Title",
    "Link Type",
    "Link Strength",
    "Description",
    "Created Date",
]

TREE_CSV_HEADERS = ["Code", "Title", "Standard", "Category", "Evidence Count"]

SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]


def format_file_size(size_bytes: int) -> str:
    """Human readable size in 1024 steps, e.g. 1536 -> "1.5 KB"."""
    if size_bytes <= 0:
        return "0 Bytes"
    exponent = 0
    while size_bytes >= 1024 ** (exponent + 1) and exponent < len(SIZE_UNITS) - 1:
        exponent += 1
    value = round(size_bytes / 1024 ** exponent, 2)
    # Drop trailing zeros: 2.0 -> "2", 1.50 -> "1.5"
    return f"{value:g} {SIZE_UNITS[exponent]}"


def _to_csv(headers: Sequence[str], rows: Iterable[Sequence[object]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue()


def linking_rows(links: Iterable[Link]) -> list[list[object]]:
    """One row per link; Created Date is the UTC calendar day (YYYY-MM-DD)."""
    rows = []
    for link in links:
        created = link.created_at
        if created.tzinfo is not None:
            created = created.astimezone(timezone.utc)
        rows.append([
            link.evidence_name,
            link.requirement_code,
            link.requirement_title,
            link.link_type.value,
            link.strength,
            link.description or "",
            created.date().isoformat(),
        ])
    return rows


def linking_csv(report: LinkingReport) -> str:
    return _to_csv(LINKING_CSV_HEADERS, linking_rows(report.links))


def tree_rows(
    requirements: Iterable[Requirement],
    links: Iterable[Link],
) -> list[list[object]]:
    """One row per requirement; Evidence Count is the number of links referencing it."""
    counts: dict[str, int] = {}
    for link in links:
        counts[link.requirement_id] = counts.get(link.requirement_id, 0) + 1
    return [
        [req.code, req.title, req.standard, req.category, counts.get(req.requirement_id, 0)]
        for req in requirements
    ]


def tree_csv(report: LinkingReport) -> str:
    return _to_csv(TREE_CSV_HEADERS, tree_rows(report.requirements, report.links))


def tree_nodes_csv(tree: Iterable[StandardNode]) -> str:
    """Requirements-tree CSV from an already built tree (StatusResolver.requirements_tree)."""
    rows = [
        [
            node.requirement.code,
            node.requirement.title,
            node.requirement.standard,
            node.requirement.category,
            node.evidence_count,
        ]
        for standard in tree
        for category in standard.categories
        for node in category.requirements
    ]
    return _to_csv(TREE_CSV_HEADERS, rows)


def report_json(report: LinkingReport, indent: Optional[int] = 2) -> str:
    return report.model_dump_json(indent=indent)


def default_filename(kind: str, extension: str, moment: Optional[datetime] = None) -> str:
    """e.g. evidence_linking_report_2024-05-01.csv"""
    day = (moment or datetime.now(timezone.utc)).date().isoformat()
    return f"{kind}_{day}.{extension}"


def write_export(content: str, path: Path) -> Path:
    """Write export content to disk.

    Raises:
        StoreError: If the file cannot be written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise StoreError(f"Failed to write export {path}: {e}") from e
    return path
