"""Report export: linking CSV, requirements-tree CSV and JSON."""

from compliance_linker.reporting.export import (
    LINKING_CSV_HEADERS,
    TREE_CSV_HEADERS,
    default_filename,
    format_file_size,
    linking_csv,
    linking_rows,
    report_json,
    tree_csv,
    tree_nodes_csv,
    tree_rows,
    write_export,
)

__all__ = [
    "LINKING_CSV_HEADERS",
    "TREE_CSV_HEADERS",
    "default_filename",
    "format_file_size",
    "linking_csv",
    "linking_rows",
    "report_json",
    "tree_csv",
    "tree_nodes_csv",
    "tree_rows",
    "write_export",
]
