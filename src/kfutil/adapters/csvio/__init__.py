"""CSV artifacts: ROT inputs, audit and reconciled files, bulk store tables."""

from __future__ import annotations

from .dialect import EscapedWriterDialect, LenientReaderDialect, escape_value
from .rot import (
    AUDIT_HEADER,
    CERTIFICATES_HEADER,
    RECONCILED_HEADER,
    STORES_HEADER,
    AuditCsvWriter,
    CsvRotFiles,
    ReconciledCsvWriter,
    read_audit,
    read_certificates,
    read_stores,
)
from .tables import TemplateFormat, read_table, results_path, write_table, write_template

__all__ = [
    "AUDIT_HEADER",
    "CERTIFICATES_HEADER",
    "RECONCILED_HEADER",
    "STORES_HEADER",
    "AuditCsvWriter",
    "CsvRotFiles",
    "EscapedWriterDialect",
    "LenientReaderDialect",
    "ReconciledCsvWriter",
    "TemplateFormat",
    "escape_value",
    "read_audit",
    "read_certificates",
    "read_stores",
    "read_table",
    "results_path",
    "write_table",
    "write_template",
]
