"""CSV-driven creation and export of certificate stores of any type."""

from __future__ import annotations

from .exporter import StoreExport, default_export_path, export_header, export_stores
from .importer import DRY_RUN_ID, ERROR_ID, ImportRowResult, SecretDefaults, StoreImporter
from .template import missing_required_columns, property_column, template_header

__all__ = [
    "DRY_RUN_ID",
    "ERROR_ID",
    "ImportRowResult",
    "SecretDefaults",
    "StoreExport",
    "StoreImporter",
    "default_export_path",
    "export_header",
    "export_stores",
    "missing_required_columns",
    "property_column",
    "template_header",
]
