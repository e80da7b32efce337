"""Header-keyed CSV tables and template files."""

from __future__ import annotations

import json
from enum import StrEnum
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from kfutil.domain.errors import InputError

from .dialect import is_blank, make_reader, make_writer, normalize_header

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

log = getLogger(__name__)

RESULTS_SUFFIX = "_results"


class TemplateFormat(StrEnum):
    CSV = "csv"
    JSON = "json"


def results_path(input_path: Path) -> Path:
    return input_path.with_name(f"{input_path.stem}{RESULTS_SUFFIX}.csv")


def read_table(path: Path) -> tuple[list[str], list[dict[str, str]]]:
    """Read a CSV file into its header and one mapping per non-blank row."""

    try:
        handle = path.open(newline="", encoding="utf-8")
    except OSError as exc:
        raise InputError(f"unable to read {path}: {exc}") from exc
    with handle:
        reader = make_reader(handle)
        header: list[str] | None = None
        rows: list[dict[str, str]] = []
        for line, raw in enumerate(reader, start=1):
            if is_blank(raw):
                continue
            if header is None:
                header = normalize_header(raw)
                continue
            if len(raw) > len(header):
                raise InputError(
                    f"{path}: line {line} has {len(raw)} values but the header has {len(header)}"
                )
            padded = raw + [""] * (len(header) - len(raw))
            rows.append(dict(zip(header, padded, strict=True)))
    if header is None:
        raise InputError(f"{path}: file is empty, a header row is required")
    log.info("Read %s rows from %s", len(rows), path)
    return header, rows


def write_table(
    path: Path,
    header: Sequence[str],
    rows: Iterable[Mapping[str, str]],
) -> None:
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = make_writer(handle)
        writer.writerow(header)
        for row in rows:
            writer.writerow([row.get(column, "") for column in header])


def write_template(
    path: Path,
    header: Sequence[str],
    rows: Sequence[Mapping[str, str]] = (),
    *,
    fmt: TemplateFormat = TemplateFormat.CSV,
) -> Path:
    """Write a template: CSV header plus rows, or a JSON array keyed by header.

    A JSON template without rows holds one object with empty values.
    """

    match fmt:
        case TemplateFormat.CSV:
            write_table(path, header, rows)
        case TemplateFormat.JSON:
            objects = [{column: row.get(column, "") for column in header} for row in rows]
            if not objects:
                objects = [dict.fromkeys(header, "")]
            path.write_text(json.dumps(objects, indent=2) + "\n", encoding="utf-8")
    log.info("Template written to %s", path)
    return path
