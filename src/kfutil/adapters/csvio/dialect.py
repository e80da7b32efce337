"""CSV dialects for kfutil artifacts.

Writers never quote. Commas, quotes and backslashes inside a value are
prefixed with a backslash so audit files stay line-diffable. Readers accept
that escape as well as ordinary double-quoted fields.
"""

from __future__ import annotations

import csv
from typing import TYPE_CHECKING, Any

from kfutil.domain.errors import InputError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence
    from typing import TextIO

ESCAPE_CHAR = "\\"


class EscapedWriterDialect(csv.Dialect):
    delimiter = ","
    quotechar = '"'
    escapechar = ESCAPE_CHAR
    doublequote = False
    skipinitialspace = False
    lineterminator = "\n"
    quoting = csv.QUOTE_NONE


class LenientReaderDialect(csv.Dialect):
    delimiter = ","
    quotechar = '"'
    escapechar = ESCAPE_CHAR
    doublequote = True
    skipinitialspace = False
    lineterminator = "\n"
    quoting = csv.QUOTE_MINIMAL


def make_writer(handle: TextIO) -> Any:
    return csv.writer(handle, dialect=EscapedWriterDialect)


def make_reader(handle: TextIO) -> Iterator[list[str]]:
    return csv.reader(handle, dialect=LenientReaderDialect)


def normalize_header(cells: Iterable[str]) -> list[str]:
    header = [cell.strip() for cell in cells]
    if header:
        header[0] = header[0].lstrip("\ufeff")
    return header


def headers_match(actual: Sequence[str], expected: Sequence[str]) -> bool:
    if len(actual) != len(expected):
        return False
    return all(a.lower() == e.lower() for a, e in zip(actual, expected, strict=True))


def require_header(
    actual: Sequence[str],
    expected: Sequence[str],
    *,
    source: str,
) -> None:
    if not headers_match(actual, expected):
        raise InputError(
            f"{source}: unexpected header {','.join(actual)!r}, expected {','.join(expected)!r}"
        )


def is_blank(row: Sequence[str]) -> bool:
    return all(not cell.strip() for cell in row)


def escape_value(value: str) -> str:
    """Escape a single value the way the writer dialect does."""

    return (
        value.replace(ESCAPE_CHAR, ESCAPE_CHAR * 2)
        .replace(",", f"{ESCAPE_CHAR},")
        .replace('"', f'{ESCAPE_CHAR}"')
    )
