#!/usr/bin/env python3
# src/extractors/csv_extractor.py
"""Streams typed records out of the delimited source files."""
import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, TextIO, Union

from config.config import cfg
from src.errors import (
    ErrorKind,
    HeaderMismatchError,
    RecordValidationError,
    SourceFileNotFoundError,
)
from src.models.entities import ENTITY_FIELDS, EntityKind
from src.transformers.record_transformer import transform_record

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


@dataclass
class ParsedRecord:
    line_number: int
    values: Dict[str, Any]


@dataclass
class RecordError:
    line_number: int
    kind: ErrorKind
    field: Optional[str]
    message: str


ParseResult = Union[ParsedRecord, RecordError]


def _resolve_columns(path, kind: EntityKind, header: List[str]) -> Dict[str, int]:
    """Map each declared attribute to its column index, or raise HeaderMismatchError."""
    positions = {name: idx for idx, name in enumerate(header)}
    columns: Dict[str, int] = {}
    missing = []

    for spec in ENTITY_FIELDS[kind]:
        idx = next((positions[h] for h in spec.headers if h in positions), None)
        if idx is None:
            missing.append(spec.name)
        else:
            columns[spec.name] = idx

    if missing:
        raise HeaderMismatchError(path, missing)

    extra = set(header) - {h for spec in ENTITY_FIELDS[kind] for h in spec.headers}
    if extra:
        logger.debug("Ignoring extra columns in %s: %s", path, sorted(extra))
    return columns


def _undecodable_field(row: List[str], columns: Dict[str, int]) -> Optional[str]:
    """Name of the first declared field holding bytes the encoding could not decode."""
    for name, idx in columns.items():
        if any("\udc80" <= ch <= "\udcff" for ch in row[idx]):
            return name
    return None


def _iter_records(
    handle: TextIO, reader, kind: EntityKind, columns: Dict[str, int], width: int
) -> Iterator[ParseResult]:
    with handle:
        while True:
            try:
                row = next(reader)
            except StopIteration:
                break
            except csv.Error as e:
                yield RecordError(reader.line_num, ErrorKind.MALFORMED_ROW, None, str(e))
                continue

            line_number = reader.line_num
            if not row or all(not cell.strip() for cell in row):
                continue

            if len(row) != width:
                yield RecordError(
                    line_number,
                    ErrorKind.MALFORMED_ROW,
                    None,
                    f"Expected {width} fields, found {len(row)}",
                )
                continue

            bad_field = _undecodable_field(row, columns)
            if bad_field is not None:
                yield RecordError(
                    line_number,
                    ErrorKind.FIELD_COERCION,
                    bad_field,
                    f"Field '{bad_field}' is not valid {handle.encoding}",
                )
                continue

            raw = {name: row[idx] for name, idx in columns.items()}
            try:
                values = transform_record(kind, raw)
            except RecordValidationError as e:
                yield RecordError(line_number, e.kind, e.field, str(e))
                continue

            yield ParsedRecord(line_number, values)


def parse_file(
    path: Union[str, Path],
    kind: EntityKind,
    delimiter: Optional[str] = None,
    encoding: Optional[str] = None,
) -> Iterator[ParseResult]:
    """
    Open a delimited file and return a lazy stream of parsed rows.

    The file is opened and its header validated before this function returns,
    so file-level problems surface immediately; row-level problems are yielded
    as RecordError items and parsing carries on with the next line.

    Args:
        path: Location of the delimited file.
        kind: Entity kind whose fields the file must provide.
        delimiter: Field separator (defaults to CSV_DELIMITER, ';').
        encoding: Text encoding (defaults to CSV_ENCODING, UTF-8).

    Returns:
        An iterator of ParsedRecord and RecordError items in file order.

    Raises:
        SourceFileNotFoundError: the file does not exist or cannot be read.
        HeaderMismatchError: the header lacks a column declared for `kind`.
    """
    kind = EntityKind(kind)
    delimiter = delimiter or cfg.csv_delimiter
    encoding = encoding or cfg.csv_encoding
    if encoding.lower().replace("-", "") == "utf8":
        encoding = "utf-8-sig"  # tolerate a byte order mark

    try:
        # undecodable bytes become lone surrogates and are reported per record
        handle = open(path, "r", encoding=encoding, errors="surrogateescape", newline="")
    except (OSError, LookupError) as e:
        raise SourceFileNotFoundError(path, f"Cannot open {path}: {e}") from e

    try:
        reader = csv.reader(handle, delimiter=delimiter)
        header = [name.strip() for name in next(reader, [])]
        if not header:
            raise HeaderMismatchError(path, [s.name for s in ENTITY_FIELDS[kind]])
        columns = _resolve_columns(path, kind, header)
    except csv.Error as e:
        handle.close()
        raise SourceFileNotFoundError(path, f"Cannot read header of {path}: {e}") from e
    except HeaderMismatchError:
        handle.close()
        raise

    logger.info("Parsing %s as %s (delimiter %r)", path, kind.value, delimiter)
    return _iter_records(handle, reader, kind, columns, len(header))


def count_data_lines(path: Union[str, Path], encoding: Optional[str] = None) -> int:
    """Number of non-blank lines after the header; 0 if the file is unreadable."""
    try:
        with open(path, "r", encoding=encoding or cfg.csv_encoding, errors="replace") as f:
            next(f, None)
            return sum(1 for line in f if line.strip())
    except OSError:
        return 0


__all__ = ["ParsedRecord", "RecordError", "parse_file", "count_data_lines"]
