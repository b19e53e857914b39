"""Durable tables: in-memory record collections backed by delimited text files."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

import pyarrow as pa
import pyarrow.csv as pacsv

from ..errors import TableParseError, TableWriteError
from .settings import TableSpec

logger = logging.getLogger(__name__)

Record = dict[str, str]

ID_FIELD = "id"


def coerce_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, default=str, sort_keys=True)


def coerce_fields(payload: Mapping[Any, Any], *, exclude: Iterable[str] = ()) -> Record:
    """Return ``payload`` as a string-to-string mapping, dropping ``exclude`` keys."""

    skipped = set(exclude)
    return {
        str(name): coerce_value(value)
        for name, value in payload.items()
        if str(name) not in skipped
    }


def merge_columns(columns: Sequence[str], records: Iterable[Mapping[str, Any]]) -> tuple[str, ...]:
    """Extend ``columns`` with field names from ``records`` in first-seen order."""

    merged = dict.fromkeys(columns)
    for record in records:
        for name in record:
            merged.setdefault(name, None)
    return tuple(merged)


def _has_unterminated_quote(data: bytes, delimiter: str) -> bool:
    """True when ``data`` ends inside a quoted field.

    Quotes only open a field when they are its first character; inside a
    quoted field ``""`` is an escaped quote.
    """

    quote = ord('"')
    separators = {ord(delimiter), ord("\n"), ord("\r")}
    in_quotes = False
    at_field_start = True
    index = 0
    size = len(data)
    while index < size:
        byte = data[index]
        if in_quotes:
            if byte == quote:
                if index + 1 < size and data[index + 1] == quote:
                    index += 1
                else:
                    in_quotes = False
        elif byte == quote and at_field_start:
            in_quotes = True
            at_field_start = False
        else:
            at_field_start = byte in separators
        index += 1
    return in_quotes


def read_records(path: Path, *, delimiter: str = ",") -> tuple[tuple[str, ...], list[Record]]:
    """Parse ``path`` into its header and rows; every value is read as a string.

    A missing or zero-byte file yields no columns and no rows.
    """

    if not path.exists() or path.stat().st_size == 0:
        return (), []
    if _has_unterminated_quote(path.read_bytes(), delimiter):
        raise TableParseError(path, "unterminated quoted value")
    parse_options =pacsv.ParseOptions(delimiter=delimiter, newlines_in_values=True)
    try:
        with pacsv.open_csv(path, parse_options=parse_options) as reader:
            names = tuple(reader.schema.names)
        if len(set(names)) != len(names):
            raise TableParseError(path, "duplicate column names in header")
        table = pacsv.read_csv(
            path,
            parse_options=parse_options,
            convert_options=pacsv.ConvertOptions(
                column_types={name: pa.string() for name in names},
                strings_can_be_null=False,
            ),
        )
    except pa.ArrowInvalid as exc:
        raise TableParseError(path, str(exc)) from exc
    return names, [
        {name: "" if value is None else value for name, value in row.items()}
        for row in table.to_pylist()
    ]


def _build_table(columns: Sequence[str], records: Sequence[Mapping[str, Any]]) -> pa.Table:
    return pa.table(
        {
            name: pa.array(
                [coerce_value(record.get(name)) for record in records], type=pa.string()
            )
            for name in columns
        }
    )


def write_records(
    path: Path,
    columns: Sequence[str],
    records: Sequence[Mapping[str, Any]],
    *,
    delimiter: str = ",",
) -> None:
    """Atomically replace ``path`` with ``records`` serialised under ``columns``.

    The payload is written to a sibling temporary file which is then renamed
    over ``path``. Raises :class:`TableWriteError` when any step fails; the
    previous file is left in place in that case.
    """

    temp_path: Path | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
        ) as handle:
            temp_path = Path(handle.name)
            if columns:
                pacsv.write_csv(
                    _build_table(columns, records),
                    handle,
                    write_options=pacsv.WriteOptions(
                        include_header=True, delimiter=delimiter
                    ),
                )
        os.replace(temp_path, path)
    except (OSError, pa.ArrowException) as exc:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise TableWriteError(path, str(exc)) from exc


class DurableTable:
    """One named collection held in memory and mirrored to a single file.

    The in-memory record sequence is the source of truth between loads.
    Writers must hold :attr:`lock` for their whole read-modify-persist
    sequence; :meth:`replace` only commits after the file write succeeds.
    """

    def __init__(self, spec: TableSpec, path: Path, *, delimiter: str = ",") -> None:
        self._spec = spec
        self._path = Path(path)
        self._delimiter = delimiter
        self._columns: tuple[str, ...] = ()
        self._records: tuple[Record, ...] = ()
        self.lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._spec.name

    @property
    def label(self) -> str:
        return self._spec.label or self._spec.name

    @property
    def cache_key(self) -> str:
        return self._spec.cache_key

    @property
    def path(self) -> Path:
        return self._path

    @property
    def columns(self) -> tuple[str, ...]:
        return self._columns

    def __len__(self) -> int:
        return len(self._records)

    def load(self) -> list[Record]:
        """Read the backing file into memory and return a snapshot of it."""

        columns, records = read_records(self._path, delimiter=self._delimiter)
        self._columns = columns
        self._records = tuple(records)
        logger.info("Loaded %d %s record(s) from %s", len(records), self.name, self._path)
        return self.snapshot()

    def snapshot(self) -> list[Record]:
        """Copy of the current records; mutating it never affects the table."""

        return [dict(record) for record in self._records]

    def ids(self) -> set[str]:
        return {record.get(ID_FIELD, "") for record in self._records}

    def persist(self, records: Sequence[Mapping[str, Any]]) -> tuple[str, ...]:
        """Overwrite the backing file with the full ``records`` sequence.

        Returns the header written. Does not touch the in-memory state.
        """

        columns = merge_columns(self._columns, records)
        write_records(self._path, columns, records, delimiter=self._delimiter)
        return columns

    def replace(self, records: Sequence[Mapping[str, Any]]) -> None:
        """Persist ``records`` and, once that succeeds, make them current."""

        committed = tuple(coerce_fields(record) for record in records)
        try:
            columns = self.persist(committed)
        except TableWriteError:
            logger.exception("Failed to persist table %s", self.name)
            raise
        self._columns = columns
        self._records = committed


__all__ = [
    "DurableTable",
    "ID_FIELD",
    "Record",
    "coerce_fields",
    "coerce_value",
    "merge_columns",
    "read_records",
    "write_records",
]
