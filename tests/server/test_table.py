"""Tests for the file-backed durable table."""

from __future__ import annotations

import pathlib

import pytest

pytest.importorskip("pyarrow")

from flat_records.errors import TableParseError, TableWriteError
from flat_records.server import table as table_module
from flat_records.server.settings import TableSpec
from flat_records.server.table import DurableTable, coerce_fields, merge_columns


def _table(path: pathlib.Path, name: str = "users", **kwargs) -> DurableTable:
    return DurableTable(TableSpec(name), path, **kwargs)


def test_load_missing_file_yields_empty_table(tmp_path: pathlib.Path) -> None:
    table = _table(tmp_path / "users.csv")

    assert table.load() == []
    assert table.columns == ()
    assert not (tmp_path / "users.csv").exists()


def test_load_zero_byte_file_yields_empty_table(tmp_path: pathlib.Path) -> None:
    path = tmp_path / "users.csv"
    path.write_text("")

    assert _table(path).load() == []


def test_load_header_only_file_keeps_columns(tmp_path: pathlib.Path) -> None:
    path = tmp_path / "users.csv"
    path.write_text("id,name\n")
    table = _table(path)

    assert table.load() == []
    assert table.columns == ("id", "name")


def test_load_reads_every_value_as_string(tmp_path: pathlib.Path) -> None:
    path = tmp_path / "products.csv"
    path.write_text("id,sku,price\n1,007,1.50\n2,,3\n")

    records = _table(path, "products").load()

    assert records == [
        {"id": "1", "sku": "007", "price": "1.50"},
        {"id": "2", "sku": "", "price": "3"},
    ]


def test_load_rejects_inconsistent_column_count(tmp_path: pathlib.Path) -> None:
    path = tmp_path / "users.csv"
    path.write_text("id,name\n1,Alice,extra\n")

    with pytest.raises(TableParseError) as excinfo:
        _table(path).load()
    assert excinfo.value.path == path


def test_load_rejects_unterminated_quote(tmp_path: pathlib.Path) -> None:
    path = tmp_path / "users.csv"
    path.write_text('id,name\n1,"Alice\n2,Bob\n')

    with pytest.raises(TableParseError) as excinfo:
        _table(path).load()
    assert "unterminated quoted value" in str(excinfo.value)


def test_load_accepts_escaped_quotes_and_embedded_newlines(tmp_path: pathlib.Path) -> None:
    path = tmp_path / "products.csv"
    path.write_text('id,title\n1,"Lamp ""XL"""\n2,"a\nb"\n')

    assert _table(path, "products").load() == [
        {"id": "1", "title": 'Lamp "XL"'},
        {"id": "2", "title": "a\nb"},
    ]


@pytest.mark.parametrize(
    ("payload", "delimiter", "expected"),
    [
        (b'id,name\n1,"Alice\n2,Bob\n', ",", True),
        (b'id,name\n1,"Al""ice"\n', ",", False),
        (b'id,size\n1,5" wide\n', ",", False),
        (b'id;name\n1;"Alice;\n', ";", True),
    ],
)
def test_unterminated_quote_scan(payload: bytes, delimiter: str, expected: bool) -> None:
    assert table_module._has_unterminated_quote(payload, delimiter) is expected


def test_persist_then_load_round_trips_awkward_values(tmp_path: pathlib.Path) -> None:
    path = tmp_path / "users.csv"
    records = [
        {"id": "1", "name": "Smith, Alice", "bio": 'says "hi"'},
        {"id": "2", "name": "Bob", "bio": "line one\nline two"},
        {"id": "3", "name": "", "bio": "plain"},
    ]
    writer = _table(path)
    writer.persist(records)

    assert _table(path).load() == records


def test_persist_load_persist_is_byte_stable(tmp_path: pathlib.Path) -> None:
    path = tmp_path / "users.csv"
    records = [{"name": "Alice", "id": "a"}, {"name": "Bob", "id": "b"}]
    table = _table(path)
    table.persist(records)
    first = path.read_bytes()

    table.persist(table.load())

    assert path.read_bytes() == first
    assert table.columns == ("name", "id")


def test_persist_writes_union_of_fields_in_first_seen_order(tmp_path: pathlib.Path) -> None:
    path = tmp_path / "users.csv"
    _table(path).persist([{"id": "1", "name": "Alice"}, {"id": "2", "email": "b@example.com"}])

    table = _table(path)
    assert table.load() == [
        {"id": "1", "name": "Alice", "email": ""},
        {"id": "2", "name": "", "email": "b@example.com"},
    ]
    assert table.columns == ("id", "name", "email")


def test_persist_empty_sequence_keeps_known_header(tmp_path: pathlib.Path) -> None:
    path = tmp_path / "users.csv"
    path.write_text("id,name\n1,Alice\n")
    table = _table(path)
    table.load()

    table.replace([])

    reloaded = _table(path)
    assert reloaded.load() == []
    assert reloaded.columns == ("id", "name")


def test_persist_empty_table_without_columns_writes_empty_file(tmp_path: pathlib.Path) -> None:
    path = tmp_path / "nested" / "users.csv"

    _table(path).persist([])

    assert path.read_bytes() == b""


def test_custom_delimiter(tmp_path: pathlib.Path) -> None:
    path = tmp_path / "users.csv"
    path.write_text("id;name\n1;Alice, Jr\n")
    table = _table(path, delimiter=";")

    assert table.load() == [{"id": "1", "name": "Alice, Jr"}]
    table.persist(table.snapshot())
    assert _table(path, delimiter=";").load() == [{"id": "1", "name": "Alice, Jr"}]


def test_persist_leaves_no_temporary_files(tmp_path: pathlib.Path) -> None:
    path = tmp_path / "users.csv"
    _table(path).persist([{"id": "1"}])

    assert sorted(p.name for p in tmp_path.iterdir()) == ["users.csv"]


def test_replace_failure_keeps_memory_and_file(tmp_path: pathlib.Path, monkeypatch) -> None:
    path = tmp_path / "users.csv"
    path.write_text("id,name\n1,Alice\n")
    original = path.read_bytes()
    table = _table(path)
    table.load()

    def _boom(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(table_module.os, "replace", _boom)

    with pytest.raises(TableWriteError):
        table.replace([{"id": "1", "name": "Changed"}])

    assert table.snapshot() == [{"id": "1", "name": "Alice"}]
    assert path.read_bytes() == original
    assert sorted(p.name for p in tmp_path.iterdir()) == ["users.csv"]


def test_snapshot_is_detached_from_table(tmp_path: pathlib.Path) -> None:
    path = tmp_path / "users.csv"
    path.write_text("id,name\n1,Alice\n")
    table = _table(path)
    table.load()

    snapshot = table.snapshot()
    snapshot[0]["name"] = "Mallory"
    snapshot.append({"id": "2"})

    assert table.snapshot() == [{"id": "1", "name": "Alice"}]


def test_coerce_fields_stringifies_values() -> None:
    payload = {"id": 5, "age": 30, "active": True, "note": None, "tags": ["a", "b"]}

    assert coerce_fields(payload, exclude=("id",)) == {
        "age": "30",
        "active": "true",
        "note": "",
        "tags": '["a", "b"]',
    }


def test_merge_columns_appends_new_fields() -> None:
    assert merge_columns(("id",), [{"name": "x"}, {"id": "1", "email": "y"}]) == (
        "id",
        "name",
        "email",
    )
