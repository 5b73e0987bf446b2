from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from dbf2csv.domain.dbf.models import FieldType
from dbf2csv.domain.errors import DbfIoError, MalformedHeaderError
from dbf2csv.infra.dbf.reader import DbfReader

FIELDS = [
    ("NAME", "C", 20, 0),
    ("PRICE", "N", 10, 2),
    ("BORN", "D", 8, 0),
    ("QTY", "I", 4, 0),
]


def test_header_fields_in_disk_order(write_dbf):
    path = write_dbf(FIELDS, [], record_count=0)

    with DbfReader.open(str(path)) as reader:
        header = reader.header
        assert header.version == 0x03
        assert header.record_count == 0
        assert header.last_update == date(2024, 3, 15)
        assert header.record_length == 1 + 20 + 10 + 8 + 4
        assert reader.field_names == ["NAME", "PRICE", "BORN", "QTY"]
        price = header.fields[1]
        assert price.field_type is FieldType.NUMERIC
        assert price.length == 10
        assert price.decimal_count == 2
        assert price.offset == 21
        assert header.fields[3].field_type is FieldType.INTEGER


def test_field_names_keep_case(write_dbf):
    path = write_dbf([("CustName", "C", 5, 0), ("custname", "C", 5, 0)], [])

    with DbfReader.open(str(path)) as reader:
        assert reader.field_names == ["CustName", "custname"]


def test_declared_count_is_taken_from_header(write_dbf):
    path = write_dbf(FIELDS, [], record_count=1234)

    with DbfReader.open(str(path)) as reader:
        assert reader.header.record_count == 1234


def test_missing_file_is_io_error(tmp_path: Path):
    with pytest.raises(DbfIoError) as excinfo:
        DbfReader.open(str(tmp_path / "nope.dbf"))
    assert excinfo.value.code.value == "IO_ERROR"


def test_file_too_short(tmp_path: Path):
    path = tmp_path / "short.dbf"
    path.write_bytes(b"\x03\x01\x02")

    with pytest.raises(MalformedHeaderError):
        DbfReader.open(str(path))


def test_unknown_version_byte(tmp_path: Path, dbf_bytes):
    data = bytearray(dbf_bytes(FIELDS, []))
    data[0] = 0x7F
    path = tmp_path / "bad.dbf"
    path.write_bytes(bytes(data))

    with pytest.raises(MalformedHeaderError) as excinfo:
        DbfReader.open(str(path))
    assert "0x7F" in str(excinfo.value)


def test_missing_descriptor_terminator(tmp_path: Path, dbf_bytes):
    data = bytearray(dbf_bytes(FIELDS, [], eof_marker=False))
    terminator_at = 32 + 32 * len(FIELDS)
    assert data[terminator_at] == 0x0D
    data[terminator_at] = 0x20
    path = tmp_path / "noterm.dbf"
    path.write_bytes(bytes(data))

    with pytest.raises(MalformedHeaderError, match="not terminated"):
        DbfReader.open(str(path))


def test_record_length_inconsistent_with_fields(write_dbf):
    path = write_dbf(FIELDS, [], record_length=99)

    with pytest.raises(MalformedHeaderError, match="Record length 99"):
        DbfReader.open(str(path))


def test_duplicate_field_names(write_dbf):
    path = write_dbf([("A", "C", 2, 0), ("A", "C", 3, 0)], [])

    with pytest.raises(MalformedHeaderError, match="Duplicate"):
        DbfReader.open(str(path))


def test_integer_field_must_be_four_bytes(write_dbf):
    path = write_dbf([("QTY", "I", 2, 0)], [])

    with pytest.raises(MalformedHeaderError, match="Integer"):
        DbfReader.open(str(path))


def test_table_without_fields(write_dbf):
    path = write_dbf([], [])

    with pytest.raises(MalformedHeaderError, match="no fields"):
        DbfReader.open(str(path))


def test_header_length_beyond_file(tmp_path: Path, dbf_bytes):
    data = bytearray(dbf_bytes([("A", "C", 2, 0)], [], eof_marker=False))
    data[8:10] = (4096).to_bytes(2, "little")
    path = tmp_path / "long_header.dbf"
    path.write_bytes(bytes(data))

    with pytest.raises(MalformedHeaderError):
        DbfReader.open(str(path))


def test_encoding_from_language_driver(write_dbf):
    name = "Иван".encode("cp866")
    path = write_dbf([("NAME", "C", 6, 0)], [[name + b"  "]], language_driver=0x65)

    with DbfReader.open(str(path)) as reader:
        record = next(reader.iter_records())
    assert record.values["NAME"].value == "Иван"


def test_explicit_encoding_wins(write_dbf):
    name = "Иван".encode("cp1251")
    path = write_dbf([("NAME", "C", 4, 0)], [[name]], language_driver=0x65)

    with DbfReader.open(str(path), encoding="cp1251") as reader:
        record = next(reader.iter_records())
    assert record.values["NAME"].value == "Иван"


def test_unknown_explicit_encoding(write_dbf):
    path = write_dbf([("NAME", "C", 4, 0)], [])

    with pytest.raises(ValueError, match="Unknown encoding"):
        DbfReader.open(str(path), encoding="no-such-codec")


def test_field_names_decoded_with_table_codepage(write_dbf):
    fields = [("ИМЯ".encode("cp866"), "C", 4, 0), ("ДОМ".encode("cp866"), "C", 4, 0)]
    path = write_dbf(fields, [["Анна".encode("cp866"), "12  "]], language_driver=0x65)

    with DbfReader.open(str(path)) as reader:
        assert reader.header.encoding == "cp866"
        assert reader.field_names == ["ИМЯ", "ДОМ"]
        record = next(reader.iter_records())
    assert record.values["ИМЯ"].value == "Анна"
    assert record.values["ДОМ"].value == "12"


def test_field_names_follow_explicit_encoding(write_dbf):
    path = write_dbf([("ЦЕНА".encode("cp1251"), "N", 5, 0)], [["7"]], language_driver=0x65)

    with DbfReader.open(str(path), encoding="cp1251") as reader:
        assert reader.field_names == ["ЦЕНА"]


def test_dbase7_is_rejected_explicitly(write_dbf):
    path = write_dbf(FIELDS, [], version=0x04)

    with pytest.raises(MalformedHeaderError, match="dBASE 7"):
        DbfReader.open(str(path))
