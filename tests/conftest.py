from __future__ import annotations

import struct
from pathlib import Path

import pytest

HEADER_STRUCT = struct.Struct("<4BIHH17xB2x")
DESCRIPTOR_STRUCT = struct.Struct("<11sc4xBB14x")


def encode_value(tag: str, length: int, value) -> bytes:
    if isinstance(value, bytes):
        raw = value
    elif isinstance(value, int) and tag == "I":
        raw = struct.pack("<i", value)
    elif tag in ("N", "F"):
        raw = str(value).encode("latin-1").rjust(length, b" ")
    else:
        raw = str(value).encode("latin-1").ljust(length, b" ")
    assert len(raw) == length, f"value {value!r} does not fit {tag}({length})"
    return raw


def build_dbf_bytes(
    fields: list[tuple],
    records: list[list],
    *,
    version: int = 0x03,
    record_count: int | None = None,
    language_driver: int = 0x57,
    deleted: tuple[int, ...] = (),
    eof_marker: bool = True,
    record_length: int | None = None,
) -> bytes:
    """
    fields: [(name, tag, length, decimal_count), ...]; name as str (ascii) or raw bytes.
    records: [[value per field], ...]; str -> padded latin-1, int for I -> int32 LE, bytes as-is.
    """
    header_length = 32 + 32 * len(fields) + 1
    layout_length = 1 + sum(f[2] for f in fields)
    head = HEADER_STRUCT.pack(
        version,
        124,
        3,
        15,
        len(records) if record_count is None else record_count,
        header_length,
        layout_length if record_length is None else record_length,
        language_driver,
    )
    descriptors = b"".join(
        DESCRIPTOR_STRUCT.pack(
            name if isinstance(name, bytes) else name.encode("ascii"), tag.encode("ascii"), length, decimals
        )
        for name, tag, length, decimals in fields
    )
    body = b""
    for idx, values in enumerate(records):
        body += b"*" if idx in deleted else b" "
        for (name, tag, length, _decimals), value in zip(fields, values):
            body += encode_value(tag, length, value)
    return head + descriptors + b"\x0d" + body + (b"\x1a" if eof_marker else b"")


@pytest.fixture
def dbf_bytes():
    return build_dbf_bytes


@pytest.fixture
def write_dbf(tmp_path: Path):
    def factory(fields, records, name: str = "table.dbf", **kwargs) -> Path:
        path = tmp_path / name
        path.write_bytes(build_dbf_bytes(fields, records, **kwargs))
        return path

    return factory


PEOPLE_FIELDS = [
    ("NAME", "C", 10, 0),
    ("AGE", "I", 4, 0),
    ("ACTIVE", "L", 1, 0),
]


@pytest.fixture
def people_dbf(write_dbf) -> Path:
    return write_dbf(
        PEOPLE_FIELDS,
        [
            ["John Doe", 30, "T"],
            ["Jane Roe", 41, "?"],
        ],
        name="people.dbf",
    )
