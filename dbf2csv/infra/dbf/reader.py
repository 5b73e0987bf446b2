from __future__ import annotations

import os
import struct
from datetime import date
from pathlib import Path
from typing import BinaryIO, Iterator

from dbf2csv.domain.dbf.models import FieldDescriptor, FieldType, Record, TableHeader
from dbf2csv.domain.errors import DbfIoError, MalformedHeaderError, MalformedRecordError
from dbf2csv.infra.dbf.codepages import resolveEncoding
from dbf2csv.infra.dbf.field_parsers import FieldParser
from dbf2csv.infra.dbf.memo import MemoFile, findMemoPath

HEADER_SIZE = 32
DESCRIPTOR_SIZE = 32
HEADER_TERMINATOR = 0x0D
EOF_MARKER = 0x1A
LIVE_FLAG = 0x20
DELETED_FLAG = 0x2A

KNOWN_VERSIONS = frozenset(
    {0x02, 0x03, 0x05, 0x30, 0x31, 0x32, 0x43, 0x63, 0x83, 0x8B, 0x8E, 0xCB, 0xF5, 0xFB}
)
FOXPRO_VERSIONS = frozenset({0x30, 0x31, 0x32, 0xF5, 0xFB})
# 48-байтовые дескрипторы полей, этим ридером не разбираются
UNSUPPORTED_VERSIONS = {0x04: "dBASE 7"}

# version, yy, mm, dd, records, header length, record length, 17 reserved, language driver, 2 reserved
HEADER_STRUCT = struct.Struct("<4BIHH17xB2x")
# name, type, 4 reserved (field address), length, decimal count, 14 reserved
DESCRIPTOR_STRUCT = struct.Struct("<11sc4xBB14x")


def _headerDate(yy: int, mm: int, dd: int) -> date | None:
    try:
        return date(1900 + yy, mm, dd)
    except ValueError:
        return None


def parseHeader(handle: BinaryIO, path: str, encoding: str | None = None) -> TableHeader:
    """
    Назначение:
        Читает 32-байтовый заголовок и таблицу дескрипторов полей.

    Входные данные:
        handle: BinaryIO
            Открытый файл, позиция = 0.
        path: str
            Для сообщений об ошибках.
        encoding: str | None
            Явная кодировка; None = по language driver. Ею же декодируются имена полей.

    Выходные данные:
        TableHeader

    Ошибки:
        MalformedHeaderError при любом структурном несоответствии.
        ValueError при неизвестной явной кодировке.
    """
    raw = handle.read(HEADER_SIZE)
    if len(raw) < HEADER_SIZE:
        raise MalformedHeaderError("File is too short for a DBF header", path=path)

    version, yy, mm, dd, recordCount, headerLength, recordLength, languageDriver = HEADER_STRUCT.unpack(raw)
    if version in UNSUPPORTED_VERSIONS:
        raise MalformedHeaderError(
            f"Unsupported table format: {UNSUPPORTED_VERSIONS[version]} (version byte 0x{version:02X})",
            path=path,
            details={"version": version},
        )
    if version not in KNOWN_VERSIONS:
        raise MalformedHeaderError(
            f"Unknown DBF version byte 0x{version:02X}",
            path=path,
            details={"version": version},
        )
    if headerLength < HEADER_SIZE + 1:
        raise MalformedHeaderError(
            f"Header length {headerLength} is too small",
            path=path,
            details={"header_length": headerLength},
        )
    resolved = resolveEncoding(languageDriver, encoding)

    fields: list[FieldDescriptor] = []
    names: set[str] = set()
    offset = 1
    position = HEADER_SIZE
    while True:
        if position >= headerLength:
            raise MalformedHeaderError("Field descriptor table is not terminated", path=path)
        first = handle.read(1)
        if not first:
            raise MalformedHeaderError("Unexpected end of file in field descriptor table", path=path)
        if first[0] == HEADER_TERMINATOR:
            break
        rest = handle.read(DESCRIPTOR_SIZE - 1)
        if len(rest) < DESCRIPTOR_SIZE - 1 or position + DESCRIPTOR_SIZE > headerLength:
            raise MalformedHeaderError("Field descriptor table is not terminated", path=path)
        rawName, rawType, length, decimalCount = DESCRIPTOR_STRUCT.unpack(first + rest)

        name = rawName.split(b"\x00", 1)[0].decode(resolved, errors="replace").strip()
        typeTag = rawType.decode("ascii", errors="replace")
        if not name:
            raise MalformedHeaderError(f"Field #{len(fields) + 1} has an empty name", path=path)
        if name in names:
            raise MalformedHeaderError(f"Duplicate field name: {name}", path=path)
        if length == 0:
            raise MalformedHeaderError(f"Field {name} has zero length", path=path)
        if typeTag == FieldType.INTEGER.value and length != 4:
            raise MalformedHeaderError(f"Integer field {name} must be 4 bytes, got {length}", path=path)

        fields.append(
            FieldDescriptor(
                name=name,
                type_tag=typeTag,
                length=length,
                decimal_count=decimalCount,
                offset=offset,
            )
        )
        names.add(name)
        offset += length
        position += DESCRIPTOR_SIZE

    if not fields:
        raise MalformedHeaderError("Table declares no fields", path=path)
    if offset != recordLength:
        raise MalformedHeaderError(
            f"Record length {recordLength} does not match field layout ({offset} bytes)",
            path=path,
            details={"record_length": recordLength, "layout_length": offset},
        )

    return TableHeader(
        version=version,
        last_update=_headerDate(yy, mm, dd),
        record_count=recordCount,
        header_length=headerLength,
        record_length=recordLength,
        language_driver=languageDriver,
        encoding=resolved,
        fields=tuple(fields),
    )


class DbfReader:
    """
    Назначение/ответственность:
        Декодер таблицы dBASE: заголовок читается при открытии, записи отдаются
        ленивой однопроходной последовательностью.

    Инварианты/гарантии:
        - Число записей определяется физическим размером области записей,
          а не header.record_count.
        - iter_records() можно вызвать один раз на открытый файл.
        - Помеченные на удаление записи отдаются (Record.deleted=True), если
          includeDeleted=True.
    """

    def __init__(
        self,
        path: str,
        handle: BinaryIO,
        header: TableHeader,
        parser: FieldParser,
        memo: MemoFile | None = None,
        includeDeleted: bool = True,
    ) -> None:
        self.path = path
        self.handle = handle
        self.header = header
        self.parser = parser
        self.memo = memo
        self.includeDeleted = includeDeleted
        self._consumed = False

    @classmethod
    def open(
        cls,
        path: str,
        encoding: str | None = None,
        includeDeleted: bool = True,
        memoRequired: bool = True,
    ) -> "DbfReader":
        """
        Назначение:
            Открывает таблицу, читает заголовок, при наличии memo-полей открывает memo-файл.

        Входные данные:
            path: str
            encoding: str | None
                Явная кодировка; None = по language driver.
            includeDeleted: bool
            memoRequired: bool
                False = отсутствующий memo-файл допустим, memo-значения пустые.

        Ошибки:
            DbfIoError, MalformedHeaderError; ValueError при неизвестной кодировке.
        """
        try:
            handle = open(path, "rb")
        except OSError as exc:
            raise DbfIoError(f"Cannot open DBF file: {exc.strerror or exc}", path=path) from exc

        memo: MemoFile | None = None
        try:
            header = parseHeader(handle, path, encoding)
            if os.fstat(handle.fileno()).st_size < header.header_length:
                raise MalformedHeaderError(
                    f"Header length {header.header_length} exceeds file size",
                    path=path,
                    details={"header_length": header.header_length},
                )
            if header.has_memo:
                memo = cls._openMemo(Path(path), header, memoRequired)
        except OSError as exc:
            handle.close()
            raise DbfIoError(f"Cannot read DBF file: {exc.strerror or exc}", path=path) from exc
        except BaseException:
            handle.close()
            raise

        return cls(
            path=path,
            handle=handle,
            header=header,
            parser=FieldParser(header.encoding, memo),
            memo=memo,
            includeDeleted=includeDeleted,
        )

    @staticmethod
    def _openMemo(tablePath: Path, header: TableHeader, memoRequired: bool) -> MemoFile | None:
        foxpro = header.version in FOXPRO_VERSIONS
        memoPath = findMemoPath(tablePath, foxpro)
        if memoPath is None:
            if memoRequired:
                raise DbfIoError("Memo file not found", path=str(tablePath))
            return None
        try:
            return MemoFile.open(memoPath, foxpro)
        except ValueError as exc:
            raise MalformedHeaderError(str(exc), path=str(memoPath)) from exc

    @property
    def field_names(self) -> list[str]:
        return self.header.field_names

    def iter_records(self) -> Iterator[Record]:
        """
        Назначение:
            Ленивая последовательность записей, слот за слотом от header_length до EOF.

        Поведение:
            - Байт 0x1A в начале слота = конец данных.
            - Неполный последний слот, неизвестный флаг удаления или ошибка разбора
              поля -> MalformedRecordError (итерация прекращается).
        """
        if self._consumed:
            raise RuntimeError("DBF records can be iterated only once per open file")
        self._consumed = True
        return self._iterate()

    def _iterate(self) -> Iterator[Record]:
        header = self.header
        try:
            self.handle.seek(header.header_length)
        except OSError as exc:
            raise DbfIoError(f"Cannot read DBF file: {exc.strerror or exc}", path=self.path) from exc

        index = 0
        while True:
            offset = header.header_length + index * header.record_length
            try:
                slot = self.handle.read(header.record_length)
            except OSError as exc:
                raise DbfIoError(f"Cannot read DBF file: {exc.strerror or exc}", path=self.path) from exc
            if not slot or slot[0] == EOF_MARKER:
                return
            if len(slot) < header.record_length:
                raise MalformedRecordError(
                    f"Truncated record: expected {header.record_length} bytes, got {len(slot)}",
                    path=self.path,
                    record_index=index,
                    offset=offset,
                )

            flag = slot[0]
            if flag not in (LIVE_FLAG, DELETED_FLAG):
                raise MalformedRecordError(
                    f"Invalid deletion flag 0x{flag:02X}",
                    path=self.path,
                    record_index=index,
                    offset=offset,
                )
            deleted = flag == DELETED_FLAG

            if deleted and not self.includeDeleted:
                index += 1
                continue

            yield Record(
                index=index,
                offset=offset,
                deleted=deleted,
                values=self._decodeSlot(slot, index, offset),
            )
            index += 1

    def _decodeSlot(self, slot: bytes, index: int, offset: int) -> dict:
        values = {}
        for field in self.header.fields:
            data = slot[field.offset:field.offset + field.length]
            try:
                values[field.name] = self.parser.parse(field, data)
            except (ValueError, struct.error) as exc:
                raise MalformedRecordError(
                    str(exc),
                    path=self.path,
                    record_index=index,
                    offset=offset,
                    field=field.name,
                ) from exc
            except OSError as exc:
                raise DbfIoError(f"Cannot read memo file: {exc.strerror or exc}", path=self.path) from exc
        return values

    def close(self) -> None:
        if self.memo is not None:
            self.memo.close()
        self.handle.close()

    def __enter__(self) -> "DbfReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
