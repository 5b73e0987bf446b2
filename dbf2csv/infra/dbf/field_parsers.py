from __future__ import annotations

import re
import struct
from datetime import date

from dbf2csv.domain.dbf.models import (
    CharacterValue,
    DateValue,
    FieldDescriptor,
    FieldValue,
    FloatValue,
    IntegerValue,
    LogicalValue,
    MemoValue,
    NumericValue,
    UnsupportedValue,
)
from dbf2csv.infra.dbf.memo import MemoFile

BLANK_BYTES = b" \x00"
TRUE_CHARS = b"TtYy"
FALSE_CHARS = b"FfNn"
ABSENT_LOGICAL = b"? \x00"
# знак, цифры, не более одной точки, необязательная экспонента
NUMBER_PATTERN = re.compile(rb"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class FieldParser:
    """
    Назначение/ответственность:
        Превращает сырые байты поля в типизированное FieldValue.
        Метод выбирается по тегу типа: parseC, parseD, ...; для тегов без метода
        возвращается UnsupportedValue.

    Ошибки:
        ValueError при содержимом, которое не соответствует объявленному типу.
        Контекст (номер записи, смещение) добавляет вызывающий код.
    """

    def __init__(self, encoding: str, memo: MemoFile | None = None) -> None:
        self.encoding = encoding
        self.memo = memo

    def parse(self, field: FieldDescriptor, data: bytes) -> FieldValue:
        parser = getattr(self, f"parse{field.type_tag}", None)
        if parser is None:
            return UnsupportedValue(type_tag=field.type_tag, raw=data)
        return parser(field, data)

    def decodeText(self, data: bytes) -> str:
        return data.decode(self.encoding, errors="replace")

    def parseC(self, field: FieldDescriptor, data: bytes) -> CharacterValue:
        stripped = data.rstrip(BLANK_BYTES)
        if not stripped:
            return CharacterValue(None)
        return CharacterValue(self.decodeText(stripped))

    def parseD(self, field: FieldDescriptor, data: bytes) -> DateValue:
        text = data.strip(BLANK_BYTES)
        if not text or text.strip(b"0") == b"":
            return DateValue(None)
        if len(text) != 8 or not text.isdigit():
            raise ValueError(f"Invalid date: {data!r}")
        return DateValue(date(int(text[:4]), int(text[4:6]), int(text[6:8])))

    def parseReal(self, data: bytes) -> float | None:
        text = data.strip(BLANK_BYTES)
        if not text or text == b"." or text.strip(b"*") == b"":
            return None
        if NUMBER_PATTERN.fullmatch(text) is None:
            raise ValueError(f"Invalid number: {data!r}")
        return float(text)

    def parseF(self, field: FieldDescriptor, data: bytes) -> FloatValue:
        return FloatValue(self.parseReal(data))

    def parseN(self, field: FieldDescriptor, data: bytes) -> NumericValue:
        return NumericValue(self.parseReal(data))

    def parseL(self, field: FieldDescriptor, data: bytes) -> LogicalValue:
        flag = data[:1]
        if flag == b"" or flag in ABSENT_LOGICAL:
            return LogicalValue(None)
        if flag in TRUE_CHARS:
            return LogicalValue(True)
        if flag in FALSE_CHARS:
            return LogicalValue(False)
        raise ValueError(f"Invalid logical: {data!r}")

    def parseI(self, field: FieldDescriptor, data: bytes) -> IntegerValue:
        return IntegerValue(struct.unpack("<i", data)[0])

    def parseM(self, field: FieldDescriptor, data: bytes) -> MemoValue:
        block = self.memoBlockIndex(data)
        if block == 0 or self.memo is None:
            return MemoValue("")
        return MemoValue(self.decodeText(self.memo.read(block)))

    def memoBlockIndex(self, data: bytes) -> int:
        """
        Назначение:
            Номер блока memo: ASCII-цифры (dBASE) или 4-байтовый little-endian (Visual FoxPro).
        """
        if len(data) == 4:
            return struct.unpack("<I", data)[0]
        text = data.strip(BLANK_BYTES)
        if not text:
            return 0
        if not text.isdigit():
            raise ValueError(f"Invalid memo pointer: {data!r}")
        return int(text)
