from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Mapping, Union


class FieldType(str, Enum):
    """
    Назначение:
        Поддерживаемые типы полей dBASE. Значение = однобайтовый тег в дескрипторе.
    """

    CHARACTER = "C"
    DATE = "D"
    FLOAT = "F"
    LOGICAL = "L"
    NUMERIC = "N"
    MEMO = "M"
    INTEGER = "I"

    @classmethod
    def from_tag(cls, tag: str) -> "FieldType | None":
        """
        Назначение:
            Тег -> FieldType; для зарезервированных/неподдерживаемых тегов возвращает None.
        """
        try:
            return cls(tag)
        except ValueError:
            return None


@dataclass(frozen=True)
class FieldDescriptor:
    """
    Назначение:
        Описание одной колонки таблицы, как оно записано в заголовке.

    Поля:
        name: str
            Имя поля (регистр сохраняется).
        type_tag: str
            Исходный тег типа ("C", "N", "Y", ...).
        length: int
            Длина поля в байтах.
        decimal_count: int
            Число знаков после запятой (значимо для F/N).
        offset: int
            Смещение поля внутри слота записи (флаг удаления = байт 0).
    """

    name: str
    type_tag: str
    length: int
    decimal_count: int
    offset: int

    @property
    def field_type(self) -> FieldType | None:
        return FieldType.from_tag(self.type_tag)


@dataclass(frozen=True)
class TableHeader:
    """
    Назначение:
        Заголовок таблицы, читается один раз при открытии.

    Инварианты/гарантии:
        - record_count: объявленное в файле число записей; используется только
          для оценки прогресса, фактическое число записей определяет итерация.
        - fields: порядок = порядок колонок на диске и в выходном CSV.
        - encoding: кодек текста таблицы (явный или по language_driver);
          им же декодируются имена полей.
    """

    version: int
    last_update: date | None
    record_count: int
    header_length: int
    record_length: int
    language_driver: int
    encoding: str
    fields: tuple[FieldDescriptor, ...]

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def has_memo(self) -> bool:
        return any(f.field_type is FieldType.MEMO for f in self.fields)


@dataclass(frozen=True)
class CharacterValue:
    value: str | None


@dataclass(frozen=True)
class DateValue:
    value: date | None


@dataclass(frozen=True)
class FloatValue:
    value: float | None


@dataclass(frozen=True)
class LogicalValue:
    value: bool | None


@dataclass(frozen=True)
class NumericValue:
    value: float | None


@dataclass(frozen=True)
class MemoValue:
    value: str


@dataclass(frozen=True)
class IntegerValue:
    value: int


@dataclass(frozen=True)
class UnsupportedValue:
    """Значение поля с зарезервированным/неподдерживаемым тегом (сырые байты)."""

    type_tag: str
    raw: bytes


FieldValue = Union[
    CharacterValue,
    DateValue,
    FloatValue,
    LogicalValue,
    NumericValue,
    MemoValue,
    IntegerValue,
    UnsupportedValue,
]


@dataclass(frozen=True)
class Record:
    """
    Назначение:
        Одна декодированная запись (физический слот).

    Поля:
        index: int
            0-based индекс слота.
        offset: int
            Абсолютное смещение слота в файле.
        deleted: bool
            Флаг мягкого удаления ('*').
        values: Mapping[str, FieldValue]
            Имя поля -> значение, в порядке дескрипторов.
    """

    index: int
    offset: int
    deleted: bool
    values: Mapping[str, FieldValue]


__all__ = [
    "FieldType",
    "FieldDescriptor",
    "TableHeader",
    "CharacterValue",
    "DateValue",
    "FloatValue",
    "LogicalValue",
    "NumericValue",
    "MemoValue",
    "IntegerValue",
    "UnsupportedValue",
    "FieldValue",
    "Record",
]
