from __future__ import annotations

import math
from decimal import Decimal
from typing import Iterable

from dbf2csv.domain.dbf.models import (
    CharacterValue,
    DateValue,
    FieldValue,
    FloatValue,
    IntegerValue,
    LogicalValue,
    MemoValue,
    NumericValue,
    Record,
)

TRUE_TOKEN = "true"
FALSE_TOKEN = "false"


def formatReal(value: float) -> str:
    """
    Назначение:
        Десятичная запись float без экспоненты и без принудительного округления.

    Алгоритм:
        - repr() даёт кратчайшее представление, которое читается обратно в то же число
        - Decimal разворачивает экспоненту ("1e-07" -> "0.0000001")
        - хвостовые нули и ".0" отбрасываются ("30.0" -> "30")
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def normalize(value: FieldValue | None) -> str:
    """
    Назначение:
        Каноническое текстовое представление значения поля для CSV.

    Входные данные:
        value: FieldValue | None

    Выходные данные:
        str
            Отсутствующее значение (None внутри варианта) -> "".
            Неизвестный/неподдерживаемый вариант -> "".
    """
    if isinstance(value, CharacterValue):
        return value.value.strip() if value.value is not None else ""
    if isinstance(value, DateValue):
        return value.value.isoformat() if value.value is not None else ""
    if isinstance(value, (FloatValue, NumericValue)):
        return formatReal(value.value) if value.value is not None else ""
    if isinstance(value, LogicalValue):
        if value.value is None:
            return ""
        return TRUE_TOKEN if value.value else FALSE_TOKEN
    if isinstance(value, MemoValue):
        return value.value
    if isinstance(value, IntegerValue):
        return str(value.value)
    return ""


def normalizeRecord(record: Record, fieldNames: Iterable[str]) -> list[str]:
    """
    Назначение:
        Нормализует запись в порядке дескрипторов полей.
    """
    return [normalize(record.values.get(name)) for name in fieldNames]
