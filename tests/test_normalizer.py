from __future__ import annotations

from datetime import date

import pytest

from dbf2csv.domain.dbf.models import (
    CharacterValue,
    DateValue,
    FloatValue,
    IntegerValue,
    LogicalValue,
    MemoValue,
    NumericValue,
    Record,
    UnsupportedValue,
)
from dbf2csv.domain.dbf.normalizer import formatReal, normalize, normalizeRecord


@pytest.mark.parametrize(
    "value, expected",
    [
        (CharacterValue("  Acme Corp   "), "Acme Corp"),
        (CharacterValue(None), ""),
        (DateValue(date(2023, 1, 9)), "2023-01-09"),
        (DateValue(None), ""),
        (FloatValue(1.5), "1.5"),
        (FloatValue(None), ""),
        (LogicalValue(True), "true"),
        (LogicalValue(False), "false"),
        (LogicalValue(None), ""),
        (NumericValue(30.0), "30"),
        (NumericValue(None), ""),
        (MemoValue("  keep as is \n"), "  keep as is \n"),
        (MemoValue(""), ""),
        (IntegerValue(-17), "-17"),
        (UnsupportedValue(type_tag="Y", raw=b"\x01\x02"), ""),
        (None, ""),
    ],
)
def test_normalize_rules(value, expected):
    assert normalize(value) == expected


def test_absent_values_never_render_a_null_token():
    for value in (CharacterValue(None), DateValue(None), FloatValue(None), LogicalValue(None), NumericValue(None)):
        assert normalize(value) == ""


@pytest.mark.parametrize(
    "value, expected",
    [
        (0.0, "0"),
        (-0.0, "-0"),
        (100.0, "100"),
        (12.5, "12.5"),
        (0.1, "0.1"),
        (1e-07, "0.0000001"),
        (1e21, "1000000000000000000000"),
        (-2.75, "-2.75"),
        (float("nan"), "NaN"),
        (float("inf"), "inf"),
        (float("-inf"), "-inf"),
    ],
)
def test_format_real(value, expected):
    assert formatReal(value) == expected


def test_normalize_record_uses_given_order():
    record = Record(
        index=0,
        offset=0,
        deleted=False,
        values={"A": CharacterValue("x"), "B": IntegerValue(2)},
    )

    assert normalizeRecord(record, ["B", "A", "MISSING"]) == ["2", "x", ""]
