from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from dbf2csv.domain.error_codes import ErrorCode


@dataclass
class DecodeError(Exception):
    """
    Назначение:
        Базовая ошибка чтения DBF. Любая такая ошибка прерывает конвертацию целиком.

    Поля:
        message: str
            Человекочитаемое описание.
        path: str | None
            Путь к файлу, в котором обнаружена проблема.
        details: dict
            Дополнительный контекст для отчёта.
    """

    message: str
    path: str | None = None
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    @property
    def code(self) -> ErrorCode:
        return ErrorCode.UNEXPECTED_ERROR

    def __str__(self) -> str:
        if self.path:
            return f"{self.message} (file={self.path})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"path": self.path}
        data.update(self.details or {})
        return {
            "code": self.code.value,
            "message": str(self),
            "details": data,
        }


@dataclass
class DbfIoError(DecodeError):
    """Файл таблицы или memo-файл не удаётся открыть/прочитать."""

    @property
    def code(self) -> ErrorCode:
        return ErrorCode.IO_ERROR


@dataclass
class MalformedHeaderError(DecodeError):
    """
    Назначение:
        Заголовок или таблица дескрипторов полей не проходит структурную проверку.
    """

    @property
    def code(self) -> ErrorCode:
        return ErrorCode.MALFORMED_HEADER


@dataclass
class MalformedRecordError(DecodeError):
    """
    Назначение:
        Слот записи не декодируется по объявленной раскладке полей.

    Инварианты/гарантии:
        - record_index: 0-based индекс физического слота.
        - offset: абсолютное смещение слота в файле.
        - field: имя поля, если ошибка относится к конкретному полю.
    """

    record_index: int | None = None
    offset: int | None = None
    field: str | None = None

    @property
    def code(self) -> ErrorCode:
        return ErrorCode.MALFORMED_RECORD

    def __str__(self) -> str:
        where = f"record={self.record_index} offset={self.offset}"
        if self.field is not None:
            where += f" field={self.field}"
        text = f"{self.message} ({where})"
        if self.path:
            text = f"{text} (file={self.path})"
        return text

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["details"].update(
            {
                "record_index": self.record_index,
                "offset": self.offset,
                "field": self.field,
            }
        )
        return data


@dataclass
class SinkError(Exception):
    """
    Назначение:
        Ошибка записи/сброса/публикации выходного CSV.
    """

    message: str
    path: str | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    @property
    def code(self) -> ErrorCode:
        return ErrorCode.SINK_ERROR

    def __str__(self) -> str:
        if self.path:
            return f"{self.message} (file={self.path})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": str(self),
            "details": {"path": self.path},
        }


__all__ = [
    "DecodeError",
    "DbfIoError",
    "MalformedHeaderError",
    "MalformedRecordError",
    "SinkError",
]
