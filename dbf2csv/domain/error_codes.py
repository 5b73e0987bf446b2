from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """
    Назначение:
        Единая таксономия кодов ошибок конвертации (лог, отчёт, stderr).
    """

    IO_ERROR = "IO_ERROR"
    MALFORMED_HEADER = "MALFORMED_HEADER"
    MALFORMED_RECORD = "MALFORMED_RECORD"
    SINK_ERROR = "SINK_ERROR"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"
