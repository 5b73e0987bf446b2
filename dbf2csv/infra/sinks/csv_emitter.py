from __future__ import annotations

import csv
import os
from pathlib import Path
from typing import Sequence, TextIO

from dbf2csv.domain.errors import SinkError
from dbf2csv.domain.ports.emitter import RowEmitterProtocol

CSV_DELIMITER = ";"
CSV_QUOTING = csv.QUOTE_ALL
CSV_LINE_TERMINATOR = "\n"
PART_SUFFIX = ".part"


class CsvRowEmitter(RowEmitterProtocol):
    """
    Назначение/ответственность:
        Пишет заголовок и строки в CSV: разделитель ';', все значения в кавычках.

    Инварианты/гарантии:
        - Данные пишутся во временный файл <target>.part рядом с целевым.
        - close() атомарно переименовывает .part в целевой файл (os.replace).
        - abort() удаляет .part; целевой файл при ошибке не создаётся и не портится.
        - Любая ошибка ввода-вывода поднимается как SinkError.
    """

    def __init__(self, targetPath: str, encoding: str = "utf-8") -> None:
        self.targetPath = Path(targetPath)
        self.partPath = self.targetPath.with_name(self.targetPath.name + PART_SUFFIX)
        self.encoding = encoding
        self.rowsWritten = 0
        self._stream: TextIO | None = None
        self._writer = None

    def open(self) -> "CsvRowEmitter":
        try:
            self._stream = open(self.partPath, "w", encoding=self.encoding, newline="")
        except (OSError, LookupError) as exc:
            raise SinkError(f"Cannot open output file: {exc}", path=str(self.targetPath)) from exc
        self._writer = csv.writer(
            self._stream,
            delimiter=CSV_DELIMITER,
            quoting=CSV_QUOTING,
            lineterminator=CSV_LINE_TERMINATOR,
        )
        return self

    def _write(self, values: Sequence[str]) -> None:
        if self._writer is None:
            raise SinkError("Output file is not open", path=str(self.targetPath))
        try:
            self._writer.writerow(values)
        except (OSError, csv.Error, UnicodeEncodeError) as exc:
            raise SinkError(f"Cannot write output file: {exc}", path=str(self.targetPath)) from exc

    def emit_header(self, names: Sequence[str]) -> None:
        self._write(names)

    def emit_row(self, values: Sequence[str]) -> None:
        self._write(values)
        self.rowsWritten += 1

    def close(self) -> None:
        if self._stream is None:
            raise SinkError("Output file is not open", path=str(self.targetPath))
        try:
            self._stream.flush()
            os.fsync(self._stream.fileno())
            self._stream.close()
            os.replace(self.partPath, self.targetPath)
        except OSError as exc:
            self.abort()
            raise SinkError(f"Cannot finalize output file: {exc}", path=str(self.targetPath)) from exc
        finally:
            self._stream = None
            self._writer = None

    def abort(self) -> None:
        stream = self._stream
        self._stream = None
        self._writer = None
        if stream is not None and not stream.closed:
            stream.close()
        self.partPath.unlink(missing_ok=True)
