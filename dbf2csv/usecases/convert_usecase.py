from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from dbf2csv.domain.dbf.normalizer import normalizeRecord
from dbf2csv.domain.ports.emitter import RowEmitterProtocol
from dbf2csv.domain.ports.progress import ProgressProtocol
from dbf2csv.domain.reporting.models import Report
from dbf2csv.infra.dbf.reader import DbfReader
from dbf2csv.infra.logging.setup import logEvent


@dataclass
class ConvertResult:
    """
    Назначение:
        Итог одной конвертации.

    Поля:
        records_declared: int
            Число записей из заголовка (оценка).
        records_written: int
            Фактически записанные строки данных.
        records_deleted: int
            Из них помеченных на удаление.
        fields: list[str]
    """

    records_declared: int
    records_written: int
    records_deleted: int
    fields: list[str] = field(default_factory=list)


class ConvertUseCase:
    """
    Назначение/ответственность:
        Use-case DBF -> CSV: открыть таблицу, записать заголовок, для каждой записи
        нормализовать значения в порядке дескрипторов и записать строку.

    Взаимодействия:
        - openReader(path) -> DbfReader
        - openEmitter(path) -> RowEmitterProtocol (уже открытый)
        - progress: ProgressProtocol | None

    Поведение:
        Любая ошибка чтения/записи прерывает конвертацию: emitter.abort(),
        reader.close(), исключение пробрасывается без изменений.
    """

    def __init__(
        self,
        openReader: Callable[[str], DbfReader],
        openEmitter: Callable[[str], RowEmitterProtocol],
    ) -> None:
        self.openReader = openReader
        self.openEmitter = openEmitter

    def run(
        self,
        sourcePath: str,
        targetPath: str,
        logger: logging.Logger,
        runId: str,
        report: Report | None = None,
        progress: ProgressProtocol | None = None,
    ) -> ConvertResult:
        reader = self.openReader(sourcePath)
        try:
            header = reader.header
            names = header.field_names
            logEvent(
                logger,
                logging.INFO,
                runId,
                "dbf",
                f"Opened table version=0x{header.version:02X} records_declared={header.record_count} "
                f"fields={len(names)} record_length={header.record_length} encoding={header.encoding}",
            )
            logEvent(logger, logging.DEBUG, runId, "dbf", f"Fields: {', '.join(names)}")
            if report is not None:
                report.summary.records_declared = header.record_count
                report.summary.fields = list(names)

            emitter = self.openEmitter(targetPath)
            written = 0
            deleted = 0
            try:
                if progress is not None:
                    progress.start(header)
                emitter.emit_header(names)
                for record in reader.iter_records():
                    emitter.emit_row(normalizeRecord(record, names))
                    written += 1
                    if record.deleted:
                        deleted += 1
                    if progress is not None:
                        progress.advance(written)
                emitter.close()
            except BaseException:
                emitter.abort()
                raise
            finally:
                if progress is not None:
                    progress.finish()
        finally:
            reader.close()

        if written != header.record_count:
            logEvent(
                logger,
                logging.WARNING,
                runId,
                "dbf",
                f"Declared record count {header.record_count} differs from records written {written}",
            )
        logEvent(logger, logging.INFO, runId, "csv", f"Rows written: {written} (deleted: {deleted})")

        if report is not None:
            report.summary.records_written = written
            report.summary.records_deleted = deleted

        return ConvertResult(
            records_declared=header.record_count,
            records_written=written,
            records_deleted=deleted,
            fields=list(names),
        )
