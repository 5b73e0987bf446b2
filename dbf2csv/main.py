from __future__ import annotations

import codecs
import logging
import time
import uuid
from pathlib import Path
from typing import TextIO

import typer
import yaml

from dbf2csv.config import Settings, loadSettings
from dbf2csv.domain.dbf.models import TableHeader
from dbf2csv.domain.errors import DecodeError, SinkError
from dbf2csv.domain.error_codes import ErrorCode
from dbf2csv.domain.reporting.models import Report
from dbf2csv.infra.artifacts.report_writer import createEmptyReport, finalizeReport, writeReportJson
from dbf2csv.infra.dbf.reader import DbfReader
from dbf2csv.infra.logging.setup import (
    closeCommandLogger,
    createCommandLogger,
    logEvent,
    mapLogLevel,
    mirrorConsoleToLog,
)
from dbf2csv.infra.sinks.csv_emitter import CsvRowEmitter
from dbf2csv.usecases.convert_usecase import ConvertUseCase

COMMAND_NAME = "convert"

app = typer.Typer(
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
    help="Convert a dBASE table (DBF) into a semicolon-delimited CSV file.",
)


class ConsoleProgress:
    """
    Назначение:
        Прогресс-бар конвертации (typer.progressbar) поверх ProgressProtocol.

    Входные данные:
        enabled: bool
            False = только итоговые строки, без бара.
        stream: TextIO
            Куда рисовать бар (исходный stdout, мимо tee в лог).
    """

    def __init__(self, enabled: bool, stream: TextIO) -> None:
        self.enabled = enabled
        self.stream = stream
        self._bar = None

    def start(self, header: TableHeader) -> None:
        typer.echo(f"records_declared={header.record_count}")
        if not self.enabled:
            return
        self._bar = typer.progressbar(
            length=max(header.record_count, 1),
            label="Converting",
            show_pos=True,
            file=self.stream,
        )
        self._bar.__enter__()

    def advance(self, written: int) -> None:
        if self._bar is not None:
            self._bar.update(1)

    def finish(self) -> None:
        if self._bar is not None:
            self._bar.__exit__(None, None, None)
            self._bar = None


def printRunHeader(runId: str, settings: Settings, sources: list[str], sourcePath: str, targetPath: str) -> None:
    """
    Назначение:
        Печатает сводку параметров запуска.
    """
    typer.echo(f"run_id={runId} source={sourcePath} target={targetPath}")
    typer.echo(
        f"encoding={settings.encoding or 'auto'} output_encoding={settings.output_encoding} "
        f"include_deleted={settings.include_deleted} sources={sources}"
    )


def validateSettings(settings: Settings) -> None:
    """
    Назначение:
        Проверка настроек до начала работы (уровень логов, кодировки).

    Ошибки:
        ValueError с понятным сообщением.
    """
    mapLogLevel(settings.log_level)
    for name in ("encoding", "output_encoding"):
        value = getattr(settings, name)
        if value is None:
            continue
        try:
            codecs.lookup(value)
        except LookupError:
            raise ValueError(f"Unknown {name}: {value}") from None


def buildConvertUseCase(settings: Settings) -> ConvertUseCase:
    def openReader(path: str) -> DbfReader:
        return DbfReader.open(
            path,
            encoding=settings.encoding,
            includeDeleted=settings.include_deleted,
            memoRequired=not settings.ignore_missing_memo,
        )

    def openEmitter(path: str) -> CsvRowEmitter:
        return CsvRowEmitter(path, encoding=settings.output_encoding).open()

    return ConvertUseCase(openReader=openReader, openEmitter=openEmitter)


def runConvertCommand(
    runId: str,
    settings: Settings,
    sources: list[str],
    sourcePath: str,
    targetPath: str,
) -> int:
    """
    Назначение:
        Обвязка выполнения конвертации:
        - создаёт логгер + файл лога
        - создаёт report.json skeleton
        - дублирует stdout/stderr в лог (mirrorConsoleToLog)
        - гарантирует запись отчёта в finally

    Выходные данные:
        int
            Exit code: 0 = успех, 1 = ошибка конвертации.
    """
    startMonotonic = time.monotonic()

    logger, logFilePath = createCommandLogger(
        commandName=COMMAND_NAME,
        logDir=settings.log_dir,
        runId=runId,
        logLevel=settings.log_level,
    )

    report = createEmptyReport(runId=runId, command=COMMAND_NAME, configSources=sources)
    report.meta.source_path = sourcePath
    report.meta.target_path = targetPath

    exitCode = 1
    try:
        with mirrorConsoleToLog(logger) as console:
            try:
                logEvent(logger, logging.INFO, runId, "core", "Command started")
                printRunHeader(runId, settings, sources, sourcePath, targetPath)
                exitCode = executeConversion(runId, settings, sourcePath, targetPath, logger, report, console)
                return exitCode
            finally:
                durationMs = int((time.monotonic() - startMonotonic) * 1000)
                finalizeReport(report=report, durationMs=durationMs, logFile=logFilePath, reportDir=settings.report_dir)
                reportPath = writeReportJson(report, settings.report_dir, f"report_{COMMAND_NAME}_{runId}")
                logEvent(logger, logging.INFO, runId, "report", f"Report written: {reportPath}")
                logEvent(logger, logging.INFO, runId, "core", f"Command finished exit_code={exitCode}")
    finally:
        closeCommandLogger(logger)


def executeConversion(
    runId: str,
    settings: Settings,
    sourcePath: str,
    targetPath: str,
    logger: logging.Logger,
    report: Report,
    console: TextIO,
) -> int:
    """
    Назначение:
        Сама конвертация и перевод ошибок в exit code + строку ERROR + элемент отчёта.

    Выходные данные:
        int
            0 = успех, 1 = ошибка конвертации.
    """
    try:
        sizeBytes = Path(sourcePath).stat().st_size
        report.meta.source_size_bytes = sizeBytes
        typer.echo(f"size_mb={sizeBytes / 1024 / 1024:.2f}")

        useCase = buildConvertUseCase(settings)
        result = useCase.run(
            sourcePath=sourcePath,
            targetPath=targetPath,
            logger=logger,
            runId=runId,
            report=report,
            progress=ConsoleProgress(settings.show_progress, console),
        )
    except FileNotFoundError:
        logEvent(logger, logging.ERROR, runId, "dbf", f"DBF file not found: {sourcePath}")
        report.add_error(
            {"code": ErrorCode.IO_ERROR.value, "message": "DBF file not found", "details": {"path": sourcePath}}
        )
        typer.echo(f"ERROR: DBF file not found: {sourcePath}", err=True)
        return 1
    except DecodeError as exc:
        logEvent(logger, logging.ERROR, runId, "dbf", f"Conversion failed: {exc}")
        report.add_error(exc.to_dict())
        typer.echo(f"ERROR: {exc.code.value}: {exc}", err=True)
        return 1
    except SinkError as exc:
        logEvent(logger, logging.ERROR, runId, "csv", f"Conversion failed: {exc}")
        report.add_error(exc.to_dict())
        typer.echo(f"ERROR: {exc.code.value}: {exc}", err=True)
        return 1
    except OSError as exc:
        logEvent(logger, logging.ERROR, runId, "core", f"Conversion failed: {exc}")
        report.add_error({"code": ErrorCode.IO_ERROR.value, "message": str(exc), "details": {}})
        typer.echo(f"ERROR: {exc}", err=True)
        return 1

    typer.echo(f"records_written={result.records_written} records_deleted={result.records_deleted}")
    typer.echo("Conversion completed")
    return 0


@app.command()
def convert(
    source: str = typer.Argument(..., metavar="INPUT", help="Path to the source DBF file."),
    target: str = typer.Argument(..., metavar="OUTPUT", help="Path to the CSV file to create."),
    config: str | None = typer.Option(None, "--config", help="Path to config.yml"),
    runId: str | None = typer.Option(None, "--run-id", help="Run identifier (UUID). If omitted, generated."),
    logLevel: str | None = typer.Option(None, "--log-level", help="Log level: ERROR|WARN|INFO|DEBUG"),
    logDir: str | None = typer.Option(None, "--log-dir", help="Directory for logs."),
    reportDir: str | None = typer.Option(None, "--report-dir", help="Directory for reports."),
    encoding: str | None = typer.Option(None, "--encoding", help="Text encoding of the DBF (default: from header)."),
    outputEncoding: str | None = typer.Option(None, "--output-encoding", help="Encoding of the CSV file."),
    includeDeleted: bool | None = typer.Option(
        None,
        "--include-deleted/--skip-deleted",
        help="Emit records flagged as deleted (default: include).",
    ),
    ignoreMissingMemo: bool | None = typer.Option(
        None,
        "--ignore-missing-memo",
        help="Treat memo fields as empty when the memo file is missing.",
    ),
    progress: bool | None = typer.Option(None, "--progress/--no-progress", help="Show a progress bar."),
):
    """
    Convert INPUT (dBASE table) into OUTPUT (CSV, ';' delimited, all values quoted).

    Example: dbf2csv C:\\data\\clients.dbf C:\\data\\clients.csv
    """
    if not runId:
        runId = str(uuid.uuid4())

    cliOverrides = {
        "log_level": logLevel,
        "log_dir": logDir,
        "report_dir": reportDir,
        "encoding": encoding,
        "output_encoding": outputEncoding,
        "include_deleted": includeDeleted,
        "ignore_missing_memo": ignoreMissingMemo,
        "show_progress": progress,
    }
    try:
        loaded = loadSettings(config_path=config, cli_overrides=cliOverrides)
        validateSettings(loaded.settings)
    except (ValueError, yaml.YAMLError) as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=2)

    exitCode = runConvertCommand(runId, loaded.settings, loaded.sources_used, source, target)
    if exitCode != 0:
        raise typer.Exit(code=exitCode)


if __name__ == "__main__":
    app()
