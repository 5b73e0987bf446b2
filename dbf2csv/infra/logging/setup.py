from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, TextIO

LOGGER_ROOT = "dbf2csv"
LOG_FORMAT = "%(asctime)s %(levelname)s runId=%(runId)s comp=%(component)s msg=%(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
DEFAULT_COMPONENT = "core"

LOG_LEVELS: dict[str, int] = {
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def mapLogLevel(levelName: str) -> int:
    """
    Назначение:
        Строковый уровень (ERROR|WARN|INFO|DEBUG) -> logging level.

    Ошибки:
        ValueError для неизвестного уровня (конфиг/CLI -> exit 2).
    """
    level = LOG_LEVELS.get((levelName or "").strip().upper())
    if level is None:
        raise ValueError(f"Unsupported log level: {levelName}")
    return level


class ConsoleToLog:
    """
    Назначение:
        Файлоподобный приёмник: каждая завершённая строка консольного вывода
        становится записью лога с component = stdout|stderr.

    Инварианты:
        - пустые строки не логируются;
        - незавершённый хвост уходит в лог при flush().
    """

    def __init__(self, logger: logging.Logger, level: int, component: str):
        self.logger = logger
        self.level = level
        self.component = component
        self._pending = ""

    def write(self, text: str) -> int:
        if not text:
            return 0
        *lines, self._pending = (self._pending + text).split("\n")
        for line in lines:
            self._forward(line)
        return len(text)

    def flush(self) -> None:
        pending, self._pending = self._pending, ""
        self._forward(pending)

    def _forward(self, line: str) -> None:
        line = line.rstrip()
        if line:
            self.logger.log(self.level, line, extra={"component": self.component})


class MirroredStream:
    """Консольный поток, продублированный в ConsoleToLog."""

    def __init__(self, console: TextIO, log: ConsoleToLog):
        self.console = console
        self.log = log

    def write(self, text: str) -> int:
        written = self.console.write(text)
        self.log.write(text)
        return written

    def flush(self) -> None:
        self.console.flush()
        self.log.flush()

    def isatty(self) -> bool:
        isatty = getattr(self.console, "isatty", None)
        return bool(isatty and isatty())


@contextmanager
def mirrorConsoleToLog(logger: logging.Logger) -> Iterator[TextIO]:
    """
    Назначение:
        На время блока дублирует sys.stdout (INFO) и sys.stderr (ERROR) в лог команды.

    Выходные данные:
        исходный sys.stdout: для вывода, который в лог попадать не должен
        (прогресс-бар).
    """
    originalStdout, originalStderr = sys.stdout, sys.stderr
    sys.stdout = MirroredStream(originalStdout, ConsoleToLog(logger, logging.INFO, "stdout"))
    sys.stderr = MirroredStream(originalStderr, ConsoleToLog(logger, logging.ERROR, "stderr"))
    try:
        yield originalStdout
    finally:
        sys.stdout.flush()
        sys.stderr.flush()
        sys.stdout, sys.stderr = originalStdout, originalStderr


def createCommandLogger(commandName: str, logDir: str, runId: str, logLevel: str) -> tuple[logging.Logger, str]:
    """
    Назначение:
        Файловый логгер одного запуска: <logDir>/<commandName>_<runId>.log.
        runId и component по умолчанию подставляет форматтер, поэтому
        обычные logger.info(...) тоже пишутся в формате LOG_FORMAT.
    """
    logPath = Path(logDir)
    logPath.mkdir(parents=True, exist_ok=True)
    logFilePath = str(logPath / f"{commandName}_{runId}.log")

    level = mapLogLevel(logLevel)
    logger = logging.getLogger(f"{LOGGER_ROOT}.{commandName}.{runId}")
    closeCommandLogger(logger)
    logger.propagate = False
    logger.setLevel(level)

    fileHandler = logging.FileHandler(logFilePath, encoding="utf-8")
    fileHandler.setLevel(level)
    fileHandler.setFormatter(
        logging.Formatter(
            fmt=LOG_FORMAT,
            datefmt=LOG_DATE_FORMAT,
            defaults={"runId": runId, "component": DEFAULT_COMPONENT},
        )
    )
    logger.addHandler(fileHandler)

    return logger, logFilePath


def closeCommandLogger(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def logEvent(logger: logging.Logger, level: int, runId: str, component: str, message: str) -> None:
    logger.log(level, message, extra={"runId": runId, "component": component})
