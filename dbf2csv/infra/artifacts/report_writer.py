from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any

from dbf2csv.domain.reporting.models import Report, ReportMeta, ReportSummary


def getNowIso() -> str:
    """
    Назначение:
        Текущее локальное время в ISO 8601 с timezone.
    """
    return datetime.now().astimezone().isoformat()


def createEmptyReport(runId: str, command: str, configSources: list[str]) -> Report:
    """
    Назначение:
        Создаёт пустой отчёт-скелет для команды.

    Выходные данные:
        Report
    """
    meta = ReportMeta(
        run_id=runId,
        command=command,
        started_at=getNowIso(),
        config_sources=list(configSources or []),
    )
    return Report(meta=meta, summary=ReportSummary())


def finalizeReport(report: Report, durationMs: int, logFile: str | None, reportDir: str) -> None:
    """
    Назначение:
        Финализирует отчёт: время завершения, длительность, пути.
    """
    report.meta.finished_at = getNowIso()
    report.meta.duration_ms = durationMs
    report.meta.log_file = logFile
    report.meta.report_dir = reportDir


def writeReportJson(report: Report, reportDir: str, fileBaseName: str) -> str:
    """
    Назначение:
        Записывает report.json на диск.

    Входные данные:
        report: Report
        reportDir: str
        fileBaseName: str
            Например: "report_convert_<runId>"

    Выходные данные:
        str
            Полный путь к созданному файлу.
    """
    Path(reportDir).mkdir(parents=True, exist_ok=True)
    reportPath = str(Path(reportDir) / f"{fileBaseName}.json")

    data: dict[str, Any] = {
        "meta": asdict(report.meta),
        "summary": asdict(report.summary),
        "errors": report.errors,
    }

    with open(reportPath, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)

    return reportPath
