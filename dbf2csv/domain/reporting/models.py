from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ReportMeta:
    """
    Назначение:
        Метаданные отчёта запуска конвертации.

    Поля:
        run_id: str
        command: str
        started_at: str
        finished_at: str | None
        duration_ms: int | None
        source_path: str | None
        target_path: str | None
        source_size_bytes: int | None
        log_file: str | None
        report_dir: str | None
        config_sources: list[str]
    """
    run_id: str
    command: str
    started_at: str
    finished_at: str | None = None
    duration_ms: int | None = None
    source_path: str | None = None
    target_path: str | None = None
    source_size_bytes: int | None = None
    log_file: str | None = None
    report_dir: str | None = None
    config_sources: list[str] = field(default_factory=list)


@dataclass
class ReportSummary:
    """
    Назначение:
        Сводные счётчики конвертации. status: ok|failed.
    """
    status: str = "ok"
    records_declared: int | None = None
    records_written: int = 0
    records_deleted: int = 0
    fields: list[str] = field(default_factory=list)


@dataclass
class Report:
    meta: ReportMeta
    summary: ReportSummary
    errors: list[dict[str, Any]] = field(default_factory=list)

    def add_error(self, error: dict[str, Any]) -> None:
        self.errors.append(error)
        self.summary.status = "failed"
