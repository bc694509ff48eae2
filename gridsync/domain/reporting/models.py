from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass
class ReportMeta:
    """
    Назначение:
        Метаданные запуска команды.
    """

    run_id: str
    command: str
    started_at: str
    finished_at: str | None = None
    duration_ms: int | None = None
    items_limit: int | None = None
    items_truncated: bool = False
    input_path: str | None = None
    output_path: str | None = None


@dataclass
class ReportSummary:
    """
    Назначение:
        Счётчики выполнения.
    """

    rows_total: int = 0
    rows_passed: int = 0
    rows_blocked: int = 0
    rows_dropped: int = 0
    errors_total: int = 0
    ops: dict[str, dict[str, int]] = field(default_factory=dict)


@dataclass(frozen=True)
class ReportDiagnostic:
    severity: str
    code: str
    message: str
    field: str | None = None


@dataclass
class ReportItem:
    """
    Назначение:
        Единица отчёта, привязанная к записи.
    """

    status: str
    record_id: Any = None
    payload: Mapping[str, Any] | None = None
    diagnostics: list[ReportDiagnostic] = field(default_factory=list)


@dataclass
class ReportEnvelope:
    status: str
    meta: ReportMeta
    summary: ReportSummary
    items: list[ReportItem]
    context: dict[str, Any] = field(default_factory=dict)
