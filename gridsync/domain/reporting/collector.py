from __future__ import annotations

from dataclasses import asdict
from typing import Any, Iterable, Mapping

from gridsync.common.time import getNowIso
from gridsync.domain.reporting.models import (
    ReportDiagnostic,
    ReportEnvelope,
    ReportItem,
    ReportMeta,
    ReportSummary,
)

STATUS_OK = "OK"
STATUS_FAILED = "FAILED"
STATUS_DROPPED = "DROPPED"


class ReportCollector:
    """
    Назначение/ответственность:
        Сборщик отчёта команды: счётчики, элементы по записям, контекст запуска.
    Ограничения:
        - Элементов хранится не больше meta.items_limit, дальше выставляется items_truncated.
    """

    def __init__(self, run_id: str, command: str, started_at: str | None = None) -> None:
        self.meta = ReportMeta(run_id=run_id, command=command, started_at=started_at or getNowIso())
        self.summary = ReportSummary()
        self.items: list[ReportItem] = []
        self.context: dict[str, Any] = {}
        self.status: str | None = None

    def set_context(self, name: str, value: dict[str, Any]) -> None:
        self.context[name] = value

    def add_op(self, name: str, *, ok: int = 0, failed: int = 0, count: int = 0) -> None:
        entry = self.summary.ops.setdefault(name, {"ok": 0, "failed": 0, "count": 0})
        entry["ok"] += ok
        entry["failed"] += failed
        entry["count"] += count

    def add_item(
        self,
        *,
        status: str,
        record_id: Any = None,
        payload: Mapping[str, Any] | None = None,
        diagnostics: Iterable[ReportDiagnostic] | None = None,
        store: bool = True,
    ) -> None:
        diagnostic_list = list(diagnostics or [])

        self.summary.rows_total += 1
        if status == STATUS_OK:
            self.summary.rows_passed += 1
        elif status == STATUS_FAILED:
            self.summary.rows_blocked += 1
        elif status == STATUS_DROPPED:
            self.summary.rows_dropped += 1
        self.summary.errors_total += sum(1 for d in diagnostic_list if d.severity == "error")

        if not store:
            return
        if self._should_store_item():
            self.items.append(
                ReportItem(
                    status=status,
                    record_id=record_id,
                    payload=dict(payload) if payload is not None else None,
                    diagnostics=diagnostic_list,
                )
            )
        else:
            self.meta.items_truncated = True

    def finish(self, finished_at: str | None = None, duration_ms: int | None = None) -> None:
        self.meta.finished_at = finished_at or getNowIso()
        self.meta.duration_ms = duration_ms
        if self.status is None:
            self.status = self._derive_status()

    def build(self) -> ReportEnvelope:
        return ReportEnvelope(
            status=self.status or self._derive_status(),
            meta=self.meta,
            summary=self.summary,
            items=self.items,
            context=self.context,
        )

    def _should_store_item(self) -> bool:
        limit = self.meta.items_limit
        if limit is None:
            return True
        return len(self.items) < limit

    def _derive_status(self) -> str:
        if self.summary.rows_blocked == 0 and self.summary.rows_dropped == 0 and self.summary.errors_total == 0:
            return "SUCCESS"
        if self.summary.rows_passed > 0:
            return "PARTIAL"
        return "FAILED"


def asdict_report(envelope: ReportEnvelope) -> dict[str, Any]:
    """
    Назначение:
        Сериализация отчёта в JSON-совместимый dict.
    """
    return {
        "status": envelope.status,
        "meta": asdict(envelope.meta),
        "summary": asdict(envelope.summary),
        "items": [
            {
                "status": item.status,
                "record_id": item.record_id,
                "payload": item.payload,
                "diagnostics": [asdict(diag) for diag in item.diagnostics],
            }
            for item in envelope.items
        ],
        "context": envelope.context,
    }
