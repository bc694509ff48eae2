from __future__ import annotations

import logging

from gridsync.domain.enrichment import EnrichmentScheduler, with_timeout
from gridsync.domain.models import RunSummary, TaskFailure
from gridsync.domain.ports.enrichment import EnrichmentTask
from gridsync.domain.reporting.collector import STATUS_DROPPED, STATUS_FAILED, STATUS_OK, ReportCollector
from gridsync.domain.reporting.models import ReportDiagnostic
from gridsync.domain.store.record_store import RecordStore


class EnrichUseCase:
    """
    Назначение/ответственность:
        Use-case обогащения всех записей хранилища одной задачей с ограничением параллелизма
        и заполнением отчёта по итогам прогона.
    """

    def __init__(
        self,
        concurrency_limit: int,
        task_timeout_seconds: float | None = None,
        include_ok_items: bool = False,
    ) -> None:
        self.concurrency_limit = concurrency_limit
        self.task_timeout_seconds = task_timeout_seconds
        self.include_ok_items = include_ok_items

    async def run(
        self,
        store: RecordStore,
        task: EnrichmentTask,
        logger: logging.Logger,
        run_id: str,
        report: ReportCollector,
        source: str | None = None,
    ) -> int:
        """
        Контракт (вход/выход):
            Вход: хранилище, задача, логгер, run_id, отчёт.
            Выход: exit code (0: все записи обогащены, 1: есть неудачи).
        """
        if self.task_timeout_seconds:
            task = with_timeout(task, self.task_timeout_seconds)

        scheduler = EnrichmentScheduler(store, logger=logger, run_id=run_id)
        summary = await scheduler.run(store.records(), task, self.concurrency_limit)

        self._fill_report(store, summary, report, source)
        return 0 if summary.ok else 1

    def _fill_report(
        self,
        store: RecordStore,
        summary: RunSummary,
        report: ReportCollector,
        source: str | None,
    ) -> None:
        failures: dict[object, TaskFailure] = {f.record_id: f for f in summary.failed}
        dropped = set(summary.dropped)

        for record_id in summary.launched:
            if record_id in failures:
                failure = failures[record_id]
                source_value = failure.details.get("source_value")
                report.add_item(
                    status=STATUS_FAILED,
                    record_id=record_id,
                    payload={"source_value": source_value} if source_value is not None else None,
                    diagnostics=[
                        ReportDiagnostic(
                            severity="error",
                            code=failure.code.value,
                            message=failure.message,
                            field=failure.details.get("field"),
                        )
                    ],
                )
            elif record_id in dropped:
                report.add_item(
                    status=STATUS_DROPPED,
                    record_id=record_id,
                    diagnostics=[
                        ReportDiagnostic(
                            severity="warning",
                            code="RECORD_NOT_FOUND",
                            message="Record removed before update was applied",
                        )
                    ],
                )
            else:
                payload = store.get(record_id).to_dict() if record_id in store else None
                report.add_item(
                    status=STATUS_OK,
                    record_id=record_id,
                    payload=payload,
                    store=self.include_ok_items,
                )

        report.add_op(
            f"enrich:{source or 'task'}",
            ok=len(summary.succeeded),
            failed=len(summary.failed) + len(summary.dropped),
            count=summary.total,
        )
        report.set_context(
            "enrich",
            {
                "source": source,
                "concurrency_limit": summary.limit,
                "max_outstanding": summary.max_outstanding,
                "task_timeout_seconds": self.task_timeout_seconds,
            },
        )
