from __future__ import annotations

import logging
from typing import Iterable, Sequence

from gridsync.domain.models import Record, SortColumn
from gridsync.domain.reporting.collector import ReportCollector
from gridsync.domain.sorting import ColumnSchema, sort_records
from gridsync.loggingSetup import logEvent


class SortUseCase:
    """
    Назначение/ответственность:
        Use-case упорядочивания записей по SortSpec для отображения/выгрузки.
    """

    def __init__(self, schema: ColumnSchema) -> None:
        self.schema = schema

    def run(
        self,
        records: Iterable[Record],
        spec: Sequence[SortColumn],
        logger: logging.Logger,
        run_id: str,
        report: ReportCollector,
    ) -> list[Record]:
        """
        Контракт (вход/выход):
            Вход: записи и SortSpec.
            Выход: новый упорядоченный список.
        Ошибки/исключения:
            UnsupportedSortKeyError пробрасывается вызывающему.
        """
        rows = list(records)
        ordered = sort_records(rows, spec, self.schema)
        spec_text = ",".join(f"{c.column_key}:{c.direction.value}" for c in spec) or "-"
        logEvent(logger, logging.INFO, run_id, "sort", f"sorted rows={len(ordered)} spec={spec_text}")

        report.summary.rows_total = len(ordered)
        report.summary.rows_passed = len(ordered)
        report.add_op("sort", ok=len(ordered), count=len(rows))
        report.set_context(
            "sort",
            {
                "spec": [{"column_key": c.column_key, "direction": c.direction.value} for c in spec],
                "order": [r.id for r in ordered[:50]],
            },
        )
        return ordered
