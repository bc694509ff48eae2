from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from gridsync.domain.error_codes import ErrorCode
from gridsync.domain.exceptions import DuplicateRecordError, RecordNotFoundError
from gridsync.domain.models import Record, RunSummary, TaskFailure, TaskResult, TaskSuccess
from gridsync.domain.ports.enrichment import EnrichmentTask, FailureReporter, UpdateTarget
from gridsync.loggingSetup import logEvent


@dataclass
class _RunState:
    """
    Назначение:
        Состояние одного прогона: рабочий список, курсор, задачи в полёте.
    """

    worklist: list[Record]
    summary: RunSummary
    cursor: int = 0
    outstanding: dict["asyncio.Future[TaskResult]", int] = field(default_factory=dict)

    @property
    def exhausted(self) -> bool:
        return self.cursor >= len(self.worklist)


class EnrichmentScheduler:
    """
    Назначение/ответственность:
        Прогоняет записи через задачу обогащения, держа в полёте не более limit задач,
        и применяет успешные результаты к хранилищу по мере завершения.
    Инварианты/гарантии:
        - В любой момент в полёте (запущено, но не завершено) не более limit задач.
        - Каждая поданная запись запускается ровно один раз за прогон.
        - Запуск идёт в порядке рабочего списка; порядок завершения не гарантируется.
        - Ошибка одной задачи не прерывает и не задерживает остальные.
        - Между прогонами состояние не сохраняется.
    Ограничения:
        - Собственного таймаута нет (см. with_timeout).
        - Запущенная задача не отменяется; при отмене самого run() задачи в полёте
          отменяются и CancelledError пробрасывается вызывающему.
        - Исключение из on_failure или хранилища тоже отменяет задачи в полёте
          и пробрасывается вызывающему только после их завершения.
    """

    def __init__(
        self,
        store: UpdateTarget,
        logger: logging.Logger | None = None,
        run_id: str | None = None,
        on_failure: FailureReporter | None = None,
    ) -> None:
        self.store = store
        self.logger = logger or logging.getLogger(__name__)
        self.run_id = run_id or "-"
        self.on_failure = on_failure

    async def run(self, records: Iterable[Record], task: EnrichmentTask, limit: int) -> RunSummary:
        """
        Контракт (вход/выход):
            Вход: записи, задача обогащения, limit >= 1.
            Выход: RunSummary по завершении всех задач.
        Ошибки/исключения:
            ValueError: limit < 1.
            DuplicateRecordError: повторяющийся id в рабочем списке.
        Алгоритм:
            - Пока есть свободные слоты и незапущенные записи: запускает следующую по курсору.
            - Ждёт первую завершившуюся задачу (FIRST_COMPLETED), обрабатывает результат.
            - Повторяет, пока курсор не дошёл до конца и в полёте ничего не осталось.
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValueError(f"limit must be a positive integer, got {limit!r}")

        worklist = list(records)
        seen: set[Any] = set()
        for record in worklist:
            if record.id in seen:
                raise DuplicateRecordError(record.id)
            seen.add(record.id)

        state = _RunState(worklist=worklist, summary=RunSummary(limit=limit, total=len(worklist)))
        logEvent(
            self.logger,
            logging.INFO,
            self.run_id,
            "enrich",
            f"enrichment run started total={len(worklist)} limit={limit}",
        )

        try:
            while not state.exhausted or state.outstanding:
                self._fill_slots(state, task, limit)
                done, _pending = await asyncio.wait(
                    state.outstanding.keys(), return_when=asyncio.FIRST_COMPLETED
                )
                for future in sorted(done, key=lambda f: state.outstanding[f]):
                    index = state.outstanding.pop(future)
                    self._settle(state, state.worklist[index], future.result())
        except asyncio.CancelledError:
            await self._cancel_outstanding(state)
            logEvent(
                self.logger,
                logging.WARNING,
                self.run_id,
                "enrich",
                f"enrichment run cancelled launched={len(state.summary.launched)} "
                f"settled={state.summary.settled}",
            )
            raise
        except Exception as exc:
            # сбой on_failure или хранилища: run() не возвращается, пока в полёте что-то есть
            await self._cancel_outstanding(state)
            logEvent(
                self.logger,
                logging.ERROR,
                self.run_id,
                "enrich",
                f"enrichment run aborted launched={len(state.summary.launched)} "
                f"settled={state.summary.settled} error={type(exc).__name__}: {exc}",
            )
            raise

        summary = state.summary
        logEvent(
            self.logger,
            logging.INFO,
            self.run_id,
            "enrich",
            f"enrichment run done total={summary.total} ok={len(summary.succeeded)} "
            f"failed={len(summary.failed)} dropped={len(summary.dropped)} "
            f"max_outstanding={summary.max_outstanding}",
        )
        return summary

    def _fill_slots(self, state: _RunState, task: EnrichmentTask, limit: int) -> None:
        while not state.exhausted and len(state.outstanding) < limit:
            index = state.cursor
            record = state.worklist[index]
            state.cursor += 1
            future = asyncio.ensure_future(self._invoke(task, record))
            state.outstanding[future] = index
            state.summary.launched.append(record.id)
            state.summary.max_outstanding = max(state.summary.max_outstanding, len(state.outstanding))
            logEvent(self.logger, logging.DEBUG, self.run_id, "enrich", f"task launched id={record.id!r}")

    async def _invoke(self, task: EnrichmentTask, record: Record) -> TaskResult:
        """
        Назначение:
            Вызов задачи с превращением нарушений контракта в TaskFailure,
            чтобы соседние задачи продолжали работу.
        """
        try:
            result = await task(record)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            return TaskFailure(
                record_id=record.id,
                code=ErrorCode.UNEXPECTED_ERROR,
                message=str(exc) or type(exc).__name__,
                details={"exception": type(exc).__name__},
            )
        if not isinstance(result, (TaskSuccess, TaskFailure)):
            return TaskFailure(
                record_id=record.id,
                code=ErrorCode.UNEXPECTED_ERROR,
                message=f"Unsupported task result type: {type(result).__name__}",
            )
        return result

    def _settle(self, state: _RunState, record: Record, result: TaskResult) -> None:
        summary = state.summary
        if isinstance(result, TaskFailure):
            summary.failed.append(result)
            logEvent(
                self.logger,
                logging.WARNING,
                self.run_id,
                "enrich",
                f"task failed id={result.record_id!r} code={result.code.value} msg={result.message}",
            )
            if self.on_failure is not None:
                self.on_failure(result)
            return

        update = result.update
        try:
            self.store.apply_update(update.record_id, update)
        except RecordNotFoundError as exc:
            summary.dropped.append(record.id)
            logEvent(self.logger, logging.WARNING, self.run_id, "store", f"update dropped: {exc}")
            return
        summary.succeeded.append(record.id)
        logEvent(
            self.logger,
            logging.DEBUG,
            self.run_id,
            "enrich",
            f"task ok id={update.record_id!r} fields={sorted(update.fields.keys())}",
        )

    async def _cancel_outstanding(self, state: _RunState) -> None:
        futures = list(state.outstanding.keys())
        for future in futures:
            future.cancel()
        if futures:
            await asyncio.gather(*futures, return_exceptions=True)
        state.outstanding.clear()
