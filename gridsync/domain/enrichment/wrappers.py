from __future__ import annotations

import asyncio

from gridsync.domain.error_codes import ErrorCode
from gridsync.domain.models import Record, TaskFailure, TaskResult
from gridsync.domain.ports.enrichment import EnrichmentTask


def with_timeout(task: EnrichmentTask, seconds: float) -> EnrichmentTask:
    """
    Назначение:
        Оборачивает задачу таймаутом на стороне вызывающего:
        по истечении времени возвращается TaskFailure(TIMEOUT).
    Ограничения:
        seconds > 0.
    """
    if seconds <= 0:
        raise ValueError(f"timeout must be positive, got {seconds!r}")

    async def timed(record: Record) -> TaskResult:
        try:
            return await asyncio.wait_for(task(record), timeout=seconds)
        except asyncio.TimeoutError:
            return TaskFailure(
                record_id=record.id,
                code=ErrorCode.TIMEOUT,
                message=f"Task timed out after {seconds}s",
            )

    return timed


def with_abort(task: EnrichmentTask, abort: asyncio.Event) -> EnrichmentTask:
    """
    Назначение:
        Кооперативная отмена: если abort выставлен до старта задачи,
        внутренняя задача не вызывается и возвращается TaskFailure(CANCELLED).
    """

    async def abortable(record: Record) -> TaskResult:
        if abort.is_set():
            return TaskFailure(
                record_id=record.id,
                code=ErrorCode.CANCELLED,
                message="Enrichment aborted before start",
            )
        return await task(record)

    return abortable
