from __future__ import annotations

from typing import Any, Protocol

from gridsync.domain.models import PartialUpdate, Record, TaskFailure, TaskResult


class EnrichmentTask(Protocol):
    """
    Назначение/ответственность:
        Асинхронная задача обогащения одной записи.
    Контракт:
        - Вход: Record.
        - Выход: TaskSuccess(PartialUpdate) или TaskFailure.
        - Не бросает исключений: сетевые ошибки и ошибки разбора возвращаются как TaskFailure.
        - Не держит частичное обновление через точку await: PartialUpdate
          собирается целиком и возвращается одним значением.
    """

    async def __call__(self, record: Record) -> TaskResult: ...


class UpdateTarget(Protocol):
    """
    Назначение/ответственность:
        Порт хранилища, в которое планировщик применяет успешные обновления.
    """

    def apply_update(self, record_id: Any, update: PartialUpdate) -> Record: ...


class FailureReporter(Protocol):
    """
    Назначение/ответственность:
        Получатель сообщений о неудачных задачах (отчёт, UI-индикатор и т.п.).
    """

    def __call__(self, failure: TaskFailure) -> None: ...
