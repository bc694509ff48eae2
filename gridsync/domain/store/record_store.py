from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping

from gridsync.domain.exceptions import DuplicateRecordError, RecordNotFoundError
from gridsync.domain.models import FieldValue, PartialUpdate, Record

RecordListener = Callable[[Record, PartialUpdate], None]


class RecordStore:
    """
    Назначение/ответственность:
        Единственный владелец состояния записей грида.
        Хранит записи по id и атомарно применяет PartialUpdate.
    Инварианты/гарантии:
        - id уникальны.
        - apply_update меняет только перечисленные в обновлении поля (last-write-wins по полю).
        - Запись заменяется целиком новой копией (copy-on-write); читатель
          снапшота никогда не видит частично применённое обновление.
        - apply_update не содержит точек приостановки, поэтому в asyncio два
          слияния не перемежаются.
    Взаимодействия:
        Слушатели (subscribe) вызываются после каждого успешного apply_update;
        исключение слушателя логируется и не прерывает apply_update.
    """

    def __init__(self, records: Iterable[Record] = (), logger: logging.Logger | None = None) -> None:
        self._records: dict[Any, Record] = {}
        self._listeners: list[RecordListener] = []
        self._logger = logger or logging.getLogger(__name__)
        for record in records:
            self.add(record)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def records(self) -> list[Record]:
        """Снапшот записей в порядке добавления."""
        return list(self._records.values())

    def get(self, record_id: Any) -> Record:
        try:
            return self._records[record_id]
        except KeyError:
            raise RecordNotFoundError(record_id) from None

    def add(self, record: Record) -> None:
        if record.id in self._records:
            raise DuplicateRecordError(record.id)
        self._records[record.id] = record

    def remove(self, record_id: Any) -> Record:
        try:
            return self._records.pop(record_id)
        except KeyError:
            raise RecordNotFoundError(record_id) from None

    def apply_update(self, record_id: Any, update: PartialUpdate | Mapping[str, FieldValue]) -> Record:
        """
        Контракт (вход/выход):
            Вход: id записи и PartialUpdate (или простой mapping полей).
            Выход: обновлённая запись.
        Ошибки/исключения:
            RecordNotFoundError: записи нет, хранилище не изменено.
            ValueError: PartialUpdate адресован другой записи.
        Алгоритм:
            - Ищет запись по id.
            - Сливает поля обновления поверх текущих, остальные поля не трогает.
            - Подменяет запись в словаре одной операцией и уведомляет слушателей.
        """
        if not isinstance(update, PartialUpdate):
            update = PartialUpdate(record_id=record_id, fields=update)
        elif update.record_id != record_id:
            raise ValueError(
                f"PartialUpdate targets id={update.record_id!r}, not id={record_id!r}"
            )

        current = self._records.get(record_id)
        if current is None:
            raise RecordNotFoundError(record_id)

        updated = current.with_fields(update.fields)
        self._records[record_id] = updated
        self._logger.debug(
            "record updated id=%r fields=%s", record_id, sorted(update.fields.keys())
        )
        self._notify(updated, update)
        return updated

    def subscribe(self, listener: RecordListener) -> Callable[[], None]:
        """
        Назначение:
            Подписка на изменения. Возвращает функцию отписки.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, record: Record, update: PartialUpdate) -> None:
        # запись уже заменена; сбой слушателя не откатывает её и не мешает остальным слушателям
        for listener in list(self._listeners):
            try:
                listener(record, update)
            except Exception:  # noqa: BLE001
                self._logger.exception("record listener failed id=%r", record.id)
