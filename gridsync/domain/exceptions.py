from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from gridsync.domain.error_codes import ErrorCode


@dataclass
class RecordNotFoundError(Exception):
    """
    Назначение:
        Обновление адресовано записи, которой нет в хранилище
        (например, запись удалена, пока запрос был в полёте).
    Инварианты/гарантии:
        - Хранилище не изменялось.
    """

    record_id: Any

    @property
    def code(self) -> ErrorCode:
        return ErrorCode.RECORD_NOT_FOUND

    def __str__(self) -> str:
        return f"Record not found: id={self.record_id!r}"


@dataclass
class DuplicateRecordError(Exception):
    """
    Назначение:
        Попытка добавить запись с уже существующим id.
    """

    record_id: Any

    @property
    def code(self) -> ErrorCode:
        return ErrorCode.DUPLICATE_RECORD

    def __str__(self) -> str:
        return f"Duplicate record id: {self.record_id!r}"


@dataclass
class UnsupportedSortKeyError(Exception):
    """
    Назначение:
        Сортировка запрошена по полю, которого нет в схеме колонок.
    Инварианты/гарантии:
        - Бросается до начала сравнения, частичного порядка не возникает.
    """

    key: str

    @property
    def code(self) -> ErrorCode:
        return ErrorCode.UNSUPPORTED_SORT_KEY

    def __str__(self) -> str:
        return f'unsupported sortColumn: "{self.key}"'


__all__ = ["RecordNotFoundError", "DuplicateRecordError", "UnsupportedSortKeyError"]
