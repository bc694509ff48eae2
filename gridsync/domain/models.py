from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Union

from gridsync.domain.error_codes import ErrorCode

FieldValue = Union[str, int, float, bool, None]


@dataclass(frozen=True)
class Record:
    """
    Назначение:
        Строка грида: неизменяемый id и набор именованных полей.
    Инварианты/гарантии:
        - id не меняется за время жизни записи.
        - fields доступен только на чтение; изменения идут через RecordStore.apply_update.
    """

    id: Any
    fields: Mapping[str, FieldValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def get(self, key: str, default: FieldValue = None) -> FieldValue:
        if key == "id":
            return self.id
        return self.fields.get(key, default)

    def has(self, key: str) -> bool:
        return key == "id" or key in self.fields

    def with_fields(self, updates: Mapping[str, FieldValue]) -> "Record":
        merged = dict(self.fields)
        merged.update(updates)
        return Record(id=self.id, fields=merged)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, **self.fields}


@dataclass(frozen=True)
class PartialUpdate:
    """
    Назначение:
        Дельта полей для ровно одной записи.
    Инварианты/гарантии:
        - Не владеет целевой записью; применяется только RecordStore.
        - Поле id изменить нельзя.
    """

    record_id: Any
    fields: Mapping[str, FieldValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if "id" in self.fields:
            raise ValueError("PartialUpdate must not change record id")
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @property
    def is_empty(self) -> bool:
        return len(self.fields) == 0


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


@dataclass(frozen=True)
class SortColumn:
    """
    Назначение:
        Одно правило сортировки: поле и направление.
    """

    column_key: str
    direction: SortDirection = SortDirection.ASC


SortSpec = tuple[SortColumn, ...]


@dataclass(frozen=True)
class TaskSuccess:
    update: PartialUpdate

    @property
    def record_id(self) -> Any:
        return self.update.record_id

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class TaskFailure:
    """
    Назначение:
        Результат задачи обогащения, не давшей обновления.
    Инварианты/гарантии:
        - Никогда не изменяет хранилище.
    """

    record_id: Any
    code: ErrorCode
    message: str
    details: Mapping[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return False


TaskResult = Union[TaskSuccess, TaskFailure]


@dataclass
class RunSummary:
    """
    Назначение:
        Итог одного прогона планировщика.
    Инварианты/гарантии:
        - set(succeeded) | set(failed ids) | set(dropped) == все поданные id.
        - max_outstanding <= limit.
    """

    limit: int
    total: int = 0
    launched: list[Any] = field(default_factory=list)
    succeeded: list[Any] = field(default_factory=list)
    failed: list[TaskFailure] = field(default_factory=list)
    dropped: list[Any] = field(default_factory=list)
    max_outstanding: int = 0

    @property
    def failed_ids(self) -> list[Any]:
        return [f.record_id for f in self.failed]

    @property
    def settled(self) -> int:
        return len(self.succeeded) + len(self.failed) + len(self.dropped)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.dropped
