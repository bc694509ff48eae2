from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

from gridsync.domain.models import Record

_SCALAR_TYPES = (str, int, float, bool, type(None))


class RecordsFormatError(ValueError):
    """Файл записей не соответствует формату [{"id": ..., ...}, ...]."""


def parse_records(data: Any) -> list[Record]:
    """
    Назначение:
        Преобразует JSON-массив объектов в список Record.
    Ограничения:
        - У каждого объекта обязателен id, id уникальны.
        - Значения полей: str | int | float | bool | null.
    Ошибки/исключения:
        RecordsFormatError.
    """
    if not isinstance(data, list):
        raise RecordsFormatError("Records file must contain a JSON array")
    records: list[Record] = []
    seen: set[Any] = set()
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise RecordsFormatError(f"Item #{index} is not an object")
        if "id" not in item or item["id"] is None:
            raise RecordsFormatError(f"Item #{index} has no id")
        record_id = item["id"]
        if isinstance(record_id, (dict, list)):
            raise RecordsFormatError(f"Item #{index} has non-scalar id")
        if record_id in seen:
            raise RecordsFormatError(f"Duplicate record id: {record_id!r}")
        seen.add(record_id)
        fields = {k: v for k, v in item.items() if k != "id"}
        for key, value in fields.items():
            if not isinstance(value, _SCALAR_TYPES):
                raise RecordsFormatError(f"Item #{index} field '{key}' is not a scalar value")
        records.append(Record(id=record_id, fields=fields))
    return records


def read_records_json(path: str) -> list[Record]:
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except ValueError as exc:
            raise RecordsFormatError(f"Invalid JSON in {path}: {exc}") from exc
    return parse_records(data)


def write_records_json(records: Iterable[Record], path: str) -> str:
    """
    Назначение:
        Записывает записи JSON-массивом (id первым ключом).
    Выходные данные:
        str: путь к файлу.
    """
    target = Path(path)
    if target.parent:
        target.parent.mkdir(parents=True, exist_ok=True)
    payload = [record.to_dict() for record in records]
    with target.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
    return str(target)
