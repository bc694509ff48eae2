from __future__ import annotations

from enum import Enum
from typing import Mapping


class FieldType(str, Enum):
    """
    Назначение:
        Объявленный тип колонки, по которому выбирается функция сравнения.
    """

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"


ColumnSchema = Mapping[str, FieldType]

DEMO_SCHEMA: ColumnSchema = {
    "id": FieldType.NUMBER,
    "title": FieldType.STRING,
    "client": FieldType.STRING,
    "linkedin": FieldType.STRING,
    "country": FieldType.STRING,
    "contact": FieldType.STRING,
    "assignee": FieldType.STRING,
    "progress": FieldType.NUMBER,
    "available": FieldType.BOOLEAN,
}


def parse_schema(raw: Mapping[str, str]) -> dict[str, FieldType]:
    """
    Назначение:
        Строит схему из словаря вида {"progress": "number", ...} (например, из config.yml).
    Ошибки/исключения:
        ValueError: неизвестный тип колонки.
    """
    schema: dict[str, FieldType] = {}
    for key, type_name in raw.items():
        value = str(type_name).strip().lower()
        try:
            schema[str(key)] = FieldType(value)
        except ValueError:
            raise ValueError(f"Unsupported column type for '{key}': {type_name}") from None
    return schema
