from __future__ import annotations

from functools import cmp_to_key
from typing import Iterable, Sequence

from gridsync.domain.models import Record, SortColumn, SortDirection, SortSpec
from gridsync.domain.sorting.comparator import Comparator, get_comparator
from gridsync.domain.sorting.schema import ColumnSchema


def sort_records(
    records: Iterable[Record],
    spec: Sequence[SortColumn],
    schema: ColumnSchema,
) -> list[Record]:
    """
    Назначение:
        Многоключевая стабильная сортировка записей.

    Входные данные:
        records: Iterable[Record]
            Записи (например, снапшот RecordStore). Не изменяются.
        spec: Sequence[SortColumn]
            Правила сортировки; первое правило: главный ключ.
        schema: ColumnSchema
            Объявленные типы колонок.

    Выходные данные:
        list[Record]
            Новый список; при пустом spec: исходный порядок.

    Алгоритм:
        - Все компараторы строятся заранее: неизвестная колонка даёт
          UnsupportedSortKeyError до начала сортировки.
        - Для пары записей правила перебираются по порядку, первое ненулевое
          сравнение (с учётом направления) определяет порядок.
        - sorted() стабилен, равные записи сохраняют исходный порядок.
    """
    rows = list(records)
    if not spec:
        return rows

    chain: list[tuple[Comparator, SortDirection]] = [
        (get_comparator(column.column_key, schema), column.direction) for column in spec
    ]

    def compare(a: Record, b: Record) -> int:
        for comparator, direction in chain:
            result = comparator(a, b)
            if result != 0:
                return result if direction is SortDirection.ASC else -result
        return 0

    return sorted(rows, key=cmp_to_key(compare))


def parse_sort_spec(raw: str | None) -> SortSpec:
    """
    Назначение:
        Разбирает строку вида "country:asc,progress:desc" в SortSpec.
    Ошибки/исключения:
        ValueError: пустое имя колонки или неизвестное направление.
    """
    if raw is None or raw.strip() == "":
        return ()
    columns: list[SortColumn] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        key, _, direction_raw = part.partition(":")
        key = key.strip()
        if not key:
            raise ValueError(f"Empty sort column in '{raw}'")
        direction_value = (direction_raw.strip() or "ASC").upper()
        try:
            direction = SortDirection(direction_value)
        except ValueError:
            raise ValueError(f"Unsupported sort direction: {direction_raw}") from None
        columns.append(SortColumn(column_key=key, direction=direction))
    return tuple(columns)
