from __future__ import annotations

import locale
import unicodedata
from typing import Callable

from gridsync.domain.exceptions import UnsupportedSortKeyError
from gridsync.domain.models import FieldValue, Record
from gridsync.domain.sorting.schema import ColumnSchema, FieldType

Comparator = Callable[[Record, Record], int]


def _sign(value: float) -> int:
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


def _is_number(value: FieldValue) -> bool:
    # bool наследуется от int, но числом для сортировки не считается
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _collation_key(value: str) -> tuple[str, str, str]:
    # уровни: базовые буквы без диакритики и регистра, затем диакритика, затем регистр
    composed = unicodedata.normalize("NFC", value)
    folded = composed.casefold()
    base = "".join(
        ch for ch in unicodedata.normalize("NFKD", folded) if not unicodedata.combining(ch)
    )
    return locale.strxfrm(base), locale.strxfrm(folded), locale.strxfrm(composed)


def compare_strings(a: str, b: str) -> int:
    """
    Назначение:
        Сравнение строк с учётом локали (LC_COLLATE).
    Алгоритм:
        - Сначала по базовым буквам: без учёта регистра и диакритики ("Égypte" < "Zambia").
        - Затем по диакритике, затем по регистру.
    """
    key_a = _collation_key(a)
    key_b = _collation_key(b)
    return (key_a > key_b) - (key_a < key_b)


def compare_numbers(a: float, b: float) -> int:
    return _sign(a - b)


def compare_booleans(a: bool, b: bool) -> int:
    # False < True
    return int(a) - int(b)


def compare_values(field_type: FieldType, a: FieldValue, b: FieldValue) -> int:
    """
    Контракт (вход/выход):
        Вход: объявленный тип колонки и два значения.
        Выход: <0, 0, >0.
    Алгоритм:
        - Значения, не соответствующие объявленному типу (в том числе None), считаются равными.
    """
    if field_type is FieldType.STRING:
        if isinstance(a, str) and isinstance(b, str):
            return compare_strings(a, b)
        return 0
    if field_type is FieldType.NUMBER:
        if _is_number(a) and _is_number(b):
            return compare_numbers(a, b)
        return 0
    if field_type is FieldType.BOOLEAN:
        if isinstance(a, bool) and isinstance(b, bool):
            return compare_booleans(a, b)
        return 0
    raise ValueError(f"Unsupported field type: {field_type}")


def get_comparator(column_key: str, schema: ColumnSchema) -> Comparator:
    """
    Назначение:
        Возвращает функцию сравнения двух записей по колонке.
    Ошибки/исключения:
        UnsupportedSortKeyError: колонки нет в схеме.
    """
    field_type = schema.get(column_key)
    if field_type is None:
        raise UnsupportedSortKeyError(column_key)

    def comparator(a: Record, b: Record) -> int:
        return compare_values(field_type, a.get(column_key), b.get(column_key))

    return comparator
