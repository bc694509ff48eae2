from .schema import DEMO_SCHEMA, ColumnSchema, FieldType, parse_schema
from .comparator import Comparator, compare_values, get_comparator
from .sorter import parse_sort_spec, sort_records

__all__ = [
    "DEMO_SCHEMA",
    "ColumnSchema",
    "FieldType",
    "parse_schema",
    "Comparator",
    "compare_values",
    "get_comparator",
    "parse_sort_spec",
    "sort_records",
]
