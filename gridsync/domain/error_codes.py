from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """
    Назначение:
        Единая таксономия кодов ошибок обогащения, хранилища и сортировки.
    """

    NETWORK_ERROR = "NETWORK_ERROR"
    HTTP_ERROR = "HTTP_ERROR"
    INVALID_JSON = "INVALID_JSON"
    MISSING_FIELD = "MISSING_FIELD"
    SOURCE_VALUE_MISSING = "SOURCE_VALUE_MISSING"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"
    RECORD_NOT_FOUND = "RECORD_NOT_FOUND"
    DUPLICATE_RECORD = "DUPLICATE_RECORD"
    UNSUPPORTED_SORT_KEY = "UNSUPPORTED_SORT_KEY"

    @classmethod
    def from_api_code(cls, code: str | None) -> "ErrorCode":
        """
        Назначение:
            Подбор кода по строковому коду ApiError (HTTP_*, NETWORK_ERROR, ...).
        """
        if not code:
            return cls.UNEXPECTED_ERROR
        if code == "NETWORK_ERROR":
            return cls.NETWORK_ERROR
        if code == "TIMEOUT":
            return cls.TIMEOUT
        if code == "INVALID_JSON":
            return cls.INVALID_JSON
        if code.startswith("HTTP_"):
            return cls.HTTP_ERROR
        return cls.UNEXPECTED_ERROR
