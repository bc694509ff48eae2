from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit


def truncateText(value: str | None, limit: int = 500) -> str | None:
    """
    Назначение:
        Ограничивает длину текста ошибок/тел ответов, чтобы не раздувать логи и отчёты.

    Входные данные:
        value: str | None
        limit: int
            Максимальная длина результата.

    Выходные данные:
        str | None
    """
    if value is None:
        return None
    if len(value) <= limit:
        return value
    suffix = "..." if limit > 3 else ""
    return value[: limit - len(suffix)] + suffix


def stripUrlQuery(url: str | None) -> str | None:
    """
    Назначение:
        Убирает query/fragment из URL сервиса для безопасного вывода
        (ключи сервисов поиска часто передаются в query).
    """
    if url is None:
        return None
    parts = urlsplit(url)
    if not parts.scheme:
        return url
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
