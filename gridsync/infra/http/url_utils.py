from __future__ import annotations

from urllib.parse import quote, urlsplit


def clean_profile_url(url: str) -> str:
    """
    Назначение:
        Короткое отображение ссылки профиля: host без "www." + путь.
        Если строка не разбирается как абсолютный URL, возвращается как есть.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.scheme or not parts.hostname:
        return url
    hostname = parts.hostname
    if hostname.startswith("www."):
        hostname = hostname[len("www."):]
    return f"{hostname}{parts.path or '/'}"


def build_search_url(base_url: str, term: str) -> str:
    """
    Назначение:
        Подставляет закодированный поисковый терм в конец базового URL сервиса.
    """
    return f"{base_url}{quote(term, safe='')}"
