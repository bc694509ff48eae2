from __future__ import annotations

from typing import Any

import httpx

from gridsync.common.sanitize import stripUrlQuery, truncateText
from gridsync.errors import AppError


class ApiError(AppError):
    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body_snippet: str | None = None,
        retryable: bool = False,
        details: dict | None = None,
        code: str | None = None,
    ):
        """
        Назначение:
            Исключение HTTP/API уровня EnrichmentApiClient.
        Контракт:
            - code: HTTP_<status>, NETWORK_ERROR, TIMEOUT, INVALID_JSON.
            - status_code/body_snippet используются для диагностики.
        """
        super().__init__(
            category="api",
            code=code or (f"HTTP_{status_code}" if status_code else "API_ERROR"),
            message=message,
            retryable=retryable,
            details=details or {},
        )
        self.status_code = status_code
        self.body_snippet = body_snippet


class EnrichmentApiClient:
    """
    Назначение/ответственность:
        Асинхронный JSON-клиент сервисов обогащения (поиск профиля, координат, ссылки клиента).
    Ограничения:
        - Одна попытка на запрос: ретраев, кэша и аутентификации нет.
        - Один httpx.AsyncClient на прогон, закрывается через aclose()/async with.
    """

    def __init__(
        self,
        timeoutSeconds: float = 20.0,
        tlsSkipVerify: bool = False,
        caFile: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        verify: bool | str = True
        if tlsSkipVerify:
            verify = False
        elif caFile:
            verify = caFile

        self.timeoutSeconds = timeoutSeconds
        self.requests_total = 0
        self.client = httpx.AsyncClient(
            timeout=timeoutSeconds,
            verify=verify,
            transport=transport,
            headers={"accept": "application/json"},
        )

    async def __aenter__(self) -> "EnrichmentApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def getJson(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """
        Назначение:
            GET по абсолютному URL и разбор JSON.
        Ошибки/исключения:
            ApiError с code TIMEOUT | NETWORK_ERROR | HTTP_<status> | INVALID_JSON.
        """
        self.requests_total += 1
        safe_url = stripUrlQuery(url)
        try:
            resp = await self.client.get(url, params=params)
        except httpx.TimeoutException as exc:
            raise ApiError(f"Timeout calling {safe_url}", code="TIMEOUT") from exc
        except httpx.TransportError as exc:
            raise ApiError(f"Network error calling {safe_url}: {exc}", code="NETWORK_ERROR") from exc

        if not 200 <= resp.status_code <= 299:
            body_snippet = truncateText(resp.text, 200) if resp.text else None
            raise ApiError(
                f"HTTP {resp.status_code} from {safe_url}",
                status_code=resp.status_code,
                body_snippet=body_snippet,
                retryable=resp.status_code == 429 or resp.status_code >= 500,
                details={"body_snippet": body_snippet},
            )

        try:
            return resp.json()
        except ValueError as exc:
            raise ApiError(
                "Invalid JSON response",
                status_code=resp.status_code,
                code="INVALID_JSON",
            ) from exc
