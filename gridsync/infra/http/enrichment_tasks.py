from __future__ import annotations

import json
from typing import Any, Mapping

from gridsync.domain.error_codes import ErrorCode
from gridsync.domain.models import FieldValue, PartialUpdate, Record, TaskFailure, TaskResult, TaskSuccess
from gridsync.errors import AppError
from gridsync.infra.http.enrichment_client import ApiError, EnrichmentApiClient
from gridsync.infra.http.url_utils import build_search_url, clean_profile_url


class PayloadError(AppError):
    """Ответ сервиса разобран, но не содержит ожидаемых данных."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.MISSING_FIELD):
        super().__init__(category="payload", code=code.value, message=message)


# ключ ответа профиля -> поле записи
PROFILE_FIELD_MAP: dict[str, str] = {
    "imageUrl": "linkedinImageUrl",
    "headline": "linkedinHeadline",
    "companyOrSchool": "companyOrSchool",
    "companyOrSchoolLink": "companyOrSchoolLink",
}


def extract_profile_fields(data: Any) -> dict[str, FieldValue]:
    """
    Назначение:
        Достаёт поля профиля из ответа вида {"data": "<JSON-строка со списком>"}.
    Алгоритм:
        - data["data"] может быть JSON-строкой или уже списком.
        - Берётся первый элемент; переносятся только присутствующие ключи PROFILE_FIELD_MAP.
    Ошибки/исключения:
        PayloadError (MISSING_FIELD | INVALID_JSON).
    """
    if not isinstance(data, dict) or not data.get("data"):
        raise PayloadError("Profile response has no data")
    items = data["data"]
    if isinstance(items, str):
        try:
            items = json.loads(items)
        except ValueError:
            raise PayloadError("Profile data is not valid JSON", code=ErrorCode.INVALID_JSON) from None
    if not isinstance(items, list) or not items or not isinstance(items[0], dict):
        raise PayloadError("Profile data has no items")
    first = items[0]
    return {
        target: first[source]
        for source, target in PROFILE_FIELD_MAP.items()
        if first.get(source) is not None
    }


def extract_coordinates(data: Any) -> dict[str, FieldValue]:
    """
    Назначение:
        {"latitude": .., "longitude": ..} -> {"latLon": "<lat>, <lon>"}.
    """
    if not isinstance(data, dict) or data.get("latitude") is None or data.get("longitude") is None:
        raise PayloadError("No results found for the specified country")
    return {"latLon": f"{data['latitude']}, {data['longitude']}"}


def extract_client_link(data: Any) -> dict[str, FieldValue]:
    """
    Назначение:
        {"data": [{"link": ..}, ..]} -> {"linkedin": link первого результата}.
    """
    items = data.get("data") if isinstance(data, dict) else None
    if not isinstance(items, list) or not items or not isinstance(items[0], dict):
        raise PayloadError("Search response has no results")
    link = items[0].get("link")
    if not isinstance(link, str) or not link:
        raise PayloadError("First search result has no link")
    return {"linkedin": link}


class HttpEnrichmentTask:
    """
    Назначение/ответственность:
        Базовая задача обогащения: значение поля записи -> GET поиска -> PartialUpdate.
    Инварианты/гарантии:
        - Никогда не бросает: все ошибки возвращаются как TaskFailure.
        - PartialUpdate собирается после последнего await и возвращается целиком.
    """

    name = "http"
    source_field = ""

    def __init__(self, client: EnrichmentApiClient, search_url: str) -> None:
        if not search_url:
            raise ValueError(f"search url is required for '{self.name}' enrichment")
        self.client = client
        self.search_url = search_url

    def search_term(self, value: str) -> str:
        return value

    def display_value(self, value: str) -> str:
        # как исходное значение показывается в диагностике и отчёте
        return value

    def extract(self, data: Any) -> Mapping[str, FieldValue]:
        raise NotImplementedError

    async def __call__(self, record: Record) -> TaskResult:
        value = record.get(self.source_field)
        if not isinstance(value, str) or not value.strip():
            return TaskFailure(
                record_id=record.id,
                code=ErrorCode.SOURCE_VALUE_MISSING,
                message=f"No {self.source_field} value for record {record.id!r}, skipping",
                details={"field": self.source_field},
            )

        url = build_search_url(self.search_url, self.search_term(value.strip()))
        try:
            data = await self.client.getJson(url)
        except ApiError as err:
            return TaskFailure(
                record_id=record.id,
                code=ErrorCode.from_api_code(err.code),
                message=err.message,
                details={
                    "source_value": self.display_value(value.strip()),
                    "status_code": err.status_code,
                    "body_snippet": err.body_snippet,
                },
            )

        try:
            fields = self.extract(data)
        except PayloadError as err:
            return TaskFailure(
                record_id=record.id,
                code=ErrorCode(err.code),
                message=err.message,
                details={"task": self.name, "source_value": self.display_value(value.strip())},
            )
        return TaskSuccess(PartialUpdate(record_id=record.id, fields=fields))


class ProfileEnrichmentTask(HttpEnrichmentTask):
    name = "profile"
    source_field = "linkedin"

    def display_value(self, value: str) -> str:
        return clean_profile_url(value)

    def extract(self, data: Any) -> Mapping[str, FieldValue]:
        return extract_profile_fields(data)


class CoordinatesEnrichmentTask(HttpEnrichmentTask):
    name = "coordinates"
    source_field = "country"

    def extract(self, data: Any) -> Mapping[str, FieldValue]:
        return extract_coordinates(data)


class ClientLinkEnrichmentTask(HttpEnrichmentTask):
    name = "client-link"
    source_field = "client"

    def search_term(self, value: str) -> str:
        return f"{value} linkedin.com"

    def extract(self, data: Any) -> Mapping[str, FieldValue]:
        return extract_client_link(data)


TASK_TYPES: dict[str, type[HttpEnrichmentTask]] = {
    ProfileEnrichmentTask.name: ProfileEnrichmentTask,
    CoordinatesEnrichmentTask.name: CoordinatesEnrichmentTask,
    ClientLinkEnrichmentTask.name: ClientLinkEnrichmentTask,
}


def build_task(source: str, client: EnrichmentApiClient, search_url: str | None) -> HttpEnrichmentTask:
    """
    Назначение:
        Фабрика задачи по имени источника (profile | coordinates | client-link).
    Ошибки/исключения:
        ValueError: неизвестный источник или не задан URL сервиса.
    """
    task_type = TASK_TYPES.get(source)
    if task_type is None:
        raise ValueError(f"Unsupported enrichment source: {source}")
    return task_type(client, search_url or "")
