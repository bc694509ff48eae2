from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from gridsync.domain.enrichment import EnrichmentScheduler
from gridsync.domain.error_codes import ErrorCode
from gridsync.domain.models import Record, TaskFailure, TaskSuccess
from gridsync.domain.store.record_store import RecordStore
from gridsync.infra.http import (
    ApiError,
    ClientLinkEnrichmentTask,
    CoordinatesEnrichmentTask,
    EnrichmentApiClient,
    ProfileEnrichmentTask,
    build_task,
    clean_profile_url,
)


def make_client(responder) -> EnrichmentApiClient:
    return EnrichmentApiClient(timeoutSeconds=1, transport=httpx.MockTransport(responder))


def run_task(task_factory, responder, record: Record):
    async def scenario():
        async with make_client(responder) as client:
            return await task_factory(client)(record)

    return asyncio.run(scenario())


def test_profile_task_maps_first_item_fields():
    seen_urls: list[str] = []

    def responder(request: httpx.Request) -> httpx.Response:
        seen_urls.append(str(request.url))
        items = [{"imageUrl": "https://img/1.png", "headline": "CTO", "companyOrSchool": "Acme"}]
        return httpx.Response(200, json={"data": json.dumps(items)})

    record = Record(id=7, fields={"linkedin": "https://www.linkedin.com/in/jdoe"})
    result = run_task(lambda c: ProfileEnrichmentTask(c, "https://search.local/profile?url="), responder, record)

    assert isinstance(result, TaskSuccess)
    assert result.update.record_id == 7
    assert dict(result.update.fields) == {
        "linkedinImageUrl": "https://img/1.png",
        "linkedinHeadline": "CTO",
        "companyOrSchool": "Acme",
    }
    assert "https%3A%2F%2Fwww.linkedin.com%2Fin%2Fjdoe" in seen_urls[0]


def test_profile_task_without_url_fails_without_request():
    calls: list = []

    def responder(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    result = run_task(lambda c: ProfileEnrichmentTask(c, "https://search.local/p/"), responder, Record(id=1, fields={"linkedin": ""}))

    assert isinstance(result, TaskFailure)
    assert result.code == ErrorCode.SOURCE_VALUE_MISSING
    assert calls == []


def test_profile_task_invalid_embedded_json():
    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": "not-json"})

    result = run_task(lambda c: ProfileEnrichmentTask(c, "https://s/"), responder, Record(id=1, fields={"linkedin": "x"}))

    assert isinstance(result, TaskFailure)
    assert result.code == ErrorCode.INVALID_JSON


def test_coordinates_task_builds_lat_lon():
    def responder(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith("/Chad")
        return httpx.Response(200, json={"latitude": 15.45, "longitude": 18.73})

    result = run_task(lambda c: CoordinatesEnrichmentTask(c, "https://geo.local/latlon/"), responder, Record(id=2, fields={"country": "Chad"}))

    assert isinstance(result, TaskSuccess)
    assert dict(result.update.fields) == {"latLon": "15.45, 18.73"}


def test_coordinates_task_missing_latitude():
    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"results": []})

    result = run_task(lambda c: CoordinatesEnrichmentTask(c, "https://geo.local/"), responder, Record(id=2, fields={"country": "Atlantis"}))

    assert isinstance(result, TaskFailure)
    assert result.code == ErrorCode.MISSING_FIELD


def test_client_link_task_searches_with_suffix():
    seen: list[str] = []

    def responder(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json={"data": [{"link": "https://linkedin.com/company/acme"}]})

    result = run_task(lambda c: ClientLinkEnrichmentTask(c, "https://search.local/?q="), responder, Record(id=3, fields={"client": "Acme Inc"}))

    assert isinstance(result, TaskSuccess)
    assert dict(result.update.fields) == {"linkedin": "https://linkedin.com/company/acme"}
    assert "Acme%20Inc%20linkedin.com" in seen[0]


def test_http_error_status_becomes_failure():
    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    result = run_task(lambda c: CoordinatesEnrichmentTask(c, "https://geo.local/"), responder, Record(id=1, fields={"country": "Chad"}))

    assert isinstance(result, TaskFailure)
    assert result.code == ErrorCode.HTTP_ERROR
    assert result.details["status_code"] == 503
    assert result.details["source_value"] == "Chad"


def test_profile_failure_shows_short_profile_link():
    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    record = Record(id=4, fields={"linkedin": "https://www.linkedin.com/in/jdoe?trk=share"})
    result = run_task(lambda c: ProfileEnrichmentTask(c, "https://search.local/p/"), responder, record)

    assert isinstance(result, TaskFailure)
    assert result.details["source_value"] == "linkedin.com/in/jdoe"


def test_network_error_becomes_failure():
    def responder(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = run_task(lambda c: CoordinatesEnrichmentTask(c, "https://geo.local/"), responder, Record(id=1, fields={"country": "Chad"}))

    assert isinstance(result, TaskFailure)
    assert result.code == ErrorCode.NETWORK_ERROR


def test_client_get_json_invalid_json():
    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="not-json")

    async def scenario():
        async with make_client(responder) as client:
            await client.getJson("https://api.local/x")

    with pytest.raises(ApiError) as excinfo:
        asyncio.run(scenario())
    assert excinfo.value.code == "INVALID_JSON"
    assert not excinfo.value.retryable


def test_scheduler_with_http_task_isolates_failures():
    def responder(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/Nowhere"):
            return httpx.Response(404, text="not found")
        return httpx.Response(200, json={"latitude": 1, "longitude": 2})

    records = [
        Record(id=1, fields={"country": "France"}),
        Record(id=2, fields={"country": "Nowhere"}),
        Record(id=3, fields={"country": "Chad"}),
        Record(id=4, fields={}),
    ]
    store = RecordStore(records)

    async def scenario():
        async with make_client(responder) as client:
            task = build_task("coordinates", client, "https://geo.local/")
            return await EnrichmentScheduler(store).run(store.records(), task, 2)

    summary = asyncio.run(scenario())

    assert sorted(summary.succeeded) == [1, 3]
    assert {f.record_id: f.code for f in summary.failed} == {
        2: ErrorCode.HTTP_ERROR,
        4: ErrorCode.SOURCE_VALUE_MISSING,
    }
    assert store.get(1).get("latLon") == "1, 2"
    assert store.get(2).get("latLon") is None


def test_build_task_rejects_unknown_source_and_missing_url():
    async def scenario():
        async with make_client(lambda r: httpx.Response(200)) as client:
            with pytest.raises(ValueError):
                build_task("weather", client, "https://x/")
            with pytest.raises(ValueError):
                build_task("profile", client, None)

    asyncio.run(scenario())


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://www.linkedin.com/in/jdoe", "linkedin.com/in/jdoe"),
        ("https://linkedin.com/company/acme/", "linkedin.com/company/acme/"),
        ("https://example.com", "example.com/"),
        ("not a url", "not a url"),
    ],
)
def test_clean_profile_url(url, expected):
    assert clean_profile_url(url) == expected
