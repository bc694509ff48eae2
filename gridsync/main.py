from __future__ import annotations

import asyncio
import locale
import logging
import sys
import time
from pathlib import Path

import typer

from gridsync.common.run_id import generate_run_id
from gridsync.common.sanitize import stripUrlQuery
from gridsync.common.time import getDurationMs
from gridsync.config import Settings, load_settings
from gridsync.domain.exceptions import UnsupportedSortKeyError
from gridsync.domain.sorting import DEMO_SCHEMA, parse_schema, parse_sort_spec
from gridsync.domain.store.record_store import RecordStore
from gridsync.infra.artifacts.report_writer import createEmptyReport, finalizeReport, writeReportJson
from gridsync.infra.http.enrichment_client import EnrichmentApiClient
from gridsync.infra.http.enrichment_tasks import TASK_TYPES, build_task
from gridsync.infra.sources.records_json import RecordsFormatError, read_records_json, write_records_json
from gridsync.loggingSetup import StdStreamToLogger, TeeStream, closeCommandLogger, createCommandLogger, logEvent
from gridsync.usecases.enrich_usecase import EnrichUseCase
from gridsync.usecases.sort_usecase import SortUseCase

app = typer.Typer(no_args_is_help=True, add_completion=False)

SOURCE_URL_SETTINGS = {
    "profile": "profile_search_url",
    "coordinates": "latlon_search_url",
    "client-link": "client_search_url",
}


def ensureDir(path: str) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def requireInput(inputPath: str | None) -> None:
    """
    Назначение:
        Проверка наличия входного JSON-файла записей.

    Поведение:
        - Если путь не задан или файла нет: exit code 2.
    """
    if not inputPath:
        typer.echo("ERROR: --input is required", err=True)
        raise typer.Exit(code=2)
    p = Path(inputPath)
    if not p.exists() or not p.is_file():
        typer.echo(f"ERROR: input file not found: {inputPath}", err=True)
        raise typer.Exit(code=2)


def printRunHeader(runId: str, command: str, settings: Settings, sources: list[str]) -> None:
    """
    Назначение:
        Печатает сводку параметров запуска (URL сервисов без query).
    """
    typer.echo(
        f"run_id={runId} command={command} "
        f"concurrency_limit={settings.concurrency_limit} timeout_seconds={settings.timeout_seconds} "
        f"profile_search_url={stripUrlQuery(settings.profile_search_url)} "
        f"latlon_search_url={stripUrlQuery(settings.latlon_search_url)} "
        f"client_search_url={stripUrlQuery(settings.client_search_url)} "
        f"sources={sources} log_level={settings.log_level}"
    )


def runWithReport(
    ctx: typer.Context,
    commandName: str,
    inputPath: str | None,
    runner,
) -> None:
    """
    Назначение:
        Обвязка выполнения команды:
        - логгер команды + файл лога
        - скелет отчёта
        - проверка входного файла
        - tee stdout/stderr в лог
        - запись отчёта в finally

    Выходные данные:
        None (завершает процесс typer.Exit с кодом runner'а).
    """
    runId = ctx.obj["runId"]
    settings: Settings = ctx.obj["settings"]
    sources = ctx.obj["sources"]

    startMonotonic = time.monotonic()

    logger, logFilePath = createCommandLogger(
        commandName=commandName,
        logDir=settings.log_dir,
        runId=runId,
        logLevel=settings.log_level,
    )

    report = createEmptyReport(runId=runId, command=commandName, configSources=sources)
    report.meta.input_path = inputPath
    report.meta.items_limit = settings.report_items_limit

    originalStdout = sys.stdout
    originalStderr = sys.stderr
    sys.stdout = TeeStream(originalStdout, StdStreamToLogger(logger, logging.INFO, runId, "stdout"))
    sys.stderr = TeeStream(originalStderr, StdStreamToLogger(logger, logging.ERROR, runId, "stderr"))

    exitCode: int | None = None

    try:
        logEvent(logger, logging.INFO, runId, "core", "Command started")
        printRunHeader(runId, commandName, settings, sources)

        try:
            requireInput(inputPath)
        except typer.Exit:
            logEvent(logger, logging.ERROR, runId, "input", "Input file is missing or not accessible")
            exitCode = 2
            return

        exitCode = runner(logger, report)

    finally:
        durationMs = getDurationMs(startMonotonic, time.monotonic())
        finalizeReport(report=report, durationMs=durationMs, logFile=logFilePath, reportDir=settings.report_dir)
        reportPath = writeReportJson(report, settings.report_dir, f"report_{commandName}_{runId}")
        logEvent(logger, logging.INFO, runId, "report", f"Report written: {reportPath}")

        sys.stdout.flush()
        sys.stderr.flush()
        sys.stdout = originalStdout
        sys.stderr = originalStderr
        closeCommandLogger(logger)

        if exitCode is not None:
            raise typer.Exit(code=exitCode)


def loadStore(inputPath: str, logger: logging.Logger, runId: str) -> RecordStore | None:
    try:
        records = read_records_json(inputPath)
    except RecordsFormatError as exc:
        logEvent(logger, logging.ERROR, runId, "input", f"Records format error: {exc}")
        typer.echo(f"ERROR: records format error: {exc}", err=True)
        return None
    except OSError as exc:
        logEvent(logger, logging.ERROR, runId, "input", f"Records read error: {exc}")
        typer.echo(f"ERROR: records read error: {exc}", err=True)
        return None
    return RecordStore(records, logger=logger)


def runEnrichCommand(
    ctx: typer.Context,
    inputPath: str | None,
    outputPath: str | None,
    source: str,
    concurrency: int | None,
    taskTimeoutSeconds: float | None,
    reportItemsSuccess: bool,
    apiTransport=None,
) -> None:
    settings: Settings = ctx.obj["settings"]
    runId = ctx.obj["runId"]

    def execute(logger, report) -> int:
        if source not in TASK_TYPES:
            typer.echo(f"ERROR: unsupported source: {source} (expected: {', '.join(TASK_TYPES)})", err=True)
            return 2
        searchUrl = getattr(settings, SOURCE_URL_SETTINGS[source])
        if not searchUrl:
            logEvent(logger, logging.ERROR, runId, "config", f"Missing {SOURCE_URL_SETTINGS[source]}")
            typer.echo(f"ERROR: missing setting {SOURCE_URL_SETTINGS[source]} for source {source}", err=True)
            return 2
        limit = concurrency if concurrency is not None else settings.concurrency_limit
        if limit < 1:
            typer.echo(f"ERROR: --concurrency must be >= 1, got {limit}", err=True)
            return 2

        store = loadStore(inputPath, logger, runId)
        if store is None:
            return 2

        usecase = EnrichUseCase(
            concurrency_limit=limit,
            task_timeout_seconds=taskTimeoutSeconds or settings.task_timeout_seconds,
            include_ok_items=reportItemsSuccess,
        )

        async def enrichAll() -> int:
            async with EnrichmentApiClient(
                timeoutSeconds=settings.timeout_seconds,
                tlsSkipVerify=settings.tls_skip_verify,
                caFile=settings.ca_file,
                transport=apiTransport,
            ) as client:
                task = build_task(source, client, searchUrl)
                return await usecase.run(store, task, logger, runId, report, source=source)

        code = asyncio.run(enrichAll())

        target = outputPath or inputPath
        writtenPath = write_records_json(store.records(), target)
        report.meta.output_path = writtenPath
        typer.echo(
            f"enriched ok={report.summary.rows_passed} failed={report.summary.rows_blocked} "
            f"dropped={report.summary.rows_dropped} output={writtenPath}"
        )
        return code

    runWithReport(ctx=ctx, commandName="enrich", inputPath=inputPath, runner=execute)


def runSortCommand(
    ctx: typer.Context,
    inputPath: str | None,
    outputPath: str | None,
    sortBy: str | None,
) -> None:
    settings: Settings = ctx.obj["settings"]
    runId = ctx.obj["runId"]

    def execute(logger, report) -> int:
        try:
            spec = parse_sort_spec(sortBy)
            schema = parse_schema(settings.sort_schema) if settings.sort_schema else DEMO_SCHEMA
        except ValueError as exc:
            typer.echo(f"ERROR: {exc}", err=True)
            return 2

        logEvent(logger, logging.INFO, runId, "sort", f"collation locale={ctx.obj.get('collation', 'C')}")
        store = loadStore(inputPath, logger, runId)
        if store is None:
            return 2

        try:
            ordered = SortUseCase(schema).run(store.records(), spec, logger, runId, report)
        except UnsupportedSortKeyError as exc:
            logEvent(logger, logging.ERROR, runId, "sort", str(exc))
            typer.echo(f"ERROR: {exc}", err=True)
            return 2

        if outputPath:
            report.meta.output_path = write_records_json(ordered, outputPath)
        typer.echo(" ".join(str(r.id) for r in ordered))
        return 0

    runWithReport(ctx=ctx, commandName="sort", inputPath=inputPath, runner=execute)


def activateCollationLocale() -> str:
    """
    Назначение:
        Включает пользовательскую локаль (LANG/LC_*) для сравнения строк при сортировке.

    Поведение:
        - Если локаль из окружения недоступна, остаётся "C"; буквы с диакритикой всё равно
          сортируются рядом с базовой буквой (см. compare_strings).
    """
    try:
        return locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error:
        return locale.setlocale(locale.LC_COLLATE, None) or "C"


@app.callback()
def main(
    ctx: typer.Context,
    config: str | None = typer.Option(None, "--config", help="Path to config.yml"),
    runId: str | None = typer.Option(None, "--run-id", help="Run identifier. If omitted, generated."),
    logLevel: str | None = typer.Option(None, "--log-level", help="Log level: ERROR|WARN|INFO|DEBUG"),
    logDir: str | None = typer.Option(None, "--log-dir", help="Directory for logs."),
    reportDir: str | None = typer.Option(None, "--report-dir", help="Directory for reports."),
    concurrencyLimit: int | None = typer.Option(None, "--concurrency", help="Max simultaneous enrichment requests"),
    timeoutSeconds: float | None = typer.Option(None, "--timeout-seconds", help="HTTP timeout in seconds"),
    profileSearchUrl: str | None = typer.Option(None, "--profile-search-url", help="Profile search service URL prefix"),
    latlonSearchUrl: str | None = typer.Option(None, "--latlon-search-url", help="Coordinates search service URL prefix"),
    clientSearchUrl: str | None = typer.Option(None, "--client-search-url", help="Client link search service URL prefix"),
    tlsSkipVerify: bool | None = typer.Option(None, "--tls-skip-verify", help="Disable TLS verification"),
    caFile: str | None = typer.Option(None, "--ca-file", help="CA file path"),
    reportItemsLimit: int | None = typer.Option(None, "--report-items-limit", help="Limit report items stored"),
):
    """
    Назначение:
        Глобальная инициализация CLI:
        - генерирует/принимает run_id
        - загружает настройки (CLI > ENV > config > defaults)
        - создаёт каталоги log/report
        - включает локаль сравнения строк
        - сохраняет всё в ctx.obj для подкоманд
    """
    if not runId:
        runId = generate_run_id()

    cliOverrides = {
        "log_level": logLevel,
        "log_dir": logDir,
        "report_dir": reportDir,
        "concurrency_limit": concurrencyLimit,
        "timeout_seconds": timeoutSeconds,
        "profile_search_url": profileSearchUrl,
        "latlon_search_url": latlonSearchUrl,
        "client_search_url": clientSearchUrl,
        "tls_skip_verify": tlsSkipVerify,
        "ca_file": caFile,
        "report_items_limit": reportItemsLimit,
    }
    try:
        loaded = load_settings(config_path=config, cli_overrides=cliOverrides)
    except ValueError as exc:
        typer.echo(f"ERROR: invalid settings: {exc}", err=True)
        raise typer.Exit(code=2)

    ensureDir(loaded.settings.log_dir)
    ensureDir(loaded.settings.report_dir)
    collation = activateCollationLocale()

    ctx.obj = {
        "runId": runId,
        "settings": loaded.settings,
        "sources": loaded.sources_used,
        "configPath": config,
        "collation": collation,
    }


@app.command()
def enrich(
    ctx: typer.Context,
    input: str | None = typer.Option(None, "--input", help="Path to records JSON"),
    output: str | None = typer.Option(None, "--output", help="Where to write enriched records (default: --input)"),
    source: str = typer.Option(..., "--source", help="Enrichment source: profile|coordinates|client-link"),
    concurrency: int | None = typer.Option(None, "--concurrency", help="Override concurrency limit for this run"),
    taskTimeoutSeconds: float | None = typer.Option(None, "--task-timeout", help="Per-record timeout in seconds"),
    reportItemsSuccess: bool = typer.Option(
        False,
        "--report-items-success/--no-report-items-success",
        help="Include successful records in report",
    ),
):
    runEnrichCommand(
        ctx=ctx,
        inputPath=input,
        outputPath=output,
        source=source.lower(),
        concurrency=concurrency,
        taskTimeoutSeconds=taskTimeoutSeconds,
        reportItemsSuccess=reportItemsSuccess,
    )


@app.command()
def sort(
    ctx: typer.Context,
    input: str | None = typer.Option(None, "--input", help="Path to records JSON"),
    output: str | None = typer.Option(None, "--output", help="Where to write sorted records"),
    by: str | None = typer.Option(None, "--by", help='Sort spec, e.g. "country:asc,progress:desc"'),
):
    runSortCommand(ctx=ctx, inputPath=input, outputPath=output, sortBy=by)


if __name__ == "__main__":
    app()
