from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
import os
from typing import Any, Callable

import yaml

ENV_PREFIX = "GRIDSYNC_"


@dataclass(frozen=True)
class Settings:
    # Paths
    log_dir: str = "./logs"
    report_dir: str = "./reports"

    # Logging
    log_level: str = "INFO"

    # Enrichment
    concurrency_limit: int = 4
    timeout_seconds: float = 20.0
    task_timeout_seconds: float | None = None
    profile_search_url: str | None = None
    latlon_search_url: str | None = None
    client_search_url: str | None = None

    # TLS
    tls_skip_verify: bool = False
    ca_file: str | None = None

    # Reports
    report_items_limit: int = 200

    # Sorting: {"column": "string|number|boolean"}; пусто -> схема демо-грида
    sort_schema: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class LoadedSettings:
    settings: Settings
    sources_used: list[str]


def _read_yaml_config(path: Path) -> dict:
    if not path.exists() or not path.is_file():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            return {}
        return data


def _env_get(name: str) -> str | None:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return None
    return v.strip()


def parse_int(v: Any) -> int:
    if isinstance(v, bool):
        raise ValueError(f"Invalid integer value: {v}")
    return int(v)


def parse_float(v: Any) -> float:
    if isinstance(v, bool):
        raise ValueError(f"Invalid float value: {v}")
    return float(v)


def parse_bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    vv = str(v).strip().lower()
    if vv in ("1", "true", "yes", "y"):
        return True
    if vv in ("0", "false", "no", "n"):
        return False
    raise ValueError(f"Invalid boolean value: {v}")


def parse_str(v: Any) -> str:
    return str(v)


_PARSERS: dict[str, Callable[[Any], Any]] = {
    "log_dir": parse_str,
    "report_dir": parse_str,
    "log_level": parse_str,
    "concurrency_limit": parse_int,
    "timeout_seconds": parse_float,
    "task_timeout_seconds": parse_float,
    "profile_search_url": parse_str,
    "latlon_search_url": parse_str,
    "client_search_url": parse_str,
    "tls_skip_verify": parse_bool,
    "ca_file": parse_str,
    "report_items_limit": parse_int,
}


def _validate(settings: Settings) -> None:
    if settings.concurrency_limit < 1:
        raise ValueError(f"concurrency_limit must be >= 1, got {settings.concurrency_limit}")
    if settings.timeout_seconds <= 0:
        raise ValueError(f"timeout_seconds must be > 0, got {settings.timeout_seconds}")
    if settings.task_timeout_seconds is not None and settings.task_timeout_seconds <= 0:
        raise ValueError(f"task_timeout_seconds must be > 0, got {settings.task_timeout_seconds}")
    if settings.report_items_limit < 0:
        raise ValueError(f"report_items_limit must be >= 0, got {settings.report_items_limit}")


def load_settings(
    config_path: str | None,
    cli_overrides: dict,
) -> LoadedSettings:
    """
    Назначение:
        Загружает настройки из config.yml, окружения (GRIDSYNC_*) и CLI.

    Входные данные:
        config_path: str | None
            Путь к YAML-конфигу.
        cli_overrides: dict
            Явно переданные опции CLI (None: не передано).

    Выходные данные:
        LoadedSettings
            Итоговые настройки и список использованных источников.

    Приоритет: CLI > ENV > config > defaults
    Ошибки/исключения:
        ValueError: некорректное значение в любом источнике.
    """
    sources: list[str] = []
    merged: dict[str, Any] = {f.name: getattr(Settings(), f.name) for f in fields(Settings)}

    # 1) config file
    if config_path:
        cfg = _read_yaml_config(Path(config_path))
        if cfg:
            sources.append("config")
        for key, parser in _PARSERS.items():
            if cfg.get(key) is not None:
                merged[key] = parser(cfg[key])
        sort_schema = cfg.get("sort_schema")
        if isinstance(sort_schema, dict):
            merged["sort_schema"] = {str(k): str(v) for k, v in sort_schema.items()}

    # 2) env
    env_used = False
    for key, parser in _PARSERS.items():
        raw = _env_get(f"{ENV_PREFIX}{key.upper()}")
        if raw is None:
            continue
        env_used = True
        merged[key] = parser(raw)
    if env_used:
        sources.append("env")

    # 3) CLI (только явно переданные)
    if any(v is not None for v in cli_overrides.values()):
        sources.append("cli")
    for k, v in cli_overrides.items():
        if v is None:
            continue
        parser = _PARSERS.get(k)
        merged[k] = parser(v) if parser is not None else v

    settings = Settings(**merged)
    _validate(settings)
    return LoadedSettings(settings=settings, sources_used=sources)
