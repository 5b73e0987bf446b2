from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

ENV_PREFIX = "DBF2CSV_"


@dataclass(frozen=True)
class Settings:
    # Paths
    log_dir: str = "./logs"
    report_dir: str = "./reports"

    # Logging
    log_level: str = "INFO"

    # Decoding
    encoding: str | None = None
    include_deleted: bool = True
    ignore_missing_memo: bool = False

    # Output
    output_encoding: str = "utf-8"
    show_progress: bool = True


@dataclass(frozen=True)
class LoadedSettings:
    settings: Settings
    sources_used: list[str]


STRING_KEYS = ("log_dir", "report_dir", "log_level", "encoding", "output_encoding")
BOOL_KEYS = ("include_deleted", "ignore_missing_memo", "show_progress")


def _read_yaml_config(path: Path) -> dict:
    if not path.exists():
        raise ValueError(f"Config file not found: {path}")
    if not path.is_file():
        raise ValueError(f"Config path is not a file: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    unknown = sorted(set(data) - set(STRING_KEYS) - set(BOOL_KEYS))
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
    return data


def _env_get(name: str) -> str | None:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return None
    return v.strip()


def parseBool(value, source: str) -> bool:
    if isinstance(value, bool):
        return value
    vv = str(value).strip().lower()
    if vv in ("1", "true", "yes", "y", "on"):
        return True
    if vv in ("0", "false", "no", "n", "off"):
        return False
    raise ValueError(f"Invalid boolean {source} value: {value}")


def loadSettings(config_path: str | None, cli_overrides: dict) -> LoadedSettings:
    """
    Назначение:
        Собирает итоговые настройки.

    Входные данные:
        config_path: str | None
            YAML-файл (--config).
        cli_overrides: dict
            Значения CLI; None = не передано.

    Выходные данные:
        LoadedSettings

    Поведение:
        Priority: CLI > ENV (DBF2CSV_*) > config > defaults.
        Некорректные значения -> ValueError.
    """
    sources: list[str] = []
    defaults = Settings()
    merged: dict = {key: getattr(defaults, key) for key in STRING_KEYS + BOOL_KEYS}

    # 1) config file
    if config_path:
        cfg = _read_yaml_config(Path(config_path))
        if cfg:
            sources.append("config")
        for key, value in cfg.items():
            if value is None:
                continue
            merged[key] = parseBool(value, f"config '{key}'") if key in BOOL_KEYS else str(value)

    # 2) env
    env = {key: _env_get(f"{ENV_PREFIX}{key.upper()}") for key in STRING_KEYS + BOOL_KEYS}
    if any(v is not None for v in env.values()):
        sources.append("env")
    for key, value in env.items():
        if value is None:
            continue
        merged[key] = parseBool(value, f"env {ENV_PREFIX}{key.upper()}") if key in BOOL_KEYS else value

    # 3) CLI overrides (only those explicitly passed)
    if any(v is not None for v in cli_overrides.values()):
        sources.append("cli")
    for key, value in cli_overrides.items():
        if value is None:
            continue
        merged[key] = value

    return LoadedSettings(settings=Settings(**merged), sources_used=sources)
