from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml


DEFAULT_CONFIG_FILE_NAME = "config.yaml"

LEDGER_BALANCE_NUMBER_PREFIX = "LEDGER_BALANCE_NUMBER_PREFIX"
LEDGER_BALANCE_NUMBER_DIGITS = "LEDGER_BALANCE_NUMBER_DIGITS"
LEDGER_MAX_GENERATION_ATTEMPTS = "LEDGER_MAX_GENERATION_ATTEMPTS"
LEDGER_MAX_COMMIT_ATTEMPTS = "LEDGER_MAX_COMMIT_ATTEMPTS"
LEDGER_EXPIRY_WARNING_DAYS = "LEDGER_EXPIRY_WARNING_DAYS"


@dataclass(slots=True)
class LedgerConfig:
    balance_number_prefix: str = "BAL"
    balance_number_digits: int = 8
    max_generation_attempts: int = 20
    max_commit_attempts: int = 5
    expiry_warning_days: int = 14


def _find_config_path() -> Path | None:
    """현재 작업 디렉토리 기준으로 상위로 올라가며 config.yaml 을 찾는다. 없으면 None."""

    current = Path.cwd()
    for directory in (current, *current.parents):
        candidate = directory / DEFAULT_CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def _load_yaml_section(path: Path | None) -> dict[str, Any]:
    if path is None:
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    section = data.get("ledger") or {}
    if not isinstance(section, dict):
        raise RuntimeError(f"ledger section in {path} must be a mapping")
    return section


def _positive_int(name: str, raw_value: Any) -> int:
    try:
        value = int(raw_value)
    except (TypeError, ValueError) as exc:  # noqa: TRY003
        raise RuntimeError(f"{name} must be an integer value, got: {raw_value!r}") from exc
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got: {value}")
    return value


def load_ledger_config(path: Path | None = None) -> LedgerConfig:
    """config.yaml 의 ledger 섹션 위에 환경 변수를 덮어써 LedgerConfig 를 만든다."""

    section = _load_yaml_section(path if path is not None else _find_config_path())
    defaults = LedgerConfig()

    prefix = os.getenv(LEDGER_BALANCE_NUMBER_PREFIX) or section.get(
        "balance_number_prefix", defaults.balance_number_prefix
    )
    prefix = str(prefix).strip().upper()
    if not prefix or not prefix.isalpha():
        raise RuntimeError(
            f"{LEDGER_BALANCE_NUMBER_PREFIX} must be alphabetic, got: {prefix!r}"
        )

    def _setting(env_name: str, key: str, default: int) -> int:
        raw = os.getenv(env_name)
        if raw is None or not raw.strip():
            raw = section.get(key, default)
        return _positive_int(env_name, raw)

    return LedgerConfig(
        balance_number_prefix=prefix,
        balance_number_digits=_setting(
            LEDGER_BALANCE_NUMBER_DIGITS,
            "balance_number_digits",
            defaults.balance_number_digits,
        ),
        max_generation_attempts=_setting(
            LEDGER_MAX_GENERATION_ATTEMPTS,
            "max_generation_attempts",
            defaults.max_generation_attempts,
        ),
        max_commit_attempts=_setting(
            LEDGER_MAX_COMMIT_ATTEMPTS,
            "max_commit_attempts",
            defaults.max_commit_attempts,
        ),
        expiry_warning_days=_setting(
            LEDGER_EXPIRY_WARNING_DAYS,
            "expiry_warning_days",
            defaults.expiry_warning_days,
        ),
    )


@lru_cache(maxsize=1)
def get_ledger_config() -> LedgerConfig:
    """FastAPI DI용 LedgerConfig. 프로세스당 한 번만 읽는다."""

    return load_ledger_config()
