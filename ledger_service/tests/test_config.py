from __future__ import annotations

from pathlib import Path

import pytest

from ledger_service.app.config import (
    LEDGER_BALANCE_NUMBER_PREFIX,
    LEDGER_EXPIRY_WARNING_DAYS,
    LEDGER_MAX_COMMIT_ATTEMPTS,
    LEDGER_MAX_GENERATION_ATTEMPTS,
    LedgerConfig,
    load_ledger_config,
)


ENV_NAMES = (
    LEDGER_BALANCE_NUMBER_PREFIX,
    "LEDGER_BALANCE_NUMBER_DIGITS",
    LEDGER_MAX_GENERATION_ATTEMPTS,
    LEDGER_MAX_COMMIT_ATTEMPTS,
    LEDGER_EXPIRY_WARNING_DAYS,
)


@pytest.fixture(autouse=True)
def clear_ledger_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def _write_config(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(body, encoding="utf-8")
    return path


def test_defaults_without_config_file(tmp_path: Path) -> None:
    config = load_ledger_config(_write_config(tmp_path, ""))

    assert config == LedgerConfig()
    assert config.balance_number_prefix == "BAL"
    assert config.max_generation_attempts == 20
    assert config.expiry_warning_days == 14


def test_yaml_section_then_env_override(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = _write_config(
        tmp_path,
        "ledger:\n"
        "  balance_number_prefix: hrs\n"
        "  max_commit_attempts: 7\n"
        "  expiry_warning_days: 30\n",
    )
    monkeypatch.setenv(LEDGER_EXPIRY_WARNING_DAYS, "3")

    config = load_ledger_config(path)

    assert config.balance_number_prefix == "HRS"
    assert config.max_commit_attempts == 7
    assert config.expiry_warning_days == 3
    assert config.balance_number_digits == 8


def test_finds_config_in_parent_directory(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _write_config(tmp_path, "ledger:\n  max_generation_attempts: 5\n")
    nested = tmp_path / "ledger_service" / "app"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)

    assert load_ledger_config().max_generation_attempts == 5


@pytest.mark.parametrize("raw", ["0", "-1", "many"])
def test_rejects_invalid_attempt_ceiling(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, raw: str
) -> None:
    monkeypatch.setenv(LEDGER_MAX_GENERATION_ATTEMPTS, raw)

    with pytest.raises(RuntimeError):
        load_ledger_config(_write_config(tmp_path, ""))


def test_rejects_non_alphabetic_prefix(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv(LEDGER_BALANCE_NUMBER_PREFIX, "B4L")

    with pytest.raises(RuntimeError):
        load_ledger_config(_write_config(tmp_path, ""))


def test_rejects_non_mapping_section(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError):
        load_ledger_config(_write_config(tmp_path, "ledger: [1, 2]\n"))
