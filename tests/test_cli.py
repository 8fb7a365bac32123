from __future__ import annotations

import json
import sys

import pytest

from bank_notifications.cli import process_message


@pytest.fixture(autouse=True)
def offline_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("ENABLE_LLM", "RATE_OVERRIDES", "BASE_CURRENCY", "SUPPORTED_CURRENCIES", "CATEGORIES_FILE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("bank_notifications.config.load_dotenv", lambda *args, **kwargs: False)


def _run(monkeypatch: pytest.MonkeyPatch, *argv: str) -> int:
    monkeypatch.setattr(sys, "argv", ["bank-process", *argv])
    with pytest.raises(SystemExit) as exc_info:
        process_message.main()
    return exc_info.value.code


def test_dry_run_json(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    code = _run(monkeypatch, "--dry-run", "--json", "credit card #5233 charged EGP 150.00 at Starbucks")

    assert code == 0
    record = json.loads(capsys.readouterr().out.strip())
    assert record["id"] is None
    assert record["merchant"] == "Starbucks"
    assert record["amount_base"] == 150.0


def test_file_of_messages(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str], tmp_path) -> None:
    messages = tmp_path / "messages.txt"
    messages.write_text(
        "credit card #5233 charged EGP 150.00 at Starbucks\n\nYour OTP is 123456\n",
        encoding="utf-8",
    )

    code = _run(monkeypatch, "--dry-run", "--file", str(messages))

    out = capsys.readouterr().out
    assert code == 2
    assert "Starbucks" in out
    assert "Rejected" in out
    assert "INGESTION STATISTICS" in out


def test_missing_file(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    assert _run(monkeypatch, "--dry-run", "--file", str(tmp_path / "nope.txt")) == 1


def test_invalid_configuration(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RATE_OVERRIDES", "USD=zero")

    assert _run(monkeypatch, "--dry-run", "card #5233 charged EGP 1.00 at X") == 1
