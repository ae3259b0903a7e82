from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import yaml

from src.automation.models import JobOutcome, LogEntry, ValidationIssue


@pytest.fixture(autouse=True)
def _reset_logging():
    from src.utils.logging import reset_logging

    yield
    reset_logging()


def _write_job(path: Path, payload: dict) -> Path:
    if path.suffix in (".yaml", ".yml"):
        path.write_text(yaml.safe_dump(payload), encoding="utf-8")
    else:
        path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_cli_parser_supports_subcommands() -> None:
    from src.__main__ import create_parser

    parser = create_parser()

    run_args = parser.parse_args(["run", "job.json", "--format", "csv", "--headed"])
    assert run_args.mode == "run"
    assert run_args.job_file == Path("job.json")
    assert run_args.format == "csv"
    assert run_args.headed is True

    assert parser.parse_args(["validate", "job.yaml"]).mode == "validate"
    assert parser.parse_args(["status"]).mode == "status"

    serve_args = parser.parse_args(["serve", "--port", "8080"])
    assert serve_args.mode == "serve"
    assert serve_args.port == 8080


def test_cli_without_command_prints_help(capsys) -> None:
    from src.__main__ import main

    assert main([]) == 0
    assert "usage: datasage" in capsys.readouterr().out


def test_cli_validate_accepts_valid_json_job(tmp_path, sample_job_payload, capsys) -> None:
    from src.__main__ import main

    job_file = _write_job(tmp_path / "job.json", sample_job_payload)

    assert main(["validate", str(job_file)]) == 0
    assert "is a valid job" in capsys.readouterr().out


def test_cli_validate_accepts_yaml_job(tmp_path, sample_job_payload) -> None:
    from src.__main__ import main

    job_file = _write_job(tmp_path / "job.yaml", sample_job_payload)

    assert main(["validate", str(job_file)]) == 0


def test_cli_validate_reports_every_issue(tmp_path, capsys) -> None:
    from src.__main__ import main

    job_file = _write_job(
        tmp_path / "job.json",
        {"target": {"url": "file:///etc/passwd"}, "extraction": [{"type": "js", "name": "x", "jsCode": "eval('1')"}]},
    )

    assert main(["validate", str(job_file)]) == 2

    err = capsys.readouterr().err
    assert "target.url: Invalid URL format" in err
    assert "extraction[0].jsCode" in err


def test_cli_missing_job_file_errors_cleanly(tmp_path) -> None:
    from src.__main__ import main

    assert main(["validate", str(tmp_path / "missing.json")]) == 1


def test_cli_non_utf8_job_file_errors_cleanly(tmp_path, capsys) -> None:
    from src.__main__ import main

    job_file = tmp_path / "job.json"
    job_file.write_bytes(b'{"projectName": "\xff\xfe"}')

    assert main(["validate", str(job_file)]) == 1
    assert "Error reading job file" in capsys.readouterr().err


def test_cli_status_prints_capabilities(capsys) -> None:
    from src.__main__ import main

    assert main(["status"]) == 0

    status = json.loads(capsys.readouterr().out)
    assert status["status"] == "operational"
    assert status["capabilities"]["extractionTypes"] == ["dom", "js"]


def test_cli_run_prints_json_outcome(monkeypatch, tmp_path, sample_job_payload, capsys) -> None:
    from src.__main__ import main

    job_file = _write_job(tmp_path / "job.json", sample_job_payload)
    mock = AsyncMock(
        return_value=JobOutcome(success=True, project_name="Prices", data={"price": "$42"})
    )
    monkeypatch.setattr("src.automation.service.AutomationService.execute", mock)

    assert main(["run", str(job_file)]) == 0

    mock.assert_awaited_once()
    body = json.loads(capsys.readouterr().out)
    assert body["data"] == {"price": "$42"}


def test_cli_run_overrides_format_and_headless(monkeypatch, tmp_path, sample_job_payload) -> None:
    from src.__main__ import main

    job_file = _write_job(tmp_path / "job.json", sample_job_payload)
    output = tmp_path / "out" / "prices.csv"
    mock = AsyncMock(
        return_value=JobOutcome(success=True, project_name="Prices", data={"price": "$42"})
    )
    monkeypatch.setattr("src.automation.service.AutomationService.execute", mock)

    assert main(["run", str(job_file), "--format", "csv", "--output", str(output), "--headed"]) == 0

    submitted = mock.await_args.args[0]
    assert submitted["outputFormat"] == "csv"
    assert submitted["execution"]["headless"] is False
    assert submitted["execution"]["timeout"] == 30000
    assert output.read_text(encoding="utf-8") == "price\n$42"


def test_cli_run_failure_exits_nonzero(monkeypatch, tmp_path, sample_job_payload, capsys) -> None:
    from src.__main__ import main

    job_file = _write_job(tmp_path / "job.json", sample_job_payload)
    mock = AsyncMock(
        return_value=JobOutcome(
            success=False,
            error_message="Navigation to https://shop.example.com/item/42 failed: timeout",
            logs=[LogEntry(level="error", message="Navigation failed")],
        )
    )
    monkeypatch.setattr("src.automation.service.AutomationService.execute", mock)

    assert main(["run", str(job_file)]) == 1

    err = capsys.readouterr().err
    assert "Automation failed: Navigation to" in err
    assert "ERROR Navigation failed" in err


def test_cli_run_invalid_job_exits_with_2(monkeypatch, tmp_path, sample_job_payload) -> None:
    from src.__main__ import main

    job_file = _write_job(tmp_path / "job.json", sample_job_payload)
    mock = AsyncMock(
        return_value=JobOutcome(
            success=False,
            error_message="Configuration validation failed",
            errors=[ValidationIssue(field="target.url", message="Invalid URL format")],
        )
    )
    monkeypatch.setattr("src.automation.service.AutomationService.execute", mock)

    assert main(["run", str(job_file)]) == 2
