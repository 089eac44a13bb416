"""Tests for the otlp-forwarder CLI."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from otlp_forwarder import __version__
from otlp_forwarder.cli import app, load_entries
from tests.fixtures.otlp import awslogs_event, make_trace_request, wrap_record

runner = CliRunner()


@pytest.fixture
def settings_file(tmp_path: Path) -> Path:
    path = tmp_path / "forwarder.yaml"
    path.write_text(
        "collectors:\n"
        "  backend: static\n"
        "  static:\n"
        "    - name: local\n"
        "      endpoint: http://localhost:4318\n"
        "      auth: x-api-key=k\n"
        "    - name: aws\n"
        "      endpoint: https://xray.us-east-1.amazonaws.com\n"
        "      auth: sigv4\n"
    )
    return path


@pytest.fixture
def records_file(tmp_path: Path) -> Path:
    path = tmp_path / "records.ndjson"
    path.write_text(
        "\n".join(
            [
                wrap_record(make_trace_request("svc-a", ["a"]), "svc-a"),
                wrap_record(make_trace_request("svc-b", ["b"]), "svc-b"),
                "not a record",
            ]
        )
    )
    return path


class TestLoadEntries:
    """Accepted input file layouts."""

    def test_newline_delimited(self, records_file: Path) -> None:
        entries = load_entries(records_file)
        assert len(entries) == 3
        assert entries[2].message == "not a record"

    def test_awslogs_event(self, tmp_path: Path) -> None:
        path = tmp_path / "event.json"
        path.write_text(json.dumps(awslogs_event(["one", "two"])))
        assert [e.message for e in load_entries(path)] == ["one", "two"]

    def test_json_array_of_mixed_items(self, tmp_path: Path) -> None:
        path = tmp_path / "entries.json"
        path.write_text(json.dumps(["raw", {"id": "x", "timestamp": 5, "message": "m"}, {"source": "svc"}]))
        entries = load_entries(path)
        assert [e.message for e in entries[:2]] == ["raw", "m"]
        assert entries[1].id == "x"
        assert json.loads(entries[2].message) == {"source": "svc"}

    def test_non_numeric_timestamp_defaults_to_zero(self, tmp_path: Path) -> None:
        path = tmp_path / "entries.json"
        path.write_text(json.dumps([{"message": "a", "timestamp": "yesterday"}, {"message": "b", "timestamp": None}]))
        assert [e.timestamp for e in load_entries(path)] == [0, 0]

    def test_subscription_document(self, tmp_path: Path) -> None:
        path = tmp_path / "doc.json"
        path.write_text(json.dumps({"messageType": "DATA_MESSAGE", "logEvents": [{"id": "1", "message": "m"}]}))
        assert [e.message for e in load_entries(path)] == ["m"]


class TestCommands:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_forward_dry_run_json(self, records_file: Path, settings_file: Path) -> None:
        result = runner.invoke(
            app,
            ["--no-dotenv", "forward", str(records_file), "-s", str(settings_file), "--dry-run", "--format", "json"],
        )

        assert result.exit_code == 0, result.output
        summary = json.loads(result.stdout.strip().splitlines()[-1])
        assert summary["records_received"] == 3
        assert summary["records_skipped"] == 1
        [payload] = summary["payloads"]
        assert payload["signal"] == "traces"
        assert payload["source"] == "mixed"
        assert payload["records"] == 2

    def test_forward_dry_run_console(self, records_file: Path, settings_file: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "forward", str(records_file), "-s", str(settings_file), "-n"])
        assert result.exit_code == 0, result.output
        assert "3 received, 1 skipped" in result.stdout

    def test_collectors_lists_static_backend(self, settings_file: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "collectors", "-s", str(settings_file)])

        assert result.exit_code == 0, result.output
        assert "local: http://localhost:4318 (auth: static_header, headers: x-api-key)" in result.stdout
        assert "aws: https://xray.us-east-1.amazonaws.com (auth: sigv4" in result.stdout

    def test_missing_settings_file(self, records_file: Path, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "forward", str(records_file), "-s", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1

    def test_invalid_settings(self, records_file: Path, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("compaction:\n  compression_level: 42\n")
        result = runner.invoke(app, ["--no-dotenv", "forward", str(records_file), "-s", str(path)])
        assert result.exit_code == 1
