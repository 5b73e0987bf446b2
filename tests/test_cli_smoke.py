import json
from pathlib import Path

from typer.testing import CliRunner

from dbf2csv.main import app

runner = CliRunner()


def run_convert(tmp_path: Path, source: Path, target: Path, *extra: str, run_id: str = "run-1"):
    return runner.invoke(
        app,
        [
            "--log-dir",
            str(tmp_path / "logs"),
            "--report-dir",
            str(tmp_path / "reports"),
            "--run-id",
            run_id,
            "--no-progress",
            *extra,
            str(source),
            str(target),
        ],
    )


def test_help_long_and_short():
    for flag in ("--help", "-h"):
        result = runner.invoke(app, [flag])
        assert result.exit_code == 0
        assert "INPUT" in result.output
        assert "OUTPUT" in result.output


def test_missing_arguments_is_usage_error():
    result = runner.invoke(app, ["only-one.dbf"])
    assert result.exit_code == 2
    assert "Usage" in result.output


def test_extra_arguments_is_usage_error():
    result = runner.invoke(app, ["a.dbf", "b.csv", "c.csv"])
    assert result.exit_code == 2


def test_convert_writes_csv_report_and_log(tmp_path: Path, people_dbf: Path):
    target = tmp_path / "people.csv"

    result = run_convert(tmp_path, people_dbf, target)

    assert result.exit_code == 0, result.output
    assert target.read_text(encoding="utf-8").splitlines() == [
        '"NAME";"AGE";"ACTIVE"',
        '"John Doe";"30";"true"',
        '"Jane Roe";"41";""',
    ]
    assert "records_declared=2" in result.output
    assert "records_written=2" in result.output
    assert "size_mb=0.00" in result.output

    report = json.loads((tmp_path / "reports" / "report_convert_run-1.json").read_text(encoding="utf-8"))
    assert report["summary"]["status"] == "ok"
    assert report["summary"]["records_written"] == 2
    assert report["meta"]["source_path"] == str(people_dbf)
    assert report["errors"] == []

    log_text = (tmp_path / "logs" / "convert_run-1.log").read_text(encoding="utf-8")
    assert "runId=run-1" in log_text
    assert "Rows written: 2" in log_text


def test_malformed_header_fails_without_output(tmp_path: Path):
    source = tmp_path / "bad.dbf"
    source.write_bytes(b"\x7f" + b"\x00" * 40)
    target = tmp_path / "out.csv"

    result = run_convert(tmp_path, source, target)

    assert result.exit_code == 1
    assert "MALFORMED_HEADER" in result.output
    assert not target.exists()

    report = json.loads((tmp_path / "reports" / "report_convert_run-1.json").read_text(encoding="utf-8"))
    assert report["summary"]["status"] == "failed"
    assert report["errors"][0]["code"] == "MALFORMED_HEADER"


def test_missing_source_fails(tmp_path: Path):
    result = run_convert(tmp_path, tmp_path / "absent.dbf", tmp_path / "out.csv")

    assert result.exit_code == 1
    assert "not found" in result.output


def test_skip_deleted_flag(tmp_path: Path, write_dbf):
    source = write_dbf([("A", "C", 2, 0)], [["a"], ["b"]], deleted=(1,))
    target = tmp_path / "out.csv"

    result = run_convert(tmp_path, source, target, "--skip-deleted")

    assert result.exit_code == 0, result.output
    assert target.read_text(encoding="utf-8").splitlines() == ['"A"', '"a"']


def test_unknown_encoding_is_config_error(tmp_path: Path, people_dbf: Path):
    result = run_convert(tmp_path, people_dbf, tmp_path / "out.csv", "--encoding", "klingon")

    assert result.exit_code == 2
    assert "Unknown encoding" in result.output
