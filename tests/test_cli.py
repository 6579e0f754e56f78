from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import make_snapshot

from session_insights.main import build_parser, main


def test_serve_defaults_defer_to_config() -> None:
    args = build_parser().parse_args(["serve"])

    assert args.host is None
    assert args.port is None
    assert args.verbose is False


def test_global_flags_and_subcommands() -> None:
    parser = build_parser()

    args = parser.parse_args(["-v", "--config", "/tmp/x.toml", "rotation", "s1", "--user", "u1"])
    assert args.verbose is True
    assert args.config == "/tmp/x.toml"
    assert args.surface == "MISSION_END"

    premium = parser.parse_args(["premium", "u1", "--off"])
    assert premium.on is False and premium.off is True

    with pytest.raises(SystemExit):
        parser.parse_args(["premium", "u1", "--on", "--off"])
    with pytest.raises(SystemExit):
        parser.parse_args(["rotation", "s1"])
    with pytest.raises(SystemExit):
        parser.parse_args([])


def test_ingest_process_rotation_round(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_path = tmp_path / "home" / "config.toml"
    snapshot_file = tmp_path / "session.json"
    snapshot_file.write_text(
        make_snapshot(hooks=[["GOOD_HUMOR"], [], []]).model_dump_json(),
        encoding="utf-8",
    )
    base = ["--config", str(config_path)]

    assert main([*base, "init"]) == 0
    assert (config_path.parent / "session_insights.db").exists()

    assert main([*base, "ingest", str(snapshot_file)]) == 0
    assert capsys.readouterr().out.strip() == "s1"

    assert main([*base, "process", "s1"]) == 0
    processed = json.loads(capsys.readouterr().out)
    assert processed["session_id"] == "s1"
    assert processed["deep_insight_ids"]

    assert main([*base, "premium", "u1", "--on"]) == 0
    assert main([*base, "rotation", "s1", "--user", "u1"]) == 0
    pack = json.loads(capsys.readouterr().out)
    assert pack["meta"]["is_premium_user"] is True


def test_cli_reports_failures(tmp_path: Path) -> None:
    base = ["--config", str(tmp_path / "config.toml")]

    assert main([*base, "process", "missing"]) == 1
    assert main([*base, "rotation", "missing", "--user", "u1"]) == 1
    assert main([*base, "ingest", str(tmp_path / "nope.json")]) == 2
