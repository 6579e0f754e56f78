from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

import uvicorn
from pydantic import ValidationError

from core.errors import InsightsError
from session_insights.config import DEFAULT_CONFIG_PATH, AppConfig, ensure_app_paths, load_config
from session_insights.db import Database
from session_insights.logging import configure_logging
from session_insights.pipeline import SessionInsightEngine
from session_insights.snapshots import read_snapshot_file, save_session
from session_insights.web.app import create_app
from shared.enums import RotationSurface

logger = logging.getLogger("session_insights")


def _apply_cli_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    updates: dict[str, Any] = {}
    if getattr(args, "host", None) is not None:
        updates["web_host"] = str(args.host)
    if getattr(args, "port", None) is not None:
        updates["web_port"] = int(args.port)
    if not updates:
        return config
    merged = config.model_dump()
    merged.update(updates)
    updated = AppConfig.model_validate(merged)
    updated._data_dir = config.data_dir
    updated._db_path = config.db_path
    return updated


def _config_path(args: argparse.Namespace) -> Path:
    return Path(args.config).expanduser() if args.config else DEFAULT_CONFIG_PATH


def _load(args: argparse.Namespace) -> AppConfig:
    path = _config_path(args)
    ensure_app_paths(path)
    return load_config(path)


def cmd_init(args: argparse.Namespace, config: AppConfig) -> int:
    db = Database(config.db_path)
    db.close()
    logger.info("initialized config at %s", _config_path(args))
    logger.info("initialized database at %s", config.db_path)
    return 0


def cmd_ingest(args: argparse.Namespace, config: AppConfig) -> int:
    try:
        snapshot = read_snapshot_file(Path(args.file))
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        logger.error("cannot ingest %s: %s", args.file, exc)
        return 2
    db = Database(config.db_path)
    try:
        save_session(db, snapshot)
    finally:
        db.close()
    print(snapshot.session_id)
    return 0


def cmd_process(args: argparse.Namespace, config: AppConfig) -> int:
    db = Database(config.db_path)
    try:
        result = SessionInsightEngine(config, db).process_session(args.session_id)
    except InsightsError as exc:
        logger.error("processing failed: %s", exc)
        return 1
    finally:
        db.close()
    print(json.dumps(asdict(result), indent=2, sort_keys=True))
    return 0


def cmd_rotation(args: argparse.Namespace, config: AppConfig) -> int:
    db = Database(config.db_path)
    try:
        pack = SessionInsightEngine(config, db).rotation_pack(args.user, args.session_id, args.surface)
    except InsightsError as exc:
        logger.error("rotation failed: %s", exc)
        return 1
    finally:
        db.close()
    print(pack.model_dump_json(indent=2))
    return 0


def cmd_premium(args: argparse.Namespace, config: AppConfig) -> int:
    db = Database(config.db_path)
    try:
        db.set_premium(args.user_id, bool(args.on))
    finally:
        db.close()
    logger.info("premium for %s set to %s", args.user_id, bool(args.on))
    return 0


def cmd_serve(args: argparse.Namespace, config: AppConfig) -> int:
    config = _apply_cli_overrides(config, args)
    db = Database(config.db_path)
    app = create_app(config, db)
    try:
        uvicorn.run(
            app,
            host=config.web_host,
            port=config.web_port,
            log_level="debug" if args.verbose else "info",
        )
        return 0
    finally:
        db.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="session-insights")
    parser.add_argument("--config", type=str, default=None, help="path to config.toml")
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="create config, data dir, and SQLite database")
    init_parser.set_defaults(func=cmd_init)

    ingest_parser = subparsers.add_parser("ingest", help="store a finished session snapshot from JSON")
    ingest_parser.add_argument("file", type=str, help="snapshot JSON file")
    ingest_parser.set_defaults(func=cmd_ingest)

    process_parser = subparsers.add_parser("process", help="compute mood, deep insights and synergy")
    process_parser.add_argument("session_id", type=str)
    process_parser.set_defaults(func=cmd_process)

    rotation_parser = subparsers.add_parser("rotation", help="print the rotation pack for a surface")
    rotation_parser.add_argument("session_id", type=str)
    rotation_parser.add_argument("--user", type=str, required=True, help="viewing user id")
    rotation_parser.add_argument(
        "--surface",
        type=str,
        default=RotationSurface.MISSION_END.value,
        help="rotation surface",
    )
    rotation_parser.set_defaults(func=cmd_rotation)

    premium_parser = subparsers.add_parser("premium", help="set a user's premium entitlement")
    premium_parser.add_argument("user_id", type=str)
    toggle = premium_parser.add_mutually_exclusive_group(required=True)
    toggle.add_argument("--on", action="store_true")
    toggle.add_argument("--off", action="store_true")
    premium_parser.set_defaults(func=cmd_premium)

    serve_parser = subparsers.add_parser("serve", help="serve the local JSON API")
    serve_parser.add_argument("--host", type=str, default=None, help="bind host")
    serve_parser.add_argument("--port", type=int, default=None, help="bind port")
    serve_parser.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = _load(args)
    configure_logging(bool(args.verbose), config.log_format)
    return int(args.func(args, config))


if __name__ == "__main__":
    raise SystemExit(main())
