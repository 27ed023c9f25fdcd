"""
DocFlow CLI — Store bootstrap and maintenance commands.

Commands:
- docflow init          — Create the documents/approvals schema
- docflow check         — Validate docflow.yaml and probe the store
- docflow stats         — Print decision counts (all or one approver)
- docflow logs-cleanup  — Apply log retention and compression
"""

from __future__ import annotations

import argparse
import json
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from docflow.engine.errors import DocFlowConfigError, DocFlowError

logger = logging.getLogger("docflow.cli")


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="docflow",
        description="DocFlow — Document review workflow",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # docflow init
    init_parser = subparsers.add_parser("init", help="Create the workflow schema")
    init_parser.add_argument(
        "--config", default="docflow.yaml", help="Path to docflow.yaml (default: docflow.yaml)"
    )

    # docflow check
    check_parser = subparsers.add_parser("check", help="Validate config and store connectivity")
    check_parser.add_argument(
        "--config", default="docflow.yaml", help="Path to docflow.yaml (default: docflow.yaml)"
    )

    # docflow stats
    stats_parser = subparsers.add_parser("stats", help="Print approval statistics")
    stats_parser.add_argument(
        "--config", default="docflow.yaml", help="Path to docflow.yaml (default: docflow.yaml)"
    )
    stats_parser.add_argument("--approver", help="Only count decisions by this approver id")

    # docflow logs-cleanup
    cleanup_parser = subparsers.add_parser("logs-cleanup", help="Apply log retention")
    cleanup_parser.add_argument(
        "--config", default="docflow.yaml", help="Path to docflow.yaml (default: docflow.yaml)"
    )

    args = parser.parse_args(argv)

    if args.command == "init":
        return cmd_init(args)
    elif args.command == "check":
        return cmd_check(args)
    elif args.command == "stats":
        return cmd_stats(args)
    elif args.command == "logs-cleanup":
        return cmd_logs_cleanup(args)
    else:
        parser.print_help()
        return 0


def _load(config_path: str):
    from docflow.engine.config import load_config

    try:
        config = load_config(config_path)
    except DocFlowConfigError as e:
        print(f"[ERROR] {e.message}")
        for err in e.context.get("validation_errors") or []:
            loc = ".".join(str(p) for p in err.get("loc", ()))
            print(f"  {loc}: {err.get('msg')}")
        return None
    print(f"[OK] Loaded config ({config.name} {config.version}, env={config.environment})")
    return config


def cmd_init(args: argparse.Namespace) -> int:
    """
    Bootstrap the store:
    1. Load config from docflow.yaml
    2. Create documents and approvals tables
    """
    print("=" * 60)
    print("  DocFlow Initialization")
    print("=" * 60)

    config = _load(args.config)
    if config is None:
        return 1

    from docflow.engine.runtime import WorkflowRuntime

    runtime = WorkflowRuntime(config, create_tables=True, enable_file_logging=False)
    try:
        runtime.startup()
    except (DocFlowError, SQLAlchemyError) as e:
        print(f"[ERROR] Failed to create tables: {e}")
        return 1

    try:
        if not runtime.status()["database"]:
            print(f"[ERROR] Database connection failed: {config.database.url}")
            return 1
        print("[OK] Database tables created")
    finally:
        runtime.shutdown()

    print("\nDocFlow is ready.")
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Validate docflow.yaml and verify the store answers."""
    config = _load(args.config)
    if config is None:
        return 1

    from docflow.engine.runtime import WorkflowRuntime

    runtime = WorkflowRuntime(config, enable_file_logging=False)
    runtime.startup()
    try:
        status = runtime.status()
    finally:
        runtime.shutdown()

    if not status["database"]:
        print(f"[ERROR] Database unreachable: {config.database.url}")
        return 1
    print("[OK] Database reachable")
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    """Print approval counts as JSON."""
    config = _load(args.config)
    if config is None:
        return 1

    from docflow.engine.runtime import WorkflowRuntime

    runtime = WorkflowRuntime(config, enable_file_logging=False)
    runtime.startup()
    try:
        stats = runtime.approvals.stats(approver_id=args.approver)
    except DocFlowError as e:
        print(f"[ERROR] {e.message}")
        return 1
    finally:
        runtime.shutdown()

    print(json.dumps(stats.model_dump(), indent=2))
    return 0


def cmd_logs_cleanup(args: argparse.Namespace) -> int:
    """Delete expired log files and compress old ones."""
    config = _load(args.config)
    if config is None:
        return 1

    from docflow.engine.runtime import WorkflowRuntime

    result = WorkflowRuntime(config, enable_file_logging=False).cleanup_logs()
    print(f"[OK] Deleted {result['deleted']} file(s), compressed {result['compressed']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
