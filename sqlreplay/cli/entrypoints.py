"""Primary CLI entrypoints: apply scripts to Postgres (`run`) and print the dependency plan (`plan`)."""

from __future__ import annotations

import argparse
from typing import List, Optional

from sqlreplay.core.config import load_planner_settings, load_runner_settings
from sqlreplay.core.errors import ConfigurationError, DatabaseConnectionError, SqlReplayError
from sqlreplay.core.logging_utils import log_event
from sqlreplay.core.utils import walk_files
from sqlreplay.db.connection import Database
from sqlreplay.planner.forest import forest_to_json, plan_forest
from sqlreplay.planner.relations import load_relations
from sqlreplay.runner.scripts import SQL_EXTENSION, run_scripts


def cmd_run(args: argparse.Namespace) -> int:
    """Apply every script under ``INPUT_SCRIPTS_DIR`` to the configured database.

    Args:
        args (argparse.Namespace): Parsed CLI args.

    Returns:
        int: Process return code.
    """
    try:
        settings = load_runner_settings()
    except ConfigurationError as exc:
        log_event("run.failed", {"stage": "config", "error": str(exc)})
        return 1

    try:
        db = Database.connect_with_timeout(settings.credentials, settings.options)
    except DatabaseConnectionError as exc:
        log_event("run.failed", {"stage": "connect", "error": f"failed to connect to database: {exc}"})
        return 1

    try:
        relations = load_relations(settings.relations_file) if settings.relations_file else None
        run_scripts(db, settings.scripts_dir, debug=settings.debug, relations=relations)
    except SqlReplayError as exc:
        log_event("run.failed", {"stage": "execute", "error": str(exc)})
        return 1
    finally:
        db.close()
    return 0


def cmd_plan(args: argparse.Namespace) -> int:
    """Print the post-order of the dependency forest, then the forest as JSON.

    Args:
        args (argparse.Namespace): Parsed CLI args.

    Returns:
        int: Process return code.
    """
    try:
        settings = load_planner_settings(relations_file=args.relations, scripts_dir=args.scripts_dir)
        files = walk_files(settings.scripts_dir, SQL_EXTENSION)
        relations = load_relations(settings.relations_file)
        forest = plan_forest(relations, files)
    except SqlReplayError as exc:
        log_event("plan.failed", {"error": str(exc)})
        return 1
    for node_id in forest.post_order_ids():
        print(node_id)
    print(forest_to_json(forest))
    return 0


def _add_plan_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--relations", type=str, default=None, help="Relations manifest (default: ../.db-relation.yml)")
    parser.add_argument("--scripts-dir", type=str, default=None, help="Directory holding .sql files (default: ../sql)")


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Returns:
        argparse.ArgumentParser: Configured argument parser.
    """
    p = argparse.ArgumentParser(prog="sqlreplay")
    sub = p.add_subparsers(dest="cmd", required=True)

    run = sub.add_parser("run", help="Apply every .sql file under INPUT_SCRIPTS_DIR to Postgres")
    run.set_defaults(func=cmd_run)

    plan = sub.add_parser("plan", help="Print the dependency-ordered plan for the scripts directory")
    _add_plan_arguments(plan)
    plan.set_defaults(func=cmd_plan)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint for sqlreplay.

    Returns:
        int: Process return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


def run_main() -> int:
    """Entry point for ``sqlreplay-run``; configuration comes from the environment only."""
    return cmd_run(argparse.Namespace())


def plan_main(argv: Optional[List[str]] = None) -> int:
    """Entry point for ``sqlreplay-plan``."""
    parser = argparse.ArgumentParser(prog="sqlreplay-plan")
    _add_plan_arguments(parser)
    return cmd_plan(parser.parse_args(argv))


if __name__ == "__main__":
    raise SystemExit(main())
