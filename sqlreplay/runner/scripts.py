"""Script runner: applies every discovered .sql file to the database, stopping at the first failure."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from sqlreplay.core.errors import ExecutionError, ScriptReadError
from sqlreplay.core.logging_utils import log_event
from sqlreplay.core.utils import new_uuid, sha256_hex, walk_files
from sqlreplay.db.connection import SqlGateway
from sqlreplay.planner.forest import plan_forest
from sqlreplay.planner.relations import Relation

SQL_EXTENSION = ".sql"


@dataclass
class RunSummary:
    """Files applied by one run, in execution order."""

    run_id: str
    executed: List[str] = field(default_factory=list)


def discover_scripts(scripts_dir: str, relations: Optional[Sequence[Relation]] = None) -> List[str]:
    """Return the script paths to apply, in execution order.

    Without relations this is the walker's lexical order. With relations the
    planner's post-order is used; a dependency missing from the directory keeps
    an empty path and fails when it is read.
    """
    files = walk_files(scripts_dir, SQL_EXTENSION)
    if relations is None:
        return files
    return [node.file_path for node in plan_forest(relations, files).post_order()]


def read_script(path: str) -> bytes:
    """Return the raw file contents. No decoding; the server applies its client encoding."""
    if not path:
        raise ScriptReadError("failed to read file: dependency has no matching script")
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise ScriptReadError(f"failed to read file: {path}: {exc}") from exc


def run_scripts(
    gateway: SqlGateway,
    scripts_dir: str,
    *,
    debug: bool = False,
    relations: Optional[Sequence[Relation]] = None,
) -> RunSummary:
    """Execute every ``.sql`` file under ``scripts_dir`` through ``gateway``.

    Files run one at a time outside any enclosing transaction. The first read
    or execution error propagates; later files are not attempted and earlier
    ones are not rolled back.

    Args:
        gateway (SqlGateway): Connected database gateway.
        scripts_dir (str): Directory to search for scripts.
        debug (bool): Log each file before it is executed.
        relations (Optional[Sequence[Relation]]): Apply in planner order instead
            of walker order.

    Returns:
        RunSummary: The run id and the files applied.
    """
    summary = RunSummary(run_id=new_uuid())
    paths = discover_scripts(scripts_dir, relations)
    log_event(
        "run.start",
        {"run_id": summary.run_id, "scripts_dir": scripts_dir, "files": len(paths), "ordered": relations is not None},
    )
    for path in paths:
        if debug:
            log_event(
                "script.execute",
                {"run_id": summary.run_id, "message": f"executing sql file: {path}", "path": path},
            )
        sql = read_script(path)
        try:
            gateway.exec(sql)
        except ExecutionError as exc:
            raise ExecutionError(f"failed to execute sql file: {path}: {exc}") from exc
        summary.executed.append(path)
        if debug:
            log_event(
                "script.done",
                {"run_id": summary.run_id, "path": path, "bytes": len(sql), "sha256": sha256_hex(sql)},
            )
    log_event("run.done", {"run_id": summary.run_id, "executed": len(summary.executed)})
    return summary
