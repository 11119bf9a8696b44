"""Relations manifest loader. Reads the YAML file declaring which scripts each script depends on."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List

import yaml

from sqlreplay.core.errors import RelationsError
from sqlreplay.core.logging_utils import log_event


@dataclass(frozen=True)
class Relation:
    """One manifest record: ``file`` must run after every entry in ``dependencies``."""

    file: str
    dependencies: List[str] = field(default_factory=list)


def parse_relations(data: Any, *, source: str = "<manifest>") -> List[Relation]:
    """Validate a decoded manifest document and return its relations in order.

    Args:
        data (Any): Result of ``yaml.safe_load``.
        source (str): Name used in error messages.

    Returns:
        List[Relation]: Relations in manifest order.
    """
    if data is None:
        return []
    if not isinstance(data, dict):
        raise RelationsError(f"{source}: expected a mapping with a 'relations' key")
    items = data.get("relations")
    if items is None:
        return []
    if not isinstance(items, list):
        raise RelationsError(f"{source}: 'relations' must be a list")

    relations: List[Relation] = []
    for pos, item in enumerate(items):
        if not isinstance(item, dict):
            raise RelationsError(f"{source}: relation #{pos} must be a mapping")
        file_name = item.get("file")
        if not isinstance(file_name, str) or not file_name.strip():
            raise RelationsError(f"{source}: relation #{pos} needs a non-empty 'file'")
        deps = item.get("dependencies")
        if deps is None:
            deps = []
        if not isinstance(deps, list) or not all(isinstance(dep, str) for dep in deps):
            raise RelationsError(f"{source}: dependencies of {file_name} must be a list of file names")
        relations.append(Relation(file=file_name, dependencies=list(deps)))
    return relations


def load_relations(path: str | Path) -> List[Relation]:
    """Read the relations manifest at ``path``.

    A missing manifest is logged and treated as empty. Parse errors raise
    ``RelationsError``.
    """
    manifest = Path(path)
    try:
        text = manifest.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        log_event("relations.missing", {"path": str(manifest), "error": str(exc)})
        return []
    except OSError as exc:
        raise RelationsError(f"unable to read relations file {manifest}: {exc}") from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise RelationsError(f"unable to parse relations file {manifest}: {exc}") from exc
    return parse_relations(data, source=str(manifest))
