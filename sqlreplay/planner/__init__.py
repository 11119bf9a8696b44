"""Relations manifest loading and dependency-ordered planning."""

from .forest import Forest, ForestNode, ScriptEntry, build_entries, forest_to_json, plan_forest, resolve_path
from .relations import Relation, load_relations, parse_relations

__all__ = [
    "Forest",
    "ForestNode",
    "Relation",
    "ScriptEntry",
    "build_entries",
    "forest_to_json",
    "load_relations",
    "parse_relations",
    "plan_forest",
    "resolve_path",
]
