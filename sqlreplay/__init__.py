"""sqlreplay: apply a directory of SQL scripts to Postgres, optionally in dependency order."""

from .db import DBCredentials, DBOptions, Database
from .planner import Forest, load_relations, plan_forest
from .runner import run_scripts

__all__ = [
    "DBCredentials",
    "DBOptions",
    "Database",
    "Forest",
    "load_relations",
    "plan_forest",
    "run_scripts",
]
