"""Errors raised by the script runner, database gateway, and planner."""

from __future__ import annotations


class SqlReplayError(RuntimeError):
    """Base error for sqlreplay failures."""


class ConfigurationError(SqlReplayError):
    """Raised when required settings are missing or invalid."""


class DatabaseConnectionError(SqlReplayError):
    """Raised when the database cannot be reached or the ping query fails."""


class DiscoveryError(SqlReplayError):
    """Raised when the scripts directory cannot be walked."""


class ScriptReadError(SqlReplayError):
    """Raised when a script file cannot be read."""


class ExecutionError(SqlReplayError):
    """Raised when the server rejects a statement."""


class RelationsError(SqlReplayError):
    """Raised when the relations manifest cannot be parsed."""


class RelationCycleError(RelationsError):
    """Raised when the relations manifest declares a dependency cycle."""

    def __init__(self, cycle: list[str]):
        self.cycle = list(cycle)
        super().__init__("dependency cycle in relations: " + " -> ".join(self.cycle))
