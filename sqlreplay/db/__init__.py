"""Postgres gateway used by the script runner."""

from .connection import (
    DBCredentials,
    DBOptions,
    Database,
    SqlGateway,
    TransactionScope,
    build_conninfo,
    resolve_network,
)

__all__ = [
    "DBCredentials",
    "DBOptions",
    "Database",
    "SqlGateway",
    "TransactionScope",
    "build_conninfo",
    "resolve_network",
]
