"""Applies discovered SQL scripts to Postgres."""

from .scripts import RunSummary, discover_scripts, read_script, run_scripts

__all__ = ["RunSummary", "discover_scripts", "read_script", "run_scripts"]
