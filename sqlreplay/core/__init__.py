"""Core configuration, errors, logging, and filesystem helpers."""
