"""
Reference Notes Assistant.

Notes, imported web pages and a query history, with questions sent to a
chat completions endpoint using selected notes and pages as context.
"""

__all__ = [
    "cli",
    "config",
    "errors",
    "ingest",
    "kvstore",
    "logging_config",
    "models",
    "prompt",
    "query",
    "selection",
    "session",
    "store",
]
