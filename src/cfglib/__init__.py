"""Core library for cfgctl.

Path parsing, node classification, navigation over JSON and TOML documents,
the error taxonomy and atomic persistence used by the CLI.
"""

__all__ = [
    "config",
    "cursor",
    "documents",
    "errors",
    "kinds",
    "navigator",
    "paths",
]
