"""Utilities (logging, atomic JSON files)"""
from .logging import log, vlog, warn, set_verbose
from .file_utils import read_json, write_json_atomic

__all__ = [
    "log", "vlog", "warn", "set_verbose",
    "read_json", "write_json_atomic",
]
