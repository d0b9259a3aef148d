"""Utilities for resolving input paths to concrete locations in the source tree.

This centralises the logic so that **all** entry points (REST or the batch
driver) share one implementation. The expected layout is
``<root>/<Schema>/<Tables|Sequences>/<Object>.sql``; directory names come
from the ``conversion`` section of settings.yaml.
"""
from __future__ import annotations

from pathlib import Path
from typing import NamedTuple, Optional

from ddlport.config import config as _cfg
from .path_utils import source_root

__all__ = ["InputFile", "resolve_source_sql_path", "resolve_input_root", "classify_input_file"]


class InputFile(NamedTuple):
    kind: str  # 'table' | 'sequence' | 'other'
    schema: Optional[str]
    name: str


def _kind_dirs() -> dict:
    conv = _cfg.get("conversion", {})
    return {
        conv.get("tables_dir", "Tables").lower(): "table",
        conv.get("sequences_dir", "Sequences").lower(): "sequence",
    }


def resolve_source_sql_path(input_path: Optional[str] = None) -> Path:
    """Absolute input path; relative paths are taken inside the workspace source tree."""
    if not input_path:
        return source_root().resolve()
    candidate = Path(input_path)
    if not candidate.is_absolute():
        candidate = source_root() / candidate
    return candidate.resolve()


def _is_kind_dir(path: Path, kind_dirs: dict) -> bool:
    # a schema called "Sequences" holds a Sequences dir, not .sql files
    return path.is_dir() and path.name.lower() in kind_dirs and any(p.suffix.lower() == ".sql" for p in path.iterdir())


def resolve_input_root(input_path: Path | str) -> Path:
    """Root of the ``<Schema>/<Kind>/<Object>.sql`` tree that *input_path* belongs to."""
    path = Path(input_path).resolve()
    kind_dirs = _kind_dirs()

    if path.is_file():
        if path.parent.name.lower() in kind_dirs:
            return path.parents[2]
        return path.parent
    if _is_kind_dir(path, kind_dirs):
        return path.parents[1]
    if path.is_dir() and any(_is_kind_dir(child, kind_dirs) for child in path.iterdir()):
        return path.parent
    return path


def classify_input_file(file_path: Path | str) -> InputFile:
    """Kind, schema and object name of one input file, read from its location."""
    path = Path(file_path)
    kind = _kind_dirs().get(path.parent.name.lower())
    if kind is None:
        return InputFile("other", None, path.stem)
    return InputFile(kind, path.parent.parent.name, path.stem)
