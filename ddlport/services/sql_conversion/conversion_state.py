"""
Persisted conversion state: the output tree itself.

A table "has output" when ``<root>/<Schema>/<Tables>/<Table>.sql`` exists.
Lookups go through ``ObjectKey`` so they ignore the casing of schema and
table names. Nothing else is persisted between runs.
"""
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Optional

from ddlport.config import config
from ddlport.utils.logger import setup_logger
from ddlport.utils.path_utils import converted_root, object_path
from .nodes import ObjectKey

logger = setup_logger('ConversionState')


def _conversion_setting(name: str, default: str) -> str:
    return config.get('conversion', {}).get(name, default)


@dataclass(frozen=True)
class OutputSnapshot:
    """Read-only view of which tables had output when a file started converting."""
    keys: FrozenSet[ObjectKey]

    def has_output(self, key: ObjectKey) -> bool:
        return key in self.keys

    def __call__(self, key: ObjectKey) -> bool:
        return self.has_output(key)


class OutputTreeState:
    def __init__(self, output_root: Optional[Path | str] = None, tables_dir: Optional[str] = None,
                 report_suffix: Optional[str] = None):
        self.output_root = Path(output_root) if output_root is not None else converted_root()
        self.tables_dir = tables_dir or _conversion_setting('tables_dir', 'Tables')
        self.report_suffix = report_suffix or _conversion_setting('report_suffix', '.report.json')
        self._lock = threading.Lock()
        self._outputs: Dict[ObjectKey, Path] = {}
        self.refresh()

    def refresh(self) -> None:
        """Rescan the output tree."""
        outputs: Dict[ObjectKey, Path] = {}
        if self.output_root.is_dir():
            for schema_dir in sorted(p for p in self.output_root.iterdir() if p.is_dir()):
                for kind_dir in sorted(p for p in schema_dir.iterdir() if p.is_dir()):
                    if kind_dir.name.lower() != self.tables_dir.lower():
                        continue
                    for ddl_file in sorted(kind_dir.iterdir()):
                        if ddl_file.is_file() and ddl_file.suffix.lower() == '.sql':
                            outputs.setdefault(ObjectKey(schema_dir.name, ddl_file.stem), ddl_file)
        with self._lock:
            self._outputs = outputs
        logger.debug(f"Output tree {self.output_root}: {len(outputs)} converted table(s)")

    def has_output(self, key: ObjectKey) -> bool:
        with self._lock:
            path = self._outputs.get(key)
        return path is not None and path.is_file()

    def output_path(self, schema: str, table: str) -> Path:
        """Existing output file for the table, or where a new one goes."""
        with self._lock:
            existing = self._outputs.get(ObjectKey(schema, table))
        if existing is not None:
            return existing
        return object_path(self.output_root, schema, table, kind_dir=self.tables_dir)

    def report_path(self, schema: str, table: str) -> Path:
        ddl_path = self.output_path(schema, table)
        return ddl_path.with_name(ddl_path.stem + self.report_suffix)

    def snapshot(self) -> OutputSnapshot:
        with self._lock:
            keys = frozenset(key for key, path in self._outputs.items() if os.path.isfile(path))
        return OutputSnapshot(keys)

    def record_output(self, key: ObjectKey, path: Path | str) -> None:
        """Register a DDL file once it has been written."""
        with self._lock:
            self._outputs[key] = Path(path)


def has_output(schema: str, table: str, output_root: Optional[Path | str] = None) -> bool:
    """True when the output tree holds converted DDL for ``schema.table``."""
    return OutputTreeState(output_root).has_output(ObjectKey(schema, table))


def output_path(schema: str, table: str, output_root: Optional[Path | str] = None) -> Path:
    return OutputTreeState(output_root).output_path(schema, table)
