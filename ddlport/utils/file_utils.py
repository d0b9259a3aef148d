"""
Common file utilities used across the application.
Consolidates file discovery, reading and the atomic output writes of the
conversion service.
"""
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple


def find_sql_files(input_path: str, exclude_dirs: List[str] = None) -> List[str]:
    """
    Find all SQL files in a given path.

    Args:
        input_path: Path to a directory or a SQL file
        exclude_dirs: List of directory names to exclude (e.g., ['converted', 'logs'])

    Returns:
        Sorted list of paths to SQL files
    """
    if exclude_dirs is None:
        exclude_dirs = ['converted', 'logs', '__pycache__']

    sql_files = []
    normalized_input_path = os.path.normpath(str(input_path))

    if os.path.isdir(normalized_input_path):
        for root, dirs, files in os.walk(normalized_input_path):
            # Remove excluded directories from the walk
            dirs[:] = [d for d in dirs if d not in exclude_dirs]

            for file in files:
                if file.lower().endswith('.sql'):
                    sql_files.append(os.path.join(root, file))
    elif os.path.isfile(normalized_input_path) and normalized_input_path.lower().endswith('.sql'):
        sql_files = [normalized_input_path]

    return sorted(sql_files)


def create_processing_stats() -> Dict[str, int]:
    """Create standard processing statistics dictionary for tracking file/statement operations."""
    return {
        'total_files': 0,
        'files_converted': 0,
        'files_failed': 0,
        'files_skipped': 0,
        'statements_converted': 0,
        'review_items': 0,
    }


def make_relative_path(file_path: str, base_path: str) -> str:
    """
    Make a file path relative to a base path, with error handling.

    Args:
        file_path: Absolute file path
        base_path: Base path to make relative to

    Returns:
        Relative path or original path if conversion fails
    """
    if not file_path or not base_path:
        return file_path

    try:
        return os.path.relpath(file_path, base_path)
    except (ValueError, OSError):
        # Return original path if relative path conversion fails
        return file_path


def read_file_content(file_path: str) -> Optional[str]:
    """
    Read content from a file.

    Args:
        file_path: Path to the file to read

    Returns:
        File content as string, or None if the file is blank.
        I/O errors propagate to the caller.
    """
    with open(file_path, 'r', encoding='utf-8-sig') as f:
        content = f.read()

    if not content.strip():
        return None

    return content


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------

_locks_guard = threading.Lock()
# path -> [lock, holders]; an entry is dropped when its last holder leaves
_path_locks: Dict[str, list] = {}


@contextmanager
def path_lock(*paths: str | Path) -> Iterator[None]:
    """Hold one process-wide lock per path, acquired in sorted order."""
    keys = sorted({os.path.normcase(os.path.abspath(str(p))) for p in paths})
    with _locks_guard:
        entries = [_path_locks.setdefault(key, [threading.Lock(), 0]) for key in keys]
        for entry in entries:
            entry[1] += 1
    acquired = []
    try:
        for entry in entries:
            entry[0].acquire()
            acquired.append(entry[0])
        yield
    finally:
        for lock in reversed(acquired):
            lock.release()
        with _locks_guard:
            for key, entry in zip(keys, entries):
                entry[1] -= 1
                if entry[1] == 0:
                    del _path_locks[key]


def write_files_atomically(files: Sequence[Tuple[str | Path, str]]) -> List[Path]:
    """Write every ``(path, content)`` pair or none of them.

    Each content goes to a temp file in its target directory first; the temp
    files are then moved into place with ``os.replace`` in the given order.
    Temp files are removed when anything fails before the moves.
    """
    targets = [Path(path) for path, _ in files]
    staged: List[Tuple[str, Path]] = []
    with path_lock(*targets):
        try:
            for target, (_, content) in zip(targets, files):
                target.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix='.tmp', dir=str(target.parent))
                staged.append((tmp_name, target))
                with os.fdopen(fd, 'w', encoding='utf-8', newline='\n') as f:
                    f.write(content)
            for tmp_name, target in staged:
                os.replace(tmp_name, target)
        except BaseException:
            _discard_temp_files(tmp for tmp, _ in staged)
            raise
    return targets


def _discard_temp_files(names: Iterable[str]) -> None:
    for name in names:
        try:
            os.remove(name)
        except FileNotFoundError:
            pass
