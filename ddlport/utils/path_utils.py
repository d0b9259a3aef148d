from pathlib import Path
from ddlport.config import config

__all__ = [
    "workspace_path",
    "source_root",
    "converted_root",
    "object_path",
]


def workspace_path(*parts) -> Path:

    if not parts:
        return Path(config["base_dirs"]["workspace"])

    invalid_parts = [p for p in parts if p is None or str(p).strip() == ""]
    if invalid_parts:
        raise ValueError(
            "workspace_path parts cannot be empty or None. "
            f"Received invalid segment(s): {invalid_parts}"
        )

    return Path(config["base_dirs"]["workspace"]).joinpath(*parts)


def source_root() -> Path:
    """Default input tree: ``<workspace>/<source>``."""
    return workspace_path(config.get("workspace_sub_dirs", {}).get("source", "source"))


def converted_root() -> Path:
    """Default output tree: ``<workspace>/<converted>``. It persists across runs."""
    return workspace_path(config.get("workspace_sub_dirs", {}).get("converted", "converted"))


# ---------------------------------------------------------------------------
# <root>/<Schema>/<Kind dir>/<Object><suffix>
# ---------------------------------------------------------------------------


def object_path(root: Path | str, schema: str, name: str, *, kind_dir: str | None = None, suffix: str = ".sql") -> Path:

    if not schema or not str(schema).strip():
        raise ValueError("'schema' must be a non-empty string in object_path().")
    if not name or not str(name).strip():
        raise ValueError("'name' must be a non-empty string in object_path().")

    kind_dir = kind_dir or config.get("conversion", {}).get("tables_dir", "Tables")
    return Path(root) / schema / kind_dir / f"{name}{suffix}"
