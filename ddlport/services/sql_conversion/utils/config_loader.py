import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

from ddlport import config as app_global_config


def conversion_rules_dir(source_type: str, target_type: str, rules_subdirectory: str) -> Path:
    """Directory holding the rule tables for one dialect pair."""
    app_base_dir = app_global_config.get('base_dirs', {}).get('app')
    if not app_base_dir:
        raise KeyError("base_dirs.app")
    return Path(app_base_dir) / 'config' / 'conversion' / f'{source_type.lower()}_{target_type.lower()}' / rules_subdirectory


def load_json_from_conversion_config(
    logger: Any,
    source_type: str,
    target_type: str,
    rules_subdirectory: str,  # e.g. 'ddl_conversion_rules'
    config_filename: str
) -> Dict:
    """
    Loads a JSON configuration file from the structured conversion config directory.
    Expected path structure: app_base_dir/config/conversion/{source_type}_{target_type}/{rules_subdirectory}/{config_filename}

    Missing or unreadable files yield an empty dict; callers fall back to defaults.
    """
    effective_logger = logger if logger is not None else logging.getLogger(__name__)
    full_config_path = "an unspecified path"
    try:
        if not source_type or not target_type:
            effective_logger.error(f"Source type ('{source_type}') or target type ('{target_type}') is empty, cannot construct config path for {config_filename}.")
            return {}

        full_config_path = conversion_rules_dir(source_type, target_type, rules_subdirectory) / config_filename
        if not full_config_path.exists():
            effective_logger.info(f"Configuration file not found (this may be expected): {full_config_path}")
            return {}

        data = _read_json(str(full_config_path))
        effective_logger.debug(f"Successfully loaded configuration from {full_config_path}")
        return data
    except KeyError as ke:
        effective_logger.error(f"KeyError: '{ke}' - 'base_dirs' or 'app' key might be missing in global app_config. Cannot load {config_filename}.", exc_info=True)
        return {}
    except json.JSONDecodeError as jde:
        effective_logger.error(f"Error decoding JSON from {str(full_config_path)}: {jde}", exc_info=True)
        return {}
    except (IOError, OSError) as ioe:
        effective_logger.error(f"File system error (IOError/OSError) loading configuration file {str(full_config_path)}: {ioe}", exc_info=True)
        return {}


@lru_cache(maxsize=32)
def _read_json_cached(path: str) -> str:
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()


def _read_json(path: str) -> Dict:
    # Rule tables are read once per process; every handler gets its own copy.
    return json.loads(_read_json_cached(path))
