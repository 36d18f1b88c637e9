"""Persistent storage for Unitcalc.

This module provides:
- Session configuration (angle mode, auto-eval, enabled catalogs) as JSON
- User constants as ``name = value`` lines
- Function definitions as ``<name>.math`` files
- Unit catalogs as ``<catalog>.units/<symbol>.unit`` directories
- The built-in unit catalog installed when the data directory has none

Every write goes to a temporary file first and then replaces the target.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from . import config
from .function_manager import FunctionDefinition, FunctionStore
from .logging_config import get_logger
from .registry import Registry
from .types import MalformedDeclarationError, ParseError, UnresolvedReferenceError, ValidationError
from .units import UnitCatalog

logger = get_logger("storage")

_CONFIG_VERSION = 1  # Increment when the config format changes

# Catalog installed on first start: symbol -> unit file text
BUILTIN_UNIT_FILES = {
    "electric": {
        "V": "Volt\nV*A=W\n",
        "A": "Ampere\n",
        "W": "Watt\n",
        "Wh": "Watt hour\nWh/h=W\n",
        "h": "Hour\nh*3600=s\n",
        "s": "Second\n",
        "Ω": "Ohm\nΩ*A=V\n",
    },
}


def _default_config() -> dict[str, Any]:
    return {
        "version": _CONFIG_VERSION,
        "angle_mode": config.ANGLE_MODE,
        "auto_eval": config.AUTO_EVAL,
        "enabled": None,
    }


def get_data_dir(data_dir: Path | None = None) -> Path:
    """Get or create the data directory."""
    path = Path(data_dir) if data_dir is not None else config.DATA_DIR
    path.mkdir(parents=True, exist_ok=True)
    return path


def _write_atomic(path: Path, text: str) -> None:
    temp_file = path.with_suffix(path.suffix + ".tmp")
    with open(temp_file, "w", encoding="utf-8") as f:
        f.write(text)
    temp_file.replace(path)


def load_config(data_dir: Path | None = None) -> dict[str, Any]:
    """Load the session configuration, falling back to defaults.

    Returns:
        Dictionary with keys "version", "angle_mode", "auto_eval" and
        "enabled" (list of catalog names, or None for "all")
    """
    config_file = get_data_dir(data_dir) / config.CONFIG_FILE_NAME
    if not config_file.exists():
        return _default_config()
    try:
        with open(config_file, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Failed to load config: {e}, using defaults")
        return _default_config()

    if not isinstance(data, dict) or data.get("version") != _CONFIG_VERSION:
        logger.info("Config version mismatch, using defaults")
        return _default_config()
    merged = _default_config()
    merged.update({k: v for k, v in data.items() if k in merged})
    if merged["enabled"] is not None and not isinstance(merged["enabled"], list):
        merged["enabled"] = None
    return merged


def save_config(data: dict[str, Any], data_dir: Path | None = None) -> None:
    config_file = get_data_dir(data_dir) / config.CONFIG_FILE_NAME
    payload = dict(data, version=_CONFIG_VERSION)
    _write_atomic(config_file, json.dumps(payload, ensure_ascii=False, indent=2))
    logger.debug(f"Saved config to {config_file}")


def load_constants(data_dir: Path | None = None) -> dict[str, float]:
    """Read user constants; malformed lines are logged and skipped."""
    constants_file = get_data_dir(data_dir) / config.CONSTANTS_FILE_NAME
    if not constants_file.exists():
        return {}
    constants: dict[str, float] = {}
    for line in constants_file.read_text(encoding="utf-8").splitlines():
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        match = config.ASSIGNMENT_LINE_RE.match(line)
        try:
            if match is None:
                raise ValueError(line)
            constants[match.group(1)] = float(match.group(2))
        except ValueError:
            logger.warning(f"Ignoring malformed constant line: {line.strip()}")
    return constants


def save_constants(constants: dict[str, float], data_dir: Path | None = None) -> None:
    """Write user constants; built-ins are never persisted."""
    lines = [
        f"{name} = {value!r}"
        for name, value in sorted(constants.items())
        if name not in config.BUILTIN_CONSTANTS
    ]
    constants_file = get_data_dir(data_dir) / config.CONSTANTS_FILE_NAME
    _write_atomic(constants_file, "\n".join(lines) + ("\n" if lines else ""))


def function_path(name: str, data_dir: Path | None = None) -> Path:
    return get_data_dir(data_dir) / f"{name}{config.FUNCTION_EXT}"


def save_function(definition: FunctionDefinition, data_dir: Path | None = None) -> Path:
    path = function_path(definition.name, data_dir)
    _write_atomic(path, definition.to_text())
    logger.info(f"Saved function {definition.name} to {path}")
    return path


def load_function(name: str, store: FunctionStore, data_dir: Path | None = None) -> FunctionDefinition:
    """Load ``<name>.math`` into ``store``.

    Raises:
        UnresolvedReferenceError: If the file does not exist
        MalformedDeclarationError: If the file cannot be parsed
    """
    path = function_path(name, data_dir)
    if not path.exists():
        raise UnresolvedReferenceError(f"Function {name} not found")
    return store.define_from_text(name, path.read_text(encoding="utf-8"))


def delete_function(name: str, data_dir: Path | None = None) -> bool:
    path = function_path(name, data_dir)
    if path.exists():
        path.unlink()
        return True
    return False


def rename_function(old: str, new: str, data_dir: Path | None = None) -> None:
    source = function_path(old, data_dir)
    if source.exists():
        source.replace(function_path(new, data_dir))


def list_function_files(data_dir: Path | None = None) -> list[str]:
    return sorted(p.stem for p in get_data_dir(data_dir).glob(f"*{config.FUNCTION_EXT}"))


def load_all_functions(store: FunctionStore, data_dir: Path | None = None) -> int:
    """Load every function file; broken files are logged and skipped."""
    loaded = 0
    for name in list_function_files(data_dir):
        try:
            load_function(name, store, data_dir)
            loaded += 1
        except (MalformedDeclarationError, ParseError, ValidationError) as e:
            logger.warning(f"Skipping function file {name}: {e}")
    return loaded


def catalog_path(name: str, data_dir: Path | None = None) -> Path:
    return get_data_dir(data_dir) / f"{name}{config.CATALOG_EXT}"


def save_catalog(catalog: UnitCatalog, data_dir: Path | None = None) -> Path:
    """Write one ``.unit`` file per unit: display name, then its relations."""
    directory = catalog_path(catalog.name, data_dir)
    directory.mkdir(parents=True, exist_ok=True)
    for symbol, unit in catalog.units.items():
        lines = [unit.name] + [str(c) for c in catalog.relations_of(symbol)]
        _write_atomic(directory / f"{symbol}{config.UNIT_EXT}", "\n".join(lines) + "\n")
    logger.info(f"Saved unit catalog {catalog.name} to {directory}")
    return directory


def load_catalog(directory: Path, registry: Registry) -> UnitCatalog:
    """Load a ``<name>.units`` directory through a builder and install it.

    Raises:
        MalformedDeclarationError: If any file of the catalog is invalid;
            the registry is left untouched in that case
    """
    name = directory.name[: -len(config.CATALOG_EXT)] if directory.name.endswith(
        config.CATALOG_EXT
    ) else directory.name
    builder = registry.builder(name)
    for unit_file in sorted(directory.glob(f"*{config.UNIT_EXT}")):
        builder.load_unit_file(unit_file.read_text(encoding="utf-8"), unit_file.stem)
    return registry.add_catalog(builder.finalize())


def load_all_catalogs(registry: Registry, data_dir: Path | None = None) -> list[str]:
    """Load every catalog directory; broken catalogs are logged and skipped."""
    loaded = []
    for directory in sorted(get_data_dir(data_dir).glob(f"*{config.CATALOG_EXT}")):
        if not directory.is_dir():
            continue
        try:
            loaded.append(load_catalog(directory, registry).name)
        except (MalformedDeclarationError, OSError) as e:
            logger.warning(f"Skipping unit catalog {directory.name}: {e}")
    return loaded


def load_builtin_catalogs(registry: Registry) -> list[str]:
    """Install the catalogs shipped with the package."""
    names = []
    for name, files in BUILTIN_UNIT_FILES.items():
        builder = registry.builder(name)
        for symbol, text in files.items():
            builder.load_unit_file(text, symbol)
        registry.add_catalog(builder.finalize())
        names.append(name)
    return names
