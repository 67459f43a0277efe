from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from isa import STACK_SENTINEL, get_arch

"""Config loader and validator.

Provides `load_config` which accepts either a path to a YAML file,
a dictionary or None and returns a normalized configuration dict
using DEFAULTS for missing values.
"""


DEFAULTS: dict[str, Any] = {
    "arch": "arm64",
    "stack_pointer": STACK_SENTINEL,
    "lenient_log": False,
}


class ConfigError(ValueError):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


def _to_int(v: Any) -> int:
    """Accept ints and numeric strings (decimal or 0x-hex)."""
    if isinstance(v, bool):
        raise TypeError("boolean is not an integer")
    if isinstance(v, str):
        return int(v.strip(), 0)
    return int(v)


def _convert_types(cfg: dict[str, Any]) -> None:
    """Normalize types for configuration values in-place.

    Raises ConfigError on conversion failure.
    """
    try:
        # arch -> canonical name
        cfg["arch"] = get_arch(cfg.get("arch", DEFAULTS["arch"])).name

        # stack_pointer
        v = cfg.get("stack_pointer")
        if v is None:
            cfg["stack_pointer"] = int(DEFAULTS["stack_pointer"])
        else:
            cfg["stack_pointer"] = _to_int(v)

        # lenient_log (bool coercion)
        cfg["lenient_log"] = bool(cfg.get("lenient_log", DEFAULTS["lenient_log"]))
    except Exception as e:
        msg = f"Bad types in config: {e}"
        raise ConfigError(msg) from e


def _validate_cfg(cfg: dict[str, Any]) -> None:
    """Perform semantic validation on normalized config dict.

    Raises ConfigError on invalid values.
    """
    if not (0 <= cfg["stack_pointer"] < (1 << 63)):
        msg = f"stack_pointer ({cfg['stack_pointer']}) out of range (0..2**63-1)"
        raise ConfigError(msg)

    if not isinstance(cfg["lenient_log"], bool):
        msg = "lenient_log must be boolean"
        raise ConfigError(msg)


def _read_yaml(path: str | Path) -> dict[str, Any]:
    """Read a YAML mapping from `path`; an empty file counts as an empty mapping."""
    p = Path(path)
    if not p.exists():
        msg = f"Config file not found: {path}"
        raise ConfigError(msg)
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        msg = f"Failed to load config file {path}: {e}"
        raise ConfigError(msg) from e
    if not isinstance(data, dict):
        msg = f"Config file {path} does not contain a mapping"
        raise ConfigError(msg)
    return data


def load_config(path_or_dict: str | Path | dict[str, Any] | None = None) -> dict[str, Any]:
    """Load and normalize simulator configuration.

    Accepts None (defaults), a dict overlaying DEFAULTS, or a YAML file path.
    Returns a normalized dict or raises ConfigError.
    """
    if path_or_dict is None:
        overrides: dict[str, Any] = {}
    elif isinstance(path_or_dict, dict):
        overrides = path_or_dict
    elif isinstance(path_or_dict, (str, Path)):
        overrides = _read_yaml(path_or_dict)
    else:
        msg = f"Unsupported config input: {type(path_or_dict).__name__}"
        raise ConfigError(msg)

    cfg = {**DEFAULTS, **overrides}
    _convert_types(cfg)
    _validate_cfg(cfg)
    return cfg
