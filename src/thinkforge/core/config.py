"""TOML helpers shared by ThinkForge configuration loaders."""

from __future__ import annotations

import copy
import tomllib
from pathlib import Path
from typing import Any, Dict, Mapping

from ..errors import ThinkForgeError

__all__ = [
    "ConfigError",
    "load_toml",
    "merge_defaults",
    "write_toml_template",
]


class ConfigError(ThinkForgeError):
    """Raised when TOML config IO or validation fails."""


def load_toml(path: Path, *, missing_ok: bool = False) -> Dict[str, Any]:
    """Parse the TOML document at ``path``.

    With ``missing_ok`` an absent file reads as an empty document. Parse
    failures name the offending file.
    """

    try:
        raw = path.read_bytes()
    except FileNotFoundError as exc:
        if missing_ok:
            return {}
        raise ConfigError(f"Config file not found: {path}") from exc
    try:
        return tomllib.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(
            f"Failed to parse config TOML in {path}: {exc}"
        ) from exc


def merge_defaults(
    defaults: Mapping[str, Any],
    override: Mapping[str, Any],
    *,
    prefix: str = "",
) -> Dict[str, Any]:
    """Return a copy of ``defaults`` with ``override`` layered on top.

    Keys absent from ``defaults`` are rejected, and tables may only be
    replaced by tables. ``defaults`` is left untouched.
    """

    merged = copy.deepcopy(dict(defaults))
    for key, value in override.items():
        dotted = f"{prefix}{key}"
        if key not in merged:
            raise ConfigError(f"Unknown configuration key '{dotted}'.")
        current = merged[key]
        if isinstance(current, Mapping):
            if not isinstance(value, Mapping):
                raise ConfigError(
                    f"Expected table for '{dotted}', "
                    f"found {type(value).__name__}."
                )
            merged[key] = merge_defaults(current, value, prefix=f"{dotted}.")
        else:
            merged[key] = value
    return merged


def write_toml_template(
    path: Path,
    *,
    template: str,
    overwrite: bool = False,
    mode: int = 0o600,
) -> Path:
    """Write ``template`` to ``path``, refusing to clobber unless asked."""

    if path.exists() and not overwrite:
        raise ConfigError(f"Config already exists: {path}")
    tomllib.loads(template)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(template, encoding="utf-8")
    path.chmod(mode)
    return path
