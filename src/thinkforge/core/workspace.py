"""Per-user data directory holding config, logs and the stored session."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from ..errors import ThinkForgeError

WORKSPACE_ENV = "THINKFORGE_DATA_HOME"
DEFAULT_WORKSPACE = Path.home() / ".thinkforge"
SUBDIRECTORIES = ("config", "logs", "auth")


class WorkspaceError(ThinkForgeError):
    """Raised when the workspace layout cannot be prepared."""


@dataclass(frozen=True)
class WorkspaceLayout:
    home: Path
    directories: Mapping[str, Path]
    created: Mapping[str, bool]

    def path_for(self, key: str) -> Path:
        if key not in self.directories:
            raise KeyError(f"Unknown workspace directory '{key}'.")
        return self.directories[key]

    def items(self) -> tuple[tuple[str, Path], ...]:
        return tuple(self.directories.items())


def resolve_home(
    env: Mapping[str, str], override: Path | None = None
) -> Path:
    """Pick the workspace root: explicit path, then env var, then default."""

    if override is None:
        custom = (env.get(WORKSPACE_ENV) or "").strip()
        override = Path(custom) if custom else DEFAULT_WORKSPACE
    return override.expanduser().resolve()


def ensure_workspace(
    *,
    env: Mapping[str, str] | None = None,
    path: Path | None = None,
    create: bool = True,
) -> WorkspaceLayout:
    """Return the workspace layout, creating missing directories.

    With ``create=False`` nothing is written; the layout only describes
    where the directories would live. Directories are created ``0700``
    because ``auth/`` holds refresh tokens.
    """

    home = resolve_home(os.environ if env is None else env, path)
    targets = {"home": home}
    targets.update((name, home / name) for name in SUBDIRECTORIES)

    created: dict[str, bool] = {}
    for key, target in targets.items():
        if target.exists() and not target.is_dir():
            raise WorkspaceError(
                f"Expected a directory for workspace '{key}': {target}"
            )
        created[key] = create and _make_private_dir(target)

    return WorkspaceLayout(
        home=home,
        directories=MappingProxyType(
            {name: targets[name] for name in SUBDIRECTORIES}
        ),
        created=MappingProxyType(created),
    )


def _make_private_dir(path: Path) -> bool:
    existed = path.is_dir()
    try:
        path.mkdir(parents=True, exist_ok=True)
        path.chmod(0o700)
    except OSError as exc:
        raise WorkspaceError(f"Unable to prepare workspace at {path}") from exc
    return not existed
