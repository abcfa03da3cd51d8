"""Backend version lookup (installed metadata first, pyproject.toml second)."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Final

import tomllib

DISTRIBUTION_NAME: Final[str] = "exchange-desk-backend"
PYPROJECT_PATH: Final[Path] = Path(__file__).resolve().parents[2] / "pyproject.toml"


def _version_from_pyproject(path: Path = PYPROJECT_PATH) -> str | None:
    if not path.is_file():
        return None
    with path.open("rb") as fp:
        project = tomllib.load(fp).get("project") or {}
    declared = project.get("version") if isinstance(project, dict) else None
    return declared if isinstance(declared, str) else None


def resolve_version() -> str:
    """Return the running backend version, ``0.0.0`` when nothing declares one."""
    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        return _version_from_pyproject() or "0.0.0"


APP_VERSION: Final[str] = resolve_version()

__all__ = ["APP_VERSION", "DISTRIBUTION_NAME", "resolve_version"]
