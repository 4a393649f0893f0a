"""package.json reading.

Only the fields the release flow needs are extracted: name, version,
the ``private`` flag and ``publishConfig``. Writing the version back is
left to ``npm version`` (see :mod:`release_npm.registry.npm`) so lock
files stay in sync.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from release_npm.exceptions import PackageNotFoundError, ProjectError

DEFAULT_REGISTRY = "https://registry.npmjs.org"
DEFAULT_ACCESS = "public"


@dataclass(frozen=True)
class PackageInfo:
    """Metadata read from a package.json.

    Attributes:
        name: Package name (may be scoped, e.g. ``@scope/pkg``).
        version: Current version string.
        private: ``"private": true`` in package.json.
        publish_config: The ``publishConfig`` table with defaults applied.
        directory: Directory containing the package.json.
    """

    name: str
    version: str
    private: bool
    directory: Path
    publish_config: dict[str, Any] = field(default_factory=dict)

    @property
    def registry(self) -> str:
        return str(self.publish_config.get("registry") or DEFAULT_REGISTRY)

    @property
    def access(self) -> str:
        return str(self.publish_config.get("access") or DEFAULT_ACCESS)


def find_package_json(directory: Path) -> Path:
    """Return the package.json in ``directory``.

    Raises:
        PackageNotFoundError: If there is none.
    """
    path = directory / "package.json"
    if not path.is_file():
        raise PackageNotFoundError(f"No package.json found in {directory}")
    return path


def load_package_json(path: Path) -> dict[str, Any]:
    """Parse a package.json file.

    Raises:
        ProjectError: If the file is not a JSON object.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ProjectError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ProjectError(f"Expected a JSON object in {path}")
    return data


def read_package(directory: Path) -> PackageInfo:
    """Read package metadata from ``directory``.

    Args:
        directory: Package directory (monorepo package or repository root).

    Returns:
        Parsed :class:`PackageInfo`.

    Raises:
        PackageNotFoundError: If there is no package.json.
        ProjectError: If name or version is missing.
    """
    path = find_package_json(directory)
    data = load_package_json(path)

    name = data.get("name")
    version = data.get("version")
    if not name:
        raise ProjectError(f"Missing 'name' in {path}")
    if not version:
        raise ProjectError(f"Missing 'version' in {path}")

    publish_config = {
        "access": DEFAULT_ACCESS,
        "registry": DEFAULT_REGISTRY,
        **(data.get("publishConfig") or {}),
    }

    return PackageInfo(
        name=str(name),
        version=str(version),
        private=bool(data.get("private", False)),
        directory=directory.resolve(),
        publish_config=publish_config,
    )


def find_package_dir(root: Path, relative: Path | str = ".") -> Path:
    """Resolve a package directory below ``root``.

    Raises:
        PackageNotFoundError: If the directory has no package.json.
    """
    directory = (root / relative).resolve()
    find_package_json(directory)
    return directory
