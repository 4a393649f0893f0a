"""Package metadata access."""

from __future__ import annotations

from release_npm.project.package_json import PackageInfo, find_package_dir, read_package

__all__ = ["PackageInfo", "find_package_dir", "read_package"]
