"""Configuration file discovery and loading.

Configuration is read from the working directory, in this order:

1. ``release.config.py``: a module defining ``config``, either a mapping
   or a (sync or async) callable returning one.
2. ``release.config.toml``: plain tables (``[git]``, ``[npm]``, ...).

The user mapping is merged over :func:`default_config` and validated
into a frozen :class:`~release_npm.config.models.ReleaseConfig`.
"""

from __future__ import annotations

import copy
import importlib.util
import inspect
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import ValidationError

from release_npm.config.models import ReleaseConfig
from release_npm.exceptions import ConfigNotFoundError, ConfigValidationError
from release_npm.logging import get_logger

if TYPE_CHECKING:
    from pathlib import Path

log = get_logger("release_npm.config.loader")

CONFIG_FILENAMES = ("release.config.py", "release.config.toml")

T = TypeVar("T")


@dataclass(frozen=True)
class LoadedConfig:
    """A resolved configuration and the file it came from (``None`` for defaults)."""

    config: ReleaseConfig
    path: Path | None = None

    @property
    def from_file(self) -> bool:
        return self.path is not None


def define_config(config: T) -> T:
    """Identity helper for ``release.config.py`` files.

    Example::

        from release_npm import define_config

        config = define_config({"git": {"push": False}})
    """
    return config


def find_config_file(cwd: Path) -> Path | None:
    """Return the first config file found in ``cwd``."""
    for name in CONFIG_FILENAMES:
        path = cwd / name
        if path.is_file():
            return path
    return None


async def load_user_config(path: Path) -> dict[str, Any]:
    """Load the raw user mapping from a config file.

    Raises:
        ConfigNotFoundError: If ``path`` does not exist.
        ConfigValidationError: If the file cannot be parsed or does not
            produce a mapping.
    """
    if not path.is_file():
        raise ConfigNotFoundError(f"Config file not found: {path}")

    if path.suffix == ".toml":
        try:
            with path.open("rb") as f:
                return tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigValidationError(f"Invalid TOML in {path}: {e}") from e

    value = _exec_python_config(path)
    if callable(value):
        value = value()
    if inspect.isawaitable(value):
        value = await value
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigValidationError(f"'config' in {path} must be a mapping, got {type(value).__name__}")
    return dict(value)


def _exec_python_config(path: Path) -> Any:
    spec = importlib.util.spec_from_file_location(f"_release_config_{path.stem.replace('.', '_')}", path)
    if spec is None or spec.loader is None:
        raise ConfigValidationError(f"Cannot import {path}")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise ConfigValidationError(f"Error executing {path}: {e}") from e

    if not hasattr(module, "config"):
        raise ConfigValidationError(f"{path} must define a 'config' variable")
    return module.config


def merge_config(defaults: Mapping[str, Any], overrides: Mapping[str, Any] | None) -> dict[str, Any]:
    """Recursively merge ``overrides`` over ``defaults``.

    Nested mappings are merged key by key. Callables are kept by
    reference; every other value is deep-copied so the result shares no
    mutable state with either input. ``None`` in ``overrides`` counts as
    a value (it turns a toggle into "ask").
    """
    if not overrides:
        return _copy_value(defaults)

    result: dict[str, Any] = {}
    keys = [*defaults, *(k for k in overrides if k not in defaults)]
    for key in keys:
        if key not in overrides:
            result[key] = _copy_value(defaults[key])
            continue
        default = defaults.get(key)
        override = overrides[key]
        if isinstance(default, Mapping) and isinstance(override, Mapping):
            result[key] = merge_config(default, override)
        else:
            result[key] = _copy_value(override)
    return result


def _copy_value(value: Any) -> Any:
    if callable(value):
        return value
    if isinstance(value, Mapping):
        return {k: _copy_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_copy_value(v) for v in value]
    return copy.deepcopy(value)


def default_config(is_ci: bool = False) -> dict[str, Any]:
    """Default configuration mapping.

    Interactive decisions default to "ask" (``None``); in CI they are
    all enabled since nobody can answer.
    """
    toggle = True if is_ci else None
    return {
        "git": {"commit": toggle, "tag": toggle, "push": toggle},
        "npm": {"publish": toggle},
        "github": {"release": toggle},
    }


async def load_config(cwd: Path, *, is_ci: bool = False) -> LoadedConfig:
    """Find, load, merge and validate the configuration for ``cwd``.

    Args:
        cwd: Directory to look for a config file in.
        is_ci: Use the CI defaults.

    Returns:
        The validated configuration and its source file.

    Raises:
        ConfigValidationError: If the configuration is invalid.
    """
    path = find_config_file(cwd)
    user: dict[str, Any] = {}
    if path is not None:
        user = await load_user_config(path)
        log.debug("config_loaded", path=str(path), keys=sorted(user))

    merged = merge_config(default_config(is_ci), user)
    try:
        config = ReleaseConfig.model_validate(merged)
    except ValidationError as e:
        source = path.name if path else "default configuration"
        raise ConfigValidationError(f"Invalid configuration in {source}:\n{e}") from e
    return LoadedConfig(config=config, path=path)
