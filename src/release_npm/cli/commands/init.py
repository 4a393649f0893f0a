"""Implementation of the 'init' command.

Writes a starter ``release.config.py`` to the project root.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rich.console import Console

CONFIG_FILE = "release.config.py"

_HEADER = '''"""release-npm configuration."""

from release_npm import define_config

'''

_DEFAULT_BODY = "config = define_config({})\n"

_MONOREPO_BODY = """config = define_config(
    {
        "monorepo": {
            "enabled": True,
            "packages": ["demo-a", "demo-b"],
            "package_dir": "packages/{package}",
            "tag_name": "{package}@{version}",
            "tag_prefix": "{package}@",
        },
    }
)
"""


def render_config(monorepo: bool) -> str:
    """Content of a new config file."""
    return _HEADER + (_MONOREPO_BODY if monorepo else _DEFAULT_BODY)


def run_init(
    path: str | None,
    force: bool,
    monorepo: bool,
    console: Console,
    err_console: Console,
) -> Path:
    """Run the init command.

    Args:
        path: Optional path to project directory
        force: Overwrite an existing config file
        monorepo: Write the monorepo template
        console: Console for standard output
        err_console: Console for error output

    Returns:
        Path of the written file.
    """
    project_path = Path(path) if path else Path.cwd()
    config_path = project_path / CONFIG_FILE

    if config_path.exists() and not force:
        err_console.print(
            f"[red]Error:[/] [yellow]{CONFIG_FILE}[/] already exists.\nUse [green]--force[/] to overwrite."
        )
        raise SystemExit(1)

    try:
        config_path.write_text(render_config(monorepo), encoding="utf-8")
    except OSError as e:
        err_console.print(f"[red]Error writing {CONFIG_FILE}:[/] {e}")
        raise SystemExit(1) from e

    console.print(f"[green]✔[/] {CONFIG_FILE} created successfully")
    return config_path
