# ABOUTME: The `bibrecon config` command group for inspecting provider configuration files.
# ABOUTME: `validate` reports every problem in a config file; `show` prints the merged result.

from pathlib import Path

import click
from rich.console import Console

from bibrecon.metadata.config import ConfigManager

_config_path = click.argument(
    "config_path",
    metavar="CONFIG.json",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)


def _load(console: Console, path: Path) -> ConfigManager:
    manager = ConfigManager()
    try:
        manager.load_json(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise SystemExit(1) from exc
    return manager


@click.group("config")
def config() -> None:
    """Inspect provider configuration files."""


@config.command("validate")
@_config_path
def validate(config_path: Path) -> None:
    """Validate CONFIG.json against the provider settings rules."""
    console = Console()
    result = _load(console, config_path).validate()
    if result.valid:
        console.print("[green]Configuration is valid.[/green]")
        return
    console.print(f"[red]Configuration has {len(result.errors)} error(s):[/red]")
    for error in result.errors:
        console.print(f"  [red]-[/red] {error}")
    raise SystemExit(1)


@config.command("show")
@click.argument(
    "config_path",
    metavar="[CONFIG.json]",
    required=False,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
def show(config_path: Path | None) -> None:
    """Print the effective configuration (defaults merged with CONFIG.json)."""
    manager = _load(Console(), config_path) if config_path else ConfigManager()
    click.echo(manager.to_json())
