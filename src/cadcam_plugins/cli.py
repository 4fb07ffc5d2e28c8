"""
Command-line interface for the plugin host.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import yaml
from rich.console import Console
from rich.table import Table

from cadcam_plugins.config import ALL_PERMISSIONS, HostConfig
from cadcam_plugins.extensions.models import Position, SurfaceType
from cadcam_plugins.host import PluginHost
from cadcam_plugins.logging import setup_logging
from cadcam_plugins.plugins.loader import PluginLoader
from cadcam_plugins.rendering import render_controls

console = Console()


def _config_paths() -> list[tuple[str, Path]]:
    return [
        ("Current directory", Path.cwd() / "cadcam-plugins.yaml"),
        ("User config", Path.home() / ".config" / "cadcam-plugins" / "config.yaml"),
    ]


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="CAD/CAM plugin host CLI",
        prog="cadcam-plugins",
    )

    # Global options
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output (debug logging)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # List command
    list_parser = subparsers.add_parser("list", help="List discovered plugins")
    list_parser.add_argument(
        "-d",
        "--dir",
        action="append",
        dest="dirs",
        help="Plugin directories to scan",
    )
    list_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )

    # Surface command
    surface_parser = subparsers.add_parser("surface", help="Render a UI surface")
    surface_parser.add_argument(
        "surface",
        choices=[s.value for s in SurfaceType],
        help="Surface to render",
    )
    surface_parser.add_argument(
        "-d",
        "--dir",
        action="append",
        dest="dirs",
        help="Plugin directories to scan",
    )
    surface_parser.add_argument(
        "-p",
        "--position",
        choices=[p.value for p in Position],
        help="Only show extensions at this position",
    )
    surface_parser.add_argument(
        "--expand",
        action="store_true",
        help="List the members of grouped toolbar controls",
    )

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Validate plugin manifests")
    validate_parser.add_argument(
        "-d",
        "--dir",
        action="append",
        dest="dirs",
        help="Plugin directories to validate",
    )

    # Config command with subcommands
    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_subparsers = config_parser.add_subparsers(dest="config_command", help="Config commands")

    config_subparsers.add_parser("show", help="Show current configuration")

    config_init_parser = config_subparsers.add_parser("init", help="Initialize a new config file")
    config_init_parser.add_argument(
        "-o",
        "--output",
        default="cadcam-plugins.yaml",
        help="Output file path",
    )

    config_subparsers.add_parser("path", help="Show config file paths")

    args = parser.parse_args(argv)

    if getattr(args, "verbose", False):
        setup_logging("DEBUG")
    else:
        setup_logging("WARNING")

    if args.command == "list":
        cmd_list(args)
    elif args.command == "surface":
        asyncio.run(cmd_surface(args))
    elif args.command == "validate":
        cmd_validate(args)
    elif args.command == "config":
        cmd_config(args)
    else:
        parser.print_help()


def _load_config() -> tuple[HostConfig, Path | None]:
    """Load config from the first search path that exists."""
    for _, path in _config_paths():
        if path.exists():
            try:
                return HostConfig.from_yaml(path), path
            except Exception as e:
                console.print(f"[yellow]Failed to load {path}: {e}[/yellow]")
    return HostConfig(), None


def _create_config(dirs: list[str] | None = None) -> HostConfig:
    """Create a host config from CLI args."""
    config, _ = _load_config()
    plugin_dirs = [Path(d) for d in (dirs or [])]
    if plugin_dirs:
        config.plugin_dirs = plugin_dirs
    elif not config.plugin_dirs:
        # Default to current directory's plugins folder
        config.plugin_dirs = [Path.cwd() / "plugins"]
    return config


def cmd_list(args: argparse.Namespace) -> None:
    """List discovered plugins."""
    loader = PluginLoader(_create_config(args.dirs))
    plugins = loader.discover()

    if args.json:
        import json

        data = [
            {
                "id": p.manifest.id,
                "name": p.manifest.name,
                "version": p.manifest.version,
                "source": p.source,
                "compatible": loader.is_compatible(p.manifest),
                "permissions": p.manifest.permissions,
            }
            for p in plugins
        ]
        console.print_json(json.dumps(data, indent=2))
        return

    table = Table(title="Discovered Plugins")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Version")
    table.add_column("Source", style="dim")

    for plugin in plugins:
        version = plugin.manifest.version
        if not loader.is_compatible(plugin.manifest):
            version = f"[red]{version}[/red]"
        table.add_row(plugin.manifest.id, plugin.manifest.name, version, plugin.source)

    console.print(table)
    console.print(f"\n[dim]Total: {len(plugins)} plugins[/dim]")


async def cmd_surface(args: argparse.Namespace) -> None:
    """Boot a host and render one surface."""
    host = PluginHost(_create_config(args.dirs))
    try:
        enabled = await host.start()
        controls = host.resolver.resolve(args.surface, position=args.position)

        console.print(f"[bold]{args.surface}[/bold] [dim]({len(enabled)} plugins enabled)[/dim]\n")
        if not controls:
            console.print("[dim]No extensions[/dim]")
            return
        console.print(render_controls(controls, expand=args.expand))
    finally:
        await host.shutdown()


def cmd_validate(args: argparse.Namespace) -> None:
    """Validate plugin manifests and entry points."""
    dirs = [Path(d) for d in (args.dirs or [])]
    if not dirs:
        dirs = [Path.cwd() / "plugins"]

    loader = PluginLoader(_create_config(args.dirs))
    errors: list[tuple[Path, str]] = []
    valid_count = 0

    for directory in dirs:
        if not directory.exists():
            console.print(f"[yellow]Directory not found: {directory}[/yellow]")
            continue

        console.print(f"\n[bold]Validating plugins in {directory}[/bold]")

        for plugin_dir in sorted(p for p in directory.iterdir() if p.is_dir()):
            if loader.find_manifest(plugin_dir) is None:
                continue
            try:
                manifest = loader.load_manifest(plugin_dir)
                loader.load_factory(manifest, plugin_dir)
            except Exception as e:
                errors.append((plugin_dir, str(e)))
                console.print(f"  [red]✗[/red] {plugin_dir.name}: {e}")
                continue

            valid_count += 1
            warnings = []

            if not manifest.description:
                warnings.append("Missing description")

            if not loader.is_compatible(manifest):
                warnings.append(f"Not compatible with app version {loader.config.app_version}")

            unknown = [p for p in manifest.permissions if p not in ALL_PERMISSIONS]
            if unknown:
                warnings.append(f"Unknown permissions: {', '.join(unknown)}")

            if warnings:
                console.print(f"  [yellow]⚠[/yellow] {manifest.id}: {', '.join(warnings)}")
            else:
                console.print(f"  [green]✓[/green] {manifest.id}")

    console.print("\n[bold]Summary:[/bold]")
    console.print(f"  Valid: {valid_count}")
    console.print(f"  Errors: {len(errors)}")

    if errors:
        sys.exit(1)


def cmd_config(args: argparse.Namespace) -> None:
    """Configuration management commands."""
    if args.config_command == "show":
        _config_show()
    elif args.config_command == "init":
        _config_init(args.output)
    elif args.config_command == "path":
        _config_path()
    else:
        console.print("[yellow]Usage: cadcam-plugins config <show|init|path>[/yellow]")


def _config_show() -> None:
    """Show current configuration."""
    config, loaded_from = _load_config()

    if loaded_from is None:
        console.print("[dim]No config file found. Using defaults.[/dim]")
    else:
        console.print(f"[dim]Loaded from: {loaded_from}[/dim]\n")

    console.print("[bold]Current Configuration:[/bold]\n")
    console.print(yaml.dump(config.to_dict(), default_flow_style=False, sort_keys=False))


def _config_init(output: str) -> None:
    """Initialize a new config file."""
    output_path = Path(output)

    if output_path.exists():
        console.print(f"[red]File already exists: {output_path}[/red]")
        sys.exit(1)

    default_config = {
        "app_version": "1.0.0",
        "plugin_dirs": ["./plugins"],
        "use_entry_points": True,
        "enforce_permissions": True,
        "granted_permissions": list(ALL_PERMISSIONS),
        "plugins": {
            "# example-plugin": {
                "enabled": True,
                "settings": {},
            }
        },
    }

    with open(output_path, "w") as f:
        yaml.dump(default_config, f, default_flow_style=False, sort_keys=False)

    console.print(f"[green]Created config file: {output_path}[/green]")


def _config_path() -> None:
    """Show config file search paths."""
    console.print("[bold]Config file search paths:[/bold]\n")

    for name, path in _config_paths():
        exists = "[green]✓[/green]" if path.exists() else "[dim]·[/dim]"
        console.print(f"  {exists} {name}: {path}")


if __name__ == "__main__":
    main()
