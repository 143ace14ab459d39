"""Main CLI implementation using Typer."""

import asyncio
from typing import Any, Callable, Coroutine, List, Optional

import typer
from rich.console import Console
from ruamel.yaml.error import YAMLError

from anchor.agent.config import ConfigManager
from anchor.cli.commands import (
    add_container,
    bring_down,
    bring_up,
    list_containers,
    list_images,
    pull_image,
    remove_container,
    remove_image,
    show_status,
    start_daemon,
    step_cluster,
    validate_manifest,
)
from anchor.errors import AnchorError
from anchor.models.container import Command
from anchor.utils.logging import setup_logging


# Create Typer app
app = typer.Typer(
    name="anchorctl",
    help="Anchor - declarative Docker container orchestration",
    add_completion=False,
)

# Console for rich output
console = Console()

ConfigOption = typer.Option(
    None, "--config", "-c", help="Config file (defaults to $ANCHOR_CONFIG or ./anchor.yaml)"
)
ManifestOption = typer.Option(
    None, "--manifest", "-m", help="Manifest file, overrides the config"
)


def _run_cli_command(
    handler: Callable[..., Coroutine[Any, Any, Any]],
    config: Optional[str],
    manifest: Optional[str] = None,
    **kwargs: Any,
):
    """Helper to run an async CLI command with a config manager and error handling."""
    try:
        config_manager = ConfigManager(config_path=config, manifest_path=manifest)
        asyncio.run(handler(config_manager, **kwargs))
    except (AnchorError, YAMLError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Anchor - declarative Docker container orchestration."""
    setup_logging("DEBUG" if verbose else "WARNING")


@app.command("up")
def up_command(
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only report errors"),
    config: Optional[str] = ConfigOption,
    manifest: Optional[str] = ManifestOption,
):
    """Drive every container to its target state."""
    _run_cli_command(bring_up, config=config, manifest=manifest, quiet=quiet)


@app.command("step")
def step_command(
    config: Optional[str] = ConfigOption,
    manifest: Optional[str] = ManifestOption,
):
    """Perform a single reconciliation step."""
    _run_cli_command(step_cluster, config=config, manifest=manifest)


@app.command("status")
def status_command(
    config: Optional[str] = ConfigOption,
    manifest: Optional[str] = ManifestOption,
):
    """Show the state of every container."""
    _run_cli_command(show_status, config=config, manifest=manifest)


@app.command("down")
def down_command(
    config: Optional[str] = ConfigOption,
    manifest: Optional[str] = ManifestOption,
):
    """Stop every running container."""
    _run_cli_command(bring_down, config=config, manifest=manifest)


@app.command("validate")
def validate_command(
    config: Optional[str] = ConfigOption,
    manifest: Optional[str] = ManifestOption,
):
    """Validate the manifest file."""
    _run_cli_command(validate_manifest, config=config, manifest=manifest)


@app.command("add")
def add_command(
    name: str = typer.Argument(..., help="Container name"),
    uri: str = typer.Option(..., "--uri", "-u", help="Image reference"),
    command: Command = typer.Option(
        Command.RUN, "--command", "-x", case_sensitive=False, help="Target lifecycle depth"
    ),
    port: Optional[List[str]] = typer.Option(
        None, "--port", "-p", help="Port mapping CONTAINER:HOST (repeatable)"
    ),
    env: Optional[List[str]] = typer.Option(
        None, "--env", "-e", help="Environment variable KEY=VALUE (repeatable)"
    ),
    mount: Optional[List[str]] = typer.Option(
        None, "--mount", help="Mount SOURCE:TARGET[:ro] (repeatable)"
    ),
    config: Optional[str] = ConfigOption,
    manifest: Optional[str] = ManifestOption,
):
    """Add a container to the manifest."""
    _run_cli_command(
        add_container,
        config=config,
        manifest=manifest,
        name=name,
        uri=uri,
        command=command,
        ports=port,
        env=env,
        mounts=mount,
    )


# Image subcommands
image_app = typer.Typer(help="Image management commands")
app.add_typer(image_app, name="image")


@image_app.command("pull")
def image_pull_command(
    reference: str = typer.Argument(..., help="Image reference to pull"),
    config: Optional[str] = ConfigOption,
):
    """Pull a container image."""
    _run_cli_command(pull_image, config=config, reference=reference)


@image_app.command("list")
def image_list_command(
    config: Optional[str] = ConfigOption,
):
    """List local images."""
    _run_cli_command(list_images, config=config)


@image_app.command("rm")
def image_rm_command(
    reference: str = typer.Argument(..., help="Image reference to remove"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Force removal without confirmation"
    ),
    config: Optional[str] = ConfigOption,
):
    """Remove a local image."""
    if not force:
        confirm = typer.confirm(f"Remove image {reference}?")
        if not confirm:
            raise typer.Abort()
    _run_cli_command(remove_image, config=config, reference=reference)


# Container subcommands
container_app = typer.Typer(help="Container management commands")
app.add_typer(container_app, name="container")


@container_app.command("list")
def container_list_command(
    config: Optional[str] = ConfigOption,
    manifest: Optional[str] = ManifestOption,
):
    """List containers and how far each has progressed."""
    _run_cli_command(list_containers, config=config, manifest=manifest)


@container_app.command("rm")
def container_rm_command(
    name: str = typer.Argument(..., help="Container name"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Force removal without confirmation"
    ),
    config: Optional[str] = ConfigOption,
):
    """Remove a container, even if it is running."""
    if not force:
        confirm = typer.confirm(f"Remove container {name}?")
        if not confirm:
            raise typer.Abort()
    _run_cli_command(remove_container, config=config, name=name)


# Daemon subcommands
daemon_app = typer.Typer(help="Docker daemon commands")
app.add_typer(daemon_app, name="daemon")


@daemon_app.command("start")
def daemon_start_command(
    config: Optional[str] = ConfigOption,
):
    """Start the Docker daemon."""
    _run_cli_command(start_daemon, config=config)


def main():
    """Main entry point for CLI."""
    app()
