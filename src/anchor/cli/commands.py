"""Command implementations for CLI."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Tuple

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from anchor.agent.cluster import Cluster
from anchor.agent.config import ConfigManager
from anchor.errors import ManifestIOError
from anchor.models.container import Command, ContainerSpec, MountSpec
from anchor.models.manifest import Manifest
from anchor.models.status import ClusterStatus, ContainerState
from anchor.utils.daemon import start_docker_daemon
from anchor.utils.docker import DockerClient


console = Console()

STATE_COLORS = {
    ContainerState.WAITING: "red",
    ContainerState.DOWNLOADED: "yellow",
    ContainerState.BUILT: "blue",
    ContainerState.RUNNING: "green",
}


def _spinner(quiet: bool = False) -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        disable=quiet,
    )


@asynccontextmanager
async def _connected(config_manager: ConfigManager) -> AsyncIterator[DockerClient]:
    """Load the config and yield a connected client, closing it afterwards."""
    if config_manager.config is None:
        await config_manager.load()
    client = await config_manager.create_client()
    try:
        yield client
    finally:
        await client.close()


async def _load_cluster(config_manager: ConfigManager, client: DockerClient) -> Cluster:
    manifest = await config_manager.load_manifest()
    return await Cluster.create(client, manifest)


def _format_status(status: ClusterStatus) -> str:
    if status.is_ready:
        return "[green]✓[/green] Cluster is ready"
    return f"[cyan]→[/cyan] {status.kind.value} [bold]{status.name}[/bold]"


def _ports(spec: ContainerSpec) -> str:
    return ", ".join(f"{host}->{container}" for container, host in spec.port_mappings) or "-"


def cluster_table(cluster: Cluster) -> Table:
    """Render tracked containers and their states."""
    table = Table(title="Containers")
    table.add_column("Name", style="cyan")
    table.add_column("Command", style="magenta")
    table.add_column("State")
    table.add_column("Image", style="dim", max_width=50)
    table.add_column("Ports")

    for name, spec in cluster.manifest.items():
        state = cluster.state(name)
        if state is None:
            state_text = "[dim]ignored[/dim]"
        else:
            color = STATE_COLORS[state]
            state_text = f"[{color}]{state}[/{color}]"
        table.add_row(name, str(spec.command), state_text, spec.uri, _ports(spec))
    return table


def manifest_table(manifest: Manifest) -> Table:
    """Render manifest entries without touching the daemon."""
    table = Table(title="Manifest")
    table.add_column("Name", style="cyan")
    table.add_column("Command", style="magenta")
    table.add_column("Image", style="dim", max_width=50)
    table.add_column("Ports")
    table.add_column("Mounts")

    for name, spec in manifest.items():
        mounts = ", ".join(str(mount) for mount in spec.mounts) or "-"
        table.add_row(name, str(spec.command), spec.uri, _ports(spec), mounts)
    return table


async def bring_up(config_manager: ConfigManager, quiet: bool = False):
    """Drive every container to its target state."""
    async with _connected(config_manager) as client:
        cluster = await _load_cluster(config_manager, client)

        with _spinner(quiet) as progress:
            task = progress.add_task("Reconciling cluster...", total=None)

            def report(status: ClusterStatus):
                progress.update(task, description=f"{status.kind.value} {status.name}...")
                if not quiet:
                    progress.console.print(_format_status(status))

            await cluster.run(report)
            progress.update(task, completed=True)

    if not quiet:
        console.print(_format_status(ClusterStatus.ready()))


async def step_cluster(config_manager: ConfigManager):
    """Perform a single reconciliation step."""
    async with _connected(config_manager) as client:
        cluster = await _load_cluster(config_manager, client)
        status = await cluster.step()
    console.print(_format_status(status))


async def show_status(config_manager: ConfigManager):
    """Show tracked state for every manifest entry."""
    async with _connected(config_manager) as client:
        cluster = await _load_cluster(config_manager, client)

    console.print(cluster_table(cluster))
    tracked = cluster.states
    running = sum(1 for state in tracked.values() if state == ContainerState.RUNNING)
    console.print(f"[bold]Containers[/bold]: {running}/{len(tracked)} running")
    if cluster.is_ready():
        console.print("[green]✓[/green] All containers at their target state")
    else:
        console.print("[yellow]![/yellow] Cluster is not converged; run 'anchorctl up'")


async def bring_down(config_manager: ConfigManager):
    """Stop every running container in the manifest."""
    async with _connected(config_manager) as client:
        cluster = await _load_cluster(config_manager, client)
        with _spinner() as progress:
            task = progress.add_task("Stopping containers...", total=None)
            await cluster.stop()
            progress.update(task, completed=True)
    console.print("[green]✓[/green] All containers stopped")


async def validate_manifest(config_manager: ConfigManager):
    """Validate the manifest file."""
    if config_manager.config is None:
        await config_manager.load()
    manifest = await config_manager.load_manifest()

    console.print(f"[green]✓[/green] Manifest {config_manager.manifest_path} is valid")
    console.print(manifest_table(manifest))


def parse_port(value: str) -> Tuple[int, int]:
    """Parse ``CONTAINER:HOST`` (or a bare port used for both)."""
    container_port, _, host_port = value.partition(":")
    try:
        container = int(container_port)
        host = int(host_port) if host_port else container
    except ValueError as e:
        raise ValueError(f"Invalid port mapping {value!r}, expected CONTAINER:HOST") from e
    return container, host


def parse_env(values: List[str]) -> Dict[str, str]:
    """Parse ``KEY=VALUE`` pairs."""
    env: Dict[str, str] = {}
    for value in values:
        key, sep, val = value.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid environment variable {value!r}, expected KEY=VALUE")
        env[key] = val
    return env


def parse_mount(value: str) -> MountSpec:
    """Parse ``SOURCE:TARGET[:ro]``; a source starting with / or . is a bind mount."""
    parts = value.split(":")
    read_only = False
    if len(parts) == 3 and parts[2] in ("ro", "rw"):
        read_only = parts.pop() == "ro"
    if len(parts) == 1:
        return MountSpec(type="volume", target=parts[0], read_only=read_only)
    if len(parts) != 2:
        raise ValueError(f"Invalid mount {value!r}, expected SOURCE:TARGET[:ro]")
    source, target = parts
    mount_type = "bind" if source.startswith(("/", ".")) else "volume"
    return MountSpec(type=mount_type, source=source, target=target, read_only=read_only)


async def add_container(
    config_manager: ConfigManager,
    name: str,
    uri: str,
    command: Command,
    ports: Optional[List[str]] = None,
    env: Optional[List[str]] = None,
    mounts: Optional[List[str]] = None,
):
    """Add a container to the manifest file, creating it if needed."""
    if config_manager.config is None:
        await config_manager.load()
    path = config_manager.manifest_path

    try:
        manifest = await config_manager.load_manifest()
    except ManifestIOError:
        if path.exists():
            raise
        manifest = Manifest.empty()

    spec = ContainerSpec(
        uri=uri,
        command=command,
        port_mappings=[parse_port(p) for p in ports or []],
        env=parse_env(env or []),
        mounts=[parse_mount(m) for m in mounts or []],
    )
    manifest.add(name, spec)
    manifest.save(path)
    console.print(f"[green]✓[/green] Added {name} ({command}) to {path}")


async def pull_image(config_manager: ConfigManager, reference: str):
    """Pull an image."""
    async with _connected(config_manager) as client:
        with _spinner() as progress:
            task = progress.add_task(f"Pulling image {reference}...", total=None)
            await client.pull_image(reference)
            progress.update(task, completed=True)
    console.print(f"[green]✓[/green] Image {reference} pulled successfully")


async def list_images(config_manager: ConfigManager):
    """List local image tags."""
    async with _connected(config_manager) as client:
        tags = await client.list_images()

    table = Table(title="Images")
    table.add_column("Tag", style="cyan")
    for tag in sorted(tags):
        table.add_row(tag)
    console.print(table)


async def remove_image(config_manager: ConfigManager, reference: str):
    """Force-remove an image."""
    async with _connected(config_manager) as client:
        await client.remove_image(reference)
    console.print(f"[green]✓[/green] Image {reference} removed")


async def remove_container(config_manager: ConfigManager, name: str):
    """Force-remove a container."""
    async with _connected(config_manager) as client:
        await client.remove_container(name)
    console.print(f"[green]✓[/green] Container {name} removed")


async def start_daemon(config_manager: ConfigManager):
    """Launch the Docker daemon."""
    with _spinner() as progress:
        task = progress.add_task("Starting Docker...", total=None)
        await start_docker_daemon()
        progress.update(task, completed=True)
    console.print("[green]✓[/green] Docker started")


async def list_containers(config_manager: ConfigManager):
    """List manifest containers with their observed status, then unmanaged ones."""
    async with _connected(config_manager) as client:
        manifest = await config_manager.load_manifest()
        observed = {
            name: await client.get_resource_status(spec.uri, name)
            for name, spec in manifest.items()
        }
        names = await client.list_containers()

    table = Table(title="Containers")
    table.add_column("Name", style="cyan")
    table.add_column("Observed")
    table.add_column("Image", style="dim", max_width=50)

    for name, status in observed.items():
        color = "green" if status.is_running else "yellow" if status.is_available else "red"
        table.add_row(name, f"[{color}]{status.value}[/{color}]", manifest[name].uri)
    for name in names:
        if name not in manifest:
            table.add_row(name, "[dim]unmanaged[/dim]", "-")
    console.print(table)
