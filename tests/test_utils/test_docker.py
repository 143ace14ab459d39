"""Tests for the Docker client wrapper."""

import pytest
import pytest_asyncio
import requests
from unittest.mock import MagicMock, patch

from docker.errors import APIError, DockerException, NotFound
from docker.types import Mount

from anchor.agent.cluster import Cluster
from anchor.errors import (
    AnchorError,
    ContainerError,
    DockerConnectionError,
    DockerNotInstalledError,
    ErrorKind,
    ImageError,
)
from anchor.models.container import Command, ContainerSpec, MountSpec
from anchor.models.manifest import Manifest
from anchor.models.status import ClusterStatus, ContainerState, ResourceStatus
from anchor.utils.credentials import RegistryCredentials
from anchor.utils.docker import DockerClient, build_mounts, build_port_bindings, normalize_reference


def image(*tags):
    return MagicMock(tags=list(tags))


def container(name, status="created"):
    mock = MagicMock(status=status)
    mock.name = name
    mock.id = f"id-{name}"
    return mock


@pytest.fixture
def sdk():
    """A mocked docker SDK client."""
    mock = MagicMock()
    mock.info.return_value = {"OSType": "linux", "Architecture": "x86_64"}
    mock.images.list.return_value = []
    mock.containers.get.side_effect = NotFound("no such container")
    return mock


@pytest_asyncio.fixture
async def client(sdk):
    with patch("anchor.utils.docker.docker.from_env", return_value=sdk):
        return await DockerClient().connect()


class TestHelpers:
    """Test SDK argument builders."""

    def test_port_bindings(self):
        """Test (container, host) pairs become SDK port bindings."""
        assert build_port_bindings([(80, 8080), (443, 8443)]) == {"80/tcp": 8080, "443/tcp": 8443}

    def test_port_bound_to_several_hosts(self):
        """Test one container port published twice."""
        assert build_port_bindings([(80, 8080), (80, 8081)]) == {"80/tcp": [8080, 8081]}

    def test_mounts(self):
        """Test mount specs become SDK mounts."""
        mounts = build_mounts([MountSpec(type="bind", source="/srv", target="/data", read_only=True)])

        assert mounts == [Mount(target="/data", source="/srv", type="bind", read_only=True)]

    def test_normalize_reference(self):
        """Test untagged references get the implicit latest tag."""
        assert normalize_reference("nginx") == "nginx:latest"
        assert normalize_reference("nginx:1.25") == "nginx:1.25"
        assert normalize_reference("registry.example.com:5000/team/api") == "registry.example.com:5000/team/api:latest"
        assert normalize_reference("nginx@sha256:abc") == "nginx@sha256:abc"


@pytest.mark.asyncio
class TestConnect:
    """Test connecting to the daemon."""

    async def test_platform_from_daemon_info(self, client):
        """Test os/arch detection with architecture aliases."""
        assert client.platform == "linux/amd64"

    async def test_configured_platform_wins(self, sdk):
        """Test an explicit platform is kept."""
        with patch("anchor.utils.docker.docker.from_env", return_value=sdk):
            client = await DockerClient(platform="linux/arm64").connect()

        assert client.platform == "linux/arm64"

    async def test_base_url(self, sdk):
        """Test connecting to an explicit daemon URL."""
        with patch("anchor.utils.docker.docker.DockerClient", return_value=sdk) as mock_class:
            await DockerClient(base_url="tcp://10.0.0.5:2375", timeout=30).connect()

        mock_class.assert_called_once_with(base_url="tcp://10.0.0.5:2375", timeout=30)

    async def test_daemon_unreachable(self):
        """Test connection failure with the docker CLI installed."""
        with patch("anchor.utils.docker.docker.from_env", side_effect=DockerException("refused")), \
                patch("anchor.utils.docker.shutil.which", return_value="/usr/bin/docker"):
            with pytest.raises(DockerConnectionError):
                await DockerClient().connect()

    async def test_docker_not_installed(self):
        """Test connection failure without the docker CLI."""
        with patch("anchor.utils.docker.docker.from_env", side_effect=DockerException("refused")), \
                patch("anchor.utils.docker.shutil.which", return_value=None):
            with pytest.raises(DockerNotInstalledError):
                await DockerClient().connect()

    async def test_unconnected_client(self):
        """Test calls before connect fail cleanly."""
        client = DockerClient()

        assert await client.is_alive() is False
        with pytest.raises(DockerConnectionError):
            await client.list_images()

    async def test_is_alive(self, client, sdk):
        """Test ping handling."""
        sdk.ping.return_value = True
        assert await client.is_alive() is True

        sdk.ping.side_effect = requests.exceptions.ConnectionError("gone")
        assert await client.is_alive() is False

    async def test_transport_errors_mapped(self, client, sdk):
        """Test lost connections surface as connection errors."""
        sdk.images.list.side_effect = requests.exceptions.ConnectionError("gone")

        with pytest.raises(DockerConnectionError):
            await client.list_images()

    async def test_read_timeout_mapped(self, client, sdk):
        """Test a hung daemon call surfaces as a connection error."""
        sdk.containers.get.side_effect = requests.exceptions.ReadTimeout("read timed out")

        with pytest.raises(DockerConnectionError):
            await client.container_exists("web")

    async def test_sdk_errors_mapped(self, client, sdk):
        """Test non-API SDK failures surface as connection errors."""
        sdk.images.list.side_effect = DockerException("stream closed")

        with pytest.raises(DockerConnectionError):
            await client.list_images()

    async def test_close(self, client, sdk):
        """Test closing the SDK session."""
        await client.close()

        sdk.close.assert_called_once()
        assert client.docker is None


@pytest.mark.asyncio
class TestImages:
    """Test image operations."""

    async def test_image_exists_full_and_short_tag(self, client, sdk):
        """Test a registry URI matches its retagged short name."""
        sdk.images.list.return_value = [image("api:1.2"), image("nginx:latest")]

        assert await client.image_exists("nginx:latest") is True
        assert await client.image_exists("123.dkr.ecr.us-east-1.amazonaws.com/team/api:1.2") is True
        assert await client.image_exists("redis:7") is False

    async def test_untagged_reference_matches_latest(self, client, sdk):
        """Test an untagged reference matches the tag the daemon pulled."""
        sdk.images.list.return_value = [image("nginx:latest"), image("api:latest")]

        assert await client.image_exists("nginx") is True
        assert await client.image_exists("registry.example.com:5000/team/api") is True
        assert await client.image_exists("nginx:1.25") is False
        assert await client.image_exists("redis") is False

    async def test_list_images_api_error(self, client, sdk):
        """Test a daemon rejection is an image error, not a lost connection."""
        sdk.images.list.side_effect = APIError("server error")

        with pytest.raises(ImageError) as exc_info:
            await client.image_exists("nginx:latest")

        assert exc_info.value.kind is ErrorKind.IMAGE
        assert exc_info.value.image == "nginx:latest"

    async def test_list_images(self, client, sdk):
        """Test every tag is listed."""
        sdk.images.list.return_value = [image("a:1", "a:latest"), image()]

        assert await client.list_images() == ["a:1", "a:latest"]

    async def test_pull_uses_platform_and_credentials(self, sdk):
        """Test pull arguments."""
        sdk.api.pull.return_value = iter([{"status": "Downloading", "id": "abc"}])
        with patch("anchor.utils.docker.docker.from_env", return_value=sdk):
            client = await DockerClient(credentials=RegistryCredentials("u", "p", "reg.example.com")).connect()

        await client.pull_image("reg.example.com/app:1")

        sdk.api.pull.assert_called_once_with(
            "reg.example.com/app:1",
            stream=True,
            decode=True,
            platform="linux/amd64",
            auth_config={"username": "u", "password": "p", "serveraddress": "reg.example.com"},
        )

    async def test_pull_error_event(self, client, sdk):
        """Test errors reported mid-stream."""
        sdk.api.pull.return_value = iter([{"status": "Pulling"}, {"error": "manifest unknown"}])

        with pytest.raises(ImageError) as exc_info:
            await client.pull_image("nginx:nope")

        assert exc_info.value.image == "nginx:nope"
        assert "manifest unknown" in str(exc_info.value)

    async def test_pull_api_error(self, client, sdk):
        """Test SDK errors during pull."""
        sdk.api.pull.side_effect = APIError("denied")

        with pytest.raises(ImageError):
            await client.pull_image("private/app:1")

    async def test_pull_read_timeout(self, client, sdk):
        """Test a slow pull surfaces as a connection error."""
        sdk.api.pull.side_effect = requests.exceptions.ReadTimeout("read timed out")

        with pytest.raises(DockerConnectionError) as exc_info:
            await client.pull_image("nginx:latest")

        assert "read timed out" in str(exc_info.value)

    async def test_remove_image_forced(self, client, sdk):
        """Test image removal is forced."""
        await client.remove_image("nginx:latest")

        sdk.images.remove.assert_called_once_with(image="nginx:latest", force=True)


@pytest.mark.asyncio
class TestContainers:
    """Test container operations."""

    async def test_missing_container(self, client):
        """Test NotFound means absent."""
        assert await client.container_exists("web") is False
        assert await client.container_running("web") is False

    async def test_running_container(self, client, sdk):
        """Test running status."""
        sdk.containers.get.side_effect = None
        sdk.containers.get.return_value = container("web", status="running")

        assert await client.container_exists("web") is True
        assert await client.container_running("web") is True

    async def test_list_containers(self, client, sdk):
        """Test listing includes stopped containers."""
        sdk.containers.list.return_value = [container("web"), container("db", "exited")]

        assert await client.list_containers() == ["web", "db"]
        sdk.containers.list.assert_called_once_with(all=True)

    async def test_list_containers_api_error(self, client, sdk):
        """Test a daemon rejection is a container error."""
        sdk.containers.list.side_effect = APIError("server error")

        with pytest.raises(ContainerError):
            await client.list_containers()

    async def test_create_from_untagged_reference(self, client, sdk):
        """Test the image pre-check accepts an untagged reference."""
        sdk.images.list.return_value = [image("nginx:latest")]
        sdk.containers.create.return_value = container("web")

        assert await client.create_container("nginx", "web") == "id-web"

    async def test_create_container(self, client, sdk):
        """Test creation arguments."""
        sdk.images.list.return_value = [image("nginx:latest")]
        sdk.containers.create.return_value = container("web")

        container_id = await client.create_container(
            "nginx:latest", "web", port_mappings=[(80, 8080)], env={"A": "1"}
        )

        assert container_id == "id-web"
        sdk.containers.create.assert_called_once_with(
            "nginx:latest",
            name="web",
            ports={"80/tcp": 8080},
            environment={"A": "1"},
            mounts=[],
        )

    async def test_create_requires_image(self, client, sdk):
        """Test that a missing image is reported before calling the daemon."""
        with pytest.raises(ContainerError) as exc_info:
            await client.create_container("nginx:latest", "web")

        assert "not found" in str(exc_info.value)
        sdk.containers.create.assert_not_called()

    async def test_create_api_error(self, client, sdk):
        """Test daemon rejections."""
        sdk.images.list.return_value = [image("nginx:latest")]
        sdk.containers.create.side_effect = APIError("Conflict")

        with pytest.raises(ContainerError) as exc_info:
            await client.create_container("nginx:latest", "web")

        assert exc_info.value.container == "web"

    async def test_start_stop_remove(self, client, sdk):
        """Test lifecycle calls reach the container object."""
        web = container("web", status="running")
        sdk.containers.get.side_effect = None
        sdk.containers.get.return_value = web

        await client.start_container("web")
        await client.stop_container("web")
        await client.remove_container("web")

        web.start.assert_called_once_with()
        web.stop.assert_called_once_with(timeout=10)
        web.remove.assert_called_once_with(force=True)

    async def test_stop_custom_timeout(self, client, sdk):
        """Test an explicit grace period."""
        web = container("web", status="running")
        sdk.containers.get.side_effect = None
        sdk.containers.get.return_value = web

        await client.stop_container("web", timeout=2)

        web.stop.assert_called_once_with(timeout=2)

    async def test_start_missing(self, client):
        """Test starting a container that does not exist."""
        with pytest.raises(ContainerError):
            await client.start_container("web")

    async def test_start_api_error(self, client, sdk):
        """Test start failures carry the container name."""
        web = container("web")
        web.start.side_effect = APIError("port is already allocated")
        sdk.containers.get.side_effect = None
        sdk.containers.get.return_value = web

        with pytest.raises(ContainerError) as exc_info:
            await client.start_container("web")

        assert "already allocated" in str(exc_info.value)


@pytest.mark.asyncio
class TestResourceStatus:
    """Test combined image/container status."""

    async def test_missing(self, client):
        assert await client.get_resource_status("nginx:latest", "web") is ResourceStatus.MISSING

    async def test_downloaded(self, client, sdk):
        sdk.images.list.return_value = [image("nginx:latest")]

        assert await client.get_resource_status("nginx:latest", "web") is ResourceStatus.DOWNLOADED

    async def test_built_and_running(self, client, sdk):
        sdk.containers.get.side_effect = None
        sdk.containers.get.return_value = container("web", status="exited")
        assert await client.get_resource_status("nginx:latest", "web") is ResourceStatus.BUILT

        sdk.containers.get.return_value = container("web", status="running")
        assert await client.get_resource_status("nginx:latest", "web") is ResourceStatus.RUNNING


@pytest.mark.asyncio
class TestClusterOnDockerClient:
    """Test the cluster against a DockerClient with a mocked SDK."""

    async def test_pull_timeout_is_anchor_error(self, client, sdk, web_manifest):
        """Test a timed out pull stops the step with a connection error."""
        cluster = await Cluster.create(client, web_manifest)
        sdk.api.pull.side_effect = requests.exceptions.ReadTimeout("read timed out")

        with pytest.raises(AnchorError) as exc_info:
            await cluster.step()

        assert exc_info.value.kind is ErrorKind.CONNECTION
        assert cluster.state("web") is ContainerState.WAITING

    async def test_untagged_uri_converges(self, client, sdk):
        """Test an untagged image reference is seen after its pull and builds."""
        sdk.images.list.return_value = [image("nginx:latest")]
        sdk.containers.create.return_value = container("web")
        manifest = Manifest({"web": ContainerSpec(uri="nginx", command=Command.BUILD)})

        cluster = await Cluster.create(client, manifest)
        assert cluster.state("web") is ContainerState.DOWNLOADED

        assert await cluster.step() == ClusterStatus.built("web")
        assert await cluster.step() == ClusterStatus.ready()
        sdk.containers.create.assert_called_once()
