"""Best-effort launch of the Docker daemon.

Nothing in the cluster depends on this module; the cluster assumes the
daemon is reachable and fails fast otherwise.
"""

import logging
import subprocess
import sys
from typing import List, Optional, Sequence

from anchor.errors import DockerConnectionError
from anchor.utils.process import run_command


logger = logging.getLogger(__name__)

MACOS_APP_PATHS = ["/Applications/Docker.app", "/System/Applications/Docker.app"]
WINDOWS_APP_PATHS = [
    r"C:\Program Files\Docker\Docker\Docker Desktop.exe",
    r"C:\Program Files (x86)\Docker\Docker\Docker Desktop.exe",
]


def launch_commands(platform: Optional[str] = None) -> List[List[str]]:
    """Commands to try, in order, to launch Docker on ``platform``."""
    platform = platform or sys.platform
    if platform == "darwin":
        return [["open", "-a", path] for path in MACOS_APP_PATHS] + [
            ["sudo", "launchctl", "start", "com.docker.docker"],
        ]
    if platform.startswith("win"):
        return [["cmd", "/C", "start", "", path] for path in WINDOWS_APP_PATHS] + [
            ["powershell", "-Command", "Start-Process 'Docker Desktop'"],
        ]
    return [
        ["sudo", "systemctl", "start", "docker"],
        ["sudo", "service", "docker", "start"],
        ["sudo", "dockerd", "--detach"],
    ]


async def _try_commands(commands: Sequence[List[str]]) -> bool:
    for cmd in commands:
        try:
            result = await run_command(cmd, check=False, timeout=60)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"Launch attempt {cmd[0]} failed: {e}")
            continue
        if result.ok:
            logger.info(f"Started Docker with: {' '.join(cmd)}")
            return True
        logger.debug(f"Launch attempt exited with {result.returncode}: {result.stderr.strip()}")
    return False


async def start_docker_daemon(platform: Optional[str] = None) -> None:
    """Try to start the Docker daemon for the current platform."""
    platform = platform or sys.platform
    if await _try_commands(launch_commands(platform)):
        return

    if platform == "darwin" or platform.startswith("win"):
        hint = "Please start Docker Desktop manually."
    else:
        hint = "Please start the Docker service with 'sudo systemctl start docker' or 'sudo service docker start'."
    raise DockerConnectionError(f"Failed to start Docker on {platform}. {hint}")
