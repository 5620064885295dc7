"""
Docker Container Census.

Counts containers by state through the docker CLI.
"""

import json
import logging
import os
import subprocess
from typing import Optional

from ..models import DockerStats

logger = logging.getLogger(__name__)


class DockerCollector:
    """Collects container counts from the local Docker daemon."""

    def __init__(self, socket_path: str = "/var/run/docker.sock", enabled: bool = True):
        """Initialize the Docker collector."""
        self._socket_path = socket_path
        self._enabled = enabled

    @property
    def available(self) -> bool:
        """Check if Docker collection is available."""
        return self._enabled and os.path.exists(self._socket_path)

    def census(self) -> Optional[DockerStats]:
        """
        Return container counts, or None when Docker is absent or the
        daemon cannot be queried.
        """
        if not self.available:
            return None

        info = self._get_docker_info()
        if not info:
            return None

        total = info.get('Containers', 0)
        running = info.get('ContainersRunning', 0)
        paused = info.get('ContainersPaused', 0)
        stopped = info.get('ContainersStopped', total - running - paused)

        return DockerStats(
            containers=total,
            running=running,
            paused=paused,
            stopped=stopped,
        )

    def _get_docker_info(self) -> dict:
        """Get Docker daemon info."""
        try:
            result = subprocess.run(
                ["docker", "info", "--format", "{{json .}}"],
                capture_output=True,
                text=True,
                timeout=10
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"docker info failed: {e}")
            return {}

        if result.returncode != 0:
            logger.debug(f"docker info exited with {result.returncode}: {result.stderr.strip()}")
            return {}

        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError:
            logger.debug("docker info returned non-JSON output")
            return {}
