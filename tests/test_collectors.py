"""Tests for the psutil counter source and the Docker census."""

import json
import subprocess
from collections import namedtuple
from unittest.mock import MagicMock, patch

import pytest

from nodepulse.edge.collectors.docker import DockerCollector
from nodepulse.edge.collectors.system import DISK, NETWORK, SystemCounterSource

DiskIO = namedtuple("DiskIO", "read_bytes write_bytes")
NetIO = namedtuple("NetIO", "bytes_sent bytes_recv")


class TestSystemCounterSource:
    """Tests for SystemCounterSource."""

    def test_disk_counters(self):
        with patch("psutil.disk_io_counters", return_value={'sda': DiskIO(100, 200)}):
            counters = SystemCounterSource().read_counters(DISK)

        assert counters['sda'].bytes_in == 100
        assert counters['sda'].bytes_out == 200

    def test_network_counters_map_received_to_in(self):
        with patch("psutil.net_io_counters", return_value={'eth0': NetIO(bytes_sent=10, bytes_recv=20)}):
            counters = SystemCounterSource().read_counters(NETWORK)

        assert counters['eth0'].bytes_in == 20
        assert counters['eth0'].bytes_out == 10

    def test_no_disks(self):
        with patch("psutil.disk_io_counters", return_value=None):
            assert SystemCounterSource().read_counters(DISK) == {}

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            SystemCounterSource().read_counters("gpu")


def completed(stdout: str, returncode: int = 0) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr="")


class TestDockerCollector:
    """Tests for DockerCollector."""

    def test_unavailable_without_socket(self, tmp_path):
        collector = DockerCollector(socket_path=str(tmp_path / "missing.sock"))
        assert not collector.available
        assert collector.census() is None

    def test_disabled(self, tmp_path):
        sock = tmp_path / "docker.sock"
        sock.touch()
        assert DockerCollector(socket_path=str(sock), enabled=False).census() is None

    def test_census_from_docker_info(self, tmp_path):
        sock = tmp_path / "docker.sock"
        sock.touch()
        info = {'Containers': 5, 'ContainersRunning': 3, 'ContainersPaused': 1, 'ContainersStopped': 1}

        with patch("subprocess.run", return_value=completed(json.dumps(info))):
            stats = DockerCollector(socket_path=str(sock)).census()

        assert (stats.containers, stats.running, stats.paused, stats.stopped) == (5, 3, 1, 1)

    def test_daemon_error_gives_none(self, tmp_path):
        sock = tmp_path / "docker.sock"
        sock.touch()

        with patch("subprocess.run", return_value=completed("", returncode=1)):
            assert DockerCollector(socket_path=str(sock)).census() is None

    def test_missing_cli_gives_none(self, tmp_path):
        sock = tmp_path / "docker.sock"
        sock.touch()

        with patch("subprocess.run", MagicMock(side_effect=FileNotFoundError("docker"))):
            assert DockerCollector(socket_path=str(sock)).census() is None
