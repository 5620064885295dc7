"""Tests for the metric document wire format."""

import dataclasses
import json

from tests.helpers import make_document


def test_wire_shape(document):
    data = document.to_dict()

    assert set(data) == {
        'agentId', 'timestamp', 'cpu', 'memory', 'disk',
        'network', 'processes', 'docker', 'uptime',
    }
    assert set(data['cpu']) == {'usage', 'user', 'system', 'idle', 'load1', 'load5', 'load15'}
    assert set(data['memory']) == {'total', 'free', 'used', 'usage'}
    assert set(data['disk']) == {'total', 'used', 'free', 'usage', 'read', 'write'}
    assert data['network'] == {'in': 64, 'out': 32}
    assert data['processes'] == {'total': 120, 'running': 2, 'sleeping': 110}
    assert data['docker'] == {'containers': 3, 'running': 2, 'paused': 0, 'stopped': 1}
    assert data['timestamp'] == "2024-05-01T12:00:00+00:00"


def test_docker_absent_serializes_as_null():
    document = dataclasses.replace(make_document(), docker=None)

    assert json.loads(document.to_json())['docker'] is None
