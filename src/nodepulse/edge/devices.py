"""
Device Classification.

Decides which block devices and network interfaces count towards the
aggregate throughput. Partitions would double-count their parent disk,
and loopback or bridge traffic never leaves the host.
"""

import re
from typing import Optional

Rule = tuple[re.Pattern, str]


DISK_RULES: tuple[Rule, ...] = (
    (re.compile(r'^loop'), 'loop device'),
    (re.compile(r'^z?ram'), 'RAM disk'),
    (re.compile(r'^fd\d*'), 'floppy'),
    (re.compile(r'^sr\d*'), 'optical drive'),
    (re.compile(r'^dm-'), 'device mapper'),
    (re.compile(r'^(sd|hd|vd|xvd)[a-z]+\d+$'), 'partition'),
    (re.compile(r'^nvme\d+n\d+p\d+$'), 'partition'),
    (re.compile(r'^mmcblk\d+p\d+$'), 'partition'),
    (re.compile(r'^md\d+p\d+$'), 'partition'),
    (re.compile(r'^disk\d+s\d+'), 'partition'),
)

NETWORK_RULES: tuple[Rule, ...] = (
    (re.compile(r'^lo\d*$'), 'loopback'),
    (re.compile(r'^loop'), 'loopback'),
    (re.compile(r'^(br-|bridge|virbr)'), 'bridge'),
    (re.compile(r'^docker'), 'bridge'),
    (re.compile(r'^veth'), 'virtual ethernet'),
)


class DeviceFilter:
    """Include/exclude table for device or interface names."""

    def __init__(self, rules: tuple[Rule, ...]):
        self.rules = rules

    def excluded_reason(self, name: str) -> Optional[str]:
        """Return why ``name`` is excluded, or None if it is included."""
        for pattern, reason in self.rules:
            if pattern.search(name):
                return reason
        return None

    def is_included(self, name: str) -> bool:
        return self.excluded_reason(name) is None

    def __call__(self, name: str) -> bool:
        return self.is_included(name)


DISK_FILTER = DeviceFilter(DISK_RULES)
NETWORK_FILTER = DeviceFilter(NETWORK_RULES)
