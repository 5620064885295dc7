"""
NodePulse - host metrics agent.

Samples CPU, memory, disk, network, process and container counters and
delivers them to a collection endpoint over HTTP, WebSocket or UDP.
"""

__version__ = "1.0.0"
