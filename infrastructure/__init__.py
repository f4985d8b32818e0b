"""
MINERVA INFRASTRUCTURE - Plumbing under the manager

This package contains infrastructure components:
- event_bus: the channel registry (publish/subscribe)
- transport: blocking (requests) and awaitable (httpx) engines
- logger: channel recorder with optional JSONL file log
"""

from infrastructure.event_bus import ChannelRegistry
from infrastructure.transport import TransportEngine, SyncEngine, AsyncEngine
from infrastructure.logger import ChannelRecorder, RecorderConfig, ChannelRecord

__all__ = [
    "ChannelRegistry",
    "TransportEngine",
    "SyncEngine",
    "AsyncEngine",
    "ChannelRecorder",
    "RecorderConfig",
    "ChannelRecord",
]
