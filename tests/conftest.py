"""
Pytest configuration and shared fixtures for the Minerva manager test suite.
"""
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from core.config import ENV_OVERRIDES
from infrastructure.transport import TransportEngine


BASE = "http://barista.test"
NAMESPACE = "minerva_local"

# A canned reply is a dict (the decoded envelope), raw bytes/str, None
# (nothing came back), or a callable (url, payload) -> one of those.
Reply = Union[Dict[str, Any], str, bytes, None, Callable[[str, Dict[str, Any]], Any]]


def make_reply(signal: Optional[str] = "merge", message_type: str = "success",
               message: str = "ok", data: Optional[Dict[str, Any]] = None,
               intention: str = "action") -> Dict[str, Any]:
    """Build a service envelope the way the gateway sends it."""
    reply = {
        "uid": "http://orcid.org/0000-0000-0000-0000",
        "packet-id": "abc123",
        "intention": intention,
        "message-type": message_type,
        "message": message,
        "data": data if data is not None else {},
    }
    if signal is not None:
        reply["signal"] = signal
    return reply


# =============================================================================
# FAKE ENGINES
# =============================================================================

class FakeSyncEngine(TransportEngine):
    """Replays canned replies instead of talking HTTP."""

    def __init__(self, replies: Optional[List[Reply]] = None, default: Reply = None):
        super().__init__()
        self.replies = list(replies or [])
        self.default = default
        self.calls: List[tuple] = []

    def queue(self, *replies: Reply) -> None:
        self.replies.extend(replies)

    def _next(self, url: str, payload: Dict[str, Any]):
        self.calls.append((url, payload))
        reply = self.replies.pop(0) if self.replies else self.default
        if callable(reply):
            reply = reply(url, payload)
        return self._finish(self._response_class(reply))

    def fetch(self, url: str, payload: Dict[str, Any]):
        return self._next(url, payload)


class FakeAsyncEngine(FakeSyncEngine):
    """Awaitable twin of FakeSyncEngine."""

    fetch = None

    async def start(self, url: str, payload: Dict[str, Any]):
        return self._next(url, payload)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep MINERVA_* variables from the host out of every test."""
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def sync_engine():
    return FakeSyncEngine()


@pytest.fixture
def async_engine():
    return FakeAsyncEngine()


@pytest.fixture
def manager(sync_engine):
    """A sync-mode manager wired to a fake engine."""
    from manager.minerva import MinervaManager
    return MinervaManager(BASE, NAMESPACE, None, sync_engine, "sync")


@pytest.fixture
def async_manager(async_engine):
    """An async-mode manager wired to a fake engine."""
    from manager.minerva import MinervaManager
    return MinervaManager(BASE, NAMESPACE, None, async_engine, "async")


@pytest.fixture
def channel_log(manager):
    """Names of channels fired on the sync manager, in order."""
    from infrastructure.logger import ChannelRecorder, RecorderConfig

    recorder = ChannelRecorder(RecorderConfig(enable_file_log=False))
    recorder.attach(manager.channels)
    yield recorder
    recorder.close()
