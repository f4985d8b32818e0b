"""
MINERVA CHANNEL RECORDER - What did the manager just do?

Records every channel a manager fires, for debugging and for replaying a
session after the fact.

Architecture:
- ChannelRecorder: subscribes to every channel of a ChannelRegistry
- RecordBuffer: in-memory ring buffer of recent records
- FileRecorder: optional newline-delimited JSON, one file per UTC day

Usage:
    recorder = ChannelRecorder(RecorderConfig(enable_file_log=False))
    recorder.attach(manager.channels)
    manager.get_meta()
    for record in recorder.get_recent(10):
        print(f"{record.sequence} {record.channel} {record.signal}")
"""
import msgspec
from typing import Optional, List, Any
from datetime import datetime, timezone
from dataclasses import dataclass
from pathlib import Path
from collections import deque
import threading
import logging
import io

from core.ontology import Channel
from core.response import BaristaResponse
from infrastructure.event_bus import ChannelRegistry


logger = logging.getLogger("minerva.recorder")


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class RecorderConfig:
    """Configuration for the channel recorder."""
    enable_file_log: bool = False       # Enable file-based logging
    log_path: Optional[Path] = None     # Path for log files
    buffer_size: int = 10000            # In-memory buffer size

    def __post_init__(self):
        if self.log_path is None:
            self.log_path = Path("./workspace/logs")


class ChannelRecord(msgspec.Struct, kw_only=True):
    """One firing of one channel."""
    timestamp: str
    sequence: int
    channel: str
    message_type: Optional[str] = None
    signal: Optional[str] = None
    message: Optional[str] = None
    model_id: Optional[str] = None


# =============================================================================
# RECORD BUFFER
# =============================================================================

class RecordBuffer:
    """Thread-safe ring buffer for recent channel records."""

    def __init__(self, max_size: int = 10000):
        self._buffer: deque[ChannelRecord] = deque(maxlen=max_size)
        self._lock = threading.RLock()
        self._sequence = 0

    def append(self, record: ChannelRecord) -> None:
        with self._lock:
            self._buffer.append(record)

    def get_last(self, n: int) -> List[ChannelRecord]:
        with self._lock:
            items = list(self._buffer)
            if n <= 0:
                return []
            return items[-n:]

    def get_by_channel(self, channel: str) -> List[ChannelRecord]:
        with self._lock:
            return [r for r in self._buffer if r.channel == channel]

    def next_sequence(self) -> int:
        with self._lock:
            self._sequence += 1
            return self._sequence

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)


# =============================================================================
# FILE RECORDER
# =============================================================================

class FileRecorder:
    """
    File-based record log.

    Writes records as newline-delimited JSON. Rotates daily.
    """

    def __init__(self, log_path: Path):
        self._log_path = log_path
        self._current_file: Optional[io.TextIOWrapper] = None
        self._current_date: Optional[str] = None
        self._lock = threading.Lock()
        self._encoder = msgspec.json.Encoder()

        log_path.mkdir(parents=True, exist_ok=True)

    def write(self, record: ChannelRecord) -> None:
        with self._lock:
            self._ensure_file()
            try:
                line = self._encoder.encode(record).decode("utf-8") + "\n"
                self._current_file.write(line)
                self._current_file.flush()
            except (OSError, TypeError) as e:
                logger.error(f"FileRecorder error: {e}")

    def _ensure_file(self) -> None:
        """Ensure we have a valid file handle for today."""
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")

        if self._current_date != today:
            if self._current_file:
                self._current_file.close()

            filepath = self._log_path / f"channels_{today}.jsonl"
            self._current_file = open(filepath, "a", encoding="utf-8")
            self._current_date = today

    def close(self) -> None:
        with self._lock:
            if self._current_file:
                self._current_file.close()
                self._current_file = None

    def read_log(self, date: str) -> List[ChannelRecord]:
        """Read records from a specific date's log; bad lines are skipped."""
        filepath = self._log_path / f"channels_{date}.jsonl"

        if not filepath.exists():
            return []

        records = []
        decoder = msgspec.json.Decoder(type=ChannelRecord)

        with open(filepath, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(decoder.decode(line.encode()))
                except msgspec.DecodeError:
                    logger.debug(f"Skipping malformed record line in {filepath.name}")

        return records


# =============================================================================
# CHANNEL RECORDER
# =============================================================================

class ChannelRecorder:
    """Subscribes to a registry and records every channel firing."""

    def __init__(self, config: Optional[RecorderConfig] = None):
        self.config = config or RecorderConfig()
        self._buffer = RecordBuffer(self.config.buffer_size)
        self._file_recorder: Optional[FileRecorder] = None
        if self.config.enable_file_log:
            self._file_recorder = FileRecorder(self.config.log_path)
        self._handlers = {}

    def attach(self, registry: ChannelRegistry) -> None:
        """Subscribe to every channel of a registry."""
        for channel in Channel:
            handler = self._handlers.setdefault(channel, self._make_handler(channel))
            registry.subscribe(channel, handler)

    def detach(self, registry: ChannelRegistry) -> None:
        for channel, handler in self._handlers.items():
            registry.unsubscribe(channel, handler)

    def _make_handler(self, channel: Channel):
        def handler(*args: Any) -> None:
            self.record(channel, *args)
        return handler

    def record(self, channel: Channel, *args: Any) -> ChannelRecord:
        """Record one firing; the first response-like argument is summarized."""
        response = next((a for a in args if isinstance(a, BaristaResponse)), None)
        record = ChannelRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            sequence=self._buffer.next_sequence(),
            channel=Channel(channel).value,
        )
        if response is not None:
            record.message_type = response.message_type()
            record.signal = response.signal()
            record.message = response.message()
            record.model_id = response.model_id()

        self._buffer.append(record)
        if self._file_recorder:
            self._file_recorder.write(record)
        return record

    # =========================================================================
    # QUERY METHODS
    # =========================================================================

    def get_recent(self, n: int = 100) -> List[ChannelRecord]:
        return self._buffer.get_last(n)

    def get_by_channel(self, channel: Channel) -> List[ChannelRecord]:
        return self._buffer.get_by_channel(Channel(channel).value)

    def channels_fired(self) -> List[str]:
        """Channel names in firing order (whole buffer)."""
        return [r.channel for r in self._buffer.get_last(len(self._buffer))]

    def clear(self) -> None:
        self._buffer.clear()

    def __len__(self) -> int:
        return len(self._buffer)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def close(self) -> None:
        if self._file_recorder:
            self._file_recorder.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
