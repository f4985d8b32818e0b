"""
MINERVA ERRORS - What can go wrong, by kind

    ManagerError
    ├── ManagerConfigurationError   bad construction (mode, engine)
    ├── TransportFailureError       no usable response came back
    ├── ServiceError                the service answered "error"
    ├── ProtocolMismatchError       unknown message type or signal
    └── DuplicationError            a duplication phase failed
        └── MissingCorrespondenceError

Channel classification never raises these; they are for callers that
want exceptions instead of channels (see check_response) and for the
duplication pipeline.
"""
from typing import Optional

from core.ontology import MessageType, DEEP_MANAGER_ERROR, channel_for_signal
from core.response import BaristaResponse
from core.schemas import ProtocolMismatch


class ManagerError(Exception):
    """Base exception for manager failures."""
    pass


class ManagerConfigurationError(ManagerError):
    """Raised at construction time for an unusable configuration."""
    pass


class ResponseError(ManagerError):
    """A classified response that cannot be treated as success."""

    def __init__(self, message: str, response: Optional[BaristaResponse] = None):
        super().__init__(message)
        self.response = response


class TransportFailureError(ResponseError):
    """No usable response was obtained."""
    pass


class ServiceError(ResponseError):
    """The service reported an error."""
    pass


class ProtocolMismatchError(ResponseError):
    """The client and service disagree on the protocol vocabulary."""

    def __init__(self, mismatch: ProtocolMismatch, response: Optional[BaristaResponse] = None):
        super().__init__(mismatch.describe(), response)
        self.mismatch = mismatch


class DuplicationError(ManagerError):
    """A phase of a model duplication failed."""

    def __init__(self, phase: str, message: str):
        super().__init__(f"[{phase}] {message}")
        self.phase = phase


class MissingCorrespondenceError(DuplicationError):
    """A source individual has no counterpart in the target model."""

    def __init__(self, phase: str, source_id: str):
        super().__init__(phase, f"no target individual for source individual {source_id}")
        self.source_id = source_id


def detect_mismatch(response: BaristaResponse) -> Optional[ProtocolMismatch]:
    """Return a ProtocolMismatch if the response's vocabulary is unknown."""
    message_type = response.message_type()
    if message_type in (MessageType.ERROR.value, MessageType.WARNING.value):
        return None
    if message_type == MessageType.SUCCESS.value:
        signal = response.signal()
        if channel_for_signal(signal) is not None:
            return None
        return ProtocolMismatch(
            message_type=message_type,
            signal=signal,
            message=response.message(),
            reason=f"unknown signal: very bad: {signal}",
        )
    return ProtocolMismatch(
        message_type=message_type,
        signal=response.signal(),
        message=response.message(),
        reason=f"unimplemented message_type: {message_type}",
    )


def check_response(response: Optional[BaristaResponse]) -> BaristaResponse:
    """
    Turn a classified response into an exception when it is not a success.

    Returns the response unchanged for success and warning replies.

    Raises:
        TransportFailureError: nothing usable came back
        ServiceError: message type "error"
        ProtocolMismatchError: unknown message type or signal
    """
    if response is None or not response.okay() or response.raw() == DEEP_MANAGER_ERROR:
        raise TransportFailureError("no usable response from the service", response)
    if response.message_type() == MessageType.ERROR.value:
        raise ServiceError(response.message() or "service error", response)
    mismatch = detect_mismatch(response)
    if mismatch is not None:
        raise ProtocolMismatchError(mismatch, response)
    return response
