"""
MINERVA ONTOLOGY - The Vocabulary of the Manager

Every closed set of words the manager speaks lives here:
- Channel: the event channels a manager publishes on
- MessageType / Signal: how the service classifies a response
- RunMode: how the transport is driven (blocking or deferred)
- Entity / Operation: the request grammar understood by the service
- Well-known annotation keys and relation identifiers

Key Principle: the channel set is CLOSED. Subscribing to or firing a
channel that is not a Channel member is an error, not a new topic.
"""
from enum import Enum
from typing import Optional


# =============================================================================
# EVENT CHANNELS
# =============================================================================

class Channel(str, Enum):
    """Event channels fired by a manager."""
    PRERUN = "prerun"                # Before every transport call
    POSTRUN = "postrun"              # After every completed classification
    MANAGER_ERROR = "manager_error"  # Transport-level failure
    MERGE = "merge"                  # Success: merge partial data into client state
    REBUILD = "rebuild"              # Success: rebuild client state from scratch
    META = "meta"                    # Success: meta information (listings, exports)
    WARNING = "warning"              # Service-reported warning
    ERROR = "error"                  # Service-reported error


# =============================================================================
# RESPONSE VOCABULARY
# =============================================================================

class MessageType(str, Enum):
    """Recognized values of a response's message type."""
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"


class Signal(str, Enum):
    """Recognized values of a successful response's signal."""
    MERGE = "merge"
    REBUILD = "rebuild"
    META = "meta"


# Signal -> channel fired for it
SIGNAL_CHANNELS = {
    Signal.MERGE.value: Channel.MERGE,
    Signal.REBUILD.value: Channel.REBUILD,
    Signal.META.value: Channel.META,
}


def channel_for_signal(signal: Optional[str]) -> Optional[Channel]:
    """Return the channel for a signal value, or None if unrecognized."""
    if not isinstance(signal, str):
        return None
    return SIGNAL_CHANNELS.get(signal)


# Synthetic response used when the transport produced nothing usable
DEEP_MANAGER_ERROR = {
    "message-type": MessageType.ERROR.value,
    "message": "deep manager error",
}


# =============================================================================
# TRANSPORT MODES
# =============================================================================

class RunMode(str, Enum):
    """How a manager drives its transport engine."""
    SYNC = "sync"      # engine.fetch(): blocks, returns the response
    ASYNC = "async"    # engine.start(): returns an awaitable response


class TransportEvent(str, Enum):
    """Lifecycle events exposed by a transport engine."""
    SUCCESS = "success"
    ERROR = "error"


# =============================================================================
# REQUEST GRAMMAR
# =============================================================================

class Entity(str, Enum):
    """Entities a request can address."""
    MODEL = "model"
    INDIVIDUAL = "individual"
    EDGE = "edge"
    META = "meta"


class Operation(str, Enum):
    """Operations a request can carry."""
    GET = "get"
    ADD = "add"
    REMOVE = "remove"
    ADD_TYPE = "add-type"
    REMOVE_TYPE = "remove-type"
    ADD_ANNOTATION = "add-annotation"
    REMOVE_ANNOTATION = "remove-annotation"
    UNDO = "undo"
    REDO = "redo"
    GET_UNDO_REDO = "get-undo-redo"
    STORE = "store"
    EXPORT = "export"
    EXPORT_LEGACY = "export-legacy"
    EXPORT_ALL = "export-all"
    IMPORT = "import"
    SEED_FROM_PROCESS = "seed-from-process"


class Intention(str, Enum):
    """Whether a batch reads or mutates."""
    ACTION = "action"
    QUERY = "query"


# The only operation routed to the seed endpoint
SEED_OPERATION = Operation.SEED_FROM_PROCESS.value


# =============================================================================
# WELL-KNOWN KEYS AND RELATIONS
# =============================================================================

TITLE_KEY = "title"
STATE_KEY = "state"
MODEL_ID_ECHO_KEY = "http://www.geneontology.org/formats/oboInOwl#id"

EVIDENCE_KEY = "evidence"
SOURCE_KEY = "source"
WITH_KEY = "with"

# Values starting with this prefix reference another entity of a model
CROSS_REFERENCE_PREFIX = "gomodel"

ENABLED_BY = "RO:0002333"
OCCURS_IN = "occurs_in"


def is_cross_reference(value) -> bool:
    """True if an annotation value points at another entity of a model."""
    return isinstance(value, str) and value.startswith(CROSS_REFERENCE_PREFIX)
