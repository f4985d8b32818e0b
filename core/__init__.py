"""
MINERVA CORE - Vocabulary, payload shapes, batches and replies.

This module provides access to:
- The closed protocol vocabulary (Channel, MessageType, Signal, ...)
- Batch construction (RequestSet, Request)
- Reply reading (BaristaResponse)
- Configuration state and startup settings
"""

from core.ontology import (
    Channel,
    MessageType,
    Signal,
    RunMode,
    TransportEvent,
    Entity,
    Operation,
    Intention,
    DEEP_MANAGER_ERROR,
    channel_for_signal,
)
from core.schemas import Annotation, Individual, Fact, ProtocolMismatch
from core.request_set import Request, RequestSet, cls_expr, svf
from core.response import BaristaResponse
from core.config import ManagerConfig, ManagerSettings, load_settings, load_toml_config

__all__ = [
    # Vocabulary
    "Channel",
    "MessageType",
    "Signal",
    "RunMode",
    "TransportEvent",
    "Entity",
    "Operation",
    "Intention",
    "DEEP_MANAGER_ERROR",
    "channel_for_signal",
    # Payloads
    "Annotation",
    "Individual",
    "Fact",
    "ProtocolMismatch",
    # Batches and replies
    "Request",
    "RequestSet",
    "cls_expr",
    "svf",
    "BaristaResponse",
    # Configuration
    "ManagerConfig",
    "ManagerSettings",
    "load_settings",
    "load_toml_config",
]
