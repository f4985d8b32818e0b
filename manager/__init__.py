"""
MINERVA MANAGER - The client-side manager for a model service.

Usage:
    from manager import create_manager
    from core.ontology import Channel

    manager = create_manager()
    manager.channels.subscribe(Channel.META, lambda resp, mgr: print(resp.model_ids()))
    manager.get_meta()
"""

from manager.errors import (
    ManagerError,
    ManagerConfigurationError,
    ResponseError,
    TransportFailureError,
    ServiceError,
    ProtocolMismatchError,
    DuplicationError,
    MissingCorrespondenceError,
    check_response,
)
from manager.classifier import ResponseClassifier, log_protocol_mismatch
from manager.dispatch import RequestDispatcher, build_payload
from manager.duplication import ModelDuplicator, DuplicationResult, DuplicationPhase
from manager.minerva import MinervaManager, create_manager

__all__ = [
    # Manager
    "MinervaManager",
    "create_manager",
    "RequestDispatcher",
    "build_payload",
    "ResponseClassifier",
    "log_protocol_mismatch",
    # Duplication
    "ModelDuplicator",
    "DuplicationResult",
    "DuplicationPhase",
    # Errors
    "ManagerError",
    "ManagerConfigurationError",
    "ResponseError",
    "TransportFailureError",
    "ServiceError",
    "ProtocolMismatchError",
    "DuplicationError",
    "MissingCorrespondenceError",
    "check_response",
]
