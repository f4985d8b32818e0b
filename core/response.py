"""
MINERVA RESPONSE - Reading what the service sent back

A BaristaResponse wraps the decoded JSON envelope of one service reply:

    {"uid": ..., "intention": ..., "signal": "merge",
     "message-type": "success", "message": "...",
     "data": {"id": ..., "individuals": [...], "facts": [...], ...}}

Construction never raises. Undecodable or missing input yields an empty
response whose okay() is False, which the transport routes to its
"error" callbacks.
"""
import logging
from typing import Optional, Dict, Any, List, Union

import msgspec

from core.schemas import (
    Annotation,
    Individual,
    Fact,
    to_individuals,
    to_facts,
    to_annotations,
)


logger = logging.getLogger("minerva.response")

_decoder = msgspec.json.Decoder()


class BaristaResponse:
    """Typed accessors over one service reply."""

    def __init__(self, raw: Union[Dict[str, Any], str, bytes, None] = None):
        self._raw: Dict[str, Any] = {}

        if isinstance(raw, (str, bytes)):
            try:
                raw = _decoder.decode(raw)
            except (msgspec.DecodeError, UnicodeDecodeError) as e:
                logger.debug(f"Undecodable response body: {e}")
                raw = None

        if isinstance(raw, dict):
            self._raw = raw

    # =========================================================================
    # ENVELOPE
    # =========================================================================

    def raw(self) -> Dict[str, Any]:
        return self._raw

    def okay(self) -> bool:
        """
        True if the service answered with a usable envelope.

        A well-formed "error" reply is okay at this level; it is the
        classifier's job to route it.
        """
        return bool(self._raw.get("message-type")) and bool(self._raw.get("message"))

    def message_type(self) -> Optional[str]:
        return self._raw.get("message-type")

    def message(self) -> Optional[str]:
        return self._raw.get("message")

    def signal(self) -> Optional[str]:
        return self._raw.get("signal")

    def intention(self) -> Optional[str]:
        return self._raw.get("intention")

    def user_id(self) -> Optional[str]:
        return self._raw.get("uid")

    def packet_id(self) -> Optional[str]:
        return self._raw.get("packet-id")

    def commentary(self) -> Any:
        return self._raw.get("commentary")

    def data(self) -> Dict[str, Any]:
        data = self._raw.get("data")
        return data if isinstance(data, dict) else {}

    # =========================================================================
    # MODEL CONTENT
    # =========================================================================

    def model_id(self) -> Optional[str]:
        return self.data().get("id")

    def individuals(self) -> List[Individual]:
        return to_individuals(self.data().get("individuals"))

    def facts(self) -> List[Fact]:
        return to_facts(self.data().get("facts"))

    def annotations(self) -> List[Annotation]:
        return to_annotations(self.data().get("annotations"))

    def inconsistent_p(self) -> bool:
        return bool(self.data().get("inconsistent-flag", False))

    def modified_p(self) -> bool:
        return bool(self.data().get("modified-flag", False))

    # =========================================================================
    # META CONTENT
    # =========================================================================

    def relations(self) -> List[Dict[str, Any]]:
        return list(self.data().get("relations") or [])

    def evidence(self) -> List[Dict[str, Any]]:
        return list(self.data().get("evidence") or [])

    def models_meta(self) -> Dict[str, Any]:
        return dict(self.data().get("models-meta") or {})

    def models_meta_read_only(self) -> Dict[str, Any]:
        return dict(self.data().get("models-meta-read-only") or {})

    def model_ids(self) -> List[str]:
        return list(self.models_meta().keys())

    def has_undo_p(self) -> bool:
        return bool(self.data().get("undo"))

    def has_redo_p(self) -> bool:
        return bool(self.data().get("redo"))

    def export_model(self) -> Optional[str]:
        return self.data().get("export-model")

    def __repr__(self) -> str:
        return (
            f"BaristaResponse(message_type={self.message_type()!r}, "
            f"signal={self.signal()!r}, model_id={self.model_id()!r})"
        )
