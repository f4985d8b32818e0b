"""
MINERVA SCHEMAS - Typed views over service payloads

If ontology.py is the Dictionary (the words the service speaks),
schemas.py is the Grammar (how those words are put together).

This module defines:
- Annotation: key/value metadata on a model, individual or fact
- Individual: a node of a model, with its class expressions
- Fact: a typed edge between two individuals
- ProtocolMismatch: the record produced when client and service drift apart

Design Principles:
1. msgspec.Struct everywhere; payloads are converted, not hand-parsed
2. Kebab-case on the wire ("value-type"), snake_case in Python
3. Unknown wire fields are ignored so newer services stay readable
"""
import msgspec
from typing import Optional, Dict, Any, List


# =============================================================================
# MODEL CONTENT
# =============================================================================

class Annotation(msgspec.Struct, kw_only=True, rename="kebab"):
    """One piece of metadata."""
    key: str
    value: Any = None
    value_type: Optional[str] = None

    def to_value(self) -> Dict[str, Any]:
        """Render as an entry of a request's "values" argument."""
        return annotation_value(self.key, self.value, self.value_type)


class Individual(msgspec.Struct, kw_only=True, rename="kebab"):
    """
    A node of a model.

    type holds the class expressions asserted on the individual, in
    service order; root_type the inferred root classes.
    """
    id: str
    type: List[Dict[str, Any]] = []
    root_type: List[Dict[str, Any]] = []
    annotations: List[Annotation] = []


class Fact(msgspec.Struct, kw_only=True, rename="kebab"):
    """A typed edge: subject --property--> object."""
    subject: str
    object: str
    property: str
    property_label: Optional[str] = None
    annotations: List[Annotation] = []

    def triple(self) -> List[str]:
        return [self.subject, self.object, self.property]


# =============================================================================
# PROTOCOL MISMATCH
# =============================================================================

class ProtocolMismatch(msgspec.Struct, kw_only=True):
    """
    An unrecognized message type or signal.

    Raised to the operator alert surface by the classifier; it means the
    client and the service no longer agree on the protocol version.
    """
    message_type: Optional[str]
    signal: Optional[str] = None
    message: Optional[str] = None
    reason: str = ""

    def describe(self) -> str:
        if self.reason:
            return self.reason
        return f"unimplemented message_type: {self.message_type}"


# =============================================================================
# CONVERSION HELPERS
# =============================================================================

def annotation_value(key: str, value: Any, value_type: Optional[str] = None) -> Dict[str, Any]:
    """Build a wire-format annotation value; value-type is only sent when set."""
    out = {"key": key, "value": value}
    if value_type:
        out["value-type"] = value_type
    return out


def to_individuals(raw: Any) -> List[Individual]:
    """Convert a list of wire individuals; anything else yields []."""
    if not isinstance(raw, list):
        return []
    return msgspec.convert(raw, List[Individual])


def to_facts(raw: Any) -> List[Fact]:
    """Convert a list of wire facts; anything else yields []."""
    if not isinstance(raw, list):
        return []
    return msgspec.convert(raw, List[Fact])


def to_annotations(raw: Any) -> List[Annotation]:
    """Convert a list of wire annotations; anything else yields []."""
    if not isinstance(raw, list):
        return []
    return msgspec.convert(raw, List[Annotation])
