"""
MINERVA REQUEST SET - Building operation batches

A RequestSet is an ordered batch of Requests sent to the service in one
transport call. Each Request addresses one entity with one operation:

    {"entity": "individual", "operation": "add",
     "arguments": {"model-id": "...", "expressions": [...]}}

Newly added individuals are named with a batch-local variable
("assign-to-variable") so later requests in the same batch can refer to
them before the service has assigned real identifiers.

Usage:
    reqs = RequestSet(user_token, model_id)
    ind = reqs.add_individual("GO:0003674")
    reqs.add_annotation_to_individual("comment", "hello", None, ind)
    payload = reqs.structure()
"""
import copy
import uuid
from typing import Optional, Dict, Any, List, Union

from core.ontology import (
    Entity,
    Operation,
    Intention,
    EVIDENCE_KEY,
    SOURCE_KEY,
    WITH_KEY,
)
from core.schemas import annotation_value


ClassExpression = Union[str, Dict[str, Any]]


# =============================================================================
# CLASS EXPRESSIONS
# =============================================================================

def cls_expr(expr: ClassExpression) -> Dict[str, Any]:
    """
    Normalize a class expression to its wire form.

    A string is a named class; a dict is assumed to already be a wire
    expression and is copied.
    """
    if isinstance(expr, str):
        return {"type": "class", "id": expr}
    if isinstance(expr, dict):
        return copy.deepcopy(expr)
    raise TypeError(f"Unsupported class expression: {expr!r}")


def svf(filler: ClassExpression, property_id: str) -> Dict[str, Any]:
    """Some-values-from restriction: property_id some filler."""
    return {
        "type": "svf",
        "property": {"type": "property", "id": property_id},
        "filler": cls_expr(filler),
    }


def new_variable() -> str:
    """Batch-local variable name for a not-yet-created individual."""
    return f"var-{uuid.uuid4().hex}"


# =============================================================================
# SINGLE REQUEST
# =============================================================================

class Request:
    """One operation against one entity."""

    def __init__(self, entity: Union[Entity, str], operation: Union[Operation, str]):
        self._entity = Entity(entity).value
        self._operation = Operation(operation).value
        self._arguments: Dict[str, Any] = {}

    @property
    def entity(self) -> str:
        return self._entity

    @property
    def operation(self) -> str:
        return self._operation

    def model(self, model_id: Optional[str] = None) -> Optional[str]:
        """Get/set the model this request targets."""
        if model_id:
            self._arguments["model-id"] = model_id
        return self._arguments.get("model-id")

    def individual(self, individual_id: str) -> None:
        self._arguments["individual"] = individual_id

    def fact(self, subject: str, obj: str, predicate: str) -> None:
        self._arguments["subject"] = subject
        self._arguments["object"] = obj
        self._arguments["predicate"] = predicate

    def assign_to_variable(self, name: str) -> None:
        self._arguments["assign-to-variable"] = name

    def add_class_expression(self, expr: ClassExpression) -> None:
        self._arguments.setdefault("expressions", []).append(cls_expr(expr))

    def add_svf_expression(self, filler: ClassExpression, property_id: str) -> None:
        self._arguments.setdefault("expressions", []).append(svf(filler, property_id))

    def add_annotation(self, key: str, value: Any, value_type: Optional[str] = None) -> None:
        self._arguments.setdefault("values", []).append(
            annotation_value(key, value, value_type)
        )

    def special(self, key: str, value: Any = None) -> Any:
        """Get/set an operation-specific argument."""
        if value is not None:
            self._arguments[key] = value
        return self._arguments.get(key)

    def structure(self) -> Dict[str, Any]:
        return {
            "entity": self._entity,
            "operation": self._operation,
            "arguments": copy.deepcopy(self._arguments),
        }

    def __repr__(self) -> str:
        return f"Request({self._entity}/{self._operation})"


# =============================================================================
# REQUEST SET (the batch)
# =============================================================================

class RequestSet:
    """
    An ordered batch of requests plus batch-wide settings.

    Every request added to the set receives the set's model id unless it
    already names one.
    """

    def __init__(self, user_token: Optional[str] = None, model_id: Optional[str] = None):
        self._user_token = user_token
        self._model_id = model_id
        self._intention = Intention.ACTION.value
        self._requests: List[Request] = []
        self._use_reasoner = False
        self._use_groups: List[str] = []

    # -------------------------------------------------------------------------
    # Batch settings
    # -------------------------------------------------------------------------

    def model_id(self) -> Optional[str]:
        return self._model_id

    def intention(self) -> str:
        return self._intention

    def use_reasoner(self, flag: Optional[bool] = None) -> bool:
        """Get/set the reasoner flag sent with the batch."""
        if isinstance(flag, bool):
            self._use_reasoner = flag
        return self._use_reasoner

    def use_groups(self, groups: Optional[List[str]] = None) -> List[str]:
        """Get/set the group scope ("provided-by") sent with the batch."""
        if isinstance(groups, list):
            self._use_groups = list(groups)
        return list(self._use_groups)

    def requests(self) -> List[Request]:
        return list(self._requests)

    def __len__(self) -> int:
        return len(self._requests)

    # -------------------------------------------------------------------------
    # Assembly
    # -------------------------------------------------------------------------

    def add(self, request: Request, intention: Optional[Intention] = None) -> Request:
        if self._model_id and not request.model():
            request.model(self._model_id)
        if intention is not None:
            self._intention = Intention(intention).value
        self._requests.append(request)
        return request

    def structure(self) -> Dict[str, Any]:
        """Render the batch into the service's structured form."""
        out: Dict[str, Any] = {"intention": self._intention}
        if self._user_token:
            out["token"] = self._user_token
        out["requests"] = [r.structure() for r in self._requests]
        if self._use_reasoner:
            out["use-reasoner"] = True
        if self._use_groups:
            out["provided-by"] = list(self._use_groups)
        return out

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_model(self, model_id: Optional[str] = None) -> Request:
        req = Request(Entity.MODEL, Operation.GET)
        req.model(model_id)
        return self.add(req, Intention.QUERY)

    def get_meta(self) -> Request:
        return self.add(Request(Entity.META, Operation.GET), Intention.QUERY)

    def get_undo_redo(self, model_id: Optional[str] = None) -> Request:
        req = Request(Entity.MODEL, Operation.GET_UNDO_REDO)
        req.model(model_id)
        return self.add(req, Intention.QUERY)

    # -------------------------------------------------------------------------
    # Model-level actions
    # -------------------------------------------------------------------------

    def undo_last_model_batch(self, model_id: Optional[str] = None) -> Request:
        req = Request(Entity.MODEL, Operation.UNDO)
        req.model(model_id)
        return self.add(req)

    def redo_last_model_batch(self, model_id: Optional[str] = None) -> Request:
        req = Request(Entity.MODEL, Operation.REDO)
        req.model(model_id)
        return self.add(req)

    def add_model(self, annotations: Optional[Dict[str, Any]] = None) -> Request:
        """
        Request a new, empty model.

        annotations maps keys to a value or list of values; None values
        are skipped.
        """
        req = Request(Entity.MODEL, Operation.ADD)
        for key, value in (annotations or {}).items():
            values = value if isinstance(value, list) else [value]
            for v in values:
                if v is not None:
                    req.add_annotation(key, v)
        return self.add(req)

    def store_model(self, model_id: Optional[str] = None) -> Request:
        req = Request(Entity.MODEL, Operation.STORE)
        req.model(model_id)
        return self.add(req)

    def export_all(self) -> Request:
        return self.add(Request(Entity.MODEL, Operation.EXPORT_ALL))

    def add_annotation_to_model(self, key: str, value: Any, value_type: Optional[str] = None,
                                model_id: Optional[str] = None) -> Request:
        req = Request(Entity.MODEL, Operation.ADD_ANNOTATION)
        req.model(model_id)
        req.add_annotation(key, value, value_type)
        return self.add(req)

    def remove_annotation_from_model(self, key: str, value: Any, value_type: Optional[str] = None,
                                     model_id: Optional[str] = None) -> Request:
        req = Request(Entity.MODEL, Operation.REMOVE_ANNOTATION)
        req.model(model_id)
        req.add_annotation(key, value, value_type)
        return self.add(req)

    # -------------------------------------------------------------------------
    # Individuals
    # -------------------------------------------------------------------------

    def add_individual(self, expr: ClassExpression, model_id: Optional[str] = None) -> str:
        """Add an individual of the given class; returns its batch variable."""
        variable = new_variable()
        req = Request(Entity.INDIVIDUAL, Operation.ADD)
        req.model(model_id)
        req.add_class_expression(expr)
        req.assign_to_variable(variable)
        self.add(req)
        return variable

    def remove_individual(self, individual_id: str, model_id: Optional[str] = None) -> Request:
        req = Request(Entity.INDIVIDUAL, Operation.REMOVE)
        req.model(model_id)
        req.individual(individual_id)
        return self.add(req)

    def add_type_to_individual(self, expr: ClassExpression, individual_id: str,
                               model_id: Optional[str] = None) -> Request:
        req = Request(Entity.INDIVIDUAL, Operation.ADD_TYPE)
        req.model(model_id)
        req.individual(individual_id)
        req.add_class_expression(expr)
        return self.add(req)

    def remove_type_from_individual(self, expr: ClassExpression, individual_id: str,
                                    model_id: Optional[str] = None) -> Request:
        req = Request(Entity.INDIVIDUAL, Operation.REMOVE_TYPE)
        req.model(model_id)
        req.individual(individual_id)
        req.add_class_expression(expr)
        return self.add(req)

    def add_annotation_to_individual(self, key: str, value: Any, value_type: Optional[str],
                                     individual_id: str, model_id: Optional[str] = None) -> Request:
        req = Request(Entity.INDIVIDUAL, Operation.ADD_ANNOTATION)
        req.model(model_id)
        req.individual(individual_id)
        req.add_annotation(key, value, value_type)
        return self.add(req)

    def remove_annotation_from_individual(self, key: str, value: Any, value_type: Optional[str],
                                          individual_id: str, model_id: Optional[str] = None) -> Request:
        req = Request(Entity.INDIVIDUAL, Operation.REMOVE_ANNOTATION)
        req.model(model_id)
        req.individual(individual_id)
        req.add_annotation(key, value, value_type)
        return self.add(req)

    # -------------------------------------------------------------------------
    # Facts (edges)
    # -------------------------------------------------------------------------

    def add_fact(self, triple: List[str], model_id: Optional[str] = None) -> Request:
        """triple is [subject_id, object_id, relation_id]."""
        req = Request(Entity.EDGE, Operation.ADD)
        req.model(model_id)
        req.fact(*triple)
        return self.add(req)

    def remove_fact(self, triple: List[str], model_id: Optional[str] = None) -> Request:
        req = Request(Entity.EDGE, Operation.REMOVE)
        req.model(model_id)
        req.fact(*triple)
        return self.add(req)

    def add_annotation_to_fact(self, key: str, value: Any, value_type: Optional[str],
                               triple: List[str], model_id: Optional[str] = None) -> Request:
        req = Request(Entity.EDGE, Operation.ADD_ANNOTATION)
        req.model(model_id)
        req.fact(*triple)
        req.add_annotation(key, value, value_type)
        return self.add(req)

    def remove_annotation_from_fact(self, key: str, value: Any, value_type: Optional[str],
                                    triple: List[str], model_id: Optional[str] = None) -> Request:
        req = Request(Entity.EDGE, Operation.REMOVE_ANNOTATION)
        req.model(model_id)
        req.fact(*triple)
        req.add_annotation(key, value, value_type)
        return self.add(req)

    # -------------------------------------------------------------------------
    # Evidence and bulk annotation updates
    # -------------------------------------------------------------------------

    def add_evidence(self, evidence_id: ClassExpression,
                     source_ids: Union[str, List[str], None],
                     with_strs: Union[str, List[str], None],
                     target: Union[str, List[str]],
                     model_id: Optional[str] = None) -> str:
        """
        Create an evidence individual and tie it to a target.

        target is an individual id, or a [subject, object, relation]
        triple for a fact. Returns the evidence individual's variable.
        """
        evidence_var = self.add_individual(evidence_id, model_id)
        for source in _as_list(source_ids):
            self.add_annotation_to_individual(SOURCE_KEY, source, None, evidence_var, model_id)
        for with_str in _as_list(with_strs):
            self.add_annotation_to_individual(WITH_KEY, with_str, None, evidence_var, model_id)

        if isinstance(target, (list, tuple)):
            self.add_annotation_to_fact(EVIDENCE_KEY, evidence_var, None, list(target), model_id)
        else:
            self.add_annotation_to_individual(EVIDENCE_KEY, evidence_var, None, target, model_id)
        return evidence_var

    def remove_evidence(self, evidence_individual_id: str, model_id: Optional[str] = None) -> Request:
        return self.remove_individual(evidence_individual_id, model_id)

    def update_annotations(self, entity: Dict[str, Any], key: str,
                           values: Union[Any, List[Any]], value_type: Optional[str] = None,
                           model_id: Optional[str] = None) -> None:
        """
        Replace every annotation with the given key on an entity.

        entity is a wire dict: a fact (has "subject"), an individual (has
        "id"), or the model itself (only "annotations").
        """
        current = [a for a in entity.get("annotations", []) if a.get("key") == key]

        if "subject" in entity:
            triple = [entity["subject"], entity["object"], entity["property"]]
            for ann in current:
                self.remove_annotation_from_fact(key, ann.get("value"), ann.get("value-type"), triple, model_id)
            for value in _as_list(values):
                self.add_annotation_to_fact(key, value, value_type, triple, model_id)
        elif "id" in entity:
            for ann in current:
                self.remove_annotation_from_individual(key, ann.get("value"), ann.get("value-type"),
                                                       entity["id"], model_id)
            for value in _as_list(values):
                self.add_annotation_to_individual(key, value, value_type, entity["id"], model_id)
        else:
            for ann in current:
                self.remove_annotation_from_model(key, ann.get("value"), ann.get("value-type"), model_id)
            for value in _as_list(values):
                self.add_annotation_to_model(key, value, value_type, model_id)


def _as_list(values) -> List[Any]:
    if values is None:
        return []
    if isinstance(values, (list, tuple)):
        return list(values)
    return [values]
