"""
MINERVA MANAGER - One method per user intent

Every intent builds exactly one batch and hands it to request_with().
The docstrings record what the service is expected to answer with, which
is the channel that will fire:

    Expect: "success" and "merge"   -> Channel.MERGE
    Expect: "success" and "rebuild" -> Channel.REBUILD
    Expect: "success" and "meta"    -> Channel.META

Usage:
    manager = create_manager()              # settings from config/env
    manager.channels.subscribe(Channel.META, on_meta)
    resp = manager.get_meta()               # sync mode: a response

    manager = create_manager(settings_with_async_mode)
    resp = await manager.get_model(model_id)  # async mode: awaitable
"""
import logging
from typing import Any, Dict, List, Optional, Union

from core.config import ManagerSettings, load_settings
from core.ontology import (
    Entity,
    Operation,
    RunMode,
    ENABLED_BY,
    OCCURS_IN,
)
from core.request_set import Request, ClassExpression, svf
from infrastructure.transport import SyncEngine, AsyncEngine
from manager.classifier import AlertHandler
from manager.dispatch import RequestDispatcher, DispatchResult
from manager.duplication import ModelDuplicator, DuplicationResult


logger = logging.getLogger("minerva.manager")


class MinervaManager(RequestDispatcher):
    """A manager for talking to a model service through its gateway."""

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_model(self, model_id: str) -> DispatchResult:
        """
        Fetch a whole model.

        Intent: "query". Expect: "success" and "rebuild".
        """
        reqs = self.new_request_set(model_id)
        reqs.get_model()
        return self.request_with(reqs)

    def get_meta(self) -> DispatchResult:
        """
        Fetch service meta information: relations, evidence, model listing.

        Intent: "query". Expect: "success" and "meta".
        """
        reqs = self.new_request_set()
        reqs.get_meta()
        return self.request_with(reqs)

    def get_model_undo_redo(self, model_id: str) -> DispatchResult:
        """
        Fetch a model's undo/redo availability.

        Intent: "query". Expect: "success" and "meta".
        """
        reqs = self.new_request_set(model_id)
        reqs.get_undo_redo()
        return self.request_with(reqs)

    # =========================================================================
    # HISTORY
    # =========================================================================

    def perform_undo(self, model_id: str) -> DispatchResult:
        """Expect: "success" and "rebuild"."""
        reqs = self.new_request_set(model_id)
        reqs.undo_last_model_batch()
        return self.request_with(reqs)

    def perform_redo(self, model_id: str) -> DispatchResult:
        """Expect: "success" and "rebuild"."""
        reqs = self.new_request_set(model_id)
        reqs.redo_last_model_batch()
        return self.request_with(reqs)

    # =========================================================================
    # FACTS AND INDIVIDUALS
    # =========================================================================

    def add_fact(self, model_id: str, source_id: str, target_id: str, rel_id: str) -> DispatchResult:
        """Expect: "success" and "merge"."""
        reqs = self.new_request_set(model_id)
        reqs.add_fact([source_id, target_id, rel_id])
        return self.request_with(reqs)

    def remove_fact(self, model_id: str, source_id: str, target_id: str, rel_id: str) -> DispatchResult:
        """Expect: "success" and "merge"."""
        reqs = self.new_request_set(model_id)
        reqs.remove_fact([source_id, target_id, rel_id])
        return self.request_with(reqs)

    def add_simple_composite(
        self,
        model_id: str,
        cls_expr: ClassExpression,
        enabled_by_expr: Optional[ClassExpression] = None,
        occurs_in_expr: Optional[ClassExpression] = None,
    ) -> DispatchResult:
        """
        Add an individual with optional enabled_by and occurs_in types.

        Expect: "success" and "merge".
        """
        reqs = self.new_request_set(model_id)
        ind = reqs.add_individual(cls_expr)
        if enabled_by_expr:
            reqs.add_type_to_individual(svf(enabled_by_expr, ENABLED_BY), ind)
        if occurs_in_expr:
            reqs.add_type_to_individual(svf(occurs_in_expr, OCCURS_IN), ind)
        return self.request_with(reqs)

    def add_class_expression(self, model_id: str, individual_id: str,
                             cls_expr: ClassExpression) -> DispatchResult:
        """Expect: "success" and "merge"."""
        reqs = self.new_request_set(model_id)
        reqs.add_type_to_individual(cls_expr, individual_id)
        return self.request_with(reqs)

    def remove_class_expression(self, model_id: str, individual_id: str,
                                cls_expr: ClassExpression) -> DispatchResult:
        """Expect: "success" and "merge"."""
        reqs = self.new_request_set(model_id)
        reqs.remove_type_from_individual(cls_expr, individual_id)
        return self.request_with(reqs)

    def remove_individual(self, model_id: str, individual_id: str) -> DispatchResult:
        """Expect: "success" and "rebuild"."""
        reqs = self.new_request_set(model_id)
        reqs.remove_individual(individual_id)
        return self.request_with(reqs)

    # =========================================================================
    # WHOLE MODELS
    # =========================================================================

    def add_model(self, taxon_id: Optional[str] = None, class_id: Optional[str] = None) -> DispatchResult:
        """
        Create a new, empty model.

        taxon_id and class_id are deprecated seed annotations, sent only
        when given. Expect: "success" and "rebuild".
        """
        reqs = self.new_request_set()
        reqs.add_model({"class-id": class_id, "taxon_id": taxon_id})
        return self.request_with(reqs)

    def export_model(self, model_id: str, format: Optional[str] = None) -> DispatchResult:
        """
        Export a model as text (deprecated).

        format "gaf" or "gpad" selects the legacy exporter.
        Expect: "success" and "meta".
        """
        reqs = self.new_request_set()
        if format in ("gaf", "gpad"):
            req = Request(Entity.MODEL, Operation.EXPORT_LEGACY)
            req.special("format", format)
        else:
            req = Request(Entity.MODEL, Operation.EXPORT)
        req.model(model_id)
        reqs.add(req)
        return self.request_with(reqs)

    def import_model(self, model_string: str) -> DispatchResult:
        """
        Create a model from its text serialization (deprecated).

        Expect: "success" and "rebuild".
        """
        reqs = self.new_request_set()
        req = Request(Entity.MODEL, Operation.IMPORT)
        req.special("importModel", model_string)
        reqs.add(req)
        return self.request_with(reqs)

    def store_model(self, model_id: str) -> DispatchResult:
        """
        Permanently store a model.

        A "rebuild", not a "meta": create, edit and store can then be
        one pass. Expect: "success" and "rebuild".
        """
        reqs = self.new_request_set(model_id)
        reqs.store_model()
        return self.request_with(reqs)

    def store_all(self) -> DispatchResult:
        """Expect: "success" and "meta"."""
        reqs = self.new_request_set()
        reqs.export_all()
        return self.request_with(reqs)

    def seed_from_process(self, process_id: str, taxon_id: str) -> DispatchResult:
        """
        Create a model seeded by the seed service from a process.

        Routed to the seed endpoint. Expect: "success" and "rebuild".
        """
        reqs = self.new_request_set()
        req = Request(Entity.MODEL, Operation.SEED_FROM_PROCESS)
        req.special("process", process_id)
        req.special("taxon", taxon_id)
        reqs.add(req)
        return self.request_with(reqs)

    # =========================================================================
    # EVIDENCE
    # =========================================================================

    def add_individual_evidence(self, model_id: str, individual_id: str,
                                evidence_id: ClassExpression,
                                source_ids: Union[str, List[str]],
                                with_strs: Union[str, List[str], None] = None) -> DispatchResult:
        """Expect: "success" and "rebuild"."""
        reqs = self.new_request_set(model_id)
        reqs.add_evidence(evidence_id, source_ids, with_strs, individual_id, model_id)
        return self.request_with(reqs)

    def add_fact_evidence(self, model_id: str, source_id: str, target_id: str, rel_id: str,
                          evidence_id: ClassExpression,
                          source_ids: Union[str, List[str]],
                          with_strs: Union[str, List[str], None] = None) -> DispatchResult:
        """Expect: "success" and "rebuild"."""
        reqs = self.new_request_set(model_id)
        reqs.add_evidence(evidence_id, source_ids, with_strs,
                          [source_id, target_id, rel_id], model_id)
        return self.request_with(reqs)

    def remove_evidence(self, model_id: str, evidence_individual_id: str) -> DispatchResult:
        """Expect: "success" and "rebuild"."""
        reqs = self.new_request_set(model_id)
        reqs.remove_evidence(evidence_individual_id, model_id)
        return self.request_with(reqs)

    # =========================================================================
    # ANNOTATIONS
    # =========================================================================

    def update_annotations(self, model_id: str, entity: Dict[str, Any], key: str,
                           values: Union[Any, List[Any]],
                           value_type: Optional[str] = None) -> DispatchResult:
        """
        Replace an entity's annotations for one key with a new set.

        Expect: "success" and "rebuild".
        """
        reqs = self.new_request_set(model_id)
        reqs.update_annotations(entity, key, values, value_type, model_id)
        return self.request_with(reqs)

    def add_individual_annotation(self, model_id: str, individual_id: str, key: str,
                                  value: Any, value_type: Optional[str] = None) -> DispatchResult:
        """Expect: "success" and "rebuild"."""
        reqs = self.new_request_set(model_id)
        reqs.add_annotation_to_individual(key, value, value_type, individual_id)
        return self.request_with(reqs)

    def add_fact_annotation(self, model_id: str, source_id: str, target_id: str, rel_id: str,
                            key: str, value: Any, value_type: Optional[str] = None) -> DispatchResult:
        """Expect: "success" and "rebuild"."""
        reqs = self.new_request_set(model_id)
        reqs.add_annotation_to_fact(key, value, value_type, [source_id, target_id, rel_id])
        return self.request_with(reqs)

    def add_model_annotation(self, model_id: str, key: str, value: Any,
                             value_type: Optional[str] = None) -> DispatchResult:
        """Expect: "success" and "rebuild"."""
        reqs = self.new_request_set(model_id)
        reqs.add_annotation_to_model(key, value, value_type)
        return self.request_with(reqs)

    def remove_individual_annotation(self, model_id: str, individual_id: str, key: str,
                                     value: Any, value_type: Optional[str] = None) -> DispatchResult:
        """Expect: "success" and "rebuild"."""
        reqs = self.new_request_set(model_id)
        reqs.remove_annotation_from_individual(key, value, value_type, individual_id)
        return self.request_with(reqs)

    def remove_fact_annotation(self, model_id: str, source_id: str, target_id: str, rel_id: str,
                               key: str, value: Any, value_type: Optional[str] = None) -> DispatchResult:
        """Expect: "success" and "rebuild"."""
        reqs = self.new_request_set(model_id)
        reqs.remove_annotation_from_fact(key, value, value_type, [source_id, target_id, rel_id])
        return self.request_with(reqs)

    def remove_model_annotation(self, model_id: str, key: str, value: Any,
                                value_type: Optional[str] = None) -> DispatchResult:
        """Expect: "success" and "rebuild"."""
        reqs = self.new_request_set(model_id)
        reqs.remove_annotation_from_model(key, value, value_type)
        return self.request_with(reqs)

    # =========================================================================
    # DUPLICATION
    # =========================================================================

    async def duplicate_model(self, source_model_id: str, new_title: str) -> DuplicationResult:
        """
        Clone a model into a new one titled new_title, then store it.

        Returns a DuplicationResult; raises DuplicationError naming the
        failed phase. Nothing is cleaned up on failure.
        """
        return await ModelDuplicator(self).run(source_model_id, new_title)


# =============================================================================
# FACTORY
# =============================================================================

def create_manager(settings: Optional[ManagerSettings] = None,
                   alert: Optional[AlertHandler] = None,
                   engine: Any = None) -> MinervaManager:
    """
    Build a manager from settings (load_settings() when omitted).

    The engine matches the mode unless one is passed in.
    """
    settings = settings or load_settings()
    if engine is None:
        if settings.mode == RunMode.ASYNC.value:
            engine = AsyncEngine(method=settings.method, timeout=settings.timeout)
        else:
            engine = SyncEngine(method=settings.method, timeout=settings.timeout)
        logger.debug(f"Built {type(engine).__name__} for {settings.mode} mode")

    manager = MinervaManager(
        settings.barista_url,
        settings.namespace,
        settings.user_token,
        engine,
        settings.mode,
        alert=alert,
    )
    manager.use_reasoner = settings.use_reasoner
    manager.use_groups = settings.use_groups
    return manager
