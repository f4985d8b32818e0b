"""
MINERVA DUPLICATION - Cloning a model into a new one

The pipeline is an explicit phase list run by a small driver. A phase
starts only after the previous one has fully resolved; work inside a
phase fans out and is awaited jointly (asyncio.gather), so the first
failure fails the phase.

    1. FETCH_SOURCE                 get the source model
    2. CREATE_TARGET                add an empty model
    3. COPY_MODEL_ANNOTATIONS       one request per model annotation   (fan-out)
    4. RECREATE_INDIVIDUALS         one request per individual         (in order)
                                    -> builds the CorrespondenceTable
    5. COPY_INDIVIDUAL_ANNOTATIONS  one request per annotated individual (fan-out)
    6. COPY_FACTS                   one request per fact               (fan-out)
    7. STORE                        store the target model

Phases 5 and 6 can only reach the correspondence table through
DuplicationRun.require_table(), which refuses until phase 4 has built it.

Failure semantics: any phase failure raises DuplicationError naming the
phase. Nothing already written to the target is rolled back.
"""
import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import msgspec

from core.ontology import (
    TITLE_KEY,
    STATE_KEY,
    MODEL_ID_ECHO_KEY,
    is_cross_reference,
)
from core.request_set import RequestSet, ClassExpression
from core.response import BaristaResponse
from core.schemas import Annotation, Individual, Fact
from manager.errors import (
    DuplicationError,
    MissingCorrespondenceError,
    ResponseError,
    check_response,
)


logger = logging.getLogger("minerva.duplication")


class DuplicationPhase(str, Enum):
    """Phases of a duplication run, in execution order."""
    FETCH_SOURCE = "fetch_source"
    CREATE_TARGET = "create_target"
    COPY_MODEL_ANNOTATIONS = "copy_model_annotations"
    RECREATE_INDIVIDUALS = "recreate_individuals"
    COPY_INDIVIDUAL_ANNOTATIONS = "copy_individual_annotations"
    COPY_FACTS = "copy_facts"
    STORE = "store"


# =============================================================================
# CORRESPONDENCE TABLE
# =============================================================================

class CorrespondenceTable:
    """
    Source individual id -> target individual id, for one run only.

    Read-only once built. Lookups of unknown ids raise; data is never
    silently dropped.
    """

    def __init__(self, mapping: Dict[str, str]):
        self._mapping = dict(mapping)

    @classmethod
    def from_created(cls, sources: Sequence[Individual],
                     created: Sequence[BaristaResponse]) -> "CorrespondenceTable":
        """Zip source individuals with the responses that created them, index by index."""
        phase = DuplicationPhase.RECREATE_INDIVIDUALS.value
        if len(sources) != len(created):
            raise DuplicationError(
                phase, f"created {len(created)} individuals for {len(sources)} source individuals"
            )

        mapping = {}
        for source, response in zip(sources, created):
            new_individuals = response.individuals()
            if not new_individuals:
                raise MissingCorrespondenceError(phase, source.id)
            mapping[source.id] = new_individuals[0].id
        return cls(mapping)

    def translate(self, source_id: str, phase: str) -> str:
        try:
            return self._mapping[source_id]
        except KeyError:
            raise MissingCorrespondenceError(phase, source_id) from None

    def translate_value(self, value: Any, phase: str) -> Any:
        """Translate annotation values that reference another individual."""
        if is_cross_reference(value):
            return self.translate(value, phase)
        return value

    def as_dict(self) -> Dict[str, str]:
        return dict(self._mapping)

    def __contains__(self, source_id: str) -> bool:
        return source_id in self._mapping

    def __len__(self) -> int:
        return len(self._mapping)


# =============================================================================
# RUN STATE
# =============================================================================

@dataclass
class DuplicationRun:
    """Mutable state of one duplication, threaded through the phases."""
    source_model_id: str
    new_title: str
    source: Optional[BaristaResponse] = None
    target_model_id: Optional[str] = None
    table: Optional[CorrespondenceTable] = None
    stored: Optional[BaristaResponse] = None
    completed: List[str] = field(default_factory=list)

    def require_source(self, phase: str) -> BaristaResponse:
        if self.source is None:
            raise DuplicationError(phase, "source model not fetched yet")
        return self.source

    def require_target(self, phase: str) -> str:
        if not self.target_model_id:
            raise DuplicationError(phase, "target model not created yet")
        return self.target_model_id

    def require_table(self, phase: str) -> CorrespondenceTable:
        if self.table is None:
            raise DuplicationError(phase, "correspondence table not built yet")
        return self.table


@dataclass
class DuplicationResult:
    """What a successful duplication hands back."""
    target_model_id: str
    response: BaristaResponse
    individual_map: Dict[str, str]


# =============================================================================
# DUPLICATOR
# =============================================================================

def _expression(type_entry: Dict[str, Any]) -> ClassExpression:
    """A named class becomes its id; anything richer is sent as-is."""
    if type_entry.get("type") == "class" and type_entry.get("id"):
        return type_entry["id"]
    return type_entry


class ModelDuplicator:
    """
    Drives the duplication phases for one manager.

    Works in either manager mode: awaitable dispatch results are awaited,
    plain ones are used directly.
    """

    def __init__(self, manager):
        self.manager = manager
        self.phases: List[Tuple[DuplicationPhase, Callable[[DuplicationRun], Awaitable[None]]]] = [
            (DuplicationPhase.FETCH_SOURCE, self.fetch_source),
            (DuplicationPhase.CREATE_TARGET, self.create_target),
            (DuplicationPhase.COPY_MODEL_ANNOTATIONS, self.copy_model_annotations),
            (DuplicationPhase.RECREATE_INDIVIDUALS, self.recreate_individuals),
            (DuplicationPhase.COPY_INDIVIDUAL_ANNOTATIONS, self.copy_individual_annotations),
            (DuplicationPhase.COPY_FACTS, self.copy_facts),
            (DuplicationPhase.STORE, self.store),
        ]

    async def run(self, source_model_id: str, new_title: str) -> DuplicationResult:
        logger.info(f"Duplicating {source_model_id} as {new_title!r}")
        state = DuplicationRun(source_model_id=source_model_id, new_title=new_title)

        for phase, step in self.phases:
            logger.info(f"Phase {phase.value}: starting")
            try:
                await step(state)
            except DuplicationError:
                logger.error(f"Phase {phase.value}: failed, target {state.target_model_id} left as is")
                raise
            except ResponseError as e:
                logger.error(f"Phase {phase.value}: failed ({e}), target {state.target_model_id} left as is")
                raise DuplicationError(phase.value, str(e)) from e
            except msgspec.ValidationError as e:
                logger.error(f"Phase {phase.value}: malformed service data ({e}), target {state.target_model_id} left as is")
                raise DuplicationError(phase.value, f"malformed service data: {e}") from e
            state.completed.append(phase.value)
            logger.info(f"Phase {phase.value}: done")

        return DuplicationResult(
            target_model_id=state.target_model_id,
            response=state.stored,
            individual_map=state.table.as_dict(),
        )

    # =========================================================================
    # SENDING
    # =========================================================================

    async def _send(self, request_set: RequestSet) -> BaristaResponse:
        result = self.manager.request_with(request_set)
        if inspect.isawaitable(result):
            result = await result
        return check_response(result)

    async def _send_all(self, request_sets: List[RequestSet]) -> List[BaristaResponse]:
        return list(await asyncio.gather(*(self._send(r) for r in request_sets)))

    # =========================================================================
    # PHASES
    # =========================================================================

    async def fetch_source(self, state: DuplicationRun) -> None:
        reqs = self.manager.new_request_set(state.source_model_id)
        reqs.get_model()
        state.source = await self._send(reqs)
        logger.debug(
            f"Source has {len(state.source.individuals())} individuals, "
            f"{len(state.source.facts())} facts"
        )

    async def create_target(self, state: DuplicationRun) -> None:
        reqs = self.manager.new_request_set()
        reqs.add_model()
        response = await self._send(reqs)
        if not response.model_id():
            raise DuplicationError(DuplicationPhase.CREATE_TARGET.value, "service returned no model id")
        state.target_model_id = response.model_id()

    async def copy_model_annotations(self, state: DuplicationRun) -> None:
        phase = DuplicationPhase.COPY_MODEL_ANNOTATIONS.value
        source = state.require_source(phase)
        target_id = state.require_target(phase)
        request_sets = self.model_annotation_requests(source.annotations(), target_id, state.new_title)
        await self._send_all(request_sets)

    async def recreate_individuals(self, state: DuplicationRun) -> None:
        phase = DuplicationPhase.RECREATE_INDIVIDUALS.value
        individuals = state.require_source(phase).individuals()
        target_id = state.require_target(phase)

        # One at a time: response i must belong to source individual i.
        created = []
        for individual in individuals:
            created.append(await self._send(self.individual_request(individual, target_id)))

        state.table = CorrespondenceTable.from_created(individuals, created)
        logger.debug(f"Correspondence table: {len(state.table)} entries")

    async def copy_individual_annotations(self, state: DuplicationRun) -> None:
        phase = DuplicationPhase.COPY_INDIVIDUAL_ANNOTATIONS.value
        table = state.require_table(phase)
        target_id = state.require_target(phase)
        request_sets = [
            reqs for reqs in (
                self.individual_annotation_request(ind, table, target_id)
                for ind in state.require_source(phase).individuals()
            )
            if reqs is not None
        ]
        await self._send_all(request_sets)

    async def copy_facts(self, state: DuplicationRun) -> None:
        phase = DuplicationPhase.COPY_FACTS.value
        table = state.require_table(phase)
        target_id = state.require_target(phase)
        request_sets = [
            self.fact_request(fact, table, target_id)
            for fact in state.require_source(phase).facts()
        ]
        await self._send_all(request_sets)

    async def store(self, state: DuplicationRun) -> None:
        target_id = state.require_target(DuplicationPhase.STORE.value)
        reqs = self.manager.new_request_set(target_id)
        reqs.store_model()
        state.stored = await self._send(reqs)
        logger.info(f"Target model {target_id} stored")

    # =========================================================================
    # REQUEST BUILDERS
    # =========================================================================

    def model_annotation_requests(self, annotations: List[Annotation], target_id: str,
                                  new_title: str) -> List[RequestSet]:
        """
        One add-annotation batch per model annotation.

        title is replaced by new_title, the id echo points at the target,
        state is dropped (a new model already has one).
        """
        request_sets = []
        for annotation in annotations:
            if annotation.key == STATE_KEY:
                continue
            if annotation.key == TITLE_KEY:
                value, value_type = new_title, None
            elif annotation.key == MODEL_ID_ECHO_KEY:
                value, value_type = target_id, None
            else:
                value, value_type = annotation.value, annotation.value_type

            reqs = self.manager.new_request_set(target_id)
            reqs.add_annotation_to_model(annotation.key, value, value_type)
            request_sets.append(reqs)
        return request_sets

    def individual_request(self, individual: Individual, target_id: str) -> RequestSet:
        """Add-individual batch carrying every class expression of the source."""
        if not individual.type:
            raise DuplicationError(
                DuplicationPhase.RECREATE_INDIVIDUALS.value,
                f"individual {individual.id} has no class expression",
            )
        reqs = self.manager.new_request_set(target_id)
        variable = reqs.add_individual(_expression(individual.type[0]))
        for extra in individual.type[1:]:
            reqs.add_type_to_individual(_expression(extra), variable)
        return reqs

    def individual_annotation_request(self, individual: Individual, table: CorrespondenceTable,
                                      target_id: str) -> Optional[RequestSet]:
        """Annotation batch for one individual, or None if it has none."""
        phase = DuplicationPhase.COPY_INDIVIDUAL_ANNOTATIONS.value
        target_individual = table.translate(individual.id, phase)
        if not individual.annotations:
            return None

        reqs = self.manager.new_request_set(target_id)
        for annotation in individual.annotations:
            value = table.translate_value(annotation.value, phase)
            reqs.add_annotation_to_individual(annotation.key, value, annotation.value_type, target_individual)
        return reqs

    def fact_request(self, fact: Fact, table: CorrespondenceTable, target_id: str) -> RequestSet:
        """Add-fact batch with endpoints and annotation references translated."""
        phase = DuplicationPhase.COPY_FACTS.value
        triple = [
            table.translate(fact.subject, phase),
            table.translate(fact.object, phase),
            fact.property,
        ]
        reqs = self.manager.new_request_set(target_id)
        reqs.add_fact(triple)
        for annotation in fact.annotations:
            value = table.translate_value(annotation.value, phase)
            reqs.add_annotation_to_fact(annotation.key, value, annotation.value_type, triple)
        return reqs
