"""
Unit tests for manager.duplication.

A scripted stand-in for the service answers each batch by looking at its
first request, so a whole duplication can run without a gateway:

    model/get        -> the source model
    model/add        -> the new, empty target
    individual/add   -> one freshly minted target individual
    anything else    -> a bare merge
"""
import msgspec
import pytest

from conftest import make_reply, FakeSyncEngine, FakeAsyncEngine, BASE, NAMESPACE
from core.ontology import MODEL_ID_ECHO_KEY
from manager.duplication import (
    CorrespondenceTable,
    DuplicationPhase,
    DuplicationRun,
    ModelDuplicator,
)
from manager.errors import DuplicationError, MissingCorrespondenceError
from manager.minerva import MinervaManager


SOURCE = "gomodel:source"
TARGET = "gomodel:target"


def source_model(facts=None):
    return {
        "id": SOURCE,
        "annotations": [
            {"key": "title", "value": "Old title"},
            {"key": "state", "value": "production"},
            {"key": MODEL_ID_ECHO_KEY, "value": SOURCE},
            {"key": "contributor", "value": "http://orcid.org/0000-0001"},
            {"key": "date", "value": "2020-01-01", "value-type": "xsd:string"},
        ],
        "individuals": [
            {
                "id": f"{SOURCE}/a",
                "type": [{"type": "class", "id": "GO:0003674", "label": "molecular_function"}],
                "annotations": [{"key": "contributor", "value": "http://orcid.org/0000-0001"}],
            },
            {
                "id": f"{SOURCE}/b",
                "type": [
                    {"type": "class", "id": "GO:0008150"},
                    {
                        "type": "svf",
                        "property": {"type": "property", "id": "RO:0002333"},
                        "filler": {"type": "class", "id": "UniProtKB:P12345"},
                    },
                ],
                "annotations": [{"key": "evidence", "value": f"{SOURCE}/c"}],
            },
            {
                "id": f"{SOURCE}/c",
                "type": [{"type": "class", "id": "ECO:0000314"}],
                "annotations": [],
            },
        ],
        "facts": facts if facts is not None else [
            {
                "subject": f"{SOURCE}/a",
                "object": f"{SOURCE}/b",
                "property": "BFO:0000050",
                "annotations": [{"key": "evidence", "value": f"{SOURCE}/c"}],
            },
        ],
    }


class ServiceStub:
    """Answers batches the way the model service would."""

    def __init__(self, model=None):
        self.model = model or source_model()
        self.batches = []
        self.minted = 0
        self.fail_on = None
        self.empty_individuals = False

    def __call__(self, url, payload):
        requests = msgspec.json.decode(payload["requests"])
        self.batches.append(requests)
        first = (requests[0]["entity"], requests[0]["operation"])

        if first == self.fail_on:
            return make_reply("merge", "error", f"refusing {first}")
        if first == ("model", "get"):
            return make_reply("rebuild", data=self.model, intention="query")
        if first == ("model", "add"):
            return make_reply("rebuild", data={"id": TARGET})
        if first == ("individual", "add"):
            if self.empty_individuals:
                return make_reply("merge", data={"id": TARGET, "individuals": []})
            self.minted += 1
            minted = {"id": f"{TARGET}/new-{self.minted}", "type": requests[0]["arguments"]["expressions"]}
            return make_reply("merge", data={"id": TARGET, "individuals": [minted]})
        return make_reply("merge", data={"id": TARGET})

    def sent(self, entity, operation):
        return [b for b in self.batches if (b[0]["entity"], b[0]["operation"]) == (entity, operation)]


@pytest.fixture
def stub():
    return ServiceStub()


@pytest.fixture
def dup_manager(stub):
    return MinervaManager(BASE, NAMESPACE, "tok", FakeSyncEngine(default=stub), "sync")


class TestCorrespondenceTable:

    def test_translate(self):
        table = CorrespondenceTable({"gomodel:s/1": "gomodel:t/9"})
        assert table.translate("gomodel:s/1", "copy_facts") == "gomodel:t/9"
        assert "gomodel:s/1" in table
        assert len(table) == 1

    def test_unknown_id_raises(self):
        table = CorrespondenceTable({})
        with pytest.raises(MissingCorrespondenceError) as exc_info:
            table.translate("gomodel:s/404", "copy_facts")
        assert exc_info.value.phase == "copy_facts"

    def test_translate_value(self):
        table = CorrespondenceTable({"gomodel:s/1": "gomodel:t/9"})
        assert table.translate_value("gomodel:s/1", "p") == "gomodel:t/9"
        assert table.translate_value("PMID:123", "p") == "PMID:123"
        with pytest.raises(MissingCorrespondenceError):
            table.translate_value("gomodel:s/2", "p")

    def test_as_dict_is_a_copy(self):
        table = CorrespondenceTable({"a": "b"})
        table.as_dict()["a"] = "z"
        assert table.translate("a", "p") == "b"


class TestFullRun:

    @pytest.mark.asyncio
    async def test_duplicates_and_stores(self, dup_manager, stub):
        result = await dup_manager.duplicate_model(SOURCE, "New title")

        assert result.target_model_id == TARGET
        assert result.individual_map == {
            f"{SOURCE}/a": f"{TARGET}/new-1",
            f"{SOURCE}/b": f"{TARGET}/new-2",
            f"{SOURCE}/c": f"{TARGET}/new-3",
        }
        assert result.response.okay()
        # Last thing sent is the store
        assert stub.batches[-1][0]["operation"] == "store"
        assert stub.batches[-1][0]["arguments"]["model-id"] == TARGET

    @pytest.mark.asyncio
    async def test_phase_order(self, dup_manager, stub):
        await dup_manager.duplicate_model(SOURCE, "New title")
        order = []
        for batch in stub.batches:
            key = (batch[0]["entity"], batch[0]["operation"])
            if not order or order[-1] != key:
                order.append(key)
        assert order == [
            ("model", "get"),
            ("model", "add"),
            ("model", "add-annotation"),
            ("individual", "add"),
            ("individual", "add-annotation"),
            ("edge", "add"),
            ("model", "store"),
        ]

    @pytest.mark.asyncio
    async def test_model_annotations(self, dup_manager, stub):
        await dup_manager.duplicate_model(SOURCE, "New title")
        values = [b[0]["arguments"]["values"][0] for b in stub.sent("model", "add-annotation")]

        assert {"key": "title", "value": "New title"} in values
        assert {"key": MODEL_ID_ECHO_KEY, "value": TARGET} in values
        assert {"key": "date", "value": "2020-01-01", "value-type": "xsd:string"} in values
        assert all(v["key"] != "state" for v in values)
        assert len(values) == 4

    @pytest.mark.asyncio
    async def test_individuals_keep_every_type(self, dup_manager, stub):
        await dup_manager.duplicate_model(SOURCE, "New title")
        second = stub.sent("individual", "add")[1]

        assert [r["operation"] for r in second] == ["add", "add-type"]
        assert second[0]["arguments"]["expressions"] == [{"type": "class", "id": "GO:0008150"}]
        assert second[1]["arguments"]["expressions"][0]["type"] == "svf"
        assert second[1]["arguments"]["individual"] == second[0]["arguments"]["assign-to-variable"]

    @pytest.mark.asyncio
    async def test_individual_annotations_are_translated(self, dup_manager, stub):
        await dup_manager.duplicate_model(SOURCE, "New title")
        batches = stub.sent("individual", "add-annotation")

        # c has no annotations, so only a and b get a batch
        assert len(batches) == 2
        by_target = {b[0]["arguments"]["individual"]: b[0]["arguments"]["values"][0] for b in batches}
        assert by_target[f"{TARGET}/new-2"] == {"key": "evidence", "value": f"{TARGET}/new-3"}

    @pytest.mark.asyncio
    async def test_facts_are_translated(self, dup_manager, stub):
        await dup_manager.duplicate_model(SOURCE, "New title")
        [batch] = stub.sent("edge", "add")

        add, annotate = batch
        assert (add["arguments"]["subject"], add["arguments"]["object"]) == (
            f"{TARGET}/new-1", f"{TARGET}/new-2"
        )
        assert add["arguments"]["predicate"] == "BFO:0000050"
        assert annotate["operation"] == "add-annotation"
        assert annotate["arguments"]["values"] == [{"key": "evidence", "value": f"{TARGET}/new-3"}]

    @pytest.mark.asyncio
    async def test_async_mode(self, stub):
        manager = MinervaManager(BASE, NAMESPACE, None, FakeAsyncEngine(default=stub), "async")
        result = await manager.duplicate_model(SOURCE, "New title")
        assert len(result.individual_map) == 3
        assert stub.batches[-1][0]["operation"] == "store"


class TestFailures:

    @pytest.mark.asyncio
    async def test_fetch_failure_stops_everything(self, stub):
        engine = FakeSyncEngine(replies=[None], default=stub)
        manager = MinervaManager(BASE, NAMESPACE, None, engine, "sync")

        with pytest.raises(DuplicationError) as exc_info:
            await manager.duplicate_model(SOURCE, "New title")

        assert exc_info.value.phase == DuplicationPhase.FETCH_SOURCE.value
        assert len(engine.calls) == 1
        assert stub.batches == []

    @pytest.mark.asyncio
    async def test_recreate_failure_stops_later_phases(self, dup_manager, stub):
        stub.fail_on = ("individual", "add")

        with pytest.raises(DuplicationError) as exc_info:
            await dup_manager.duplicate_model(SOURCE, "New title")

        assert exc_info.value.phase == DuplicationPhase.RECREATE_INDIVIDUALS.value
        assert stub.sent("individual", "add-annotation") == []
        assert stub.sent("edge", "add") == []
        assert stub.sent("model", "store") == []

    @pytest.mark.asyncio
    async def test_missing_created_individual(self, dup_manager, stub):
        stub.empty_individuals = True

        with pytest.raises(MissingCorrespondenceError) as exc_info:
            await dup_manager.duplicate_model(SOURCE, "New title")

        assert exc_info.value.phase == DuplicationPhase.RECREATE_INDIVIDUALS.value
        assert stub.sent("model", "store") == []

    @pytest.mark.asyncio
    async def test_fact_with_unknown_endpoint(self):
        stub = ServiceStub(source_model(facts=[
            {"subject": f"{SOURCE}/a", "object": f"{SOURCE}/ghost", "property": "BFO:0000050"},
        ]))
        manager = MinervaManager(BASE, NAMESPACE, None, FakeSyncEngine(default=stub), "sync")

        with pytest.raises(MissingCorrespondenceError) as exc_info:
            await manager.duplicate_model(SOURCE, "New title")

        assert exc_info.value.phase == DuplicationPhase.COPY_FACTS.value
        assert exc_info.value.source_id == f"{SOURCE}/ghost"
        assert stub.sent("edge", "add") == []
        assert stub.sent("model", "store") == []

    @pytest.mark.asyncio
    async def test_malformed_source_individual(self):
        model = source_model()
        model["individuals"] = [{"type": []}]
        stub = ServiceStub(model)
        manager = MinervaManager(BASE, NAMESPACE, None, FakeSyncEngine(default=stub), "sync")

        with pytest.raises(DuplicationError) as exc_info:
            await manager.duplicate_model(SOURCE, "New title")

        assert exc_info.value.phase == DuplicationPhase.FETCH_SOURCE.value
        assert isinstance(exc_info.value.__cause__, msgspec.ValidationError)
        assert stub.sent("model", "add") == []

    @pytest.mark.asyncio
    async def test_store_failure(self, dup_manager, stub):
        stub.fail_on = ("model", "store")
        with pytest.raises(DuplicationError) as exc_info:
            await dup_manager.duplicate_model(SOURCE, "New title")
        assert exc_info.value.phase == DuplicationPhase.STORE.value

    @pytest.mark.asyncio
    async def test_table_required_before_copying_facts(self, dup_manager):
        state = DuplicationRun(source_model_id=SOURCE, new_title="New title")
        with pytest.raises(DuplicationError, match="correspondence table"):
            await ModelDuplicator(dup_manager).copy_facts(state)

    def test_individual_without_type(self, dup_manager):
        from core.schemas import Individual

        with pytest.raises(DuplicationError, match="no class expression"):
            ModelDuplicator(dup_manager).individual_request(Individual(id=f"{SOURCE}/x"), TARGET)
