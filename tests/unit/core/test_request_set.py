"""
Unit tests for core.request_set batch construction.
"""
import pytest

from core.request_set import Request, RequestSet, cls_expr, svf, new_variable


MODEL = "gomodel:5a7e68a100000001"


def args_of(reqs, index=0):
    return reqs.structure()["requests"][index]["arguments"]


class TestClassExpressions:

    def test_string_is_named_class(self):
        assert cls_expr("GO:0003674") == {"type": "class", "id": "GO:0003674"}

    def test_dict_is_copied(self):
        original = {"type": "class", "id": "GO:0003674"}
        copied = cls_expr(original)
        copied["id"] = "changed"
        assert original["id"] == "GO:0003674"

    def test_unsupported_expression(self):
        with pytest.raises(TypeError):
            cls_expr(42)

    def test_svf(self):
        assert svf("UniProtKB:P12345", "RO:0002333") == {
            "type": "svf",
            "property": {"type": "property", "id": "RO:0002333"},
            "filler": {"type": "class", "id": "UniProtKB:P12345"},
        }

    def test_variables_are_unique(self):
        assert new_variable() != new_variable()


class TestRequest:

    def test_structure(self):
        req = Request("individual", "add")
        req.model(MODEL)
        req.add_class_expression("GO:0003674")
        assert req.structure() == {
            "entity": "individual",
            "operation": "add",
            "arguments": {"model-id": MODEL, "expressions": [{"type": "class", "id": "GO:0003674"}]},
        }

    def test_unknown_operation_rejected(self):
        with pytest.raises(ValueError):
            Request("model", "explode")

    def test_special_get_set(self):
        req = Request("model", "export-legacy")
        assert req.special("format") is None
        req.special("format", "gaf")
        assert req.special("format") == "gaf"


class TestRequestSet:

    def test_default_structure(self):
        reqs = RequestSet()
        assert reqs.structure() == {"intention": "action", "requests": []}

    def test_token_included_when_set(self):
        assert RequestSet("tok").structure()["token"] == "tok"

    def test_model_id_fills_requests(self):
        reqs = RequestSet(None, MODEL)
        reqs.store_model()
        assert args_of(reqs)["model-id"] == MODEL

    def test_explicit_model_id_wins(self):
        reqs = RequestSet(None, MODEL)
        reqs.store_model("gomodel:other")
        assert args_of(reqs)["model-id"] == "gomodel:other"

    def test_queries_set_query_intention(self):
        reqs = RequestSet(None, MODEL)
        reqs.get_model()
        assert reqs.intention() == "query"

    def test_reasoner_only_sent_when_true(self):
        reqs = RequestSet()
        assert "use-reasoner" not in reqs.structure()
        reqs.use_reasoner(True)
        assert reqs.structure()["use-reasoner"] is True
        reqs.use_reasoner("no")
        assert reqs.use_reasoner() is True

    def test_groups_only_sent_when_non_empty(self):
        reqs = RequestSet()
        reqs.use_groups([])
        assert "provided-by" not in reqs.structure()
        reqs.use_groups(["http://group/a"])
        assert reqs.structure()["provided-by"] == ["http://group/a"]

    def test_add_model_skips_none(self):
        reqs = RequestSet()
        reqs.add_model({"class-id": None, "taxon_id": "NCBITaxon:9606"})
        assert args_of(reqs)["values"] == [{"key": "taxon_id", "value": "NCBITaxon:9606"}]

    def test_add_individual_assigns_variable(self):
        reqs = RequestSet(None, MODEL)
        var = reqs.add_individual("GO:0003674")
        assert var.startswith("var-")
        assert args_of(reqs)["assign-to-variable"] == var

    def test_fact_arguments(self):
        reqs = RequestSet(None, MODEL)
        reqs.add_fact(["a", "b", "BFO:0000050"])
        args = args_of(reqs)
        assert (args["subject"], args["object"], args["predicate"]) == ("a", "b", "BFO:0000050")

    def test_annotation_value_type_only_when_set(self):
        reqs = RequestSet(None, MODEL)
        reqs.add_annotation_to_model("comment", "hi")
        reqs.add_annotation_to_model("date", "2020-01-01", "xsd:string")
        assert args_of(reqs, 0)["values"] == [{"key": "comment", "value": "hi"}]
        assert args_of(reqs, 1)["values"] == [
            {"key": "date", "value": "2020-01-01", "value-type": "xsd:string"}
        ]


class TestEvidence:

    def test_individual_evidence(self):
        reqs = RequestSet(None, MODEL)
        var = reqs.add_evidence("ECO:0000314", ["PMID:1", "PMID:2"], "UniProtKB:P1", "ind-1")
        ops = [(r["entity"], r["operation"]) for r in reqs.structure()["requests"]]
        assert ops == [
            ("individual", "add"),
            ("individual", "add-annotation"),
            ("individual", "add-annotation"),
            ("individual", "add-annotation"),
            ("individual", "add-annotation"),
        ]
        last = args_of(reqs, 4)
        assert last["individual"] == "ind-1"
        assert last["values"] == [{"key": "evidence", "value": var}]

    def test_fact_evidence(self):
        reqs = RequestSet(None, MODEL)
        var = reqs.add_evidence("ECO:0000314", "PMID:1", None, ["a", "b", "RO:1"])
        last = reqs.structure()["requests"][-1]
        assert last["entity"] == "edge"
        assert last["arguments"]["values"] == [{"key": "evidence", "value": var}]
        assert len(reqs) == 3


class TestUpdateAnnotations:

    def test_individual_replaces_key(self):
        entity = {
            "id": "ind-1",
            "annotations": [
                {"key": "comment", "value": "old"},
                {"key": "contributor", "value": "someone"},
            ],
        }
        reqs = RequestSet(None, MODEL)
        reqs.update_annotations(entity, "comment", ["new1", "new2"])
        ops = [r["operation"] for r in reqs.structure()["requests"]]
        assert ops == ["remove-annotation", "add-annotation", "add-annotation"]
        assert args_of(reqs, 0)["values"] == [{"key": "comment", "value": "old"}]

    def test_fact_entity(self):
        entity = {"subject": "a", "object": "b", "property": "RO:1", "annotations": []}
        reqs = RequestSet(None, MODEL)
        reqs.update_annotations(entity, "comment", "hi")
        only = reqs.structure()["requests"][0]
        assert only["entity"] == "edge"
        assert only["arguments"]["subject"] == "a"

    def test_model_entity(self):
        entity = {"annotations": [{"key": "title", "value": "Old"}]}
        reqs = RequestSet(None, MODEL)
        reqs.update_annotations(entity, "title", "New")
        entities = {r["entity"] for r in reqs.structure()["requests"]}
        assert entities == {"model"}
        assert len(reqs) == 2
