import pytest

from code_graph_indexer.core.graph_contract import GraphContractViolation, validate_graph_contract
from code_graph_indexer.core.records import Edge, Entity
from code_graph_indexer.core.stable_ids import entity_hash, file_entity_id


def _file(path: str = "a.py", *, repo_id: str = "r", version=None) -> Entity:
    return Entity(
        id=file_entity_id(repo_id, path),
        repo_id=repo_id,
        kind="file",
        name=path,
        file_path=path,
        start_line=1,
        end_line=3,
        language="python",
        index_version=version,
    )


def _function(name: str = "f", *, version=None, **overrides) -> Entity:
    fields = dict(
        id=entity_hash("r", "a.py", "function", name),
        repo_id="r",
        kind="function",
        name=name,
        file_path="a.py",
        start_line=1,
        end_line=2,
        language="python",
        index_version=version,
    )
    fields.update(overrides)
    return Entity(**fields)


def test_consistent_batch_passes() -> None:
    f, g = _function("f", version="v1"), _function("g", version="v1")
    file = _file(version="v1")
    edges = [
        Edge(from_id=file.id, to_id=f.id, kind="contains", repo_id="r", index_version="v1"),
        Edge(from_id=f.id, to_id=g.id, kind="calls", repo_id="r", confidence=0.5, index_version="v1"),
    ]
    validate_graph_contract(repo_id="r", entities=[file, f, g], edges=edges, run_version="v1")


def test_duplicate_entity_id_is_rejected() -> None:
    with pytest.raises(GraphContractViolation):
        validate_graph_contract(repo_id="r", entities=[_function(), _function()], edges=[])


@pytest.mark.parametrize(
    "entity",
    [
        _function(repo_id="other"),
        _function(kind="macro"),
        _function(file_path=""),
        _function(start_line=5, end_line=2),
    ],
)
def test_malformed_entity_is_rejected(entity: Entity) -> None:
    with pytest.raises(GraphContractViolation):
        validate_graph_contract(repo_id="r", entities=[entity], edges=[])


def test_dangling_edge_is_rejected() -> None:
    f = _function()
    edge = Edge(from_id=f.id, to_id="missing", kind="calls", repo_id="r")
    with pytest.raises(GraphContractViolation):
        validate_graph_contract(repo_id="r", entities=[f], edges=[edge])


def test_unknown_edge_kind_and_bad_confidence_are_rejected() -> None:
    f, g = _function("f"), _function("g")
    for edge in (
        Edge(from_id=f.id, to_id=g.id, kind="includes", repo_id="r"),
        Edge(from_id=f.id, to_id=g.id, kind="calls", repo_id="r", confidence=1.5),
    ):
        with pytest.raises(GraphContractViolation):
            validate_graph_contract(repo_id="r", entities=[f, g], edges=[edge])


def test_unstamped_records_are_rejected_when_a_run_version_is_given() -> None:
    with pytest.raises(GraphContractViolation):
        validate_graph_contract(repo_id="r", entities=[_function(version="v0")], edges=[], run_version="v1")

    f, g = _function("f", version="v1"), _function("g", version="v1")
    edge = Edge(from_id=f.id, to_id=g.id, kind="calls", repo_id="r")
    with pytest.raises(GraphContractViolation):
        validate_graph_contract(repo_id="r", entities=[f, g], edges=[edge], run_version="v1")
