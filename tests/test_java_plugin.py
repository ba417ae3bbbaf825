from code_graph_indexer.core.stable_ids import entity_hash, file_entity_id
from code_graph_indexer.plugins.base import FileParseContext
from code_graph_indexer.plugins.imports import KnownFiles
from code_graph_indexer.plugins.java.plugin import JavaPlugin


ROOT = "src/main/java/com/acme"
KNOWN = KnownFiles.from_paths(
    [f"{ROOT}/OrderService.java", f"{ROOT}/model/Order.java", f"{ROOT}/Repository.java"]
)

ORDER_SERVICE = """package com.acme;

import java.util.List;
import com.acme.model.Order;
import static com.acme.util.Strings.trim;
import org.slf4j.Logger;

/**
 * Coordinates order persistence.
 * @since 1.0
 */
@Service
public class OrderService extends BaseService implements Repository<Order>, Auditable {
    private final Repository repo;

    public OrderService(Repository repo) {
        this.repo = repo;
    }

    @Override
    public List<Order> findAll(String owner, int limit) {
        if (owner == null || limit < 0) {
            return List.of();
        }
        return load(owner);
    }

    private List<Order> load(String owner) {
        return repo.query(owner);
    }

    interface Callback {
        void done(Order order);
    }
}
"""


def _parse():
    ctx = FileParseContext(
        repo_id="r",
        file_path=f"{ROOT}/OrderService.java",
        content=ORDER_SERVICE,
        language="java",
        known_files=KNOWN,
    )
    return JavaPlugin().parse_file(ctx)


def test_java_plugin_emits_types_and_members() -> None:
    result = _parse()
    assert sorted((e.kind, e.name) for e in result.entities) == [
        ("class", "OrderService"),
        ("interface", "Callback"),
        ("method", "OrderService"),
        ("method", "done"),
        ("method", "findAll"),
        ("method", "load"),
    ]

    classes = [e for e in result.entities if e.kind == "class"]
    assert [(c.name, c.start_line, c.end_line) for c in classes] == [("OrderService", 13, 35)]
    assert classes[0].doc == "Coordinates order persistence."
    assert classes[0].exported


def test_constructor_is_not_read_as_a_method_returning_a_modifier() -> None:
    result = _parse()
    ctor = next(e for e in result.entities if e.kind == "method" and e.name == "OrderService")
    assert ctor.return_type is None
    assert ctor.exported
    assert ctor.signature == "OrderService.OrderService(Repository repo)"
    assert (ctor.start_line, ctor.end_line) == (16, 18)


def test_method_details() -> None:
    result = _parse()
    methods = {e.name: e for e in result.entities if e.kind == "method"}

    find_all = methods["findAll"]
    assert find_all.return_type == "List<Order>"
    assert find_all.parameter_count == 2
    assert find_all.exported
    assert find_all.complexity == 3
    assert find_all.parent == "OrderService"

    assert not methods["load"].exported
    done = methods["done"]
    assert done.parent == "Callback"
    assert done.start_line == done.end_line == 33


def test_heritage_prefers_imports_then_same_package_siblings() -> None:
    result = _parse()
    service = next(e for e in result.entities if e.kind == "class")

    extends = [e.to_id for e in result.edges if e.kind == "extends"]
    implements = [e.to_id for e in result.edges if e.kind == "implements" and e.from_id == service.id]

    assert extends == [entity_hash("r", f"{ROOT}/OrderService.java", "class", "BaseService", None)]
    assert implements == [
        entity_hash("r", f"{ROOT}/Repository.java", "interface", "Repository", None),
        entity_hash("r", f"{ROOT}/OrderService.java", "interface", "Auditable", None),
    ]


def test_imports_resolve_package_paths() -> None:
    result = _parse()
    by_spec = {e.metadata["specifier"]: e for e in result.edges if e.kind == "imports"}

    order = by_spec["com.acme.model.Order"]
    assert order.to_id == file_entity_id("r", f"{ROOT}/model/Order.java")
    assert order.imported_symbols == ("Order",)

    assert by_spec["java.util.List"].is_external
    assert by_spec["java.util.List"].metadata["stdlib"] is True
    assert by_spec["org.slf4j.Logger"].is_external
    assert by_spec["com.acme.util.Strings"].imported_symbols == ("trim",)


def test_calls_and_membership() -> None:
    result = _parse()
    service = next(e for e in result.entities if e.kind == "class")
    methods = {e.name: e.id for e in result.entities if e.kind == "method"}
    callback = next(e for e in result.entities if e.name == "Callback")

    calls = {(e.from_id, e.to_id) for e in result.edges if e.kind == "calls"}
    assert calls == {(methods["findAll"], methods["load"])}

    member_of = {(e.from_id, e.to_id) for e in result.edges if e.kind == "member_of"}
    assert (callback.id, service.id) in member_of
    assert (methods["done"], callback.id) in member_of
    assert (methods["findAll"], service.id) in member_of
