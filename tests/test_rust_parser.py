from code_graph_indexer.core.stable_ids import external_module_id, file_entity_id
from code_graph_indexer.plugins.base import FileParseContext
from code_graph_indexer.plugins.imports import KnownFiles
from code_graph_indexer.plugins.rust.parser import parse_rust_file


KNOWN = KnownFiles.from_paths(
    ["src/lib.rs", "src/config.rs", "src/server/mod.rs", "src/server/handler.rs", "src/server/routes.rs"]
)

HANDLER = """use std::collections::HashMap;
use crate::config::{Config, load as load_config};
use super::routes::*;
use serde::Deserialize;

/// A request handler bound to one route.
pub struct Handler {
    routes: HashMap<String, String>,
}

pub trait Respond {
    fn respond(&self, body: &str) -> String;
}

impl Handler {
    pub fn new(config: &Config) -> Self {
        Handler { routes: HashMap::new() }
    }

    async fn dispatch(&mut self, path: &str) -> Option<String> {
        if path.is_empty() || self.routes.len() == 0 {
            return None;
        }
        Some(helper(path)?)
    }
}

impl Respond for Handler {
    fn respond(&self, body: &str) -> String {
        body.to_string()
    }
}

fn helper(p: &str) -> Option<String> {
    Some(p.to_string())
}
"""


def _parse(path: str, content: str):
    ctx = FileParseContext(repo_id="r", file_path=path, content=content, language="rust", known_files=KNOWN)
    return parse_rust_file(ctx)


def test_items_and_impl_methods() -> None:
    result = _parse("src/server/handler.rs", HANDLER)

    assert [(e.kind, e.name, e.start_line, e.end_line) for e in result.entities] == [
        ("struct", "Handler", 7, 9),
        ("interface", "Respond", 11, 13),
        ("method", "respond", 12, 12),
        ("method", "new", 16, 18),
        ("method", "dispatch", 20, 25),
        ("method", "respond", 29, 31),
        ("function", "helper", 34, 36),
    ]

    by_sig = {e.signature: e for e in result.entities if e.signature}
    dispatch = by_sig["Handler::dispatch(&mut self, path: &str)"]
    assert dispatch.is_async
    assert dispatch.parameter_count == 1
    assert dispatch.return_type == "Option<String>"
    assert dispatch.complexity == 4
    assert not dispatch.exported

    assert by_sig["Handler::new(config: &Config)"].exported
    # Trait impls expose the trait's methods.
    assert by_sig["Handler::respond(&self, body: &str)"].exported
    assert by_sig["Respond::respond(&self, body: &str)"].exported
    assert by_sig["fn helper(p: &str)"].kind == "function"


def test_doc_comments() -> None:
    result = _parse("src/server/handler.rs", HANDLER)
    handler = next(e for e in result.entities if e.kind == "struct")
    assert handler.doc == "A request handler bound to one route."


def test_impl_membership_and_trait_implementation() -> None:
    result = _parse("src/server/handler.rs", HANDLER)
    handler = next(e for e in result.entities if e.kind == "struct")
    respond_trait = next(e for e in result.entities if e.kind == "interface")
    methods = {e.signature: e.id for e in result.entities if e.kind == "method"}

    member_of = {(e.from_id, e.to_id) for e in result.edges if e.kind == "member_of"}
    assert member_of == {
        (methods["Respond::respond(&self, body: &str)"], respond_trait.id),
        (methods["Handler::new(config: &Config)"], handler.id),
        (methods["Handler::dispatch(&mut self, path: &str)"], handler.id),
        (methods["Handler::respond(&self, body: &str)"], handler.id),
    }

    implements = [(e.from_id, e.to_id) for e in result.edges if e.kind == "implements"]
    assert implements == [(handler.id, respond_trait.id)]


def test_calls_skip_self_named_matches() -> None:
    result = _parse("src/server/handler.rs", HANDLER)
    ids = {(e.kind, e.name): e.id for e in result.entities}
    calls = {(e.from_id, e.to_id) for e in result.edges if e.kind == "calls"}
    assert calls == {(ids[("method", "dispatch")], ids[("function", "helper")])}


def test_use_paths_resolve_through_module_tree() -> None:
    result = _parse("src/server/handler.rs", HANDLER)
    by_spec = {e.metadata["specifier"]: e for e in result.edges if e.kind == "imports"}

    config = by_spec["crate::config"]
    assert config.to_id == file_entity_id("r", "src/config.rs")
    assert config.imported_symbols == ("Config", "load")

    routes = by_spec["super::routes"]
    assert routes.to_id == file_entity_id("r", "src/server/routes.rs")
    assert routes.metadata["import_all"] is True

    std = by_spec["std::collections"]
    assert std.to_id == external_module_id("r", "std")
    assert std.metadata["stdlib"] is True
    assert by_spec["serde"].package_name == "serde"


def test_mod_declarations_import_child_modules() -> None:
    result = _parse("src/lib.rs", "pub mod server;\nmod config;\n")
    targets = [e.to_id for e in result.edges if e.kind == "imports"]
    assert targets == [file_entity_id("r", "src/server/mod.rs"), file_entity_id("r", "src/config.rs")]
