from code_graph_indexer.core.stable_ids import directory_entity_id, external_module_id
from code_graph_indexer.plugins.base import FileParseContext
from code_graph_indexer.plugins.go.parser import parse_go_file
from code_graph_indexer.plugins.imports import KnownFiles


KNOWN = KnownFiles.from_paths(["internal/server/server.go", "internal/util/strings.go", "cmd/main.go"])

SERVER = """package server

import (
	"fmt"
	"net/http"
	u "github.com/acme/app/internal/util"
	_ "github.com/lib/pq"
	"github.com/gin-gonic/gin"
)

// Server handles HTTP requests for the app.
type Server struct {
	port int
}

type Handler interface {
	Serve() error
}

type ID = string

func NewServer(port int) *Server {
	return &Server{port: port}
}

func (s *Server) Start(ctx context.Context, addr string) (bool, error) {
	if addr == "" && s.port == 0 {
		return false, nil
	}
	s.helper()
	return true, nil
}

func (s *Server) helper() {
	fmt.Println(NewServer(1))
}
"""


def _parse():
    ctx = FileParseContext(
        repo_id="r", file_path="internal/server/server.go", content=SERVER, language="go", known_files=KNOWN
    )
    return parse_go_file(ctx)


def test_types_functions_and_methods() -> None:
    result = _parse()
    by_name = {e.name: e for e in result.entities}

    assert {n: e.kind for n, e in by_name.items()} == {
        "Server": "struct",
        "Handler": "interface",
        "ID": "type",
        "NewServer": "function",
        "Start": "method",
        "helper": "method",
    }

    server = by_name["Server"]
    assert (server.start_line, server.end_line) == (12, 14)
    assert server.doc == "Server handles HTTP requests for the app."
    assert server.exported

    assert (by_name["ID"].start_line, by_name["ID"].end_line) == (20, 20)

    new_server = by_name["NewServer"]
    assert new_server.signature == "func NewServer(port int)"
    assert new_server.return_type == "*Server"
    assert new_server.parameter_count == 1

    start = by_name["Start"]
    assert (start.start_line, start.end_line) == (26, 32)
    assert start.parent == "Server"
    assert start.signature == "func (Server) Start(ctx context.Context, addr string)"
    assert start.return_type == "(bool, error)"
    assert start.parameter_count == 2
    assert start.complexity == 3

    assert not by_name["helper"].exported


def test_methods_are_members_of_their_receiver() -> None:
    result = _parse()
    ids = {e.name: e.id for e in result.entities}
    member_of = {(e.from_id, e.to_id) for e in result.edges if e.kind == "member_of"}
    assert member_of == {(ids["Start"], ids["Server"]), (ids["helper"], ids["Server"])}


def test_calls_within_file() -> None:
    result = _parse()
    ids = {e.name: e.id for e in result.entities}
    calls = {(e.from_id, e.to_id) for e in result.edges if e.kind == "calls"}
    assert calls == {(ids["Start"], ids["helper"]), (ids["helper"], ids["NewServer"])}


def test_imports_map_to_package_directories_and_externals() -> None:
    result = _parse()
    imports = [e for e in result.edges if e.kind == "imports"]
    by_spec = {e.metadata["specifier"]: e for e in imports}

    # Blank imports are side-effect only.
    assert "github.com/lib/pq" not in by_spec

    util = by_spec["github.com/acme/app/internal/util"]
    assert util.to_id == directory_entity_id("r", "internal/util")
    assert util.metadata["target_is_directory"] is True
    assert util.metadata["import_all"] is True

    assert by_spec["net/http"].metadata["stdlib"] is True
    gin = by_spec["github.com/gin-gonic/gin"]
    assert gin.is_external
    assert gin.to_id == external_module_id("r", "github.com/gin-gonic/gin")


def test_single_line_import() -> None:
    content = 'package main\n\nimport "github.com/acme/app/internal/util"\n'
    ctx = FileParseContext(repo_id="r", file_path="cmd/main.go", content=content, language="go", known_files=KNOWN)
    (edge,) = parse_go_file(ctx).edges
    assert edge.to_id == directory_entity_id("r", "internal/util")
