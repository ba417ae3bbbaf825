from code_graph_indexer.plugins.doc_comments import extract_preceding_doc, extract_python_docstring


def test_block_comment_drops_tag_sections_and_skips_annotations() -> None:
    lines = ["/**", " * Adds two numbers together.", " * @param a first", " */", "@Override", "function add(a, b) {"]
    assert extract_preceding_doc(lines, 5) == "Adds two numbers together."


def test_line_comment_runs_are_joined() -> None:
    lines = ["// Returns the cached", "// value for key.", "func Get() {"]
    assert extract_preceding_doc(lines, 2) == "Returns the cached value for key."

    hashed = ["# Loads the config file", "def load"]
    assert extract_preceding_doc(hashed, 1, line_prefixes=("#",), allow_block=False) == "Loads the config file"


def test_short_comments_are_noise() -> None:
    assert extract_preceding_doc(["// tiny", "x()"], 1) is None
    assert extract_preceding_doc(["x()"], 0) is None


def test_python_docstrings() -> None:
    multi = ["def f(", "    a,", "):", '    """Compute the thing.', "", "    More.", '    """']
    assert extract_python_docstring(multi, 0) == "Compute the thing. More."

    single = ["def g():", "    '''Short doc here.'''"]
    assert extract_python_docstring(single, 0) == "Short doc here."

    assert extract_python_docstring(["def h():", "    return 1"], 0) is None
