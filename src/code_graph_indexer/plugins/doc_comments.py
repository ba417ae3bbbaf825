"""Doc comment extraction for the fallback parsers.

Comments shorter than `MIN_DOC_LENGTH` characters are treated as noise.
"""

from __future__ import annotations

import re
from typing import Optional, Sequence


MIN_DOC_LENGTH = 10

_TAG_SPLIT = re.compile(r"\s@\w+")
_TRAILING_COMMENT = re.compile(r"\s#.*$")
# Attribute/annotation lines that may sit between a comment and its declaration.
_ATTRIBUTE_PREFIXES = ("@", "#[", "[")


def _paren_delta(line: str) -> int:
    code = _TRAILING_COMMENT.sub("", line)
    return code.count("(") - code.count(")")


def _accept(text: str) -> Optional[str]:
    text = text.strip()
    return text if len(text) >= MIN_DOC_LENGTH else None


def _clean_block(comment_lines: Sequence[str]) -> Optional[str]:
    parts: list[str] = []
    for raw in comment_lines:
        s = raw.strip()
        if s.startswith("/**"):
            s = s[3:]
        elif s.startswith("/*"):
            s = s[2:]
        if s.endswith("*/"):
            s = s[:-2]
        if s.startswith("*"):
            s = s[1:]
        s = s.strip()
        if s:
            parts.append(s)
    joined = " ".join(parts)
    # Keep the description; `@param`/`@returns` sections are dropped.
    description = _TAG_SPLIT.split(joined, maxsplit=1)[0] if not joined.startswith("@") else ""
    return _accept(description)


def _clean_line_comments(comment_lines: Sequence[str], prefix: str) -> Optional[str]:
    parts: list[str] = []
    for raw in comment_lines:
        s = raw.strip()[len(prefix):].strip()
        if s:
            parts.append(s)
    return _accept(" ".join(parts))


def extract_preceding_doc(
    lines: Sequence[str],
    decl_idx: int,
    *,
    line_prefixes: Sequence[str] = ("//",),
    allow_block: bool = True,
) -> Optional[str]:
    """Doc comment ending just above `lines[decl_idx]` (0-based).

    Blank lines and attribute lines (`@Override`, `#[derive]`, `[Fact]`)
    between the comment and the declaration are skipped.
    """

    i = decl_idx - 1
    while i >= 0:
        s = lines[i].strip()
        if not s or (s.startswith(_ATTRIBUTE_PREFIXES) and not s.startswith(tuple(line_prefixes))):
            i -= 1
            continue
        break
    if i < 0:
        return None

    current = lines[i].strip()
    if allow_block and current.endswith("*/"):
        end = i
        while i >= 0:
            s = lines[i].strip()
            if s.startswith("/*"):
                return _clean_block(lines[i : end + 1])
            i -= 1
        return None

    for prefix in line_prefixes:
        if current.startswith(prefix):
            end = i
            while i > 0 and lines[i - 1].strip().startswith(prefix):
                i -= 1
            return _clean_line_comments(lines[i : end + 1], prefix)
    return None


def extract_python_docstring(lines: Sequence[str], def_idx: int) -> Optional[str]:
    """Triple-quoted docstring on the first non-blank line after a def/class header."""

    # Multi-line headers: skip to the line closing the signature's parentheses.
    j = def_idx
    depth = _paren_delta(lines[j])
    while depth > 0 and j + 1 < len(lines):
        j += 1
        depth += _paren_delta(lines[j])
    i = j + 1
    while i < len(lines) and not lines[i].strip():
        i += 1
    if i >= len(lines):
        return None

    first = lines[i].strip()
    for prefix in ("r", "u", "R", "U"):
        if first.startswith(prefix + '"""') or first.startswith(prefix + "'''"):
            first = first[1:]
            break
    if first.startswith('"""'):
        delim = '"""'
    elif first.startswith("'''"):
        delim = "'''"
    else:
        return None

    rest = first[len(delim):]
    close = rest.find(delim)
    if close != -1:
        return _accept(rest[:close])

    parts = [rest.strip()] if rest.strip() else []
    i += 1
    while i < len(lines):
        s = lines[i].strip()
        close = s.find(delim)
        if close != -1:
            if s[:close].strip():
                parts.append(s[:close].strip())
            break
        if s:
            parts.append(s)
        i += 1
    return _accept(" ".join(parts))
