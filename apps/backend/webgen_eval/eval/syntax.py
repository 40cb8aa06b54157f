"""Structural parsers for the file types the harness knows a grammar for."""

from __future__ import annotations

import json
import posixpath
from html.parser import HTMLParser
from typing import Callable, Dict, List, Optional

import tinycss2
import tree_sitter_javascript
from tree_sitter import Language, Node, Parser

VOID_ELEMENTS = frozenset(
    {
        "area", "base", "br", "col", "embed", "hr", "img", "input", "link",
        "meta", "param", "source", "track", "wbr",
    }
)
# End tags the HTML grammar lets authors omit.
OPTIONAL_END = frozenset(
    {
        "html", "head", "body", "p", "li", "dt", "dd", "tr", "td", "th", "thead",
        "tbody", "tfoot", "colgroup", "option", "optgroup", "rt", "rp",
    }
)
_SCRIPT_TYPES = frozenset({"", "text/javascript", "application/javascript", "module"})
JAVASCRIPT = Language(tree_sitter_javascript.language())


class _TagBalanceParser(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.stack: List[tuple[str, int]] = []
        self.errors: List[str] = []
        self.inline_scripts: List[tuple[int, str]] = []
        self.inline_styles: List[tuple[int, str]] = []
        self._capture: Optional[tuple[str, int]] = None
        self._buffer: List[str] = []

    def handle_starttag(self, tag, attrs):
        line, _ = self.getpos()
        if tag in ("script", "style"):
            attributes = dict(attrs)
            wanted = tag == "style" or (
                "src" not in attributes
                and (attributes.get("type") or "").strip().lower() in _SCRIPT_TYPES
            )
            self._capture = (tag, line) if wanted else None
            self._buffer = []
        if tag in VOID_ELEMENTS:
            return
        self.stack.append((tag, line))

    def handle_startendtag(self, tag, attrs):
        # <div/> is tolerated as an empty element
        return

    def handle_data(self, data):
        if self._capture is not None:
            self._buffer.append(data)

    def handle_endtag(self, tag):
        line, _ = self.getpos()
        if self._capture is not None and self._capture[0] == tag:
            kind, start = self._capture
            body = "".join(self._buffer)
            if kind == "script":
                self.inline_scripts.append((start, body))
            else:
                self.inline_styles.append((start, body))
            self._capture = None
        if tag in VOID_ELEMENTS:
            return
        open_tags = [name for name, _ in self.stack]
        if tag not in open_tags:
            self.errors.append(f"unexpected closing tag </{tag}> at line {line}")
            return
        while self.stack:
            name, opened_at = self.stack.pop()
            if name == tag:
                break
            if name not in OPTIONAL_END:
                self.errors.append(f"<{name}> opened at line {opened_at} is not closed before </{tag}>")

    def finish(self) -> List[str]:
        self.close()
        for name, opened_at in self.stack:
            if name not in OPTIONAL_END:
                self.errors.append(f"<{name}> opened at line {opened_at} is never closed")
        return self.errors


def parse_markup(source: str) -> List[str]:
    parser = _TagBalanceParser()
    parser.feed(source)
    errors = parser.finish()
    for start, body in parser.inline_scripts:
        errors.extend(f"inline <script> at line {start}: {err}" for err in parse_script(body))
    for start, body in parser.inline_styles:
        errors.extend(f"inline <style> at line {start}: {err}" for err in parse_stylesheet(body))
    return errors


def _css_errors(nodes, errors: List[str]) -> None:
    # Block bodies may mix declarations with nested rules (`&:hover { ... }`, `@media`).
    for node in nodes:
        if node.type == "error":
            errors.append(f"line {node.source_line}:{node.source_column}: {node.message}")
        elif node.type == "qualified-rule":
            if not tinycss2.serialize(node.prelude).strip():
                errors.append(f"line {node.source_line}:{node.source_column}: rule without a selector")
            _css_errors(
                tinycss2.parse_blocks_contents(node.content, skip_whitespace=True, skip_comments=True),
                errors,
            )
        elif node.type == "at-rule" and node.content is not None:
            _css_errors(
                tinycss2.parse_blocks_contents(node.content, skip_whitespace=True, skip_comments=True),
                errors,
            )


def _brace_depth(source: str) -> int:
    """Net '{' minus '}' outside comments and strings; tinycss2 closes blocks at EOF silently."""

    depth = 0
    in_comment = False
    quote: Optional[str] = None
    i = 0
    while i < len(source):
        ch = source[i]
        if in_comment:
            if source.startswith("*/", i):
                in_comment = False
                i += 1
        elif quote:
            if ch == "\\":
                i += 1
            elif ch == quote:
                quote = None
        elif source.startswith("/*", i):
            in_comment = True
            i += 1
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        i += 1
    return depth


def parse_stylesheet(source: str) -> List[str]:
    errors: List[str] = []
    rules = tinycss2.parse_stylesheet(source, skip_whitespace=True, skip_comments=True)
    _css_errors(rules, errors)
    if _brace_depth(source) > 0:
        errors.append("unclosed '{' block at end of stylesheet")
    return errors


def _script_errors(node: Node, errors: List[str]) -> None:
    if not node.has_error:
        return
    row, column = node.start_point
    if node.is_missing:
        errors.append(f"line {row + 1}:{column + 1}: missing '{node.type}'")
        return
    if node.is_error:
        snippet = (node.text or b"").decode("utf-8", "replace").strip().splitlines()
        shown = snippet[0][:40] if snippet else ""
        errors.append(f"line {row + 1}:{column + 1}: unexpected '{shown}'")
        return
    for child in node.children:
        _script_errors(child, errors)


def parse_script(source: str) -> List[str]:
    """Scripts and modules share one grammar; `import`/`export` need no separate pass."""

    tree = Parser(JAVASCRIPT).parse(source.encode("utf-8"))
    errors: List[str] = []
    _script_errors(tree.root_node, errors)
    return errors


def parse_json(source: str) -> List[str]:
    try:
        json.loads(source)
    except json.JSONDecodeError as exc:
        return [f"line {exc.lineno}:{exc.colno}: {exc.msg}"]
    return []


GRAMMARS: Dict[str, Callable[[str], List[str]]] = {
    ".html": parse_markup,
    ".htm": parse_markup,
    ".css": parse_stylesheet,
    ".js": parse_script,
    ".cjs": parse_script,
    ".mjs": parse_script,
    ".json": parse_json,
}
MARKUP_EXTENSIONS = (".html", ".htm")
SCRIPT_EXTENSIONS = (".js", ".cjs", ".mjs")
STYLE_EXTENSIONS = (".css",)


def grammar_for(path: str) -> Optional[Callable[[str], List[str]]]:
    _, ext = posixpath.splitext(path.lower())
    return GRAMMARS.get(ext)


def is_markup(path: str) -> bool:
    return path.lower().endswith(MARKUP_EXTENSIONS)
