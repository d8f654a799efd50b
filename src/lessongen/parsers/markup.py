"""Tolerant tokenizer and tree builder for LLM-emitted pseudo-XML.

Model output is close to XML but not reliably well-formed: it may be wrapped in
prose or code fences, use single or double quotes, leave elements unclosed or
contain stray ``<`` characters. The tokenizer is a single-pass state machine
over characters and never raises; the tree builder closes dangling elements
at the end of their parent or of the input.

Tag and attribute names are lower-cased, so lookups are case-insensitive.
"""

from enum import Enum
from html import unescape
from typing import Dict, Iterator, List, NamedTuple, Optional


# ============================================================================
# Tokens
# ============================================================================


class TokenKind(str, Enum):
    START = "start"
    END = "end"
    TEXT = "text"


class Token(NamedTuple):
    kind: TokenKind
    name: str = ""
    attrs: Dict[str, str] = {}
    text: str = ""
    start: int = 0  # offset of the first character in the source
    end: int = 0  # offset just past the last character
    self_closing: bool = False


class _State(Enum):
    TEXT = "text"
    TAG_OPEN = "tag_open"
    TAG_NAME = "tag_name"
    BEFORE_ATTR = "before_attr"
    ATTR_NAME = "attr_name"
    AFTER_ATTR_NAME = "after_attr_name"
    BEFORE_ATTR_VALUE = "before_attr_value"
    ATTR_VALUE_QUOTED = "attr_value_quoted"
    ATTR_VALUE_UNQUOTED = "attr_value_unquoted"
    SELF_CLOSING = "self_closing"
    DECLARATION = "declaration"
    COMMENT = "comment"


class _Tokenizer:
    def __init__(self, source: str):
        self.source = source
        self.tokens: List[Token] = []
        self.state = _State.TEXT
        self.text_start = 0
        self.tag_start = 0
        self.closing = False
        self.name: List[str] = []
        self.attrs: Dict[str, str] = {}
        self.attr_name: List[str] = []
        self.attr_value: List[str] = []
        self.quote = ""

    def run(self) -> List[Token]:
        source = self.source
        i = 0
        while i < len(source):
            ch = source[i]
            state = self.state

            if state is _State.TEXT:
                if ch == "<" and self._starts_tag(i + 1):
                    self._flush_text(i)
                    self._begin_tag(i)
            elif state is _State.TAG_OPEN:
                if ch == "/" and not self.closing:
                    self.closing = True
                elif ch == ">":
                    # Nameless "</>"
                    self._skip_to(i + 1)
                elif ch == "!" and source.startswith("!--", i):
                    self.state = _State.COMMENT
                    i += 3
                    continue
                elif ch in "?!":
                    self.state = _State.DECLARATION
                else:
                    self.name.append(ch)
                    self.state = _State.TAG_NAME
            elif state is _State.TAG_NAME:
                if ch.isspace():
                    self.state = _State.BEFORE_ATTR
                elif ch == ">":
                    self._emit_tag(i)
                elif ch == "/":
                    self.state = _State.SELF_CLOSING
                else:
                    self.name.append(ch)
            elif state is _State.BEFORE_ATTR:
                if ch == ">":
                    self._emit_tag(i)
                elif ch == "/":
                    self.state = _State.SELF_CLOSING
                elif not ch.isspace():
                    self.attr_name = [ch]
                    self.state = _State.ATTR_NAME
            elif state is _State.ATTR_NAME:
                if ch == "=":
                    self.state = _State.BEFORE_ATTR_VALUE
                elif ch.isspace():
                    self.state = _State.AFTER_ATTR_NAME
                elif ch in "/>":
                    self._store_attr("")
                    self.state = _State.BEFORE_ATTR
                    continue
                else:
                    self.attr_name.append(ch)
            elif state is _State.AFTER_ATTR_NAME:
                if ch == "=":
                    self.state = _State.BEFORE_ATTR_VALUE
                elif not ch.isspace():
                    # Valueless attribute; reprocess this character
                    self._store_attr("")
                    self.state = _State.BEFORE_ATTR
                    continue
            elif state is _State.BEFORE_ATTR_VALUE:
                if ch in "\"'":
                    self.quote = ch
                    self.attr_value = []
                    self.state = _State.ATTR_VALUE_QUOTED
                elif ch == ">":
                    self._store_attr("")
                    self._emit_tag(i)
                elif not ch.isspace():
                    self.attr_value = [ch]
                    self.state = _State.ATTR_VALUE_UNQUOTED
            elif state is _State.ATTR_VALUE_QUOTED:
                if ch == self.quote:
                    self._store_attr("".join(self.attr_value))
                    self.state = _State.BEFORE_ATTR
                else:
                    self.attr_value.append(ch)
            elif state is _State.ATTR_VALUE_UNQUOTED:
                if ch.isspace() or ch == ">":
                    self._store_attr("".join(self.attr_value))
                    self.state = _State.BEFORE_ATTR
                    continue
                self.attr_value.append(ch)
            elif state is _State.SELF_CLOSING:
                if ch == ">":
                    self._emit_tag(i, self_closing=True)
                else:
                    self.state = _State.BEFORE_ATTR
                    continue
            elif state is _State.DECLARATION:
                if ch == ">":
                    self._skip_to(i + 1)
            elif state is _State.COMMENT:
                if source.startswith("-->", i):
                    self._skip_to(i + 3)
                    i += 3
                    continue

            i += 1

        # An unterminated tag at end of input is plain text
        if self.state is not _State.TEXT:
            self.text_start = self.tag_start
            self.state = _State.TEXT
        self._flush_text(len(source))
        return self.tokens

    def _starts_tag(self, i: int) -> bool:
        if i >= len(self.source):
            return False
        nxt = self.source[i]
        return nxt.isalpha() or nxt in "/?!"

    def _begin_tag(self, i: int) -> None:
        self.tag_start = i
        self.closing = False
        self.name = []
        self.attrs = {}
        self.state = _State.TAG_OPEN

    def _store_attr(self, value: str) -> None:
        name = "".join(self.attr_name).strip().lower()
        if name and name not in self.attrs:
            self.attrs[name] = unescape(value)
        self.attr_name = []
        self.attr_value = []

    def _emit_tag(self, i: int, self_closing: bool = False) -> None:
        name = "".join(self.name).strip().lower()
        kind = TokenKind.END if self.closing else TokenKind.START
        self.tokens.append(
            Token(
                kind=kind,
                name=name,
                attrs=dict(self.attrs) if kind is TokenKind.START else {},
                start=self.tag_start,
                end=i + 1,
                self_closing=self_closing and kind is TokenKind.START,
            )
        )
        self.state = _State.TEXT
        self.text_start = i + 1

    def _skip_to(self, i: int) -> None:
        self.state = _State.TEXT
        self.text_start = i

    def _flush_text(self, end: int) -> None:
        if end > self.text_start:
            self.tokens.append(
                Token(
                    kind=TokenKind.TEXT,
                    text=self.source[self.text_start:end],
                    start=self.text_start,
                    end=end,
                )
            )
        self.text_start = end


def tokenize(source: str) -> List[Token]:
    """Split markup into start-tag, end-tag and text tokens.

    Args:
        source: Raw model output

    Returns:
        Tokens in document order. Comments and ``<?...?>`` / ``<!...>``
        declarations are dropped.
    """
    return _Tokenizer(source).run()


# ============================================================================
# Element tree
# ============================================================================


class Element:
    """A parsed element with its attributes, children and raw inner content."""

    def __init__(self, name: str, attrs: Dict[str, str], start: int, content_start: int):
        self.name = name
        self.attrs = attrs
        self.children: List["Element"] = []
        self.start = start
        self.end = content_start
        self.content_start = content_start
        self.content_end = content_start
        self.inner = ""

    def get(self, attr: str, default: str = "") -> str:
        return self.attrs.get(attr.lower(), default)

    @property
    def text(self) -> str:
        """Inner content with entities unescaped and surrounding whitespace removed."""
        return unescape(self.inner).strip()

    def iter(self, name: str) -> Iterator["Element"]:
        """Yield descendants named ``name`` in document order."""
        name = name.lower()
        for child in self.children:
            if child.name == name:
                yield child
            yield from child.iter(name)

    def find(self, name: str) -> Optional["Element"]:
        return next(self.iter(name), None)

    def __repr__(self) -> str:
        return f"Element({self.name!r}, attrs={self.attrs!r}, children={len(self.children)})"


def parse_markup(source: str) -> Element:
    """Build an element tree from markup.

    End tags close the nearest open element with the same name, implicitly
    closing anything opened after it. Unmatched end tags are ignored, and
    elements still open at end of input are closed there.

    Returns:
        A synthetic document element whose children are the top-level elements
    """
    document = Element("#document", {}, 0, 0)
    stack: List[Element] = [document]

    def close(element: Element, content_end: int, end: int) -> None:
        element.content_end = content_end
        element.end = end
        element.inner = source[element.content_start:content_end]

    for token in tokenize(source):
        if token.kind is TokenKind.START:
            element = Element(token.name, token.attrs, token.start, token.end)
            stack[-1].children.append(element)
            if token.self_closing:
                close(element, token.end, token.end)
            else:
                stack.append(element)
        elif token.kind is TokenKind.END:
            match = next(
                (depth for depth in range(len(stack) - 1, 0, -1) if stack[depth].name == token.name),
                None,
            )
            if match is None:
                continue
            while len(stack) > match:
                close(stack.pop(), token.start, token.end)

    while len(stack) > 1:
        close(stack.pop(), len(source), len(source))
    close(document, len(source), len(source))
    return document


def strip_code_fences(text: str) -> str:
    """Drop markdown code fence lines (```xml, ```) from model output."""
    return "\n".join(
        line for line in text.splitlines() if not line.lstrip().startswith("```")
    )


def extract_root(text: str, root_name: str) -> str:
    """Isolate the first ``<root_name>`` element from surrounding prose.

    Args:
        text: Raw model output
        root_name: Root tag to look for (case-insensitive)

    Returns:
        The root element's source text, or the fence-stripped input when no
        such element exists (the parser then reports the missing root)
    """
    cleaned = strip_code_fences(text)
    root = parse_markup(cleaned).find(root_name)
    if root is None:
        return cleaned.strip()
    return cleaned[root.start:root.end]
