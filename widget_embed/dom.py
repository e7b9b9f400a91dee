"""
Widget Embed — Document Tree

A small mutable element tree for HTML pages, built on the standard
library's html.parser. It covers what the mount pipeline needs and no
more: document-order selector queries, sibling navigation, insertion and
removal, and serialization back to HTML.

Selectors are single compound selectors: an optional tag followed by any
number of `.class`, `#id`, `[attr]` or `[attr="value"]` parts. There are
no combinators.
"""

from __future__ import annotations

import re
from html import escape as _html_escape
from html.parser import HTMLParser
from typing import Iterator

VOID_ELEMENTS: set[str] = {
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
}

RAW_TEXT_ELEMENTS: set[str] = {"script", "style"}


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


class Node:
    """Base class for everything that lives in the tree."""

    def __init__(self) -> None:
        self.parent: Element | None = None

    def remove(self) -> None:
        """Detach this node from its parent, if any."""
        if self.parent is not None:
            self.parent.remove_child(self)

    @property
    def previous_sibling(self) -> Node | None:
        if self.parent is None:
            return None
        siblings = self.parent.children
        index = siblings.index(self)
        return siblings[index - 1] if index > 0 else None

    @property
    def previous_element_sibling(self) -> Element | None:
        if self.parent is None:
            return None
        siblings = self.parent.children
        for node in reversed(siblings[: siblings.index(self)]):
            if isinstance(node, Element):
                return node
        return None

    @property
    def next_element_sibling(self) -> Element | None:
        if self.parent is None:
            return None
        siblings = self.parent.children
        for node in siblings[siblings.index(self) + 1:]:
            if isinstance(node, Element):
                return node
        return None

    @property
    def text_content(self) -> str:
        return ""

    def to_html(self) -> str:
        raise NotImplementedError


class Text(Node):
    def __init__(self, data: str) -> None:
        super().__init__()
        self.data = data

    @property
    def text_content(self) -> str:
        return self.data

    def to_html(self) -> str:
        if self.parent is not None and self.parent.tag in RAW_TEXT_ELEMENTS:
            return self.data
        return _html_escape(self.data, quote=False)

    def __repr__(self) -> str:
        return f"Text({self.data[:30]!r})"


class Comment(Node):
    def __init__(self, data: str) -> None:
        super().__init__()
        self.data = data

    def to_html(self) -> str:
        return f"<!--{self.data}-->"


class Declaration(Node):
    """<!DOCTYPE ...> and other markup declarations, kept verbatim."""

    def __init__(self, data: str) -> None:
        super().__init__()
        self.data = data

    def to_html(self) -> str:
        return f"<!{self.data}>"


class RawMarkup(Node):
    """Markup kept exactly as written: CDATA sections, processing instructions."""

    def __init__(self, markup: str) -> None:
        super().__init__()
        self.markup = markup

    def to_html(self) -> str:
        return self.markup


class Element(Node):
    def __init__(self, tag: str, attrs: dict[str, str | None] | None = None) -> None:
        super().__init__()
        self.tag = tag.lower()
        self.attrs: dict[str, str | None] = dict(attrs or {})
        self.children: list[Node] = []

    # -- attributes --

    def get(self, name: str, default: str | None = None) -> str | None:
        return self.attrs.get(name, default)

    def set(self, name: str, value: str | None) -> None:
        self.attrs[name] = value

    def has_attr(self, name: str) -> bool:
        return name in self.attrs

    @property
    def class_list(self) -> list[str]:
        return (self.attrs.get("class") or "").split()

    def add_class(self, name: str) -> None:
        classes = self.class_list
        if name not in classes:
            classes.append(name)
            self.attrs["class"] = " ".join(classes)

    # -- tree --

    @property
    def element_children(self) -> list[Element]:
        return [c for c in self.children if isinstance(c, Element)]

    def append_child(self, node: Node) -> Node:
        node.remove()
        node.parent = self
        self.children.append(node)
        return node

    def insert_before(self, node: Node, reference: Node | None) -> Node:
        """Insert `node` before `reference`; append when reference is None."""
        if reference is None:
            return self.append_child(node)
        if reference.parent is not self:
            raise ValueError("Reference node is not a child of this element")
        node.remove()
        node.parent = self
        self.children.insert(self.children.index(reference), node)
        return node

    def remove_child(self, node: Node) -> Node:
        self.children.remove(node)
        node.parent = None
        return node

    def clear(self) -> None:
        for child in list(self.children):
            self.remove_child(child)

    def iter(self) -> Iterator[Element]:
        """Descendant elements in document order (excluding self)."""
        for child in self.children:
            if isinstance(child, Element):
                yield child
                yield from child.iter()

    # -- queries --

    def matches(self, selector: str) -> bool:
        return parse_selector(selector).matches(self)

    def query_selector_all(self, selector: str) -> list[Element]:
        compiled = parse_selector(selector)
        return [el for el in self.iter() if compiled.matches(el)]

    def query_selector(self, selector: str) -> Element | None:
        compiled = parse_selector(selector)
        for el in self.iter():
            if compiled.matches(el):
                return el
        return None

    # -- content --

    @property
    def text_content(self) -> str:
        return "".join(child.text_content for child in self.children)

    @text_content.setter
    def text_content(self, value: str) -> None:
        self.clear()
        if value:
            self.append_child(Text(value))

    @property
    def inner_html(self) -> str:
        return "".join(child.to_html() for child in self.children)

    @inner_html.setter
    def inner_html(self, value: str) -> None:
        self.clear()
        for node in parse_fragment(value):
            self.append_child(node)

    def to_html(self) -> str:
        parts = [f"<{self.tag}"]
        for name, value in self.attrs.items():
            if value is None:
                parts.append(f" {name}")
            else:
                parts.append(f' {name}="{_html_escape(value, quote=True)}"')
        parts.append(">")
        if self.tag in VOID_ELEMENTS:
            return "".join(parts)
        parts.append(self.inner_html)
        parts.append(f"</{self.tag}>")
        return "".join(parts)

    def __repr__(self) -> str:
        return f"<Element {self.tag} {self.attrs!r}>"


class Document(Element):
    """Root of a parsed page."""

    def __init__(self) -> None:
        super().__init__("#document")

    def create_element(self, tag: str, attrs: dict[str, str | None] | None = None) -> Element:
        return Element(tag, attrs)

    def to_html(self) -> str:
        return self.inner_html

    def __repr__(self) -> str:
        return f"<Document children={len(self.children)}>"


def create_element(tag: str, attrs: dict[str, str | None] | None = None, text: str = "") -> Element:
    """Build a detached element, optionally holding a text node."""
    element = Element(tag, attrs)
    if text:
        element.append_child(Text(text))
    return element


# ---------------------------------------------------------------------------
# Selectors
# ---------------------------------------------------------------------------

_COMPOUND = re.compile(r"^(?P<tag>\*|[a-zA-Z][\w-]*)?(?P<rest>(?:\.[\w-]+|#[\w-]+|\[[^\]]+\])*)$")
_PART = re.compile(
    r"\.(?P<cls>[\w-]+)"
    r"|#(?P<id>[\w-]+)"
    r"""|\[\s*(?P<attr>[\w:.-]+)\s*(?:=\s*(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|(?P<bare>[^\]\s]*)))?\s*\]"""
)

_SELECTOR_CACHE: dict[str, Selector] = {}


class Selector:
    """A parsed compound selector."""

    def __init__(
        self,
        tag: str | None,
        classes: list[str],
        attrs: list[tuple[str, str | None]],
    ) -> None:
        self.tag = tag
        self.classes = classes
        self.attrs = attrs

    def matches(self, element: Element) -> bool:
        if self.tag is not None and element.tag != self.tag:
            return False
        if self.classes:
            present = element.class_list
            if any(c not in present for c in self.classes):
                return False
        for name, value in self.attrs:
            if name not in element.attrs:
                return False
            if value is not None and element.attrs[name] != value:
                return False
        return True


def parse_selector(selector: str) -> Selector:
    """Parse (and cache) a compound selector. Raises ValueError if unsupported."""
    cached = _SELECTOR_CACHE.get(selector)
    if cached is not None:
        return cached

    match = _COMPOUND.match(selector.strip())
    if not match or not selector.strip():
        raise ValueError(f"Unsupported selector: {selector!r}")

    tag = match.group("tag")
    classes: list[str] = []
    attrs: list[tuple[str, str | None]] = []
    for part in _PART.finditer(match.group("rest")):
        if part.group("cls"):
            classes.append(part.group("cls"))
        elif part.group("id"):
            attrs.append(("id", part.group("id")))
        else:
            value = part.group("dq")
            if value is None:
                value = part.group("sq")
            if value is None:
                value = part.group("bare")
            attrs.append((part.group("attr").lower(), value))

    compiled = Selector(
        tag=None if tag in (None, "*") else tag.lower(),
        classes=classes,
        attrs=attrs,
    )
    _SELECTOR_CACHE[selector] = compiled
    return compiled


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class _TreeBuilder(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.document = Document()
        self._stack: list[Element] = [self.document]

    @property
    def _current(self) -> Element:
        return self._stack[-1]

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        element = Element(tag, dict(attrs))
        self._current.append_child(element)
        if element.tag not in VOID_ELEMENTS:
            self._stack.append(element)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._current.append_child(Element(tag, dict(attrs)))

    def handle_endtag(self, tag: str) -> None:
        # Close up to the nearest matching open element; stray end tags are dropped
        for depth in range(len(self._stack) - 1, 0, -1):
            if self._stack[depth].tag == tag:
                del self._stack[depth:]
                return

    def handle_data(self, data: str) -> None:
        current = self._current
        if current.children and isinstance(current.children[-1], Text):
            current.children[-1].data += data
        else:
            current.append_child(Text(data))

    def handle_comment(self, data: str) -> None:
        self._current.append_child(Comment(data))

    def handle_decl(self, decl: str) -> None:
        self._current.append_child(Declaration(decl))

    def unknown_decl(self, data: str) -> None:
        # <![CDATA[...]]> closes with "]]>", other marked sections with "]>"
        end = "]]>" if data.upper().startswith("CDATA[") else "]>"
        self._current.append_child(RawMarkup(f"<![{data}{end}"))

    def handle_pi(self, data: str) -> None:
        self._current.append_child(RawMarkup(f"<?{data}>"))


def parse_html(html: str) -> Document:
    """Parse a page into a Document. Tolerates unbalanced markup."""
    builder = _TreeBuilder()
    builder.feed(html)
    builder.close()
    return builder.document


def parse_fragment(html: str) -> list[Node]:
    """Parse an HTML fragment into a list of detached top-level nodes."""
    document = parse_html(html)
    nodes = list(document.children)
    for node in nodes:
        document.remove_child(node)
    return nodes
