"""Shape extraction: reduce an XML document to names, attribute keys and nesting."""

import logging
from dataclasses import dataclass, field

from lxml import etree

from .errors import DocumentReadError, ParseError

logger = logging.getLogger("xmlatlas.shape")

_XML_NS = "http://www.w3.org/XML/1998/namespace"


@dataclass
class ShapeNode:
    """Value-free structure of one XML element."""

    name: str
    attribute_keys: frozenset = field(default_factory=frozenset)
    children: list = field(default_factory=list)

    def signature(self) -> str:
        """Compact unmerged form: ``name[attr1,attr2]{child1,child2}``."""
        sigs: dict[int, str] = {}
        for node in reversed(_preorder(self)):
            sig = node.name
            if node.attribute_keys:
                sig += "[" + ",".join(sorted(node.attribute_keys)) + "]"
            if node.children:
                sig += "{" + ",".join(sigs[id(c)] for c in node.children) + "}"
            sigs[id(node)] = sig
        return sigs[id(self)]

    def to_dict(self) -> dict:
        top: dict = {}
        stack = [(self, top)]
        while stack:
            node, d = stack.pop()
            d["name"] = node.name
            if node.attribute_keys:
                d["attributes"] = sorted(node.attribute_keys)
            if node.children:
                d["children"] = [{} for _ in node.children]
                stack.extend(zip(node.children, d["children"]))
        return top


def extract(xml_text: str | bytes) -> ShapeNode:
    """Parse a document and return the shape tree of its root element.

    ``str`` input is always read as UTF-8; ``bytes`` input honours the XML
    declaration and BOM. Raises ParseError for anything that is not
    well-formed XML, including strings that cannot be encoded.
    """
    try:
        if isinstance(xml_text, str):
            data = xml_text.lstrip("\ufeff").encode("utf-8")
            parser = _make_parser(encoding="utf-8")
        else:
            data = xml_text
            parser = _make_parser()
        root = etree.fromstring(data, parser)
    except etree.XMLSyntaxError as e:
        message = e.args[0] if e.args else str(e)
        raise ParseError(f"XML parsing error: {message}", e.lineno, e.offset) from e
    except ValueError as e:
        # UnicodeError is a ValueError
        raise ParseError(f"XML parsing error: {e}") from e

    if root is None:
        raise ParseError("XML parsing error: document has no root element")
    return _build_tree(root)


def extract_file(path: str) -> ShapeNode:
    """Read a file from disk and extract its shape."""
    try:
        with open(path, "rb") as f:
            raw = f.read()
    except OSError as e:
        raise DocumentReadError(f"Failed to read {path}: {e}") from e
    return extract(raw)


# ── Tree construction ─────────────────────────────────────────────────


def _make_parser(encoding: str | None = None) -> etree.XMLParser:
    # lxml parsers are not safe to share between threads
    return etree.XMLParser(
        encoding=encoding,
        resolve_entities=False,
        no_network=True,
        remove_comments=True,
        remove_pis=True,
        huge_tree=True,
    )


def _build_tree(root) -> ShapeNode:
    top = _new_node(root)
    stack = [(root, top)]
    while stack:
        element, node = stack.pop()
        for child in element:
            # entity references and leftover comment/PI nodes have non-string tags
            if isinstance(child.tag, str):
                child_node = _new_node(child)
                node.children.append(child_node)
                stack.append((child, child_node))
    return top


def _new_node(element) -> ShapeNode:
    return ShapeNode(
        name=_element_name(element),
        attribute_keys=frozenset(_attribute_name(element, key) for key in element.attrib),
    )


def _preorder(root: ShapeNode) -> list[ShapeNode]:
    order = []
    stack = [root]
    while stack:
        node = stack.pop()
        order.append(node)
        stack.extend(node.children)
    return order


def _element_name(element) -> str:
    local = etree.QName(element).localname
    if element.prefix:
        return f"{element.prefix}:{local}"
    return local


def _attribute_name(element, key: str) -> str:
    """Map lxml's ``{uri}local`` attribute keys back to ``prefix:local``."""
    if not key.startswith("{"):
        return key
    uri, local = key[1:].split("}", 1)
    if uri == _XML_NS:
        return f"xml:{local}"
    prefixes = sorted(p for p, ns in element.nsmap.items() if p and ns == uri)
    if prefixes:
        return f"{prefixes[0]}:{local}"
    logger.debug("No prefix bound for namespace %s on <%s>", uri, element.tag)
    return local
