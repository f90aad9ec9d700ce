"""
Vendor-agnostic XML tree walking.

Vendor project exports drift between software versions: elements move,
wrappers appear and disappear, and the same field may be written as an
attribute in one version and as a child element in the next.  Rather than
binding to fixed paths, the parsers convert the lxml tree into a small,
self-describing intermediate representation (:class:`XmlNode`) and search
it by local element name at any depth.

Key lookups through :meth:`XmlNode.get` use an attribute-merged key space:
an attribute wins, then a direct child element's text, then a child of a
TIA Portal style ``AttributeList`` wrapper.  This lets one parser read
``<Tag Name="X"/>`` and ``<Tag><Name>X</Name></Tag>`` alike.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Union

from lxml import etree

from .utils import parse_xml_bytes

# Wrapper element TIA Portal Openness uses for block attributes.
_ATTRIBUTE_LIST = "AttributeList"


@dataclass
class XmlNode:
    """One element of a parsed document.

    Attributes:
        name: Local element name (namespace stripped).
        attributes: Element attributes keyed by local name.
        children: Child elements in document order.
        text: Direct text content (CDATA included), or ``""``.
    """
    name: str
    attributes: dict = field(default_factory=dict)
    children: List["XmlNode"] = field(default_factory=list)
    text: str = ""

    @classmethod
    def from_element(cls, element: etree._Element) -> "XmlNode":
        """Convert an lxml element (and its subtree) into an ``XmlNode``.

        Comments and processing instructions are skipped.
        """
        node = cls(
            name=etree.QName(element).localname,
            attributes={
                etree.QName(key).localname: value
                for key, value in element.attrib.items()
            },
            text=element.text or "",
        )
        for child in element:
            if not isinstance(child.tag, str):
                continue
            node.children.append(cls.from_element(child))
        return node

    def child(self, name: str) -> Optional["XmlNode"]:
        """Return the first direct child named *name*, or ``None``."""
        for c in self.children:
            if c.name == name:
                return c
        return None

    def get(self, key: str, default: str = "") -> str:
        """Look up *key* in the attribute-merged key space.

        Args:
            key: Attribute or child element name.
            default: Returned when the key is absent.

        Returns:
            The stripped value.
        """
        if key in self.attributes:
            return self.attributes[key].strip()
        c = self.child(key)
        if c is not None:
            return c.text.strip()
        attr_list = self.child(_ATTRIBUTE_LIST)
        if attr_list is not None:
            c = attr_list.child(key)
            if c is not None:
                return c.text.strip()
        return default

    def first(self, *keys: str, default: str = "") -> str:
        """Return the first non-empty value among *keys*."""
        for key in keys:
            value = self.get(key)
            if value:
                return value
        return default

    def __repr__(self) -> str:
        return f"XmlNode(name={self.name!r}, children={len(self.children)})"


def parse_xml_tree(raw: Union[bytes, str]) -> XmlNode:
    """Parse a document into an :class:`XmlNode` tree.

    Raises:
        etree.XMLSyntaxError: If the document is malformed.
    """
    return XmlNode.from_element(parse_xml_bytes(raw))


def walk(node: XmlNode) -> Iterator[XmlNode]:
    """Yield *node* and all of its descendants in document (pre-)order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def iter_nodes(node: XmlNode, name: str) -> Iterator[XmlNode]:
    """Yield every node named *name* at any depth, in document order.

    The search includes *node* itself and continues into matching nodes,
    so nested elements with the same name are all returned.
    """
    for current in walk(node):
        if current.name == name:
            yield current


def find_nodes(node: XmlNode, name: str) -> List[XmlNode]:
    """Return every node named *name* at any depth, in document order.

    Returns an empty list when nothing matches.
    """
    return list(iter_nodes(node, name))


def find_first(node: XmlNode, name: str) -> Optional[XmlNode]:
    """Return the first node named *name* at any depth, or ``None``."""
    return next(iter_nodes(node, name), None)
