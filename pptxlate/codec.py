"""Conversion between part XML and document trees.

Element encoding, chosen so that untouched subtrees round-trip exactly:

* an element with no attributes and nothing but text becomes a string
  ``ScalarNode`` (an empty element becomes ``""``);
* any other element becomes a ``MappingNode`` holding ``"@name"`` attributes,
  namespace declarations as ``"@xmlns"`` / ``"@xmlns:prefix"``, and a
  ``"#content"`` sequence of one-field mappings (``{qname: element}``,
  ``{"#text": ...}``, ``{"#comment": ...}``) in document order.

The document itself is a mapping of an optional ``"?xml"`` declaration and
the root element.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from lxml import etree

from .errors import MalformedPartError
from .locator import CONTENT_FIELD
from .structures import MappingNode, Node, ScalarNode, SequenceNode

DECLARATION_FIELD = "?xml"
TEXT_FIELD = "#text"
COMMENT_FIELD = "#comment"
ENTITY_FIELD = "#entity"
XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"

_BOM_AND_SPACE = b"\xef\xbb\xbf \t\r\n"


def parse(data: bytes) -> MappingNode:
    """Parse part bytes into a document tree."""

    parser = etree.XMLParser(
        remove_blank_text=False,
        resolve_entities=False,
        no_network=True,
    )
    try:
        root = etree.fromstring(data, parser)
    except etree.XMLSyntaxError as exc:
        raise MalformedPartError(f"Part is not well-formed XML: {exc}") from exc

    document = MappingNode()
    if data.lstrip(_BOM_AND_SPACE).startswith(b"<?xml"):
        docinfo = root.getroottree().docinfo
        declaration: Dict[str, Node] = {
            "@version": ScalarNode(docinfo.xml_version or "1.0"),
        }
        if docinfo.encoding:
            declaration["@encoding"] = ScalarNode(docinfo.encoding)
        if docinfo.standalone is not None:
            declaration["@standalone"] = ScalarNode("yes" if docinfo.standalone else "no")
        document.fields[DECLARATION_FIELD] = MappingNode(declaration)

    document.fields[_qualified_name(root)] = _encode_element(root, {})
    return document


def serialize(tree: MappingNode) -> bytes:
    """Serialize a document tree produced by :func:`parse` back to bytes."""

    declaration: Optional[Node] = None
    root_name: Optional[str] = None
    root_node: Optional[Node] = None
    for name, node in tree.fields.items():
        if name == DECLARATION_FIELD:
            declaration = node
        elif root_name is None:
            root_name, root_node = name, node
        else:
            raise MalformedPartError("Document tree has more than one root element.")
    if root_name is None or root_node is None:
        raise MalformedPartError("Document tree has no root element.")

    # lxml rejects control characters (ValueError) and unknown encodings (LookupError).
    try:
        root = _build_element(root_name, root_node, None, {"xml": XML_NAMESPACE})
        if not isinstance(declaration, MappingNode):
            return etree.tostring(root, encoding="UTF-8", xml_declaration=False)

        attributes = {key: _text(value) for key, value in declaration.fields.items()}
        standalone_value = attributes.get("@standalone")
        standalone = None if standalone_value is None else standalone_value == "yes"
        return etree.tostring(
            root,
            encoding=attributes.get("@encoding", "UTF-8"),
            xml_declaration=True,
            standalone=standalone,
        )
    except (ValueError, LookupError) as exc:
        raise MalformedPartError(f"Document tree cannot be written as XML: {exc}") from exc


# --- Parsing helpers ------------------------------------------------------


def _qualified_name(element) -> str:
    localname = etree.QName(element).localname
    return f"{element.prefix}:{localname}" if element.prefix else localname


def _attribute_name(name: str, nsmap: Dict[Optional[str], str]) -> str:
    if not name.startswith("{"):
        return name
    qname = etree.QName(name)
    if qname.namespace == XML_NAMESPACE:
        return f"xml:{qname.localname}"
    for prefix, uri in nsmap.items():
        if prefix is not None and uri == qname.namespace:
            return f"{prefix}:{qname.localname}"
    return name


def _encode_element(element, parent_nsmap: Dict[Optional[str], str]) -> Node:
    fields: Dict[str, Node] = {}
    nsmap = element.nsmap
    for prefix, uri in nsmap.items():
        if parent_nsmap.get(prefix) != uri:
            key = "@xmlns" if prefix is None else f"@xmlns:{prefix}"
            fields[key] = ScalarNode(uri)
    for name, value in element.attrib.items():
        fields["@" + _attribute_name(name, nsmap)] = ScalarNode(value)

    content: List[Node] = []
    if element.text:
        content.append(MappingNode({TEXT_FIELD: ScalarNode(element.text)}))
    for child in element:
        if child.tag is etree.Comment:
            content.append(MappingNode({COMMENT_FIELD: ScalarNode(child.text or "")}))
        elif child.tag is etree.ProcessingInstruction:
            content.append(MappingNode({f"?{child.target}": ScalarNode(child.text or "")}))
        elif child.tag is etree.Entity:
            content.append(MappingNode({ENTITY_FIELD: ScalarNode(child.name)}))
        else:
            content.append(
                MappingNode({_qualified_name(child): _encode_element(child, nsmap)})
            )
        if child.tail:
            content.append(MappingNode({TEXT_FIELD: ScalarNode(child.tail)}))

    text_only = all(TEXT_FIELD in item.fields for item in content)  # type: ignore[union-attr]
    if not fields and text_only:
        return ScalarNode("".join(_text(item.fields[TEXT_FIELD]) for item in content))  # type: ignore[union-attr]

    if content:
        fields[CONTENT_FIELD] = SequenceNode(content)
    return MappingNode(fields)


# --- Serialization helpers ------------------------------------------------


def _text(node: Node) -> str:
    if not isinstance(node, ScalarNode):
        raise MalformedPartError(f"Expected a scalar value, found {type(node).__name__}.")
    value = node.value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _clark(name: str, scope: Dict[Optional[str], str], *, element: bool) -> str:
    if name.startswith("{"):
        return name
    prefix, sep, localname = name.partition(":")
    if sep:
        uri = scope.get(prefix)
        if uri is None:
            raise MalformedPartError(f"Undeclared namespace prefix '{prefix}' in '{name}'.")
        return f"{{{uri}}}{localname}"
    default = scope.get(None)
    if element and default:
        return f"{{{default}}}{name}"
    return name


def _build_element(name: str, node: Node, parent, scope: Dict[Optional[str], str]):
    if isinstance(node, SequenceNode):
        raise MalformedPartError(f"Element '{name}' cannot be a bare sequence.")

    fields = node.fields if isinstance(node, MappingNode) else {}
    declared: Dict[Optional[str], str] = {}
    for key, value in fields.items():
        if key == "@xmlns":
            declared[None] = _text(value)
        elif key.startswith("@xmlns:"):
            declared[key[len("@xmlns:"):]] = _text(value)
    scope = {**scope, **declared}

    tag = _clark(name, scope, element=True)
    if parent is None:
        element = etree.Element(tag, nsmap=declared or None)
    else:
        element = etree.SubElement(parent, tag, nsmap=declared or None)

    for key, value in fields.items():
        if not key.startswith("@") or key == "@xmlns" or key.startswith("@xmlns:"):
            continue
        element.set(_clark(key[1:], scope, element=False), _text(value))

    if isinstance(node, ScalarNode):
        text = _text(node)
        if text:
            element.text = text
        return element

    content = fields.get(CONTENT_FIELD)
    if content is None:
        return element
    if not isinstance(content, SequenceNode):
        raise MalformedPartError(f"Content of '{name}' must be a sequence.")

    last = None
    for item in content.items:
        if not isinstance(item, MappingNode) or len(item.fields) != 1:
            raise MalformedPartError(f"Content item of '{name}' must hold exactly one field.")
        ((key, value),) = item.fields.items()
        if key == TEXT_FIELD:
            if last is None:
                element.text = (element.text or "") + _text(value)
            else:
                last.tail = (last.tail or "") + _text(value)
            continue
        if key == COMMENT_FIELD:
            last = etree.Comment(_text(value))
            element.append(last)
        elif key == ENTITY_FIELD:
            last = etree.Entity(_text(value))
            element.append(last)
        elif key.startswith("?"):
            last = etree.ProcessingInstruction(key[1:], _text(value) or None)
            element.append(last)
        else:
            last = _build_element(key, value, element, scope)
    return element
