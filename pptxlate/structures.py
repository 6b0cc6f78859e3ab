"""Core data structures for the pptxlate translator."""

from __future__ import annotations

import zipfile
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Tuple, Union


Scalar = Union[str, int, float, bool]
PathStep = Union[str, int]
TextSetter = Callable[[str], None]


@dataclass
class ScalarNode:
    """A leaf value inside a document tree."""

    value: Scalar


@dataclass
class SequenceNode:
    """An ordered list of child nodes."""

    items: List["Node"] = field(default_factory=list)


@dataclass
class MappingNode:
    """An insertion-ordered mapping from field name to child node."""

    fields: Dict[str, "Node"] = field(default_factory=dict)


Node = Union[ScalarNode, SequenceNode, MappingNode]


@dataclass
class TextLeaf:
    """Addressable run of displayable text discovered in a tree.

    ``path`` leads from the root to the owning mapping and ends with the
    marker field name. The setter re-resolves it on every write.
    """

    leaf_id: str
    path: Tuple[PathStep, ...]
    original_text: str
    setter: TextSetter
    location: str


@dataclass
class ArchivePart:
    """One named entry of the presentation archive."""

    path: str
    data: bytes
    info: zipfile.ZipInfo | None = None


def from_plain(value: Any) -> Node:
    """Convert nested dicts, lists and scalars into tree nodes."""

    if isinstance(value, dict):
        return MappingNode({str(key): from_plain(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return SequenceNode([from_plain(item) for item in value])
    if isinstance(value, (str, int, float, bool)):
        return ScalarNode(value)
    raise TypeError(f"Unsupported tree value: {type(value).__name__}")


def to_plain(node: Node) -> Any:
    """Convert tree nodes back into nested dicts, lists and scalars."""

    if isinstance(node, MappingNode):
        return {key: to_plain(child) for key, child in node.fields.items()}
    if isinstance(node, SequenceNode):
        return [to_plain(child) for child in node.items]
    return node.value
