"""Discovery and in-place replacement of text runs inside document trees."""

from __future__ import annotations

from typing import List, Sequence, Tuple

from .logger import get_logger
from .structures import (
    MappingNode,
    Node,
    PathStep,
    ScalarNode,
    SequenceNode,
    TextLeaf,
    TextSetter,
)

TEXT_MARKER = "a:t"
CONTENT_FIELD = "#content"

logger = get_logger(__name__)


def locate(tree: Node, marker: str = TEXT_MARKER) -> List[TextLeaf]:
    """Return every text leaf under ``tree`` in pre-order document order.

    The walk uses an explicit stack; mapping fields and sequence items are
    pushed in reverse so that pops follow insertion order. Marker fields
    holding a non-string value are skipped.
    """

    leaves: List[TextLeaf] = []
    stack: List[Tuple[Node, Tuple[PathStep, ...]]] = [(tree, ())]

    while stack:
        node, path = stack.pop()

        if isinstance(node, ScalarNode):
            if not path:
                continue
            # Only string marker values are ever pushed as scalars.
            text = node.value
            leaves.append(
                TextLeaf(
                    leaf_id=f"t{len(leaves)}",
                    path=path,
                    original_text=text,  # type: ignore[arg-type]
                    setter=_make_setter(tree, path),
                    location=describe_path(path),
                )
            )
            continue

        if isinstance(node, SequenceNode):
            for index in range(len(node.items) - 1, -1, -1):
                child = node.items[index]
                if isinstance(child, (MappingNode, SequenceNode)):
                    stack.append((child, path + (index,)))
            continue

        for name, child in reversed(list(node.fields.items())):
            child_path = path + (name,)
            if name == marker:
                if isinstance(child, ScalarNode) and isinstance(child.value, str):
                    stack.append((child, child_path))
                    continue
                logger.debug(
                    "Skipping malformed text run at %s (%s value).",
                    describe_path(child_path),
                    type(child).__name__,
                )
            if isinstance(child, (MappingNode, SequenceNode)):
                stack.append((child, child_path))

    return leaves


def resolve(tree: Node, path: Sequence[PathStep]) -> Node:
    """Follow ``path`` from ``tree`` and return the node it addresses."""

    node = tree
    for step in path:
        if isinstance(node, MappingNode) and isinstance(step, str):
            node = node.fields[step]
        elif isinstance(node, SequenceNode) and isinstance(step, int):
            node = node.items[step]
        else:
            raise KeyError(f"Path step {step!r} does not match {type(node).__name__}.")
    return node


def assign(tree: Node, path: Sequence[PathStep], value: str) -> None:
    """Overwrite the scalar field addressed by ``path`` with ``value``."""

    if not path:
        raise KeyError("Cannot assign to the tree root.")
    owner = resolve(tree, path[:-1])
    name = path[-1]
    if not isinstance(owner, MappingNode) or name not in owner.fields:
        raise KeyError(f"No field {name!r} at {describe_path(path[:-1]) or '/'}.")
    owner.fields[name] = ScalarNode(value)


def describe_path(path: Sequence[PathStep]) -> str:
    """Render a path such as ``p:sld/p:cSld[0]/p:spTree`` for messages."""

    rendered = ""
    for step in path:
        if step == CONTENT_FIELD:
            continue
        if isinstance(step, int):
            rendered += f"[{step}]"
        else:
            rendered += f"/{step}" if rendered else step
    return rendered


def _make_setter(tree: Node, path: Tuple[PathStep, ...]) -> TextSetter:
    def _setter(text: str) -> None:
        assign(tree, path, text)

    return _setter
