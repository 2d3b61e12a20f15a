"""
Position Mapper - Translate flat text offsets into structured document positions.

The rich text surface stores content as a node tree (ProseMirror/Tiptap
addressing) while suggestions are expressed as offsets into the flat plain
text. Addressing rules, counted within the root node's content:

- A block node (paragraph, heading, ...) takes one position when it opens
  and one when it closes
- Each character of a text leaf takes one position
- An atomic leaf (hard break, image, ...) takes one position and adds no text

Flat text is the concatenation of text leaves in document order, so block
boundaries do not add characters.

Example:
    doc = DocNode.from_paragraphs(["Hi", "yo"])
    # structured: <p>H i</p><p>y o</p>
    #             0 1 2 3  4 5 6 7
    pmap = build_map(doc)
    pmap.text_to_structured  # [1, 2, 5, 6]
    pmap.map_range(1, 3)     # (2, 6)
"""

from __future__ import annotations

import logging
from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import MalformedRangeError
from .models import Decoration, RenderInstruction

logger = logging.getLogger(__name__)

TEXT_NODE = "text"
ATOM_NODE_TYPES = frozenset(
    {"hard_break", "hardBreak", "image", "horizontal_rule", "horizontalRule", "mention"}
)


@dataclass
class DocNode:
    """A node of the structured document tree."""

    type: str
    text: str = ""
    children: List["DocNode"] = field(default_factory=list)

    @property
    def is_text(self) -> bool:
        return self.type == TEXT_NODE

    @property
    def is_atom(self) -> bool:
        return self.type in ATOM_NODE_TYPES

    @property
    def content_size(self) -> int:
        if self.is_text:
            return len(self.text)
        return sum(child.node_size for child in self.children)

    @property
    def node_size(self) -> int:
        if self.is_text:
            return len(self.text)
        if self.is_atom:
            return 1
        return self.content_size + 2

    def plain_text(self) -> str:
        """Concatenate every text leaf in document order."""
        if self.is_text:
            return self.text
        return "".join(child.plain_text() for child in self.children)

    @classmethod
    def from_prosemirror(cls, data: Dict[str, Any]) -> "DocNode":
        """Build a tree from ProseMirror/Tiptap ``getJSON()`` output."""
        node_type = data.get("type") or "doc"
        children = [cls.from_prosemirror(child) for child in data.get("content") or []]
        return cls(type=node_type, text=data.get("text") or "", children=children)

    @classmethod
    def from_paragraphs(cls, paragraphs: Iterable[str]) -> "DocNode":
        """Build a document with one paragraph per string."""
        blocks = []
        for paragraph in paragraphs:
            content = [cls(type=TEXT_NODE, text=paragraph)] if paragraph else []
            blocks.append(cls(type="paragraph", children=content))
        return cls(type="doc", children=blocks)

    @classmethod
    def from_text(cls, text: str) -> "DocNode":
        """One paragraph per line. Newlines do not survive in the flat text."""
        return cls.from_paragraphs(text.split("\n"))


@dataclass
class PositionMap:
    """
    Monotonic mapping from flat text index to structured position.

    Attributes:
        text_to_structured: Structured position of every flat character
        content_size: Size of the root content in structured positions
    """

    text_to_structured: List[int]
    content_size: int = 0

    @property
    def total_text_length(self) -> int:
        return len(self.text_to_structured)

    def check_range(self, text_start: int, text_end: int) -> None:
        """Raise MalformedRangeError unless 0 <= start < end <= total."""
        if text_start < 0 or text_end > self.total_text_length or text_start >= text_end:
            raise MalformedRangeError(
                f"Range {text_start}-{text_end} outside text of length {self.total_text_length}",
                start=text_start,
                end=text_end,
            )

    def map_range(self, text_start: int, text_end: int) -> Optional[Tuple[int, int]]:
        """
        Map a flat [start, end) range to structured positions.

        The end maps to one past the structured position of the last covered
        character, so a range never swallows a closing block token.

        Returns:
            (structured_start, structured_end), or None for malformed ranges
        """
        try:
            self.check_range(text_start, text_end)
        except MalformedRangeError as exc:
            logger.debug(f"Skipping decoration: {exc}")
            return None
        return (self.text_to_structured[text_start], self.text_to_structured[text_end - 1] + 1)

    def to_flat(self, structured_pos: int) -> int:
        """Inverse mapping: number of text characters before ``structured_pos``."""
        return bisect_left(self.text_to_structured, structured_pos)

    def to_flat_range(self, structured_from: int, structured_to: int) -> Tuple[int, int]:
        return (self.to_flat(structured_from), self.to_flat(structured_to))


def build_map(doc: DocNode) -> PositionMap:
    """
    Walk the document leaves and record the structured position of every character.

    Args:
        doc: Root node (its own open/close tokens are not counted)

    Returns:
        PositionMap for the document
    """
    positions: List[int] = []

    def walk(node: DocNode, pos: int) -> None:
        if node.is_text:
            positions.extend(range(pos, pos + len(node.text)))
            return
        if node.is_atom:
            return
        inner = pos + 1
        for child in node.children:
            walk(child, inner)
            inner += child.node_size

    if doc.is_text:
        walk(doc, 0)
    else:
        pos = 0
        for child in doc.children:
            walk(child, pos)
            pos += child.node_size

    return PositionMap(text_to_structured=positions, content_size=doc.content_size)


def build_decorations(
    position_map: PositionMap,
    instructions: Sequence[RenderInstruction],
) -> List[Decoration]:
    """
    Turn render instructions into structured-position decorations.

    Malformed ranges are skipped. Decorations are ordered by ascending
    priority so the dominant suggestion is layered last.
    """
    decorations = []
    for instruction in instructions:
        mapped = position_map.map_range(instruction.flat_start, instruction.flat_end)
        if mapped is None:
            continue
        from_pos, to_pos = mapped
        decorations.append(
            Decoration(
                from_pos=from_pos,
                to_pos=to_pos,
                suggestion_id=instruction.suggestion_id,
                css_class=instruction.css_class,
                title=instruction.message,
                priority=instruction.priority,
            )
        )
    decorations.sort(key=lambda d: (d.priority, d.from_pos, d.suggestion_id))
    return decorations
