from typing import List, Optional
from markdown_it.tree import SyntaxTreeNode
from rich.text import Text

from mdchunk.config.settings import settings, StyleConfig
from mdchunk.core.render.measure import measure
from mdchunk.models.chunk import Chunk, ChunkKind, Payload

class ChunkBuilder:
    """
    Mutable accumulator for one Text chunk.
    Folds block nodes and their styled text until sealed with build().
    """

    def __init__(self, kind: ChunkKind = ChunkKind.text):
        self.kind = kind
        self.nodes: List[SyntaxTreeNode] = []
        self.text = Text()
        self.first_ordinal: Optional[int] = None

    def append(self, node: SyntaxTreeNode, text: Text, ordinal: Optional[int] = None) -> None:
        if self.first_ordinal is None:
            self.first_ordinal = ordinal
        self.nodes.append(node)
        self.text.append_text(text)

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    @property
    def length(self) -> int:
        return len(self.text)

    def build(self, index: int, identity: str, style: Optional[StyleConfig] = None, payload: Payload = None) -> Chunk:
        style = style or settings.style
        return Chunk.create(
            index=index,
            kind=self.kind,
            identity=identity,
            source_nodes=list(self.nodes),
            rendered_text=self.text.copy(),
            measured_size=measure(self.text, style.max_container_width, style),
            payload=payload
        )
