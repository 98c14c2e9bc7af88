import logging
import uuid
from typing import Callable, List, Optional, Sequence
from markdown_it.tree import SyntaxTreeNode

from mdchunk.config.settings import settings, SegmenterConfig, StyleConfig
from mdchunk.core.chunk.builder import ChunkBuilder
from mdchunk.core.formula.selector import FormulaRenderer, get_formula_renderer
from mdchunk.core.parse import nodes
from mdchunk.core.render.code import render_code
from mdchunk.core.render.measure import measure
from mdchunk.core.render.table import render_table
from mdchunk.core.render.visitor import StyledTextVisitor
from mdchunk.models.chunk import Chunk, ChunkKind, FormulaPayload, ImagePayload, TextPayload
from mdchunk.models.render import Size

logger = logging.getLogger(__name__)

CancelCheck = Callable[[], bool]

class SegmentationCancelled(Exception):
    """Raised when the cancel check reports that the pass was superseded."""

class SegmentationPolicy:
    """Decides which node kinds always get a chunk of their own."""

    ALWAYS_HARD = frozenset({ChunkKind.table, ChunkKind.code, ChunkKind.thematic_break})

    def __init__(self, config: Optional[SegmenterConfig] = None):
        config = config or settings.segmenter
        hard = set(self.ALWAYS_HARD)
        if config.split_block_quotes:
            hard.add(ChunkKind.block_quote)
        if config.split_formulas:
            hard.add(ChunkKind.formula)
        if config.split_images:
            hard.add(ChunkKind.image)
        if config.split_raw_html:
            hard.add(ChunkKind.raw_html)
        self.hard_kinds = frozenset(hard)

    def is_hard_split(self, kind: ChunkKind) -> bool:
        return kind in self.hard_kinds

class Segmenter:
    """
    Folds the top-level block nodes of a document into chunks.
    - Hard-split kinds (tables, code, thematic breaks, plus whatever the
      policy enables) seal the open text chunk and get a chunk of their own.
    - Everything else is folded into the open text chunk, which is sealed
      once adding the next node would exceed the soft cap.
    - A single node larger than the soft cap still becomes one chunk.
    """

    def __init__(self,
                 config: Optional[SegmenterConfig] = None,
                 style: Optional[StyleConfig] = None,
                 formula_renderer: Optional[FormulaRenderer] = None):
        self.config = config or settings.segmenter
        self.style = style or settings.style
        self.policy = SegmentationPolicy(self.config)
        self._formula_renderer = formula_renderer
        self.session_identity = uuid.uuid4().hex

    @property
    def formula_renderer(self) -> FormulaRenderer:
        if self._formula_renderer is None:
            self._formula_renderer = get_formula_renderer()
        return self._formula_renderer

    def identity_for(self, kind: ChunkKind, ordinal: Optional[int]) -> str:
        mode = self.config.identity_mode
        if mode == "session":
            return self.session_identity
        if mode == "random":
            return uuid.uuid4().hex
        return f"{kind.name}@{ordinal if ordinal is not None else 0}"

    def segment(self,
                block_nodes: Sequence[SyntaxTreeNode],
                style: Optional[StyleConfig] = None,
                cancel_check: Optional[CancelCheck] = None) -> List[Chunk]:
        style = style or self.style
        visitor = StyledTextVisitor(style)
        chunks: List[Chunk] = []
        builder = ChunkBuilder()

        for ordinal, node in enumerate(block_nodes):
            if cancel_check is not None and cancel_check():
                logger.debug(f"Segmentation cancelled at node {ordinal}/{len(block_nodes)}")
                raise SegmentationCancelled()

            kind = nodes.classify(node)
            if self.policy.is_hard_split(kind):
                if not builder.is_empty:
                    chunks.append(self._seal(builder, len(chunks), style))
                    builder = ChunkBuilder()
                chunks.append(self._dedicated_chunk(node, kind, ordinal, len(chunks), style, visitor))
                continue

            text = visitor.visit(node)
            if not builder.is_empty and builder.length + len(text) > self.config.soft_cap:
                chunks.append(self._seal(builder, len(chunks), style))
                builder = ChunkBuilder()
            builder.append(node, text, ordinal)

        if not builder.is_empty:
            chunks.append(self._seal(builder, len(chunks), style))

        logger.debug(f"Segmented {len(block_nodes)} nodes into {len(chunks)} chunks")
        return chunks

    def _seal(self, builder: ChunkBuilder, index: int, style: StyleConfig) -> Chunk:
        payload = None
        if self.config.render_inline_formulas:
            sources = [source for node in builder.nodes for source in nodes.formula_sources(node)]
            if sources:
                payload = TextPayload(formulas=[
                    FormulaPayload(source=source, result=self.formula_renderer.render(source, style))
                    for source in sources
                ])
        identity = self.identity_for(builder.kind, builder.first_ordinal)
        return builder.build(index, identity, style, payload)

    def _dedicated_chunk(self,
                         node: SyntaxTreeNode,
                         kind: ChunkKind,
                         ordinal: int,
                         index: int,
                         style: StyleConfig,
                         visitor: StyledTextVisitor) -> Chunk:
        """Runs the kind-specific sub-render for a hard-split node."""
        payload = None
        if kind == ChunkKind.code:
            payload, size = render_code(node, style)
            text = payload.highlighted
        elif kind == ChunkKind.table:
            payload, size = render_table(node, style)
            text = visitor.visit(node)
        elif kind == ChunkKind.thematic_break:
            text = visitor.visit(node)
            size = Size(width=style.max_container_width, height=style.thematic_height)
        elif kind == ChunkKind.image:
            text = visitor.visit(node)
            payload = ImagePayload(template=style.image_base_url, source=nodes.image_source(node))
            size = Size(width=style.max_container_width, height=style.image_height)
        elif kind == ChunkKind.formula:
            text = visitor.visit(node)
            source = "".join(nodes.formula_sources(node))
            result = self.formula_renderer.render(source, style)
            payload = FormulaPayload(source=source, result=result)
            size = self._formula_size(result.size, style) if result.success else measure(text, style.max_container_width, style)
        else:
            text = visitor.visit(node)
            size = measure(text, style.max_container_width, style)

        return Chunk.create(
            index=index,
            kind=kind,
            identity=self.identity_for(kind, ordinal),
            source_nodes=[node],
            rendered_text=text,
            measured_size=size,
            payload=payload
        )

    @staticmethod
    def _formula_size(artifact: Size, style: StyleConfig) -> Size:
        padding = style.formula_padding
        return Size(
            width=min(style.max_container_width, artifact.width + padding.left + padding.right),
            height=artifact.height + padding.top + padding.bottom
        )

def segment(block_nodes: Sequence[SyntaxTreeNode],
            style: Optional[StyleConfig] = None,
            cancel_check: Optional[CancelCheck] = None) -> List[Chunk]:
    return Segmenter(style=style).segment(block_nodes, style, cancel_check)
