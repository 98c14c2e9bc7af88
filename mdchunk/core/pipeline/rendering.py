import logging
import time
from typing import List, Optional

from mdchunk.config.settings import settings, SegmenterConfig, StyleConfig
from mdchunk.core.chunk.segmenter import CancelCheck, SegmentationCancelled, Segmenter
from mdchunk.core.formula.selector import FormulaRenderer
from mdchunk.core.parse.markdown_parser import MarkdownParser
from mdchunk.core.parse.preprocessor import Preprocessor
from mdchunk.models.chunk import Chunk
from mdchunk.storage.cache_manager import render_caches

logger = logging.getLogger(__name__)

class RenderPipeline:
    """
    Orchestrates one full rendering pass:
    preprocess -> parse -> segment
    The whole document is processed on every call.
    """

    def __init__(self,
                 style: Optional[StyleConfig] = None,
                 segmenter_config: Optional[SegmenterConfig] = None,
                 formula_renderer: Optional[FormulaRenderer] = None):
        self.style = style or settings.style
        self.preprocessor = Preprocessor()
        self.parser = MarkdownParser()
        self.segmenter = Segmenter(segmenter_config, self.style, formula_renderer)

    def run(self,
            text: str,
            style: Optional[StyleConfig] = None,
            cancel_check: Optional[CancelCheck] = None) -> List[Chunk]:
        style = style or self.style
        started = time.perf_counter()

        def check_cancelled(stage: str):
            if cancel_check is not None and cancel_check():
                logger.debug(f"Render pass cancelled before {stage}")
                raise SegmentationCancelled()

        check_cancelled("preprocess")
        prepared = self.preprocessor.process(text)

        check_cancelled("parse")
        block_nodes = self.parser.parse(prepared)
        logger.debug(f"Parsed {len(text)} chars into {len(block_nodes)} block nodes")

        chunks = self.segmenter.segment(block_nodes, style, cancel_check)
        elapsed = (time.perf_counter() - started) * 1000
        logger.info(f"Rendered {len(chunks)} chunks in {elapsed:.1f}ms")
        return chunks

    def update_style(self, style: StyleConfig) -> None:
        """Cached artifacts are keyed by content only, so a style change invalidates them."""
        self.style = style
        self.segmenter.style = style
        render_caches.clear_all()
        logger.info("Render style updated")
