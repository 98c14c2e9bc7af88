import logging
from typing import Optional

from mdchunk.config.settings import settings, FormulaConfig, StyleConfig
from mdchunk.core.formula.errors import FormulaRenderError
from mdchunk.core.formula.fallback_renderer import SvgFormulaRenderer
from mdchunk.core.formula.fast_renderer import MathTextRenderer
from mdchunk.core.formula.strategy import select_strategy, trim_delimiters
from mdchunk.models.render import RenderResult, RenderStrategy
from mdchunk.storage.base import RenderCacheStore
from mdchunk.storage.cache_manager import render_caches

logger = logging.getLogger(__name__)

class FormulaRenderer:
    """
    Picks a rendering strategy per formula.
    - Cache hit on the trimmed body short-circuits everything.
    - FAST (mathtext) for simple formulas, falling through to FALLBACK on failure.
    - FALLBACK (TeX -> SVG -> raster) for complex ones.
    Never raises: failures come back as success=False with the error message.
    """

    def __init__(self,
                 fast: Optional[MathTextRenderer] = None,
                 fallback: Optional[SvgFormulaRenderer] = None,
                 cache: Optional[RenderCacheStore] = None,
                 config: Optional[FormulaConfig] = None):
        self.config = config or settings.formula
        self.fast = fast or MathTextRenderer(self.config)
        self.fallback = fallback or SvgFormulaRenderer(self.config)
        self.cache = cache if cache is not None else render_caches.formula

    def render(self, formula_text: str, style: Optional[StyleConfig] = None) -> RenderResult:
        style = style or settings.style
        formula = trim_delimiters(formula_text)
        if not formula:
            return RenderResult.failure("Empty formula")

        cached = self.cache.get(formula)
        if cached is not None:
            return cached.model_copy(update={"strategy": RenderStrategy.cache})

        strategy = select_strategy(formula, self.config)
        if strategy == RenderStrategy.fast:
            try:
                return self._store(formula, self.fast.render(formula, style))
            except FormulaRenderError as e:
                logger.warning(f"Fast formula render failed: {e}. Trying fallback.")

        try:
            return self._store(formula, self.fallback.render(formula, style))
        except FormulaRenderError as e:
            logger.warning(f"Fallback formula render failed: {e}")
            return RenderResult.failure(e, strategy=RenderStrategy.fallback)

    def _store(self, formula: str, result: RenderResult) -> RenderResult:
        if result.success:
            self.cache.set(formula, result, cost=int(result.size.width * result.size.height))
        return result

_default_renderer: Optional[FormulaRenderer] = None

def get_formula_renderer() -> FormulaRenderer:
    global _default_renderer
    if _default_renderer is None:
        _default_renderer = FormulaRenderer()
    return _default_renderer

def render_formula(text: str, style: Optional[StyleConfig] = None) -> RenderResult:
    return get_formula_renderer().render(text, style)
