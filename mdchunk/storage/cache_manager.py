import logging
from mdchunk.config.settings import settings, CacheConfig
from mdchunk.storage.lru_cache import LRURenderCache

logger = logging.getLogger(__name__)

class RenderCacheManager:
    """
    Process-wide holder of the render caches.
    - formula: trimmed formula body -> rasterized image
    - styled_text: language + NUL + code -> syntax-tinted Text
    """

    def __init__(self, config: CacheConfig | None = None):
        config = config or settings.cache
        self.formula = LRURenderCache(
            count_limit=config.formula_count_limit,
            cost_limit=config.formula_cost_limit,
            name="formula"
        )
        self.styled_text = LRURenderCache(
            count_limit=config.styled_text_count_limit,
            cost_limit=config.styled_text_cost_limit,
            name="styled_text"
        )

    def clear_all(self) -> None:
        """Must be called when a rendering session ends to bound memory growth."""
        self.formula.clear_all()
        self.styled_text.clear_all()
        logger.info("Render caches cleared")

# Global cache instance shared by every pipeline in the process
render_caches = RenderCacheManager()
